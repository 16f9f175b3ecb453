'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 12:24:02
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 12:24:02
FilePath: /nptmol/src/nptmol/logging.py
Description: 

Copyright (c) 2026 by leviathan, All Rights Reserved. 
'''
# nptmol/logging.py
"""
nptmol 的日志工具。

    from nptmol.logging import get_logger
    logger = get_logger(__name__)

默认级别 WARNING，可以用环境变量 NPTMOL_LOG_LEVEL 或 set_log_level() 调整。
"""
import logging
import os
import sys
from typing import Dict, Optional, Union

_ROOT_NAME = "nptmol"
_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_loggers: Dict[str, logging.Logger] = {}


def _default_level() -> int:
    env_level = os.environ.get("NPTMOL_LOG_LEVEL")
    if not env_level:
        return logging.WARNING
    level = logging.getLevelName(env_level.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid NPTMOL_LOG_LEVEL: {env_level!r}")
    return level


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """按模块名取（或创建）一个 nptmol.* logger，带缓存，避免重复挂 handler。"""
    if name is None:
        name = _ROOT_NAME
    logger_name = name if name.startswith(_ROOT_NAME) else f"{_ROOT_NAME}.{name}"

    if logger_name in _loggers:
        return _loggers[logger_name]

    logger = logging.getLogger(logger_name)
    if not logger.handlers:
        level = _default_level()
        logger.setLevel(level)

        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(_FORMAT))

        logger.addHandler(handler)
        logger.propagate = False

    _loggers[logger_name] = logger
    return logger


def set_log_level(level: Union[int, str]) -> None:
    """统一修改所有已创建的 nptmol logger 的级别。"""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Invalid log level: {level!r}")
        level = resolved

    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
