'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 15:40:03
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 19:44:50
FilePath: /nptmol/src/nptmol/backend/base.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/backend/base.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple, TypeAlias, Union

import numpy as np


class BackendKind(Enum):
    PYTHON = "python"


class RhsKernel(Protocol):
    """
    后端产出的 rhs 统一接口：dy/dt = rhs(t, y, p)。
    """
    def __call__(self, t: float, y: np.ndarray, p: Optional[np.ndarray] = None) -> np.ndarray:
        ...

    def full_field(self, field, t: float, y: np.ndarray, p: Optional[np.ndarray] = None) -> np.ndarray:
        ...


@dataclass
class EvalEnv:
    """
    一次 rhs 调用里的求值环境：
      fields      : 变量名 -> 全网格数组（含重建出的边界值）或 ODE 标量
      derivatives : (变量名, 导数阶) -> 全网格导数数组
    """
    t: float
    p: np.ndarray
    fields: Dict[str, Union[float, np.ndarray]] = field(default_factory=dict)
    derivatives: Dict[Tuple[str, int], np.ndarray] = field(default_factory=dict)


Value: TypeAlias = Union[float, np.ndarray]
CompiledExpr: TypeAlias = Callable[[EvalEnv], Value]


@dataclass
class Layout:
    """
    编译一组项时的静态信息：
      time       : 时间坐标名
      params     : 参数名 -> 参数向量下标
      coordinate : 这组行所在的空间坐标（ODE / 边界系数时可能没有场）
      points     : 行上的坐标值（边界系数时是边界位置标量）
      rows       : 网格行下标，None 表示不能引用空间变量
    """
    time: str
    params: Dict[str, int]
    coordinate: Optional[str] = None
    points: Optional[Value] = None
    rows: Optional[np.ndarray] = None
