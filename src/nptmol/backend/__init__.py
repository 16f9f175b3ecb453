'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 15:38:51
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 20:17:02
FilePath: /nptmol/src/nptmol/backend/__init__.py
Description: 

Copyright (c) 2026 by leviathan, All Rights Reserved. 
'''
# src/nptmol/backend/__init__.py

from .base import BackendKind, EvalEnv, Layout, RhsKernel
from .python_backend import PythonRhsKernel, compile_expr, compile_terms

__all__ = [
    "BackendKind",
    "EvalEnv",
    "Layout",
    "RhsKernel",
    "PythonRhsKernel",
    "compile_expr",
    "compile_terms",
]
