'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 13:41:08
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 18:02:37
FilePath: /nptmol/src/nptmol/stencil_ir.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/stencil_ir.py
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, List, Tuple

import numpy as np
import scipy.sparse as sp

from .grid import Grid1D
from .pde_ir import Term

if TYPE_CHECKING:
    from .boundary import BoundaryEquation
    from .mapper import VariableMap


@dataclass(frozen=True, eq=False)
class PointStencil:
    """
    单个网格点上的差分格式：
        L(u)_index = sum_k weights[k] * u[points[k]]
    order 是这一行实际达到的精度阶（边界附近可能被降阶）。
    """
    index: int
    points: np.ndarray
    weights: np.ndarray
    order: int

    @property
    def offsets(self) -> np.ndarray:
        return self.points - self.index

    def apply(self, values: np.ndarray) -> float:
        return float(self.weights @ values[self.points])


@dataclass(frozen=True, eq=False)
class LinearStencil1D:
    """
    某个网格上、某阶导数的全部逐点 stencil。
    rows: 网格下标 -> PointStencil，只覆盖需要求导的那些点。
    """
    grid: Grid1D
    derivative: int
    approx_order: int
    rows: Dict[int, PointStencil]

    def offsets(self, i: int) -> np.ndarray:
        return self.rows[i].offsets

    def apply(self, values: np.ndarray) -> np.ndarray:
        """对全网格数组求导；没有 stencil 的行置 0。"""
        return self.matrix() @ np.asarray(values, dtype=float)

    def matrix(self) -> sp.csr_matrix:
        n = self.grid.nx
        rows, cols, data = [], [], []
        for i, row in self.rows.items():
            rows.append(np.full(row.points.size, i))
            cols.append(row.points)
            data.append(row.weights)
        if not rows:
            return sp.csr_matrix((n, n))
        return sp.csr_matrix(
            (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
            shape=(n, n),
        )

    def with_rows(self, extra: Dict[int, PointStencil]) -> "LinearStencil1D":
        rows = dict(self.rows)
        rows.update(extra)
        return replace(self, rows=rows)


# ======================= 组装用的中间表示 =======================

@dataclass
class RowSet:
    """
    一组网格行共用同一套项：
      dy[slots] = sum(terms) 在 grid[rows] 上的取值
    ODE 变量时 rows 为 None。
    """
    rows: "np.ndarray | None"
    slots: np.ndarray
    terms: List[Term]


@dataclass
class EquationOp:
    """一个被驱动变量的全部 RHS 行。"""
    field: object
    rowsets: List[RowSet]


@dataclass
class DerivativeOp:
    """RHS 里用到的 d^m(field)/dx^m，在全网格上用稀疏矩阵求。"""
    field: object
    stencil: LinearStencil1D

    @property
    def key(self) -> Tuple[str, int]:
        return (self.field.name, self.stencil.derivative)


@dataclass
class MOLProgram:
    """
    半离散后的完整程序，交给后端编译成 rhs(t, y, p)。
    """
    mapper: "VariableMap"
    equations: List[EquationOp]
    derivatives: List[DerivativeOp]
    boundaries: List["BoundaryEquation"]
    parameters: List[str]
    parameter_values: np.ndarray
    time: str = "t"
    approx_order: int = 2
