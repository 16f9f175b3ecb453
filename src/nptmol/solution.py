'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 17:18:02
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 21:55:13
FilePath: /nptmol/src/nptmol/solution.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/solution.py
from numbers import Real
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from .mapper import VariableMap

if TYPE_CHECKING:
    from .backend.base import RhsKernel
    from .timestepping import ODEProblem


class Solution:
    """
    积分结果 -> 物理量。

    t      : (n_t,) 采样时刻
    states : (n_t, n_state) 每个时刻的状态向量
    kernel : 可选；有它才能重建被消元的边界点
    """

    def __init__(
        self,
        t: Sequence[float],
        states: np.ndarray,
        mapper: VariableMap,
        kernel: Optional["RhsKernel"] = None,
        p: Optional[np.ndarray] = None,
    ) -> None:
        self.t = np.asarray(t, dtype=float)
        self.states = np.atleast_2d(np.asarray(states, dtype=float))
        if self.states.shape != (self.t.size, len(mapper)):
            raise ValueError(
                f"States must have shape ({self.t.size}, {len(mapper)}), got {self.states.shape}"
            )
        self.mapper = mapper
        self.kernel = kernel
        self.p = p

    @classmethod
    def from_samples(cls, problem: "ODEProblem", ts: Sequence[float], states) -> "Solution":
        """外部积分器给出的 (t_i, state_i) 序列。"""
        return cls(ts, np.asarray(states, dtype=float), problem.mapper, problem.rhs, problem.p)

    def __len__(self) -> int:
        return self.t.size

    def __getitem__(self, field) -> np.ndarray:
        """solution[u] -> (n_t, 该变量槽数)；ODE 变量是 (n_t,)。"""
        block = self.mapper.block(field)
        values = self.states[:, block.slice]
        return values[:, 0] if block.grid is None else values

    def time_index(self, t_i: float) -> int:
        hits = np.flatnonzero(np.isclose(self.t, t_i, rtol=1e-12, atol=1e-12))
        if hits.size == 0:
            raise KeyError(f"t = {t_i} is not a sampled time")
        return int(hits[0])

    def state(self, t_i: float) -> np.ndarray:
        return self.states[self.time_index(t_i)]

    def coordinates(self, field, include_boundaries: bool = False) -> np.ndarray:
        grid = self.mapper.grid(field)
        if include_boundaries and grid is not None:
            return grid.x.copy()
        return self.mapper.coordinates(field)

    def _full_field(self, field, k: int) -> np.ndarray:
        if self.kernel is None:
            raise ValueError("Boundary values need the rhs kernel; build the Solution with one")
        return self.kernel.full_field(field, self.t[k], self.states[k], self.p)

    def field_at(self, field, t_i: float, include_boundaries: bool = False) -> np.ndarray:
        """某一采样时刻某变量的整个场。"""
        k = self.time_index(t_i)
        if include_boundaries and self.mapper.grid(field) is not None:
            return self._full_field(field, k)
        return self.states[k, self.mapper.slice(field)].copy()

    def value_at(self, field, coordinate, t_i: float) -> float:
        """
        value_at(u, x, t_i)：x 必须是网格点；
        被消元的边界点通过边界方程重建。
        """
        k = self.time_index(t_i)
        grid = self.mapper.grid(field)
        if grid is None:
            return float(self.states[k, self.mapper.index(field)])

        x = coordinate if isinstance(coordinate, Real) else coordinate[0]
        try:
            return float(self.states[k, self.mapper.index(field, x)])
        except KeyError:
            i = grid.index_of(float(x))
            return float(self._full_field(field, k)[i])

    def __repr__(self) -> str:
        return f"Solution(n_t={self.t.size}, {self.mapper!r})"
