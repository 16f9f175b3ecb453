'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 17:05:26
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 21:37:50
FilePath: /nptmol/src/nptmol/timestepping.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/timestepping.py
from dataclasses import dataclass, field, replace
from numbers import Real
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.integrate import solve_ivp

from .backend.python_backend import PythonRhsKernel
from .boundary import BoundaryEquation
from .logging import get_logger
from .mapper import VariableMap
from .solution import Solution

logger = get_logger(__name__)


@dataclass
class ODEProblem:
    """
    半离散后的 ODE 系统：dy/dt = rhs(t, y, p)，y(t0) = u0。
    积分器是外部的，solve() 只是对 scipy.integrate.solve_ivp 的一层包装。
    """
    rhs: PythonRhsKernel
    u0: np.ndarray
    p: np.ndarray
    tspan: Tuple[float, float]
    mapper: VariableMap
    boundary_equations: List[BoundaryEquation] = field(default_factory=list)
    parameters: List[str] = field(default_factory=list)
    name: str = "pdesys"

    def with_parameters(self, p: Sequence[float]) -> "ODEProblem":
        """换一组参数值，不重新组装。"""
        p = np.asarray(p, dtype=float)
        if p.shape != self.p.shape:
            raise ValueError(f"Parameter vector must have shape {self.p.shape}, got {p.shape}")
        return replace(self, p=p)

    def _sample_times(self, saveat: Union[None, float, Sequence[float]], t_eval) -> Optional[np.ndarray]:
        if saveat is not None and t_eval is not None:
            raise ValueError("Pass either saveat or t_eval, not both")
        if saveat is None:
            return None if t_eval is None else np.asarray(t_eval, dtype=float)
        t0, tf = self.tspan
        if isinstance(saveat, Real):
            dt = float(saveat)
            if not dt > 0.0:
                raise ValueError(f"saveat interval must be positive, got {saveat}")
            steps = max(int(round((tf - t0) / dt)), 1)
            if abs(steps * dt - (tf - t0)) > 1e-9 * max(1.0, abs(tf - t0)):
                logger.warning(
                    "saveat %g does not divide [%g, %g]; sampling %d uniform steps of %g",
                    dt, t0, tf, steps, (tf - t0) / steps,
                )
            return np.linspace(t0, tf, steps + 1)
        return np.asarray(saveat, dtype=float)

    def solve(
        self,
        method: str = "BDF",
        saveat: Union[None, float, Sequence[float]] = None,
        t_eval: Optional[Sequence[float]] = None,
        **kwargs,
    ) -> Solution:
        """
        用 solve_ivp 积分整个时间区间。
        saveat 可以是输出间隔或输出时刻列表（与 t_eval 二选一）。
        """
        times = self._sample_times(saveat, t_eval)
        logger.info(
            "solving %s: %d unknowns on [%g, %g] with %s",
            self.name, self.u0.size, self.tspan[0], self.tspan[1], method,
        )
        sol = solve_ivp(
            self.rhs,
            self.tspan,
            self.u0,
            method=method,
            t_eval=times,
            args=(self.p,),
            **kwargs,
        )
        if not sol.success:
            raise RuntimeError(f"Integration of {self.name!r} failed: {sol.message}")
        logger.debug("%s: %d rhs evaluations", self.name, sol.nfev)
        return Solution.from_samples(self, sol.t, sol.y.T)
