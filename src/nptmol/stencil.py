'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 14:05:52
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 18:20:14
FilePath: /nptmol/src/nptmol/stencil.py
Description: 有限差分系数（均匀网格查表，非均匀网格解 Taylor 矩方程）

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/stencil.py
from math import factorial
from typing import Dict, Optional, Tuple

import numpy as np

from .errors import UnsupportedOrderError
from .grid import Grid1D, Side
from .logging import get_logger
from .stencil_ir import LinearStencil1D, PointStencil

logger = get_logger(__name__)

SUPPORTED_DERIVATIVES = (1, 2)

# 均匀网格中心差分系数（h = 1），key = (导数阶, 精度阶)
CENTERED_COEFFS: Dict[Tuple[int, int], np.ndarray] = {
    (1, 2): np.array([-1 / 2, 0.0, 1 / 2]),
    (1, 4): np.array([1 / 12, -2 / 3, 0.0, 2 / 3, -1 / 12]),
    (1, 6): np.array([-1 / 60, 3 / 20, -3 / 4, 0.0, 3 / 4, -3 / 20, 1 / 60]),
    (1, 8): np.array([1 / 280, -4 / 105, 1 / 5, -4 / 5, 0.0, 4 / 5, -1 / 5, 4 / 105, -1 / 280]),
    (2, 2): np.array([1.0, -2.0, 1.0]),
    (2, 4): np.array([-1 / 12, 4 / 3, -5 / 2, 4 / 3, -1 / 12]),
    (2, 6): np.array([1 / 90, -3 / 20, 3 / 2, -49 / 18, 3 / 2, -3 / 20, 1 / 90]),
    (2, 8): np.array([-1 / 560, 8 / 315, -1 / 5, 8 / 5, -205 / 72, 8 / 5, -1 / 5, 8 / 315, -1 / 560]),
}


def check_derivative(derivative: int) -> int:
    if derivative not in SUPPORTED_DERIVATIVES:
        raise UnsupportedOrderError(
            f"Only derivative orders {SUPPORTED_DERIVATIVES} are supported, got {derivative}"
        )
    return derivative


def check_centered_order(approx_order: int) -> int:
    """
    中心差分只能是偶数阶：
      - 1 视为 2（与一阶迎风无关，只是最低可用的中心格式）
      - 其它奇数报错
    """
    approx_order = int(approx_order)
    if approx_order < 1:
        raise UnsupportedOrderError(f"Approximation order must be positive, got {approx_order}")
    if approx_order == 1:
        return 2
    if approx_order % 2:
        raise UnsupportedOrderError(
            f"Centered stencils require an even approximation order, got {approx_order}"
        )
    return approx_order


def taylor_weights(offsets: np.ndarray, derivative: int) -> np.ndarray:
    """
    任意点位的有限差分权重（Fornberg 意义下的广义差分）：
        sum_j w_j * s_j**k / k! = delta(k, derivative),  k = 0 .. len(s)-1
    s 是相对求导点的有向距离。先按最大距离归一化，改善 Vandermonde 条件数。
    """
    s = np.asarray(offsets, dtype=float)
    if s.size <= derivative:
        raise UnsupportedOrderError(
            f"{s.size} points cannot approximate derivative order {derivative}"
        )
    scale = float(np.max(np.abs(s)))
    z = s / scale
    k = np.arange(s.size)
    A = z[None, :] ** k[:, None]
    b = np.zeros(s.size)
    b[derivative] = factorial(derivative)
    w = np.linalg.solve(A, b)
    return w / scale ** derivative


# ======================= 逐点 stencil =======================

def _centered_row(grid: Grid1D, i: int, derivative: int, radius: int) -> PointStencil:
    points = np.arange(i - radius, i + radius + 1)
    order = 2 * radius
    key = (derivative, order)
    if grid.is_uniform and key in CENTERED_COEFFS:
        h = float(grid.spacing.mean())
        weights = CENTERED_COEFFS[key] / h ** derivative
    else:
        weights = taylor_weights(grid.x[points] - grid.x[i], derivative)
    return PointStencil(index=i, points=points, weights=weights, order=order)


def centered_stencil(grid: Grid1D, derivative: int, approx_order: int) -> LinearStencil1D:
    """
    所有内点上的中心差分。
    靠近边界放不下完整窗口时，截成能放下的最宽对称窗口（精度降到 2*r_eff）。
    """
    check_derivative(derivative)
    approx_order = check_centered_order(approx_order)
    radius = approx_order // 2
    n = grid.nx

    rows: Dict[int, PointStencil] = {}
    reduced = []
    for i in range(1, n - 1):
        r_eff = min(radius, i, n - 1 - i)
        if r_eff < radius:
            reduced.append(i)
        rows[i] = _centered_row(grid, i, derivative, r_eff)

    if reduced:
        logger.debug(
            "d%d/d%s%d order %d reduced near boundaries at indices %s",
            derivative, grid.coordinate, derivative, approx_order, reduced,
        )
    return LinearStencil1D(grid=grid, derivative=derivative, approx_order=approx_order, rows=rows)


def one_sided_stencil(grid: Grid1D, side: Side, order: int) -> PointStencil:
    """
    边界点上的单侧一阶导数：用 order+1 个点得到 order 阶精度。
    点数上限 nx-1，保证不会碰到另一侧的边界点。
    """
    if order < 1:
        raise UnsupportedOrderError(f"Boundary derivative order must be positive, got {order}")
    n = grid.nx
    k = min(order, n - 2)
    if k < order:
        logger.debug(
            "one-sided d/d%s at %s side limited to order %d (requested %d)",
            grid.coordinate, side.value, k, order,
        )
    if side is Side.LOWER:
        index, points = 0, np.arange(0, k + 1)
    else:
        index, points = n - 1, np.arange(n - 1 - k, n)
    weights = taylor_weights(grid.x[points] - grid.x[index], 1)
    return PointStencil(index=index, points=points, weights=weights, order=k)


def mirrored_stencil(grid: Grid1D, side: Side, derivative: int, approx_order: int) -> PointStencil:
    """
    对称原点上的差分：u 关于原点偶对称，
    镜像点 -x_j 的值等于 u_j，把 (-j) 和 (+j) 的权重叠加到 j 上。
    """
    check_derivative(derivative)
    approx_order = check_centered_order(approx_order)
    n = grid.nx
    depth = min(approx_order // 2, n - 1)

    if side is Side.LOWER:
        index, inner = 0, np.arange(1, depth + 1)
    else:
        index, inner = n - 1, np.arange(n - 2, n - 2 - depth, -1)
    d = np.abs(grid.x[inner] - grid.x[index])

    s = np.concatenate([-d[::-1], [0.0], d])
    w = taylor_weights(s, derivative)
    centre = w[depth]
    folded = w[depth + 1:] + w[:depth][::-1]

    points = np.concatenate([[index], inner])
    weights = np.concatenate([[centre], folded])
    perm = np.argsort(points)
    return PointStencil(index=index, points=points[perm], weights=weights[perm], order=2 * depth)


# ======================= 缓存 =======================

class StencilCache:
    """
    一次离散配置所拥有的 stencil 缓存，key 带上网格对象本身。
    组装完成后只读，可以被多次 rhs 调用共享。
    """

    def __init__(self) -> None:
        self._centered: Dict[tuple, LinearStencil1D] = {}
        self._points: Dict[tuple, PointStencil] = {}

    def get(self, grid: Grid1D, derivative: int, approx_order: int) -> LinearStencil1D:
        key = (grid, derivative, check_centered_order(approx_order))
        if key not in self._centered:
            self._centered[key] = centered_stencil(grid, derivative, approx_order)
        return self._centered[key]

    def one_sided(self, grid: Grid1D, side: Side, order: int) -> PointStencil:
        key = ("one_sided", grid, side, order)
        if key not in self._points:
            self._points[key] = one_sided_stencil(grid, side, order)
        return self._points[key]

    def mirrored(self, grid: Grid1D, side: Side, derivative: int, approx_order: int) -> PointStencil:
        key = ("mirrored", grid, side, derivative, approx_order)
        if key not in self._points:
            self._points[key] = mirrored_stencil(grid, side, derivative, approx_order)
        return self._points[key]

    def clear(self) -> None:
        self._centered.clear()
        self._points.clear()

    def __len__(self) -> int:
        return len(self._centered) + len(self._points)


def stencil(
    grid: Grid1D,
    derivative_order: int,
    approx_order: int,
    cache: Optional[StencilCache] = None,
) -> LinearStencil1D:
    """
    对外入口：grid 上 derivative_order 阶导数、approx_order 阶精度的内点 stencil。
    """
    if cache is not None:
        return cache.get(grid, derivative_order, approx_order)
    return centered_stencil(grid, derivative_order, approx_order)
