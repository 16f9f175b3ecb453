'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 12:27:13
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 15:02:41
FilePath: /nptmol/src/nptmol/grid.py
Description: 

Copyright (c) 2026 by leviathan, All Rights Reserved. 
'''
# nptmol/grid.py
from dataclasses import dataclass
from enum import Enum
from numbers import Integral, Real
from typing import Sequence, Union

import numpy as np

from .errors import InvalidDomainError
from .logging import get_logger

logger = get_logger(__name__)

PointsOrSpacing = Union[int, float, Sequence[float], np.ndarray]


class Side(Enum):
    LOWER = "lower"
    UPPER = "upper"


def _coordinate_name(coordinate) -> str:
    return coordinate if isinstance(coordinate, str) else coordinate.name


@dataclass(frozen=True)
class Domain:
    """
    自变量的闭区间 [lo, hi]。
    coordinate 可以是 Coordinate，也可以直接给名字。
    """
    coordinate: str
    lo: float
    hi: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "coordinate", _coordinate_name(self.coordinate))
        object.__setattr__(self, "lo", float(self.lo))
        object.__setattr__(self, "hi", float(self.hi))
        if not (np.isfinite(self.lo) and np.isfinite(self.hi)):
            raise InvalidDomainError(f"Domain of {self.coordinate!r} must be finite")
        if not self.lo < self.hi:
            raise InvalidDomainError(
                f"Domain of {self.coordinate!r} requires lo < hi, got [{self.lo}, {self.hi}]"
            )

    @property
    def length(self) -> float:
        return self.hi - self.lo


@dataclass(frozen=True, eq=False)
class Grid1D:
    """
    一维网格（均匀或非均匀）。
    x: 严格递增的网格点坐标（包含两个边界点），构造后只读。
    """
    coordinate: str
    x: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "coordinate", _coordinate_name(self.coordinate))
        x = np.array(self.x, dtype=float)
        if x.ndim != 1:
            raise InvalidDomainError("Grid1D coordinates must be one-dimensional")
        if x.size < 3:
            raise InvalidDomainError(
                f"Grid1D requires at least 3 points for FDM stencils, got {x.size}"
            )
        if not np.all(np.isfinite(x)):
            raise InvalidDomainError("Grid1D coordinates must be finite")
        if np.any(np.diff(x) <= 0.0):
            raise InvalidDomainError("Grid1D coordinates must be strictly increasing")
        x.setflags(write=False)
        object.__setattr__(self, "x", x)

    @property
    def nx(self) -> int:
        return int(self.x.size)

    @property
    def lo(self) -> float:
        return float(self.x[0])

    @property
    def hi(self) -> float:
        return float(self.x[-1])

    @property
    def spacing(self) -> np.ndarray:
        """相邻点间距，长度 nx - 1。"""
        return np.diff(self.x)

    @property
    def is_uniform(self) -> bool:
        h = self.spacing
        return bool(np.allclose(h, h.mean(), rtol=1e-10, atol=0.0))

    @property
    def interior(self) -> np.ndarray:
        """内点下标 1 .. nx-2。"""
        return np.arange(1, self.nx - 1)

    def boundary_index(self, side: Side) -> int:
        return 0 if side is Side.LOWER else self.nx - 1

    def side_of(self, location: float) -> Side:
        """边界位置 -> 哪一侧；不在端点上时报错。"""
        tol = 1e-12 * max(1.0, abs(self.lo), abs(self.hi))
        if abs(location - self.lo) <= tol:
            return Side.LOWER
        if abs(location - self.hi) <= tol:
            return Side.UPPER
        raise InvalidDomainError(
            f"Location {location} is not a boundary of {self.coordinate!r} "
            f"in [{self.lo}, {self.hi}]"
        )

    def index_of(self, value: float) -> int:
        """坐标值 -> 网格下标（必须落在网格点上）。"""
        i = int(np.searchsorted(self.x, value))
        tol = 1e-12 * max(1.0, abs(self.lo), abs(self.hi))
        for j in (i - 1, i):
            if 0 <= j < self.nx and abs(self.x[j] - value) <= tol:
                return j
        raise KeyError(f"{value} is not a grid point of {self.coordinate!r}")

    def __len__(self) -> int:
        return self.nx

    def __repr__(self) -> str:
        kind = "uniform" if self.is_uniform else "non-uniform"
        return f"Grid1D({self.coordinate!r}, nx={self.nx}, [{self.lo}, {self.hi}], {kind})"


def build_grid(domain: Domain, points_or_spacing: PointsOrSpacing) -> Grid1D:
    """
    根据区间和离散描述构造网格：
      - int      : 点数（含边界），等距
      - float    : 步长，等距
      - 序列     : 显式坐标，原样接受（不排序、不去重），两端必须与区间端点一致
    """
    if isinstance(points_or_spacing, Integral) and not isinstance(points_or_spacing, bool):
        n = int(points_or_spacing)
        if n < 3:
            raise InvalidDomainError(f"Grid for {domain.coordinate!r} needs >= 3 points, got {n}")
        return Grid1D(domain.coordinate, np.linspace(domain.lo, domain.hi, n))

    if isinstance(points_or_spacing, Real):
        h = float(points_or_spacing)
        if not h > 0.0:
            raise InvalidDomainError(f"Grid spacing for {domain.coordinate!r} must be positive")
        cells = int(round(domain.length / h))
        if abs(cells * h - domain.length) > 1e-9 * max(1.0, domain.length):
            logger.warning(
                "spacing %g does not divide [%g, %g]; using %d uniform cells",
                h, domain.lo, domain.hi, max(cells, 1),
            )
        n = cells + 1
        if n < 3:
            raise InvalidDomainError(
                f"Spacing {h} leaves fewer than 3 points on {domain.coordinate!r}"
            )
        return Grid1D(domain.coordinate, np.linspace(domain.lo, domain.hi, n))

    grid = Grid1D(domain.coordinate, points_or_spacing)
    tol = 1e-9 * max(1.0, abs(domain.lo), abs(domain.hi))
    if abs(grid.lo - domain.lo) > tol or abs(grid.hi - domain.hi) > tol:
        raise InvalidDomainError(
            f"Grid for {domain.coordinate!r} spans [{grid.lo}, {grid.hi}], "
            f"expected [{domain.lo}, {domain.hi}]"
        )
    return grid
