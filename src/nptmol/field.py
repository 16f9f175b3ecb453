'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 12:30:11
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 16:11:02
FilePath: /nptmol/src/nptmol/field.py
Description: 

Copyright (c) 2026 by leviathan, All Rights Reserved. 
'''
# nptmol/field.py
from typing import Optional, Tuple

from .equation import Coordinate, Expr, Operand, at, var
from .errors import DiscretizationError


class Field(Operand):
    """
    因变量 u(t, x) 或 v(t)。
    只记录名字和依赖的空间坐标；网格由离散配置决定，数据在状态向量里。
    目前只支持 0 个（纯 ODE 变量）或 1 个空间坐标。
    """

    def __init__(self, name: str, *coords: Coordinate) -> None:
        if len(coords) > 1:
            raise DiscretizationError(
                f"Field {name!r}: only one spatial coordinate is supported, got {len(coords)}"
            )
        self.name = name
        self.coords: Tuple[Coordinate, ...] = tuple(coords)

    @property
    def coordinate(self) -> Optional[Coordinate]:
        return self.coords[0] if self.coords else None

    @property
    def is_spatial(self) -> bool:
        return bool(self.coords)

    def at(self, location: float) -> Expr:
        """边界取值 u(t, location)。"""
        if not self.is_spatial:
            raise DiscretizationError(f"ODE variable {self.name!r} has no boundary")
        return at(self, location)

    def __expr__(self) -> Expr:
        return var(self)

    def __repr__(self) -> str:
        args = ", ".join(["t"] + [c.name for c in self.coords])
        return f"Field({self.name}({args}))"
