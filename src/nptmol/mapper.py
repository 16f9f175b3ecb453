'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 15:12:40
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 19:31:09
FilePath: /nptmol/src/nptmol/mapper.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/mapper.py
from dataclasses import dataclass
from numbers import Real
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import DiscretizationError
from .grid import Grid1D


@dataclass(frozen=True, eq=False)
class Block:
    """一个变量在状态向量里占的连续区间。"""
    field: object
    start: int
    stop: int
    grid: Optional[Grid1D]
    indices: np.ndarray  # 未知量对应的网格下标；ODE 变量为空

    @property
    def size(self) -> int:
        return self.stop - self.start

    @property
    def slice(self) -> slice:
        return slice(self.start, self.stop)


def _name(field) -> str:
    return field if isinstance(field, str) else field.name


class VariableMap:
    """
    (变量, 网格点) -> 状态向量下标。

    按变量声明顺序分块，每块内按坐标递增排列：
      - 空间变量：默认占所有内点，被保留的边界点（对称原点）由 unknowns 给出
      - ODE 变量：恰好一个槽
    正向 index() 和反向 lookup() 都是 O(1)。
    """

    def __init__(
        self,
        fields: Sequence,
        grids: Mapping[str, Grid1D],
        unknowns: Optional[Mapping[str, Sequence[int]]] = None,
    ) -> None:
        unknowns = dict(unknowns or {})
        self.fields = list(fields)
        self.grids: Dict[str, Grid1D] = dict(grids)
        self._blocks: Dict[str, Block] = {}

        slot_fields: List[object] = []
        slot_coords: List[Tuple[float, ...]] = []
        start = 0
        for f in self.fields:
            if f.name in self._blocks:
                raise DiscretizationError(f"Variable {f.name!r} is declared more than once")

            if f.is_spatial:
                cname = f.coordinate.name
                if cname not in self.grids:
                    raise DiscretizationError(f"No grid for coordinate {cname!r} of {f.name!r}")
                grid = self.grids[cname]
                indices = np.asarray(unknowns.get(f.name, grid.interior), dtype=int)
                if indices.size and (np.any(np.diff(indices) <= 0) or indices[0] < 0 or indices[-1] >= grid.nx):
                    raise DiscretizationError(f"Unknown indices of {f.name!r} must be increasing grid indices")
                coords = [(float(grid.x[i]),) for i in indices]
            else:
                grid = None
                indices = np.zeros(0, dtype=int)
                coords = [()]

            stop = start + len(coords)
            self._blocks[f.name] = Block(f, start, stop, grid, indices)
            slot_fields.extend([f] * len(coords))
            slot_coords.extend(coords)
            start = stop

        self.size = start
        self._slot_fields = slot_fields
        self._slot_coords = slot_coords
        # 网格下标 -> 块内位置，-1 表示被消元
        self._positions: Dict[str, np.ndarray] = {}
        for name, block in self._blocks.items():
            if block.grid is not None:
                pos = np.full(block.grid.nx, -1, dtype=int)
                pos[block.indices] = np.arange(block.size)
                self._positions[name] = pos

    def __len__(self) -> int:
        return self.size

    def block(self, field) -> Block:
        try:
            return self._blocks[_name(field)]
        except KeyError:
            raise KeyError(f"Unknown variable {_name(field)!r}") from None

    def blocks(self) -> List[Block]:
        return list(self._blocks.values())

    def field(self, name: str):
        return self.block(name).field

    def slice(self, field) -> slice:
        return self.block(field).slice

    def grid(self, field) -> Optional[Grid1D]:
        return self.block(field).grid

    def grid_indices(self, field) -> np.ndarray:
        return self.block(field).indices

    def coordinates(self, field) -> np.ndarray:
        block = self.block(field)
        if block.grid is None:
            return np.zeros(0)
        return block.grid.x[block.indices]

    def index(self, field, coordinate=None) -> int:
        """(变量, 坐标) -> 状态下标；坐标可以是标量或 1 元组。"""
        block = self.block(field)
        if block.grid is None:
            if coordinate not in (None, ()):
                raise KeyError(f"ODE variable {_name(field)!r} has no coordinate")
            return block.start
        if coordinate is None:
            raise KeyError(f"Variable {_name(field)!r} needs a coordinate")
        if not isinstance(coordinate, Real):
            (coordinate,) = coordinate
        i = block.grid.index_of(float(coordinate))
        pos = int(self._positions[_name(field)][i])
        if pos < 0:
            raise KeyError(
                f"{_name(field)}({coordinate}) is an eliminated boundary point, not a state slot"
            )
        return block.start + pos

    def lookup(self, slot: int) -> Tuple[object, Tuple[float, ...]]:
        """状态下标 -> (变量, 坐标元组)。"""
        if not 0 <= slot < self.size:
            raise IndexError(f"State index {slot} out of range [0, {self.size})")
        return self._slot_fields[slot], self._slot_coords[slot]

    def split(self, state: np.ndarray) -> Dict[str, np.ndarray]:
        """按变量切开状态向量（返回视图）；支持 (..., size) 形状。"""
        state = np.asarray(state)
        return {name: state[..., b.slice] for name, b in self._blocks.items()}

    def __repr__(self) -> str:
        parts = ", ".join(f"{n}[{b.start}:{b.stop}]" for n, b in self._blocks.items())
        return f"VariableMap({parts})"
