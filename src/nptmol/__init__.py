'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 12:20:05
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 22:04:19
FilePath: /nptmol/src/nptmol/__init__.py
Description:  

Copyright (c) 2026 by leviathan, All Rights Reserved. 
'''
# src/nptmol/__init__.py

from .errors import (
    DiscretizationError,
    InvalidDomainError,
    UnsupportedOrderError,
    UnsolvableBoundaryError,
    OverdeterminedBoundaryError,
    UnderdeterminedBoundaryError,
    UnboundParameterError,
)
from .grid import Domain, Grid1D, Side, build_grid
from .field import Field
from .equation import (
    Coordinate,
    Equation,
    Expr,
    PDESystem,
    Parameter,
    at,
    const,
    d_t,
    d_x,
    d_xx,
    initial,
    sin,
    cos,
    tan,
    exp,
    log,
    sqrt,
    sinh,
    cosh,
    tanh,
    abs_,
)

# PDE IR 层
from .pde_ir import (
    Term,
    PDEDescription,
    TimeDescriptor,
    BoundaryDescription,
    InitialDescription,
    expand,
    describe_equation,
    describe_boundary,
    describe_initial,
    regularize_at_origin,
)

# stencil / 边界 / 映射
from .stencil import StencilCache, stencil, taylor_weights
from .stencil_ir import LinearStencil1D, PointStencil, MOLProgram
from .boundary import (
    BoundaryEquation,
    Dirichlet,
    Neumann,
    Robin,
    SymmetricOrigin,
    discretize_bc,
)
from .mapper import VariableMap

# 组装 + 后端 + 时间推进
from .assembly import AssembledSystem, assemble
from .backend.base import BackendKind
from .backend.python_backend import PythonRhsKernel
from .discretization import DiscretizationConfig, discretize
from .timestepping import ODEProblem
from .solution import Solution


__all__ = [
    # errors
    "DiscretizationError",
    "InvalidDomainError",
    "UnsupportedOrderError",
    "UnsolvableBoundaryError",
    "OverdeterminedBoundaryError",
    "UnderdeterminedBoundaryError",
    "UnboundParameterError",

    # DSL
    "Domain",
    "Grid1D",
    "Side",
    "build_grid",
    "Field",
    "Coordinate",
    "Parameter",
    "Equation",
    "Expr",
    "PDESystem",
    "at",
    "const",
    "d_t",
    "d_x",
    "d_xx",
    "initial",
    "sin",
    "cos",
    "tan",
    "exp",
    "log",
    "sqrt",
    "sinh",
    "cosh",
    "tanh",
    "abs_",

    # PDE IR
    "Term",
    "PDEDescription",
    "TimeDescriptor",
    "BoundaryDescription",
    "InitialDescription",
    "expand",
    "describe_equation",
    "describe_boundary",
    "describe_initial",
    "regularize_at_origin",

    # Stencil / boundary / mapping
    "StencilCache",
    "stencil",
    "taylor_weights",
    "LinearStencil1D",
    "PointStencil",
    "MOLProgram",
    "BoundaryEquation",
    "Dirichlet",
    "Neumann",
    "Robin",
    "SymmetricOrigin",
    "discretize_bc",
    "VariableMap",

    # Assembly / backend / runtime
    "AssembledSystem",
    "assemble",
    "BackendKind",
    "PythonRhsKernel",
    "DiscretizationConfig",
    "discretize",
    "ODEProblem",
    "Solution",
]
