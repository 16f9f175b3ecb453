'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 12:21:40
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 12:21:40
FilePath: /nptmol/src/nptmol/errors.py
Description: 

Copyright (c) 2026 by leviathan, All Rights Reserved. 
'''
# nptmol/errors.py
#
# 所有离散化 / 组装阶段的错误都在构建时抛出（fail fast），
# rhs 求值阶段不应该再出现这些错误。


class DiscretizationError(ValueError):
    """离散化失败的基类。"""


class InvalidDomainError(DiscretizationError):
    """区间或网格不合法：lo >= hi、点数 < 3、坐标非严格递增等。"""


class UnsupportedOrderError(DiscretizationError):
    """请求的导数阶 / 精度阶无法构造 stencil。"""


class UnsolvableBoundaryError(DiscretizationError):
    """边界条件在代数上退化，无法解出边界值。"""


class OverdeterminedBoundaryError(DiscretizationError):
    """某个变量的同一侧边界给了不止一个边界条件。"""


class UnderdeterminedBoundaryError(DiscretizationError):
    """某个变量的某一侧边界没有边界条件。"""


class UnboundParameterError(DiscretizationError):
    """方程引用了没有数值绑定的参数。"""
