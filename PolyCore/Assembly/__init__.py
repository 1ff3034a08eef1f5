"""
Polynomial Assembly

Local and global assembly of parametric FE operators.

Local
-----
LocalAssembler : Element-level polynomial integration of every kind
select_quadrature : One rule per element type, with exactness diagnostics
compress_symmetric : Force tensor collapse onto multiset columns

Global
------
ReductionMap : Full-to-free DOF numbering after Dirichlet elimination
SparsePattern : Frozen CSR pattern built by a dry run over connectivity
GlobalAssembler : Slot-addressed scatter into the frozen patterns
PolynomialMatrix : Sparse matrix per monomial on a shared pattern

Kinds
-----
SQUARE_KINDS : stiffness, mass, damping
FORCE_KINDS : quadratic_force (order 2), cubic_force (order 3)
"""

from .GlobalAssembler import GlobalAssembler
from .LocalAssembler import (
    LocalAssembler,
    select_quadrature,
    integrand_degree,
    compress_symmetric,
    SQUARE_KINDS,
    FORCE_KINDS,
    MATRIX_KINDS,
)
from .PolynomialMatrix import PolynomialMatrix
from .SparsePattern import (
    ReductionMap,
    SparsePattern,
    multiset_columns,
    multiset_count,
    multiset_products,
    multiset_rank,
    multiset_weights,
)

__all__ = [
    'GlobalAssembler',
    'LocalAssembler',
    'select_quadrature',
    'integrand_degree',
    'compress_symmetric',
    'SQUARE_KINDS',
    'FORCE_KINDS',
    'MATRIX_KINDS',
    'PolynomialMatrix',
    'ReductionMap',
    'SparsePattern',
    'multiset_columns',
    'multiset_count',
    'multiset_products',
    'multiset_rank',
    'multiset_weights',
]
