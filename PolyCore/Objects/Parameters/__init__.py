"""
Parameter Vector and Monomial Machinery

Parameters
----------
Parameter : Named scalar with nominal value, role and expected spread
ParameterSchema : Ordered, immutable parameter vector definition

Monomials
---------
Monomial : Exponent tuple, compared and hashed by value
MonomialIndex : Graded enumeration of monomials with total degree <= D,
    with the truncating multiplication table

Polynomials
-----------
PolyArray : Coefficient table (one array per monomial) with truncated
    products, reciprocal series and evaluation
SeriesAcceptance : Acceptance rule for truncated reciprocal series

Usage
-----
>>> from PolyCore.Objects.Parameters import ParameterSchema
>>> schema = ParameterSchema.from_dict({'E': (210e9, 'material'), 'L': (2.0, 'geometric')})
>>> index = schema.index(degree=2)
>>> E = schema.variable(index, 'E')      # 210e9 + dE
>>> invL = schema.variable(index, 'L').reciprocal()
>>> k = E * invL                         # truncated at total degree 2
"""

from .Monomial import Monomial, MonomialIndex, MonomialConstants
from .Polynomial import PolyArray
from .Series import SeriesAcceptance, SeriesConstants
from .Schema import Parameter, ParameterSchema

__all__ = [
    'Monomial',
    'MonomialIndex',
    'MonomialConstants',
    'PolyArray',
    'SeriesAcceptance',
    'SeriesConstants',
    'Parameter',
    'ParameterSchema',
]
