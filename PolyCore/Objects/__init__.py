"""
PolyCore Objects

Parameters, reference elements, meshes and constitutive laws.

Subpackages
-----------
Parameters : Parameter vector and polynomial algebra
    - Parameter, ParameterSchema: named parameters with nominal values
    - Monomial, MonomialIndex: graded monomial enumeration
    - PolyArray: truncated multivariate polynomial arrays

FEM : Reference elements and parametric kinematics
    - Line2, Line3, Triangle3, Triangle6, Quad4, Quad9, Hex8
    - QuadRule, rule_for: quadrature
    - ElementKinematics: parametric Jacobian and strain operators
    - Mesh, Element: mesh interface

ConstitutiveLaw : Constitutive models
    - LinearElastic, PolynomialHardening, Linearized
    - OrthotropicPlaneStress
"""

from . import Parameters
from . import FEM
from . import ConstitutiveLaw

from .Parameters import Parameter, ParameterSchema, Monomial, MonomialIndex, PolyArray
from .FEM import (
    Mesh,
    Element,
    ELEMENT_TYPES,
    Line2,
    Line3,
    Triangle3,
    Triangle6,
    Quad4,
    Quad9,
    Hex8,
)
from .ConstitutiveLaw import (
    MaterialLaw,
    LinearElastic,
    PolynomialHardening,
    Linearized,
    OrthotropicPlaneStress,
)

__all__ = [
    'Parameters',
    'FEM',
    'ConstitutiveLaw',
    'Parameter',
    'ParameterSchema',
    'Monomial',
    'MonomialIndex',
    'PolyArray',
    'Mesh',
    'Element',
    'ELEMENT_TYPES',
    'Line2',
    'Line3',
    'Triangle3',
    'Triangle6',
    'Quad4',
    'Quad9',
    'Hex8',
    'MaterialLaw',
    'LinearElastic',
    'PolynomialHardening',
    'Linearized',
    'OrthotropicPlaneStress',
]
