"""
ConstitutiveLaw Constitutive Models

Every law implements the same capability set: evaluate stress, evaluate
tangent modulus, declare parameter dependency degree. Two evaluation paths
exist, a closed-form numeric one (absolute parameter values) and a
polynomial one (truncated polynomials in the parameter deviations).

Elastic Laws
------------
MaterialLaw : Abstract base class (capability set)
LinearElastic : Isotropic Saint Venant-Kirchhoff, 1D / plane stress /
    plane strain / 3D
PolynomialHardening : Nonlinear elastic with quartic strain energy
Linearized : Passthrough for a numerically linearized tangent

Anisotropic Laws
----------------
OrthotropicPlaneStress : Rotated orthotropic lamina; a parametric fiber
    angle requires a polynomial override

Polynomial Context
------------------
MaterialContext : Binds monomial index, schema and series tolerance
"""

from .Material import (
    MaterialLaw,
    MaterialContext,
    LinearElastic,
    PolynomialHardening,
    Linearized,
    voigt_size,
    DEPENDENCY_RATIONAL,
    DEPENDENCY_TRANSCENDENTAL,
)
from .Orthotropic import OrthotropicPlaneStress

__all__ = [
    'MaterialLaw',
    'MaterialContext',
    'LinearElastic',
    'PolynomialHardening',
    'Linearized',
    'OrthotropicPlaneStress',
    'voigt_size',
    'DEPENDENCY_RATIONAL',
    'DEPENDENCY_TRANSCENDENTAL',
]
