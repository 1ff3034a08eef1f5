"""
Continuous Finite Element (FEM) Module

This module provides reference elements, quadrature and parametric
kinematics for the assembly engine.

Elements
--------
BaseFE : Abstract reference element (shape functions)

Lines : 1D bar elements on [-1, 1]
    - Line2: 2-node linear
    - Line3: 3-node quadratic

Triangles : 2D elements on the unit triangle
    - Triangle3: 3-node linear (CST)
    - Triangle6: 6-node quadratic (LST)

Quads : 2D elements on [-1, 1]^2
    - Quad4: 4-node bilinear
    - Quad9: 9-node Lagrangian

Hexa : 3D elements on [-1, 1]^3
    - Hex8: 8-node trilinear
    - Hex27: 27-node triquadratic

ELEMENT_TYPES : Registry of the closed element catalogue, keyed by tag

Quadrature
----------
QuadRule : Points, weights and exactness degree
rule_for : Rule of an element type for a requested exactness
required_degree : Affine estimate of the integrand degree

Kinematics
----------
ElementKinematics : Parametric Jacobian, gradients and Green-Lagrange
    strain operators
StrainOperator : Linear part B(F_ref), quadratic part Hq, reference strain

Mesh
----
Mesh : Node coordinates, elements, Dirichlet set and morph fields
Element : Immutable connectivity record

Usage
-----
>>> from PolyCore.Objects.FEM import Mesh
>>> mesh = Mesh.from_rectangular_grid(4, 2, 2.0, 1.0, material='steel', section='t')
>>> mesh.fix_node(0)
>>> mesh.add_scaling_morph('L', axis=0, reference_length=2.0)
"""

from .BaseFE import BaseFE
from .Hexa import Hex8, Hex27
from .Kinematics import ElementKinematics, StrainOperator, PointKinematics, voigt_tensor, VOIGT_PAIRS
from .Lines import Line2, Line3
from .Mesh import Mesh, Element, ELEMENT_TYPES
from .Quadrature import QuadRule, rule_for, required_degree, tensor_rule, triangle_rule, gauss_legendre
from .Quads import Quad4, Quad9
from .Triangles import Triangle3, Triangle6

__all__ = [
    'BaseFE',
    'Line2',
    'Line3',
    'Triangle3',
    'Triangle6',
    'Quad4',
    'Quad9',
    'Hex8',
    'Hex27',
    'ELEMENT_TYPES',
    'QuadRule',
    'rule_for',
    'required_degree',
    'tensor_rule',
    'triangle_rule',
    'gauss_legendre',
    'ElementKinematics',
    'StrainOperator',
    'PointKinematics',
    'voigt_tensor',
    'VOIGT_PAIRS',
    'Mesh',
    'Element',
]
