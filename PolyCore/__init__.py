"""
PolyCore - Parametric Nonlinear Assembly Engine

Assembles finite element stiffness, mass and damping operators, plus the
quadratic and cubic internal-force tensors, as truncated multivariate
polynomials in a vector of material and geometric parameters. One run
replaces repeated conventional assemblies: the operator at any parameter
value near nominal is a weighted sum of precomputed coefficient matrices.

Main Components
---------------
Engine : Assembly orchestration
    - assemble: Module-level entry point
    - ParametricAssembly: Engine with an AssemblyConfig
    - AssemblyResult: PolynomialMatrix per kind plus diagnostics
    - ReferenceAssembler: Numeric baseline at fixed parameter values

Assembly : Local integration and global scatter
    - LocalAssembler, GlobalAssembler, PolynomialMatrix, ReductionMap

Objects : Model description (import from PolyCore.Objects)
    - Parameters: Parameter, ParameterSchema, MonomialIndex, PolyArray
    - FEM: Element catalogue, quadrature, kinematics, Mesh
    - ConstitutiveLaw: LinearElastic, PolynomialHardening, Linearized,
      OrthotropicPlaneStress

Errors : Fatal and non-fatal conditions
    - InvalidElementGeometry, NonPolynomialMaterialLaw, AssemblyAborted,
      AssemblyCancelled, DegreeOverflow, QuadratureOrderInsufficient

Quick Start
-----------
>>> from PolyCore import assemble, Mesh, LinearElastic, ParameterSchema
>>> mesh = Mesh.from_rectangular_grid(8, 2, 4.0, 1.0, material='steel', section=0.01)
>>> for node in range(0, mesh.n_nodes, 9):
...     mesh.fix_node(node)
>>> mesh.add_scaling_morph('L', axis=0, reference_length=4.0)
>>> schema = ParameterSchema.from_dict({'E': (210e9, 'material'), 'L': (4.0, 'geometric')})
>>> result = assemble(mesh, {'steel': LinearElastic('E', nu=0.3)}, schema,
...                   degree_bound=3, matrix_kinds=('stiffness', 'mass'))
>>> K = result.evaluate('stiffness', {'E': 200e9, 'L': 4.1})

Version: 1.0
Author: PolyCore Development Team
"""

# Version information
__version__ = '1.0.0'
__author__ = 'PolyCore Development Team'

from PolyCore import Errors
from PolyCore import Objects

from PolyCore.Errors import (
    InvalidElementGeometry,
    NonPolynomialMaterialLaw,
    AssemblyAborted,
    AssemblyCancelled,
    DegreeOverflow,
    QuadratureOrderInsufficient,
)
from PolyCore.Objects import (
    Parameter,
    ParameterSchema,
    Monomial,
    MonomialIndex,
    PolyArray,
    Mesh,
    Element,
    MaterialLaw,
    LinearElastic,
    PolynomialHardening,
    Linearized,
    OrthotropicPlaneStress,
)
from PolyCore.Assembly import PolynomialMatrix, ReductionMap, multiset_products
from PolyCore.Engine import (
    ParametricAssembly,
    AssemblyConfig,
    AssemblyResult,
    assemble,
    ReferenceAssembler,
)

__all__ = [
    # Version
    '__version__',
    '__author__',
    # Subpackages
    'Errors',
    'Objects',
    # Errors
    'InvalidElementGeometry',
    'NonPolynomialMaterialLaw',
    'AssemblyAborted',
    'AssemblyCancelled',
    'DegreeOverflow',
    'QuadratureOrderInsufficient',
    # Model description
    'Parameter',
    'ParameterSchema',
    'Monomial',
    'MonomialIndex',
    'PolyArray',
    'Mesh',
    'Element',
    'MaterialLaw',
    'LinearElastic',
    'PolynomialHardening',
    'Linearized',
    'OrthotropicPlaneStress',
    # Assembly
    'PolynomialMatrix',
    'ReductionMap',
    'multiset_products',
    # Engine
    'ParametricAssembly',
    'AssemblyConfig',
    'AssemblyResult',
    'assemble',
    'ReferenceAssembler',
]
