"""
Assembly Engine

ParametricAssembly : Engine running one configured assembly
AssemblyConfig : Validated run configuration (accepts camelCase via from_dict)
AssemblyResult : Matrices, diagnostics, reduction map, index and schema
assemble : Module-level entry point
ReferenceAssembler : Numeric baseline at fixed parameter values
"""

from .Engine import (
    ParametricAssembly,
    AssemblyConfig,
    AssemblyConstants,
    AssemblyResult,
    assemble,
)
from .Reference import ReferenceAssembler

__all__ = [
    'ParametricAssembly',
    'AssemblyConfig',
    'AssemblyConstants',
    'AssemblyResult',
    'assemble',
    'ReferenceAssembler',
]
