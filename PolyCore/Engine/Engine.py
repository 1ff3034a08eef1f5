# -*- coding: utf-8 -*-
"""
Parametric Assembly Engine
==========================

Top-level orchestration: validates the inputs, builds the monomial index
and the reduction map, selects quadrature, runs the local assembler over
the elements in ascending tag order and scatters the contributions into
the frozen global patterns.

Usage
-----
>>> from PolyCore import assemble, ParameterSchema, Parameter, LinearElastic, Mesh
>>> mesh = Mesh.line(4, 2.0, material='bar', section=1e-4)
>>> mesh.fix_node(0)
>>> schema = ParameterSchema((Parameter('E', 210e9),))
>>> result = assemble(mesh, {'bar': LinearElastic('E')}, schema, degree_bound=1)
>>> K = result['stiffness']
>>> K[(0,)]   # stiffness at nominal E
>>> K[(1,)]   # dK/dE
"""

import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from PolyCore.Assembly.GlobalAssembler import GlobalAssembler
from PolyCore.Assembly.LocalAssembler import FORCE_KINDS, MATRIX_KINDS, LocalAssembler, select_quadrature
from PolyCore.Assembly.PolynomialMatrix import PolynomialMatrix
from PolyCore.Assembly.SparsePattern import ReductionMap
from PolyCore.Errors import (AssemblyAborted, AssemblyCancelled, DegreeOverflow, InvalidElementGeometry,
                             NonPolynomialMaterialLaw, QuadratureOrderInsufficient)
from PolyCore.Objects.ConstitutiveLaw.Material import MaterialLaw
from PolyCore.Objects.FEM.Mesh import ELEMENT_TYPES, Element, Mesh
from PolyCore.Objects.Parameters.Monomial import MonomialConstants, MonomialIndex
from PolyCore.Objects.Parameters.Schema import ParameterSchema


class AssemblyConstants:
    """Defaults of the assembly configuration."""
    DEFAULT_BATCH_SIZE = 64          # Elements dispatched per worker batch
    DEFAULT_SERIES_TOLERANCE = 0.05  # Largest accepted dropped-term ratio of rational series
    PROGRESS_STEPS = 10              # Progress lines printed in verbose mode


# camelCase names accepted by AssemblyConfig.from_dict
CONFIG_ALIASES = {
    "degreeBound": "degree_bound",
    "quadratureOrder": "quadrature_order",
    "matrixKinds": "matrix_kinds",
    "constraintSet": "constraint_set",
    "nWorkers": "n_workers",
    "batchSize": "batch_size",
    "seriesTolerance": "series_tolerance",
    "referenceDisplacement": "reference_displacement",
}


@dataclass
class AssemblyConfig:
    """
    Configuration of one parametric assembly run.

    Attributes:
        degree_bound: Truncation degree D of every polynomial
        quadrature_order: Exactness degree per element type; types not
            listed (or None) are selected from the integrand degree
        matrix_kinds: Kinds to assemble, from MATRIX_KINDS
        constraint_set: Extra fixed DOFs (full numbering), merged with mesh.fixed
        n_workers: Threads computing element contributions (1 = serial)
        batch_size: Elements per order-preserving dispatch batch
        series_tolerance: Acceptance threshold for rational material and Jacobian series
        reference_displacement: Full DOF vector of the reference state, None for u = 0
        verbose: Print progress and timing
    """
    degree_bound: int = 1
    quadrature_order: Optional[Dict[str, int]] = None
    matrix_kinds: Tuple[str, ...] = ("stiffness",)
    constraint_set: Tuple[int, ...] = ()
    n_workers: int = 1
    batch_size: int = AssemblyConstants.DEFAULT_BATCH_SIZE
    series_tolerance: float = AssemblyConstants.DEFAULT_SERIES_TOLERANCE
    reference_displacement: Optional[np.ndarray] = None
    verbose: bool = False

    def __post_init__(self):
        if isinstance(self.degree_bound, bool) or not isinstance(self.degree_bound, (int, np.integer)):
            raise ValueError(f"degree_bound must be an integer, got {self.degree_bound!r}")
        self.degree_bound = int(self.degree_bound)
        if self.degree_bound < 0:
            raise ValueError(f"degree_bound must be >= 0, got {self.degree_bound}")
        if self.degree_bound > MonomialConstants.MAX_DEGREE:
            raise DegreeOverflow(
                f"degree_bound {self.degree_bound} exceeds the ceiling {MonomialConstants.MAX_DEGREE}")

        if isinstance(self.matrix_kinds, str):
            self.matrix_kinds = (self.matrix_kinds,)
        kinds = []
        for kind in self.matrix_kinds:
            if kind not in MATRIX_KINDS:
                raise ValueError(f"Unknown matrix kind '{kind}', expected one of {MATRIX_KINDS}")
            if kind not in kinds:
                kinds.append(kind)
        if not kinds:
            raise ValueError("matrix_kinds must not be empty")
        self.matrix_kinds = tuple(kinds)

        if self.quadrature_order is not None:
            orders = dict(self.quadrature_order)
            for name, order in orders.items():
                if name not in ELEMENT_TYPES:
                    raise ValueError(f"quadrature_order: unknown element type '{name}'")
                if int(order) < 0:
                    raise ValueError(f"quadrature_order['{name}'] must be >= 0, got {order}")
            self.quadrature_order = {name: int(order) for name, order in orders.items()}

        constraints = tuple(int(d) for d in self.constraint_set)
        if any(d < 0 for d in constraints):
            raise ValueError(f"constraint_set contains negative DOFs: {constraints}")
        self.constraint_set = constraints

        if int(self.n_workers) < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")
        self.n_workers = int(self.n_workers)
        if int(self.batch_size) < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        self.batch_size = int(self.batch_size)
        if not 0.0 < float(self.series_tolerance) <= 1.0:
            raise ValueError(f"series_tolerance must lie in (0, 1], got {self.series_tolerance}")
        self.series_tolerance = float(self.series_tolerance)

        if self.reference_displacement is not None:
            u = np.asarray(self.reference_displacement, dtype=float)
            if u.ndim != 1:
                raise ValueError(f"reference_displacement must be a 1D DOF vector, got shape {u.shape}")
            if not np.all(np.isfinite(u)):
                raise ValueError("reference_displacement contains non-finite values")
            if np.any(u) and any(kind in FORCE_KINDS for kind in self.matrix_kinds):
                raise ValueError("Force tensor kinds are expansions about u = 0; "
                                 "they cannot be combined with a nonzero reference_displacement")
            self.reference_displacement = u

    @property
    def nonzero_reference(self) -> bool:
        return self.reference_displacement is not None and bool(np.any(self.reference_displacement))

    @classmethod
    def from_dict(cls, mapping: Mapping[str, object]) -> "AssemblyConfig":
        """Build a configuration from snake_case or camelCase keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in mapping.items():
            name = CONFIG_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown configuration key '{key}'")
            if name in kwargs:
                raise ValueError(f"Configuration key '{name}' given twice")
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class AssemblyResult:
    """
    Output of a parametric assembly run.

    Attributes:
        matrices: PolynomialMatrix per requested kind
        diagnostics: Non-fatal conditions (QuadratureOrderInsufficient)
        reduction: Full-to-free DOF map shared by every matrix
        index: MonomialIndex of the run
        schema: ParameterSchema of the run
        elapsed: Wall time of the run [s]
    """
    matrices: Dict[str, PolynomialMatrix]
    diagnostics: List[QuadratureOrderInsufficient]
    reduction: ReductionMap
    index: MonomialIndex
    schema: ParameterSchema
    elapsed: float = field(default=0.0, compare=False)

    def __getitem__(self, kind: str) -> PolynomialMatrix:
        return self.matrices[kind]

    def __contains__(self, kind) -> bool:
        return kind in self.matrices

    @property
    def kinds(self) -> Tuple[str, ...]:
        return tuple(self.matrices)

    def evaluate(self, kind: str, values=None):
        """One kind evaluated at absolute parameter values (nominal if None)."""
        return self.matrices[kind].evaluate(values)

    def monomial_labels(self) -> List[str]:
        return [m.to_string(self.schema.names) for m in self.index]


class ParametricAssembly:
    """
    Parametric assembly engine.

    Args:
        config: AssemblyConfig (or a mapping accepted by AssemblyConfig.from_dict)
    """

    def __init__(self, config: Union[AssemblyConfig, Mapping, None] = None):
        if config is None:
            config = AssemblyConfig()
        elif not isinstance(config, AssemblyConfig):
            config = AssemblyConfig.from_dict(config)
        self.config = config

    # ----- preconditions -----
    def validate(self, mesh: Mesh, materials: Mapping[str, MaterialLaw], schema: ParameterSchema):
        """
        Check everything that can be checked before touching an element.

        Raises:
            ValueError: invalid mesh, unregistered material, unknown
                parameter or parameter used with the wrong role,
                inconsistent constraint set or reference displacement
        """
        cfg = self.config
        mesh.validate()
        if not mesh.elements:
            raise ValueError("Mesh has no elements")

        for key, material in materials.items():
            if not isinstance(material, MaterialLaw):
                raise ValueError(f"Material '{key}' is not a MaterialLaw: {material!r}")
        for e in mesh.elements:
            if e.material not in materials:
                raise ValueError(f"Element {e.tag}: material '{e.material}' is not registered")
            if isinstance(e.section, str):
                schema.check_names([e.section], role="geometric", where=f"Element {e.tag} section ")

        schema.check_names(mesh.morphs, role="geometric", where="Mesh morph ")
        used = {e.material for e in mesh.elements}
        for key in sorted(used):
            schema.check_names(materials[key].parameter_dependency(), role="material",
                               where=f"Material '{key}' ")

        for dof in cfg.constraint_set:
            if dof >= mesh.n_dofs:
                raise ValueError(f"constraint_set DOF {dof} out of range [0, {mesh.n_dofs})")
        if cfg.reference_displacement is not None and cfg.reference_displacement.size != mesh.n_dofs:
            raise ValueError(f"reference_displacement has {cfg.reference_displacement.size} entries, "
                             f"mesh has {mesh.n_dofs} DOFs")

    # ----- run -----
    def run(self, mesh: Mesh, materials: Mapping[str, MaterialLaw], schema: ParameterSchema,
            cancel_event=None) -> AssemblyResult:
        """
        Assemble every requested kind as a truncated polynomial matrix.

        Args:
            mesh: Mesh (not modified)
            materials: Mapping material key -> MaterialLaw
            schema: ParameterSchema
            cancel_event: Optional threading.Event checked between elements

        Returns:
            AssemblyResult

        Raises:
            ValueError, DegreeOverflow: invalid input, before any element is processed
            AssemblyAborted: an element failed or the run was cancelled; the
                cause is available as ``reason``
        """
        time_start = time.time()
        cfg = self.config
        if not isinstance(schema, ParameterSchema):
            schema = ParameterSchema.from_dict(schema)

        self.validate(mesh, materials, schema)
        index = schema.index(cfg.degree_bound)
        reduction = ReductionMap(mesh.n_dofs, sorted(set(mesh.fixed) | set(cfg.constraint_set)))
        elements = mesh.sorted_elements()

        rules, diagnostics = select_quadrature(mesh, materials, cfg.matrix_kinds, cfg.quadrature_order,
                                               cfg.nonzero_reference)
        for diagnostic in diagnostics:
            warnings.warn(diagnostic, stacklevel=2)

        if cfg.verbose:
            print(f"Parametric assembly: {len(elements)} elements, {reduction.n_free} free DOFs, "
                  f"{len(index)} monomials (n={index.n}, D={index.degree}), kinds {list(cfg.matrix_kinds)}")

        glob = GlobalAssembler(mesh, reduction, index, cfg.matrix_kinds)
        glob.prepare(elements)
        local = LocalAssembler(mesh, materials, schema, index, rules, cfg.matrix_kinds,
                               series_tolerance=cfg.series_tolerance,
                               reference_displacement=cfg.reference_displacement)

        try:
            for position, contribution in self._contributions(local, elements, cancel_event):
                glob.scatter(position, contribution)
                self._progress(position + 1, len(elements), time_start)
        except (InvalidElementGeometry, NonPolynomialMaterialLaw, AssemblyCancelled) as err:
            raise AssemblyAborted(err) from err

        matrices = glob.finalize(schema.names, schema.nominal)
        elapsed = time.time() - time_start
        if cfg.verbose:
            print(f"Assembly done in {elapsed:.3f} s")
        return AssemblyResult(matrices=matrices, diagnostics=diagnostics, reduction=reduction,
                              index=index, schema=schema, elapsed=elapsed)

    def _contributions(self, local: LocalAssembler, elements: Sequence[Element],
                       cancel_event=None) -> Iterator[Tuple[int, Dict]]:
        """Element contributions in element order, serial or batched over threads."""
        cfg = self.config
        if cfg.n_workers == 1:
            for position, element in enumerate(elements):
                self._check_cancel(cancel_event)
                yield position, local.contribution(element)
            return

        with ThreadPoolExecutor(max_workers=cfg.n_workers) as pool:
            for start in range(0, len(elements), cfg.batch_size):
                self._check_cancel(cancel_event)
                batch = elements[start:start + cfg.batch_size]
                for offset, contribution in enumerate(pool.map(local.contribution, batch)):
                    self._check_cancel(cancel_event)
                    yield start + offset, contribution

    @staticmethod
    def _check_cancel(cancel_event):
        if cancel_event is not None and cancel_event.is_set():
            raise AssemblyCancelled("Assembly cancelled by caller")

    def _progress(self, done: int, total: int, time_start: float):
        if not self.config.verbose:
            return
        step = max(1, total // AssemblyConstants.PROGRESS_STEPS)
        if done % step == 0 or done == total:
            print(f"  {done}/{total} elements ({100.0 * done / total:.0f}%), "
                  f"{time.time() - time_start:.2f} s")


def assemble(mesh: Mesh, materials: Mapping[str, MaterialLaw], schema: ParameterSchema, degree_bound: int,
             matrix_kinds: Sequence[str] = ("stiffness",), cancel_event=None, **options) -> AssemblyResult:
    """
    Assemble parametric FE matrices as truncated polynomials in the parameters.

    Args:
        mesh: Mesh with nodes, elements, Dirichlet DOFs and morph fields
        materials: Mapping material key -> MaterialLaw
        schema: ParameterSchema (or mapping accepted by ParameterSchema.from_dict)
        degree_bound: Truncation degree D
        matrix_kinds: Kinds to assemble
        cancel_event: Optional threading.Event for cooperative cancellation
        **options: Remaining AssemblyConfig fields (snake_case or camelCase)

    Returns:
        AssemblyResult
    """
    if isinstance(matrix_kinds, str):
        matrix_kinds = (matrix_kinds,)
    config = AssemblyConfig.from_dict(dict(options, degree_bound=degree_bound, matrix_kinds=tuple(matrix_kinds)))
    return ParametricAssembly(config).run(mesh, materials, schema, cancel_event=cancel_event)
