"""
Global Scatter
==============

Maps element contributions onto the free-DOF system.

A dry run over the connectivity fixes the sparsity pattern of every
requested kind before any numeric work: the square kinds (stiffness, mass,
damping) share one pattern, each force kind has its own. Each element then
owns a table of data slots, so scattering is pure index arithmetic on
pre-allocated storage and the result does not depend on how element
contributions were computed.

Force kinds use one column per multiset of free DOFs. The column of the
sorted multiset (i1 <= ... <= ir) is its lexicographic rank, so the
operator has shape (N, C(N + r - 1, r)).
"""

from typing import Dict, List, Mapping, Sequence

import numpy as np

from PolyCore.Assembly.LocalAssembler import FORCE_KINDS, SQUARE_KINDS
from PolyCore.Assembly.PolynomialMatrix import PolynomialMatrix
from PolyCore.Assembly.SparsePattern import (
    ReductionMap, SparsePattern, multiset_columns, multiset_count, multiset_rank)
from PolyCore.Objects.FEM.Mesh import Element, Mesh
from PolyCore.Objects.Parameters.Monomial import MonomialIndex
from PolyCore.Objects.Parameters.Polynomial import PolyArray


class _ElementSlots:
    """Local entries kept after Dirichlet elimination and their data slots."""

    __slots__ = ("rows", "cols", "slots")

    def __init__(self, rows: np.ndarray, cols: np.ndarray):
        self.rows = rows    # local row index of each kept entry
        self.cols = cols    # local column index of each kept entry
        self.slots = None   # position in the pattern data, set once the pattern is frozen


class GlobalAssembler:
    """
    Dry-run pattern construction and slot-addressed scatter.

    Usage:
        glob = GlobalAssembler(mesh, reduction, index, kinds)
        glob.prepare(elements)
        for pos, element in enumerate(elements):
            glob.scatter(pos, local.contribution(element))
        matrices = glob.finalize(names, nominal)

    Scatter must be called in the element order given to ``prepare``
    (ascending tag) for bit-identical results.

    Args:
        mesh: Mesh providing DOF numbering
        reduction: ReductionMap of the run
        index: MonomialIndex of the run
        kinds: Requested matrix kinds
    """

    def __init__(self, mesh: Mesh, reduction: ReductionMap, index: MonomialIndex, kinds: Sequence[str]):
        self.mesh = mesh
        self.reduction = reduction
        self.index = index
        self.kinds = tuple(kinds)
        self.square_kinds = tuple(k for k in self.kinds if k in SQUARE_KINDS)
        self.force_kinds = tuple(k for k in self.kinds if k in FORCE_KINDS)

        self.patterns: Dict[str, SparsePattern] = {}
        self.data: Dict[str, np.ndarray] = {}
        self._square: List[_ElementSlots] = []
        self._force: Dict[str, List[_ElementSlots]] = {k: [] for k in self.force_kinds}
        self._prepared = False

    # ----- dry run -----
    def prepare(self, elements: Sequence[Element]):
        """Freeze all patterns from the connectivity and allocate zeroed storage."""
        N = self.reduction.n_free
        M = len(self.index)
        free_dofs = [self.reduction.reduce(self.mesh.element_dofs(e)) for e in elements]

        if self.square_kinds:
            rows, cols = [], []
            for free in free_dofs:
                n = len(free)
                a, b = np.divmod(np.arange(n * n), n)
                keep = (free[a] >= 0) & (free[b] >= 0)
                self._square.append(_ElementSlots(a[keep], b[keep]))
                rows.append(free[a[keep]])
                cols.append(free[b[keep]])
            pattern = SparsePattern.from_entries(self._concat(rows), self._concat(cols), (N, N))
            for free, entry in zip(free_dofs, self._square):
                entry.slots = pattern.slots(free[entry.rows], free[entry.cols])
            for kind in self.square_kinds:
                self.patterns[kind] = pattern
                self.data[kind] = np.zeros((M, pattern.nnz))

        for kind in self.force_kinds:
            order = FORCE_KINDS[kind]
            shape = (N, multiset_count(N, order))
            rows, cols, global_cols = [], [], []
            for free in free_dofs:
                n = len(free)
                combos = multiset_columns(n, order)
                kept_rows = np.flatnonzero(free >= 0)
                kept_cols = np.flatnonzero(np.all(free[combos] >= 0, axis=1))
                g_cols = np.array([multiset_rank(np.sort(free[combos[c]]), N) for c in kept_cols],
                                  dtype=np.int64)
                a = np.repeat(kept_rows, len(kept_cols))
                c = np.tile(np.arange(len(kept_cols)), len(kept_rows))
                self._force[kind].append(_ElementSlots(a, kept_cols[c]))
                rows.append(free[a])
                cols.append(np.tile(g_cols, len(kept_rows)))
                global_cols.append(cols[-1])
            pattern = SparsePattern.from_entries(self._concat(rows), self._concat(cols), shape)
            for free, entry, g in zip(free_dofs, self._force[kind], global_cols):
                entry.slots = pattern.slots(free[entry.rows], g)
            self.patterns[kind] = pattern
            self.data[kind] = np.zeros((M, pattern.nnz))

        self._prepared = True

    @staticmethod
    def _concat(parts: List[np.ndarray]) -> np.ndarray:
        return np.concatenate(parts) if parts else np.zeros(0, dtype=np.int64)

    # ----- scatter -----
    def scatter(self, position: int, contribution: Mapping[str, PolyArray]):
        """
        Add one element's local polynomials into the global storage.

        Args:
            position: Element position in the sequence given to ``prepare``
            contribution: Local PolyArray per kind, as returned by LocalAssembler
        """
        if not self._prepared:
            raise RuntimeError("GlobalAssembler.prepare must run before scatter")
        for kind in self.square_kinds:
            entry = self._square[position]
            coeffs = contribution[kind].coeffs
            self.data[kind][:, entry.slots] += coeffs[:, entry.rows, entry.cols]
        for kind in self.force_kinds:
            entry = self._force[kind][position]
            coeffs = contribution[kind].coeffs
            self.data[kind][:, entry.slots] += coeffs[:, entry.rows, entry.cols]

    def finalize(self, names: Sequence[str] = (), nominal=None) -> Dict[str, PolynomialMatrix]:
        """Freeze the accumulated data into PolynomialMatrix objects, in requested order."""
        return {
            kind: PolynomialMatrix(kind, self.index, self.patterns[kind], self.data[kind],
                                   names=names, nominal=nominal)
            for kind in self.kinds
        }
