from functools import lru_cache
from itertools import combinations_with_replacement
from math import comb, factorial
from typing import Iterable

import numpy as np
import scipy.sparse as sp


class ReductionMap:
    """
    Full-to-free DOF numbering after Dirichlet elimination.

    Built once per assembly run. Constrained DOFs map to -1 and never
    receive a scattered contribution.

    Attributes:
        n_dofs: Number of DOFs before elimination
        constrained: Sorted constrained DOFs
        free: Sorted free DOFs (free index -> full DOF)
        full_to_free: Array (n_dofs,) of free indices, -1 for constrained
    """

    def __init__(self, n_dofs: int, constrained: Iterable[int] = ()):
        constrained = np.unique(np.asarray(list(constrained), dtype=int))
        if constrained.size and (constrained[0] < 0 or constrained[-1] >= n_dofs):
            raise ValueError(f"Constrained DOF out of range [0, {n_dofs})")
        self.n_dofs = int(n_dofs)
        self.constrained = constrained
        mask = np.ones(self.n_dofs, dtype=bool)
        mask[constrained] = False
        self.free = np.flatnonzero(mask)
        self.full_to_free = np.full(self.n_dofs, -1, dtype=int)
        self.full_to_free[self.free] = np.arange(len(self.free))

    @property
    def n_free(self) -> int:
        return len(self.free)

    def reduce(self, dofs) -> np.ndarray:
        return self.full_to_free[np.asarray(dofs, dtype=int)]

    def expand(self, u_free) -> np.ndarray:
        """Full DOF vector with zeros at constrained DOFs."""
        u = np.zeros(self.n_dofs)
        u[self.free] = u_free
        return u

    def __repr__(self):
        return f"ReductionMap(n_dofs={self.n_dofs}, free={self.n_free}, constrained={len(self.constrained)})"


def multiset_count(n: int, order: int) -> int:
    """Number of multisets of size `order` over n items."""
    return comb(n + order - 1, order)


@lru_cache(maxsize=None)
def multiset_columns(n: int, order: int) -> np.ndarray:
    """Multisets of size `order` over range(n), lexicographic, shape (n_cols, order)."""
    combos = list(combinations_with_replacement(range(n), order))
    return np.array(combos, dtype=int).reshape(len(combos), order)


@lru_cache(maxsize=None)
def multiset_weights(n: int, order: int) -> np.ndarray:
    """1 / prod(multiplicity!) for every multiset column."""
    combos = multiset_columns(n, order)
    weights = np.empty(len(combos))
    for c, combo in enumerate(combos):
        _, counts = np.unique(combo, return_counts=True)
        weights[c] = 1.0 / np.prod([factorial(int(m)) for m in counts])
    return weights


def multiset_products(u, order: int) -> np.ndarray:
    """
    Monomials of a vector in multiset column order.

    Entry c is prod(u[i] for i in column c), so a force tensor T of that
    order gives its contribution to the internal force as ``T @ multiset_products(u, order)``.
    """
    u = np.asarray(u, dtype=float).ravel()
    return np.prod(u[multiset_columns(len(u), order)], axis=1)


def multiset_rank(combo, n: int) -> int:
    """
    Lexicographic rank of a sorted multiset among all multisets over range(n).

    Position by position, the multisets starting with a smaller value v
    (lo <= v < c) are counted in closed form with the hockey-stick identity
    sum_{v=lo}^{c-1} C(n-1-v+s, s) = C(n-lo+s, s+1) - C(n-c+s, s+1),
    s being the number of remaining positions.
    """
    r = len(combo)
    rank, lo = 0, 0
    for pos, c in enumerate(combo):
        s = r - pos - 1
        c = int(c)
        if c > lo:
            rank += comb(n - lo + s, s + 1) - comb(n - c + s, s + 1)
        lo = c
    return rank


class SparsePattern:
    """
    Frozen CSR sparsity pattern (the arena).

    The entry set is fixed after the dry run over connectivity; workers then
    only address pre-allocated slots by index.
    """

    def __init__(self, shape, indptr: np.ndarray, indices: np.ndarray):
        self.shape = tuple(int(s) for s in shape)
        self.indptr = np.asarray(indptr)
        self.indices = np.asarray(indices)
        self.indptr.flags.writeable = False
        self.indices.flags.writeable = False

    @classmethod
    def from_entries(cls, rows: np.ndarray, cols: np.ndarray, shape) -> "SparsePattern":
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        A = sp.coo_matrix((np.ones(len(rows)), (rows, cols)), shape=shape).tocsr()
        A.sum_duplicates()
        A.sort_indices()
        return cls(shape, A.indptr.copy(), A.indices.copy())

    @property
    def nnz(self) -> int:
        return len(self.indices)

    def slots(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        """Data positions of entries (rows[i], cols[i]); every entry must exist."""
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        out = np.empty(len(rows), dtype=np.int64)
        for r in np.unique(rows):
            sel = rows == r
            start, stop = self.indptr[r], self.indptr[r + 1]
            pos = np.searchsorted(self.indices[start:stop], cols[sel])
            if np.any(pos >= stop - start) or np.any(self.indices[start:stop][np.minimum(pos, stop - start - 1)] != cols[sel]):
                raise KeyError(f"Entry outside the frozen pattern in row {r}")
            out[sel] = start + pos
        return out

    def row_indices(self) -> np.ndarray:
        """Row index of every stored entry."""
        return np.repeat(np.arange(self.shape[0]), np.diff(self.indptr))

    def __repr__(self):
        return f"SparsePattern(shape={self.shape}, nnz={self.nnz})"
