from typing import Iterator, Mapping, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp

from PolyCore.Assembly.SparsePattern import SparsePattern
from PolyCore.Objects.Parameters.Monomial import Monomial, MonomialIndex


class PolynomialMatrix:
    """
    Sparse parametric matrix: one coefficient matrix per monomial.

    All monomials share one frozen CSR pattern; ``data[k]`` holds the values
    of monomial ``k`` on that pattern. Entries absent from the pattern are
    zero for every monomial. The object is read-only once assembled.

    The matrix at parameter values p is

        A(p) = Σ_k data[k] * m_k(p - nominal)

    Attributes:
        kind: Matrix kind ('stiffness', 'mass', 'damping', 'quadratic_force', 'cubic_force')
        index: MonomialIndex of the run
        pattern: Shared SparsePattern
        data: Array (len(index), nnz), read-only
        names: Parameter names in slot order
        nominal: Nominal parameter values in slot order
    """

    def __init__(self, kind: str, index: MonomialIndex, pattern: SparsePattern, data: np.ndarray,
                 names: Sequence[str] = (), nominal=None):
        data = np.asarray(data, dtype=float)
        if data.shape != (len(index), pattern.nnz):
            raise ValueError(f"Data must have shape {(len(index), pattern.nnz)}, got {data.shape}")
        self.kind = kind
        self.index = index
        self.pattern = pattern
        self.data = data
        self.data.flags.writeable = False
        self.names = tuple(names)
        self.nominal = np.zeros(index.n) if nominal is None else np.asarray(nominal, dtype=float)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.pattern.shape

    @property
    def nnz(self) -> int:
        return self.pattern.nnz

    @property
    def monomials(self):
        return list(self.index.monomials)

    def __len__(self):
        return len(self.index)

    def __contains__(self, monomial) -> bool:
        return monomial in self.index

    def __repr__(self):
        return f"PolynomialMatrix(kind='{self.kind}', shape={self.shape}, monomials={len(self)}, nnz={self.nnz})"

    def _position(self, monomial: Union[Monomial, Tuple[int, ...], int]) -> int:
        if isinstance(monomial, (int, np.integer)):
            if not 0 <= monomial < len(self.index):
                raise IndexError(f"Monomial position {monomial} out of range")
            return int(monomial)
        return self.index.position(monomial)

    def _csr(self, values: np.ndarray) -> sp.csr_matrix:
        return sp.csr_matrix((values.copy(), self.pattern.indices.copy(), self.pattern.indptr.copy()),
                             shape=self.shape)

    def __getitem__(self, monomial) -> sp.csr_matrix:
        """Coefficient matrix of a monomial (Monomial, exponent tuple or position)."""
        return self._csr(self.data[self._position(monomial)])

    def items(self) -> Iterator[Tuple[Monomial, sp.csr_matrix]]:
        for k, m in enumerate(self.index.monomials):
            yield m, self._csr(self.data[k])

    def triplets(self, monomial) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(row, column, value) arrays of one monomial's coefficient matrix."""
        k = self._position(monomial)
        return self.pattern.row_indices(), np.asarray(self.pattern.indices, dtype=np.int64), self.data[k].copy()

    def deltas(self, values: Union[Mapping[str, float], Sequence[float]]) -> np.ndarray:
        if isinstance(values, Mapping):
            absolute = self.nominal.copy()
            for name, v in values.items():
                if name not in self.names:
                    raise KeyError(f"Unknown parameter '{name}'")
                absolute[self.names.index(name)] = float(v)
        else:
            absolute = np.asarray(values, dtype=float).ravel()
            if absolute.size != self.index.n:
                raise ValueError(f"Expected {self.index.n} parameter values, got {absolute.size}")
        return absolute - self.nominal

    def evaluate(self, values: Union[None, Mapping[str, float], Sequence[float]] = None) -> sp.csr_matrix:
        """Truncated polynomial evaluated at absolute parameter values (nominal if None)."""
        delta = np.zeros(self.index.n) if values is None else self.deltas(values)
        weights = self.index.evaluate(delta)
        return self._csr(weights @ self.data)

    def is_symmetric(self, tol: float = 1e-10) -> bool:
        """True if every coefficient matrix is symmetric within a relative tolerance."""
        if self.shape[0] != self.shape[1]:
            return False
        for _, A in self.items():
            if A.nnz == 0:
                continue
            scale = abs(A).max()
            diff = abs(A - A.T)
            if diff.nnz and diff.max() > tol * scale:
                return False
        return True
