from typing import Sequence, Tuple, Union

import numpy as np

from PolyCore.Objects.Parameters.Monomial import MonomialIndex


class PolyArray:
    """
    Truncated multivariate polynomial with array-valued coefficients.

    The polynomial is stored as a dense coefficient table ``coeffs`` of shape
    (M, *shape): ``coeffs[k]`` is the array multiplying monomial ``k`` of the
    index. Nothing symbolic is kept, all algebra is bookkeeping over the
    index multiplication table.

    Products walk the nonzero coefficient pairs (i ascending, then j
    ascending) and accumulate ``out[k] += op(a[i], b[j])`` block by block.
    Pairs that land on the same k are always visited in the same relative
    order, whatever the truncation degree, so every retained coefficient is
    bit-identical between two runs and between two degree bounds.

    Attributes:
        index: MonomialIndex defining the monomial positions
        coeffs: Coefficient table, shape (len(index), *shape)
    """

    __array_ufunc__ = None  # ndarray operators defer to the reflected PolyArray methods

    def __init__(self, index: MonomialIndex, coeffs: np.ndarray):
        coeffs = np.asarray(coeffs, dtype=float)
        if coeffs.ndim == 0 or coeffs.shape[0] != len(index):
            raise ValueError(
                f"Coefficient table needs leading axis {len(index)}, got shape {coeffs.shape}")
        self.index = index
        self.coeffs = coeffs

    # ----- construction -----
    @classmethod
    def zeros(cls, index: MonomialIndex, shape=()) -> "PolyArray":
        return cls(index, np.zeros((len(index),) + tuple(shape)))

    @classmethod
    def constant(cls, index: MonomialIndex, value) -> "PolyArray":
        value = np.asarray(value, dtype=float)
        coeffs = np.zeros((len(index),) + value.shape)
        coeffs[0] = value
        return cls(index, coeffs)

    @classmethod
    def variable(cls, index: MonomialIndex, slot: int, nominal: float = 0.0) -> "PolyArray":
        """The parameter of one slot, ``nominal + delta_slot``."""
        coeffs = np.zeros(len(index))
        coeffs[0] = nominal
        k = index.unit(slot)
        if k is not None:
            coeffs[k] = 1.0
        return cls(index, coeffs)

    @classmethod
    def stack(cls, arrays: Sequence["PolyArray"], axis: int = 0) -> "PolyArray":
        index = arrays[0].index
        for a in arrays:
            cls._check_index(index, a.index)
        axis = axis if axis < 0 else axis + 1
        return cls(index, np.stack([a.coeffs for a in arrays], axis=axis))

    @staticmethod
    def _check_index(a: MonomialIndex, b: MonomialIndex):
        if a is not b and (a.n != b.n or a.degree != b.degree):
            raise ValueError(f"Incompatible monomial indices: {a} and {b}")

    # ----- array protocol -----
    @property
    def shape(self) -> Tuple[int, ...]:
        return self.coeffs.shape[1:]

    @property
    def ndim(self) -> int:
        return self.coeffs.ndim - 1

    @property
    def constant_term(self) -> np.ndarray:
        return self.coeffs[0]

    @property
    def T(self) -> "PolyArray":
        return PolyArray(self.index, np.swapaxes(self.coeffs, -1, -2))

    def __getitem__(self, item) -> "PolyArray":
        if not isinstance(item, tuple):
            item = (item,)
        return PolyArray(self.index, self.coeffs[(slice(None),) + item])

    def reshape(self, *shape) -> "PolyArray":
        if len(shape) == 1 and isinstance(shape[0], tuple):
            shape = shape[0]
        return PolyArray(self.index, self.coeffs.reshape((len(self.index),) + tuple(shape)))

    def copy(self) -> "PolyArray":
        return PolyArray(self.index, self.coeffs.copy())

    def support(self) -> np.ndarray:
        """Positions of the monomials with a nonzero coefficient, ascending."""
        flat = self.coeffs.reshape(len(self.index), -1)
        return np.flatnonzero(np.any(flat != 0.0, axis=1))

    def __repr__(self):
        return f"PolyArray(shape={self.shape}, monomials={len(self.index)}, support={len(self.support())})"

    # ----- linear operations -----
    def _expand(self, ndim: int) -> np.ndarray:
        # insert unit axes after the monomial axis so element shapes right-align
        extra = ndim - self.ndim
        if extra <= 0:
            return self.coeffs
        return self.coeffs.reshape((len(self.index),) + (1,) * extra + self.shape)

    def __add__(self, other) -> "PolyArray":
        if isinstance(other, PolyArray):
            self._check_index(self.index, other.index)
            ndim = max(self.ndim, other.ndim)
            return PolyArray(self.index, self._expand(ndim) + other._expand(ndim))
        other = np.asarray(other, dtype=float)
        coeffs = np.array(np.broadcast_to(self._expand(other.ndim),
                                          (len(self.index),) + np.broadcast_shapes(self.shape, other.shape)))
        coeffs[0] = coeffs[0] + other
        return PolyArray(self.index, coeffs)

    __radd__ = __add__

    def __neg__(self) -> "PolyArray":
        return PolyArray(self.index, -self.coeffs)

    def __sub__(self, other) -> "PolyArray":
        return self + (-other)

    def __rsub__(self, other) -> "PolyArray":
        return (-self) + other

    def __mul__(self, other) -> "PolyArray":
        if isinstance(other, PolyArray):
            return self._product(other, np.multiply)
        other = np.asarray(other, dtype=float)
        return PolyArray(self.index, self._expand(other.ndim) * other)

    __rmul__ = __mul__

    def __truediv__(self, other) -> "PolyArray":
        if isinstance(other, PolyArray):
            return self * other.reciprocal()
        return self * (1.0 / np.asarray(other, dtype=float))

    def __matmul__(self, other) -> "PolyArray":
        if isinstance(other, PolyArray):
            return self._product(other, np.matmul)
        return PolyArray(self.index, np.matmul(self.coeffs, np.asarray(other, dtype=float)))

    def __rmatmul__(self, other) -> "PolyArray":
        other = np.asarray(other, dtype=float)
        if self.ndim == 1:
            return PolyArray(self.index, np.matmul(self.coeffs, other.T))
        return PolyArray(self.index, np.matmul(other, self.coeffs))

    # ----- truncated products -----
    def _product(self, other: "PolyArray", op) -> "PolyArray":
        self._check_index(self.index, other.index)
        table = self.index.table
        sa, sb = self.support(), other.support()
        out = None
        for i in sa:
            row = table[i]
            a = self.coeffs[i]
            for j in sb:
                k = row[j]
                if k < 0:
                    continue
                block = op(a, other.coeffs[j])
                if out is None:
                    out = np.zeros((len(self.index),) + np.shape(block))
                out[k] += block
        if out is None:
            a0 = self.coeffs[0]
            b0 = other.coeffs[0]
            out = np.zeros((len(self.index),) + np.shape(op(a0, b0)))
        return PolyArray(self.index, out)

    @staticmethod
    def einsum(subscripts: str, a: Union["PolyArray", np.ndarray], b: Union["PolyArray", np.ndarray]) -> "PolyArray":
        """
        Truncated two-operand ``np.einsum``.

        Either operand may be a plain ndarray, in which case the contraction
        is applied per coefficient without any monomial product.
        """
        if not isinstance(b, PolyArray):
            b = np.asarray(b, dtype=float)
            return PolyArray(a.index, np.stack([np.einsum(subscripts, c, b) for c in a.coeffs]))
        if not isinstance(a, PolyArray):
            a = np.asarray(a, dtype=float)
            return PolyArray(b.index, np.stack([np.einsum(subscripts, a, c) for c in b.coeffs]))
        return a._product(b, lambda x, y: np.einsum(subscripts, x, y))

    def linear_map(self, func) -> "PolyArray":
        """Apply a linear function to every coefficient block."""
        return PolyArray(self.index, np.stack([func(c) for c in self.coeffs]))

    def truncate(self, index: MonomialIndex) -> "PolyArray":
        """Drop every monomial above the degree of `index` (a prefix of this index)."""
        if not index.is_prefix_of(self.index):
            raise ValueError(f"{index} is not a prefix of {self.index}")
        return PolyArray(index, self.coeffs[:len(index)].copy())

    # ----- series -----
    def reciprocal(self) -> "PolyArray":
        """
        Elementwise multiplicative inverse as a truncated power series.

        With a = a0 + a', the coefficients of b = 1/a follow from a*b = 1 in
        graded order: b0 = 1/a0 and b_k = -(1/a0) * sum a_i b_j over i*j == k,
        i != 0. Every b_j on the right has lower degree than k.
        """
        a0 = self.coeffs[0]
        if np.any(a0 == 0.0):
            raise ZeroDivisionError("Reciprocal series needs a nonzero constant term")
        inv0 = 1.0 / a0
        out = np.zeros_like(self.coeffs)
        out[0] = inv0
        nonzero = set(int(i) for i in self.support())
        for k in range(1, len(self.index)):
            acc = np.zeros_like(a0)
            for i, j in self.index.pairs(k):
                if i == 0 or i not in nonzero:
                    continue
                acc += self.coeffs[i] * out[j]
            out[k] = -inv0 * acc
        return PolyArray(self.index, out)

    def relative_series_ratio(self, spread) -> float:
        """
        Ratio r = sum_{k>0} |a_k| m_k(spread) / |a_0| of a scalar polynomial.

        The terms dropped from ``reciprocal()`` at truncation degree D are of
        relative magnitude r**(D+1); the series diverges when r >= 1.
        """
        if self.ndim != 0:
            raise ValueError("Series ratio is defined for scalar polynomials")
        a0 = abs(self.coeffs[0])
        if a0 == 0.0:
            return np.inf
        weights = np.prod(np.abs(np.asarray(spread, dtype=float))[None, :] ** self.index.exponents, axis=1) \
            if self.index.n else np.ones(len(self.index))
        return float(np.sum(np.abs(self.coeffs[1:]) * weights[1:]) / a0)

    # ----- evaluation -----
    def evaluate(self, delta) -> np.ndarray:
        """Sum of coefficients times monomial values at deviation `delta`."""
        values = self.index.evaluate(delta)
        return np.tensordot(values, self.coeffs, axes=(0, 0))
