from dataclasses import dataclass
from math import comb
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from PolyCore.Errors import DegreeOverflow


class MonomialConstants:
    """Ceilings bounding the combinatorial size of a monomial index."""
    MAX_DEGREE = 12       # Highest truncation degree accepted
    MAX_MONOMIALS = 2048  # Highest number of monomials per index (dense int32 product table <= 16 MB)


@dataclass(frozen=True)
class Monomial:
    """
    Product of parameter powers, identified by its exponent tuple.

    Attributes:
        exponents: Non-negative exponent per parameter slot
    """
    exponents: Tuple[int, ...]

    def __post_init__(self):
        exps = tuple(int(e) for e in self.exponents)
        if any(e < 0 for e in exps):
            raise ValueError(f"Exponents must be non-negative, got {exps}")
        object.__setattr__(self, "exponents", exps)

    @property
    def degree(self) -> int:
        return sum(self.exponents)

    @property
    def n_vars(self) -> int:
        return len(self.exponents)

    def __mul__(self, other: "Monomial") -> "Monomial":
        if len(other.exponents) != len(self.exponents):
            raise ValueError("Monomials over different parameter counts")
        return Monomial(tuple(a + b for a, b in zip(self.exponents, other.exponents)))

    def to_string(self, names: Optional[Sequence[str]] = None) -> str:
        if self.degree == 0:
            return "1"
        if names is None:
            names = [f"p{i}" for i in range(len(self.exponents))]
        factors = []
        for name, e in zip(names, self.exponents):
            if e == 1:
                factors.append(f"d{name}")
            elif e > 1:
                factors.append(f"d{name}^{e}")
        return "*".join(factors)

    def __str__(self):
        return self.to_string()


def graded_exponents(n: int, degree: int) -> List[Tuple[int, ...]]:
    """All exponent tuples of exactly `degree`, lexicographically descending."""
    if n == 0:
        return [()] if degree == 0 else []
    if n == 1:
        return [(degree,)]
    out = []
    for first in range(degree, -1, -1):
        for rest in graded_exponents(n - 1, degree - first):
            out.append((first,) + rest)
    return out


def pascal_table(top: int, k: int) -> np.ndarray:
    """Binomial coefficients C[a, b] for a <= top, b <= k."""
    C = np.zeros((top + 1, k + 1), dtype=np.int64)
    C[:, 0] = 1
    for a in range(1, top + 1):
        C[a, 1:] = C[a - 1, 1:] + C[a - 1, :-1]
    return C


class MonomialIndex:
    """
    Canonical enumeration of the monomials of total degree <= D.

    Ordering is graded: degree ascending, then lexicographically descending
    inside one degree. With this ordering the index for D1 is a prefix of the
    index for any D2 > D1, so coefficient positions never move when the
    truncation degree is raised.

    Multiplication follows the truncation policy: a product whose degree
    exceeds D is dropped (``multiply`` returns None and ``table`` holds -1).
    This is silent by design of the interface; only a degree bound above
    ``MonomialConstants.MAX_DEGREE`` raises DegreeOverflow.
    """

    def __init__(self, n: int, degree: int):
        n = int(n)
        degree = int(degree)
        if n < 0:
            raise ValueError(f"Parameter count must be non-negative, got {n}")
        if degree < 0:
            raise ValueError(f"Degree bound must be non-negative, got {degree}")
        if degree > MonomialConstants.MAX_DEGREE:
            raise DegreeOverflow(
                f"Degree bound {degree} exceeds the ceiling {MonomialConstants.MAX_DEGREE}")
        size = self.count(n, degree)
        if size > MonomialConstants.MAX_MONOMIALS:
            raise DegreeOverflow(
                f"{size} monomials for n={n}, D={degree} exceeds the ceiling "
                f"{MonomialConstants.MAX_MONOMIALS}")

        self.n = n
        self.degree = degree
        exps = []
        for d in range(degree + 1):
            exps.extend(graded_exponents(n, d))
        self.exponents = np.array(exps, dtype=int).reshape(len(exps), n)
        self.degrees = self.exponents.sum(axis=1)
        self.monomials = [Monomial(e) for e in exps]
        self._position: Dict[Tuple[int, ...], int] = {e: i for i, e in enumerate(exps)}
        self._binomials = pascal_table(n + degree, degree)
        self.table = self._build_table()
        self._pairs = None

    @staticmethod
    def count(n: int, degree: int) -> int:
        return comb(n + degree, degree)

    def __len__(self):
        return len(self.monomials)

    def __iter__(self):
        return iter(self.monomials)

    def __contains__(self, monomial) -> bool:
        return self._key(monomial) in self._position

    def __repr__(self):
        return f"MonomialIndex(n={self.n}, D={self.degree}, size={len(self)})"

    @staticmethod
    def _key(monomial) -> Tuple[int, ...]:
        if isinstance(monomial, Monomial):
            return monomial.exponents
        return tuple(int(e) for e in monomial)

    def position(self, monomial) -> int:
        """Position of a monomial (Monomial or exponent tuple) in the index."""
        key = self._key(monomial)
        try:
            return self._position[key]
        except KeyError:
            raise KeyError(f"Monomial {key} not in index (n={self.n}, D={self.degree})") from None

    def unit(self, slot: int) -> Optional[int]:
        """Position of the degree-1 monomial of one parameter slot, or None if D == 0."""
        if self.degree == 0:
            return None
        e = [0] * self.n
        e[slot] = 1
        return self._position[tuple(e)]

    def rank(self, exponents) -> np.ndarray:
        """
        Positions of exponent rows (P, n) of degree <= D, computed in closed form.

        A row of degree d sits after the C(n + d - 1, d - 1) monomials of lower
        degree. Inside degree d, slot s with r units left and value e_s is
        preceded by every tuple putting more than e_s units in that slot,
        C(m + T, T) of them with m = n - s - 1 and T = r - e_s - 1.
        """
        exponents = np.atleast_2d(np.asarray(exponents, dtype=np.int64))
        C = self._binomials
        d = exponents.sum(axis=1)
        pos = np.zeros(len(exponents), dtype=np.int64)
        above = d > 0
        pos[above] = C[self.n + d[above] - 1, d[above] - 1]
        left = d.copy()
        for s in range(self.n - 1):
            m = self.n - s - 1
            T = left - exponents[:, s] - 1
            ok = T >= 0
            pos[ok] += C[m + T[ok], T[ok]]
            left -= exponents[:, s]
        return pos

    def _build_table(self) -> np.ndarray:
        M = len(self.monomials)
        table = np.full((M, M), -1, dtype=np.int32)
        i, j = np.nonzero(self.degrees[:, None] + self.degrees[None, :] <= self.degree)
        table[i, j] = self.rank(self.exponents[i] + self.exponents[j])
        return table

    def multiply(self, i: int, j: int) -> Optional[int]:
        """Position of monomial i times monomial j, or None when truncated."""
        k = self.table[i, j]
        return None if k < 0 else int(k)

    def pairs(self, k: int) -> List[Tuple[int, int]]:
        """All (i, j) with i*j == k, ordered by i then j."""
        if self._pairs is None:
            pairs = [[] for _ in range(len(self))]
            for i, j in zip(*np.nonzero(self.table >= 0)):
                pairs[self.table[i, j]].append((int(i), int(j)))
            self._pairs = pairs
        return self._pairs[k]

    def evaluate(self, delta) -> np.ndarray:
        """Values of every monomial at a deviation vector, shape (M,)."""
        delta = np.asarray(delta, dtype=float).reshape(self.n)
        if self.n == 0:
            return np.ones(len(self))
        return np.prod(delta[None, :] ** self.exponents, axis=1)

    def is_prefix_of(self, other: "MonomialIndex") -> bool:
        """True when this index equals the head of `other`."""
        if other.n != self.n or other.degree < self.degree:
            return False
        return np.array_equal(other.exponents[:len(self)], self.exponents)
