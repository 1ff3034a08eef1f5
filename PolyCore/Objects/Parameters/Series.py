import numpy as np

from PolyCore.Errors import NonPolynomialMaterialLaw
from PolyCore.Objects.Parameters.Monomial import MonomialIndex
from PolyCore.Objects.Parameters.Polynomial import PolyArray


class SeriesConstants:
    DEFAULT_TOLERANCE = 0.05
    NATURAL_DEGREE = 3  # denominators of the material laws and Jacobian determinants are at most cubic


class SeriesAcceptance:
    """
    Acceptance rule for truncated reciprocal series.

    A denominator a(δ) = a0 + a'(δ) is judged on its complete polynomial,
    built in ``full_index`` (degree at least ``NATURAL_DEGREE``) so that no
    part of a' is lost to the run's truncation. With

        r = Σ_{k>0} |a_k| m_k(spread) / |a0|

    the terms dropped from 1/a at truncation degree D have relative size
    r**(D+1). The series is rejected when r >= 1 (it diverges somewhere in
    the spread box) or when r**(D+1) exceeds the tolerance.

    Args:
        index: MonomialIndex of the run
        spread: Expected deviation per parameter slot
        tolerance: Largest accepted relative size of the dropped terms
    """

    def __init__(self, index: MonomialIndex, spread, tolerance: float = SeriesConstants.DEFAULT_TOLERANCE):
        self.index = index
        self.spread = np.asarray(spread, dtype=float).reshape(index.n)
        self.tolerance = float(tolerance)
        if index.degree >= SeriesConstants.NATURAL_DEGREE:
            self.full_index = index
        else:
            self.full_index = MonomialIndex(index.n, SeriesConstants.NATURAL_DEGREE)

    @classmethod
    def for_schema(cls, schema, index: MonomialIndex, tolerance: float = SeriesConstants.DEFAULT_TOLERANCE):
        return cls(index, schema.spread, tolerance)

    def dropped(self, full: PolyArray, what: str = "denominator", parameter=None) -> float:
        """
        Relative size of the terms dropped from 1/full at the run's degree.

        Raises:
            NonPolynomialMaterialLaw: vanishing constant term, divergent
                series, or dropped terms above the tolerance
        """
        if full.index is not self.full_index and len(full.index) != len(self.full_index):
            raise ValueError(f"Denominator must be built on {self.full_index}, got {full.index}")
        if full.coeffs[0] == 0.0:
            raise NonPolynomialMaterialLaw(f"{what} vanishes at nominal parameters", parameter=parameter)
        r = full.relative_series_ratio(self.spread)
        if r >= 1.0:
            raise NonPolynomialMaterialLaw(
                f"Series of 1/({what}) diverges at the parameter spread (ratio {r:.3g})", parameter=parameter)
        dropped = r ** (self.index.degree + 1)
        if dropped > self.tolerance:
            raise NonPolynomialMaterialLaw(
                f"Truncated series of 1/({what}) drops terms of relative size {dropped:.3g} "
                f"> tolerance {self.tolerance:.3g}; raise the degree bound or the tolerance",
                parameter=parameter)
        return dropped

    def reciprocal(self, full: PolyArray, what: str = "denominator", parameter=None) -> PolyArray:
        """1/full truncated at the run's degree, after the acceptance check."""
        self.dropped(full, what, parameter)
        return full.truncate(self.index).reciprocal()
