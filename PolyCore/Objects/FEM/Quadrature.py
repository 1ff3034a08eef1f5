from dataclasses import dataclass
from typing import Tuple

import numpy as np

from PolyCore.Objects.FEM.BaseFE import BaseFE


class QuadratureConstants:
    """Limits of the rules provided."""
    MAX_GAUSS_POINTS = 10        # Per direction, exact to degree 19
    TRIANGLE_EXACTNESS = (1, 2, 4, 5)


@dataclass
class QuadRule:
    """
    Quadrature rule in reference coordinates.

    Attributes
    ----------
    points : np.ndarray
        Integration points, shape (n_points, dim)
    weights : np.ndarray
        Weights, shape (n_points,); they sum to the reference measure
        (2^dim for [-1,1]^dim, 1/2 for the unit triangle)
    exactness : int
        Highest polynomial degree integrated exactly (per direction for
        tensor-product rules, total degree for triangles)
    """
    points: np.ndarray
    weights: np.ndarray
    exactness: int

    def __len__(self):
        return len(self.weights)


def gauss_legendre(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre points and weights on [-1, 1].

    Parameters
    ----------
    n : int
        Number of points; the rule is exact up to degree 2n-1
    """
    if n < 1:
        raise ValueError(f"Gauss rule needs at least one point, got {n}")
    return np.polynomial.legendre.leggauss(n)


def tensor_rule(n: int, dim: int) -> QuadRule:
    """
    Tensor-product Gauss rule on [-1, 1]^dim.

    Points are ordered with the first coordinate varying fastest, the same
    layout as ``np.meshgrid(..., indexing='xy')`` in 2D.
    """
    pts, w = gauss_legendre(n)
    grids = np.meshgrid(*([pts] * dim), indexing="ij")
    wgrids = np.meshgrid(*([w] * dim), indexing="ij")
    # reverse so axis 0 (xi) varies fastest
    points = np.column_stack([g.transpose().ravel() for g in grids])
    weights = np.prod(np.column_stack([g.transpose().ravel() for g in wgrids]), axis=1)
    return QuadRule(points, weights, 2 * n - 1)


def _triangle_orbit(a: float, b: float) -> np.ndarray:
    # the three points of barycentric orbit (a, a, b) as (xi, eta)
    return np.array([[a, a], [a, b], [b, a]])


def triangle_rule(exactness: int) -> QuadRule:
    """
    Symmetric quadrature on the unit triangle (area 1/2).

    Parameters
    ----------
    exactness : int
        Requested total degree. The smallest available rule with at least
        this exactness is returned (1, 2, 4 or 5); requests above 5 return
        the degree-5 rule.

    Notes
    -----
    Degree 1: centroid. Degree 2: three interior points.
    Degree 4 (6 points) and degree 5 (7 points): Dunavant rules.
    """
    if exactness <= 1:
        points = np.array([[1.0 / 3.0, 1.0 / 3.0]])
        weights = np.array([1.0])
        exact = 1
    elif exactness == 2:
        points = np.array([[1.0 / 6.0, 1.0 / 6.0], [2.0 / 3.0, 1.0 / 6.0], [1.0 / 6.0, 2.0 / 3.0]])
        weights = np.full(3, 1.0 / 3.0)
        exact = 2
    elif exactness <= 4:
        points = np.vstack([
            _triangle_orbit(0.445948490915965, 0.108103018168070),
            _triangle_orbit(0.091576213509771, 0.816847572980459),
        ])
        weights = np.concatenate([np.full(3, 0.223381589678011), np.full(3, 0.109951743655322)])
        exact = 4
    else:
        points = np.vstack([
            [[1.0 / 3.0, 1.0 / 3.0]],
            _triangle_orbit(0.470142064105115, 0.059715871789770),
            _triangle_orbit(0.101286507323456, 0.797426985353087),
        ])
        weights = np.concatenate([[0.225], np.full(3, 0.132394152788506), np.full(3, 0.125939180544827)])
        exact = 5
    return QuadRule(points, 0.5 * weights, exact)


def rule_for(shape: BaseFE, exactness: int) -> QuadRule:
    """
    Quadrature rule of an element type for a requested exactness degree.

    The returned rule's ``exactness`` may be lower than requested when the
    request exceeds the largest rule available; callers compare the two to
    report QuadratureOrderInsufficient.
    """
    exactness = max(int(exactness), 0)
    if shape.simplex:
        if shape.dim != 2:
            raise ValueError(f"No simplex rules for dimension {shape.dim}")
        return triangle_rule(exactness)
    n = max(1, int(np.ceil((exactness + 1) / 2)))
    n = min(n, QuadratureConstants.MAX_GAUSS_POINTS)
    return tensor_rule(n, shape.dim)


def required_degree(shape: BaseFE, gradient_factors: int, mass: bool = False) -> int:
    """
    Integrand degree on an affine element.

    Parameters
    ----------
    shape : BaseFE
        Element type
    gradient_factors : int
        Number of shape-function gradient factors in the integrand
        (2 for linear stiffness, 3 for the quadratic force, ...)
    mass : bool
        If True, integrand is N N^T (degree 2p) and gradient_factors is ignored

    Notes
    -----
    Curved or parameter-morphed elements make the integrand rational in the
    reference coordinates; the affine estimate is used for them as well,
    which gives an approximate (not exact) integral.
    """
    if mass:
        return 2 * shape.order
    return gradient_factors * shape.gradient_degree()

