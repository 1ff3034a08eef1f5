from typing import Tuple

import numpy as np

from PolyCore.Objects.FEM.BaseFE import BaseFE


class Line2(BaseFE):
    """
    2-node linear bar element.

    Node numbering:
        0-------1

    Natural coordinate: ξ ∈ [-1, 1]
    Shape functions: N0 = (1-ξ)/2, N1 = (1+ξ)/2
    """
    name = "line2"
    dim = 1
    n_nodes = 2
    order = 1
    simplex = False

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        x = float(np.atleast_1d(xi)[0])
        N = np.array([0.5 * (1.0 - x), 0.5 * (1.0 + x)])
        dN = np.array([[-0.5], [0.5]])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        return np.array([[-1.0], [1.0]])


class Line3(BaseFE):
    """
    3-node quadratic bar element.

    Node numbering (end nodes first, mid node last):
        0---2---1

    Natural coordinate: ξ ∈ [-1, 1]
    Uses 1D Lagrange polynomials:
    L0 = ξ(ξ-1)/2, L1 = ξ(ξ+1)/2, L2 = 1-ξ²
    """
    name = "line3"
    dim = 1
    n_nodes = 3
    order = 2
    simplex = False

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        x = float(np.atleast_1d(xi)[0])
        N = np.array([
            0.5 * x * (x - 1.0),
            0.5 * x * (x + 1.0),
            1.0 - x * x,
        ])
        dN = np.array([[x - 0.5], [x + 0.5], [-2.0 * x]])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        return np.array([[-1.0], [1.0], [0.0]])
