from typing import Tuple

import numpy as np

from PolyCore.Objects.FEM.BaseFE import BaseFE


def lagrange_1d(t: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Quadratic 1D Lagrange polynomials on [-1, 1] for nodes -1, 0, +1.

    L0(t) = t(t-1)/2, L1(t) = 1-t², L2(t) = t(t+1)/2
    """
    L = np.array([t * (t - 1.0) / 2.0, 1.0 - t * t, t * (t + 1.0) / 2.0])
    dL = np.array([t - 0.5, -2.0 * t, t + 0.5])
    return L, dL


class Quad4(BaseFE):
    """
    4-node bilinear quadrilateral element.

    Node numbering (counter-clockwise):
        3-------2
        |       |
        |       |
        0-------1

    Natural coordinates: ξ, η ∈ [-1, 1]
    Shape functions: N_i = (1 + ξ ξ_i)(1 + η η_i)/4
    """
    name = "quad4"
    dim = 2
    n_nodes = 4
    order = 1
    simplex = False

    _XI = np.array([-1.0, 1.0, 1.0, -1.0])
    _ETA = np.array([-1.0, -1.0, 1.0, 1.0])

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        x, y = float(xi[0]), float(xi[1])
        N = 0.25 * (1.0 + self._XI * x) * (1.0 + self._ETA * y)
        dN = np.column_stack([
            0.25 * self._XI * (1.0 + self._ETA * y),
            0.25 * self._ETA * (1.0 + self._XI * x),
        ])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        return np.column_stack([self._XI, self._ETA])


class Quad9(BaseFE):
    """
    9-node Lagrangian quadrilateral element.

    Node numbering (compatible with Gmsh quad9 ordering):
        3---6---2
        |       |
        7   8   5
        |       |
        0---4---1

    Natural coordinates: ξ, η ∈ [-1, 1]
    Biquadratic tensor-product shape functions N = L_i(ξ) L_j(η).
    """
    name = "quad9"
    dim = 2
    n_nodes = 9
    order = 2
    simplex = False

    # (i, j) of the 1D Lagrange factors per node; 0: t=-1, 1: t=0, 2: t=+1
    _IJ = [(0, 0), (2, 0), (2, 2), (0, 2), (1, 0), (2, 1), (1, 2), (0, 1), (1, 1)]

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        Lx, dLx = lagrange_1d(float(xi[0]))
        Ly, dLy = lagrange_1d(float(xi[1]))
        N = np.array([Lx[i] * Ly[j] for i, j in self._IJ])
        dN = np.array([[dLx[i] * Ly[j], Lx[i] * dLy[j]] for i, j in self._IJ])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        t = np.array([-1.0, 0.0, 1.0])
        return np.array([[t[i], t[j]] for i, j in self._IJ])
