from typing import Tuple

import numpy as np

from PolyCore.Objects.FEM.BaseFE import BaseFE
from PolyCore.Objects.FEM.Quads import lagrange_1d


class Hex8(BaseFE):
    """
    8-node trilinear hexahedral element.

    Node numbering (bottom face counter-clockwise, then top face):
           7-------6
          /|      /|
         4-------5 |
         | 3-----|-2
         |/      |/
         0-------1

    Natural coordinates: ξ, η, ζ ∈ [-1, 1]
    Shape functions: N_i = (1 + ξ ξ_i)(1 + η η_i)(1 + ζ ζ_i)/8
    """
    name = "hex8"
    dim = 3
    n_nodes = 8
    order = 1
    simplex = False

    _REF = np.array([
        [-1.0, -1.0, -1.0], [1.0, -1.0, -1.0], [1.0, 1.0, -1.0], [-1.0, 1.0, -1.0],
        [-1.0, -1.0, 1.0], [1.0, -1.0, 1.0], [1.0, 1.0, 1.0], [-1.0, 1.0, 1.0],
    ])

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        xi = np.asarray(xi, dtype=float)
        factors = 1.0 + self._REF * xi[None, :]  # (8, 3)
        N = 0.125 * np.prod(factors, axis=1)
        dN = np.empty((8, 3))
        for d in range(3):
            others = [k for k in range(3) if k != d]
            dN[:, d] = 0.125 * self._REF[:, d] * factors[:, others[0]] * factors[:, others[1]]
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        return self._REF.copy()


class Hex27(BaseFE):
    """
    27-node triquadratic Lagrangian hexahedral element.

    Node order: the 8 corners as in Hex8, the 12 edge midpoints (bottom
    edges 01 12 23 30, top edges 45 56 67 74, vertical edges 04 15 26 37),
    the 6 face centers (bottom, top, y = -1, x = +1, y = +1, x = -1) and
    the cell center.

    Natural coordinates: ξ, η, ζ ∈ [-1, 1]
    Tensor-product shape functions N = L_i(ξ) L_j(η) L_k(ζ).
    """
    name = "hex27"
    dim = 3
    n_nodes = 27
    order = 2
    simplex = False

    # (i, j, k) of the 1D Lagrange factors per node; 0: t=-1, 1: t=0, 2: t=+1
    _IJK = [
        (0, 0, 0), (2, 0, 0), (2, 2, 0), (0, 2, 0), (0, 0, 2), (2, 0, 2), (2, 2, 2), (0, 2, 2),
        (1, 0, 0), (2, 1, 0), (1, 2, 0), (0, 1, 0),
        (1, 0, 2), (2, 1, 2), (1, 2, 2), (0, 1, 2),
        (0, 0, 1), (2, 0, 1), (2, 2, 1), (0, 2, 1),
        (1, 1, 0), (1, 1, 2), (1, 0, 1), (2, 1, 1), (1, 2, 1), (0, 1, 1),
        (1, 1, 1),
    ]

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        Lx, dLx = lagrange_1d(float(xi[0]))
        Ly, dLy = lagrange_1d(float(xi[1]))
        Lz, dLz = lagrange_1d(float(xi[2]))
        N = np.array([Lx[i] * Ly[j] * Lz[k] for i, j, k in self._IJK])
        dN = np.array([[dLx[i] * Ly[j] * Lz[k], Lx[i] * dLy[j] * Lz[k], Lx[i] * Ly[j] * dLz[k]]
                       for i, j, k in self._IJK])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        t = np.array([-1.0, 0.0, 1.0])
        return np.array([[t[i], t[j], t[k]] for i, j, k in self._IJK])
