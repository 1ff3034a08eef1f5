from typing import Tuple

import numpy as np

from PolyCore.Objects.FEM.BaseFE import BaseFE


class Triangle3(BaseFE):
    """
    3-node linear triangular element (CST - Constant Strain Triangle).

    Node numbering (counter-clockwise):
        2
        |\\
        | \\
        |  \\
        0---1

    Natural coordinates: (ξ, η) ∈ [0,1] with ζ = 1-ξ-η
    Shape functions: N0 = ζ, N1 = ξ, N2 = η
    Spatial gradients are constant over an affine element.
    """
    name = "triangle3"
    dim = 2
    n_nodes = 3
    order = 1
    simplex = True

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        x, y = float(xi[0]), float(xi[1])
        N = np.array([1.0 - x - y, x, y])
        dN = np.array([[-1.0, -1.0],
                       [1.0, 0.0],
                       [0.0, 1.0]])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        return np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])


class Triangle6(BaseFE):
    """
    6-node quadratic triangular element (LST - Linear Strain Triangle).

    Node numbering (counter-clockwise):
        2
        |\\
        | \\
        5  4
        |   \\
        |    \\
        0--3--1

    Nodes 0, 1, 2: Corner nodes
    Nodes 3, 4, 5: Mid-side nodes (3 on edge 0-1, 4 on edge 1-2, 5 on edge 2-0)

    Natural coordinates: (ξ, η) ∈ [0,1] with ζ = 1-ξ-η

    Shape functions:
    N0 = ζ(2ζ-1), N1 = ξ(2ξ-1), N2 = η(2η-1)
    N3 = 4ξζ,     N4 = 4ξη,     N5 = 4ηζ
    """
    name = "triangle6"
    dim = 2
    n_nodes = 6
    order = 2
    simplex = True

    def N_dN(self, xi) -> Tuple[np.ndarray, np.ndarray]:
        x, y = float(xi[0]), float(xi[1])
        z = 1.0 - x - y

        N = np.array([
            z * (2.0 * z - 1.0),
            x * (2.0 * x - 1.0),
            y * (2.0 * y - 1.0),
            4.0 * x * z,
            4.0 * x * y,
            4.0 * y * z,
        ])

        # ∂ζ/∂ξ = ∂ζ/∂η = -1
        dN = np.array([
            [1.0 - 4.0 * z, 1.0 - 4.0 * z],
            [4.0 * x - 1.0, 0.0],
            [0.0, 4.0 * y - 1.0],
            [4.0 * (z - x), -4.0 * x],
            [4.0 * y, 4.0 * x],
            [-4.0 * y, 4.0 * (z - y)],
        ])
        return N, dN

    def reference_nodes(self) -> np.ndarray:
        return np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0],
                         [0.5, 0.0], [0.5, 0.5], [0.0, 0.5]])
