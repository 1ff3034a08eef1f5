"""
Element Kinematics - Parametric Jacobian and Green-Lagrange Operators
=====================================================================

Node positions depend on the geometric parameters through morph fields,

    X(δ) = X0 + Σ_i δ_i V_i

so the Jacobian J = Σ_a X_a ⊗ ∇_ξ N_a is a degree-1 polynomial in δ. Its
determinant and adjugate are exact polynomials (degree dim and dim-1), and
the spatial gradients

    G = ∇_ξ N · adj(J) · (1/det J)

use the truncated power series of 1/det J, accepted or rejected by the
same series rule as the rational material dependencies.

Green-Lagrange strain in Voigt notation (engineering shear):

    E(u) = B_L u + ½ Hq[u, u]

with Hq_v = ∂²E_v/∂u∂u the (constant) quadratic part. The operator
linearized at a reference displacement is B(F) = B_L + B_q(H), where
H = Σ_a u_a ⊗ G_a is the displacement gradient.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from PolyCore.Errors import InvalidElementGeometry
from PolyCore.Objects.FEM.BaseFE import BaseFE
from PolyCore.Objects.FEM.Mesh import ELEMENT_TYPES
from PolyCore.Objects.Parameters.Polynomial import PolyArray
from PolyCore.Objects.Parameters.Series import SeriesAcceptance

VOIGT_PAIRS = {
    1: [(0, 0)],
    2: [(0, 0), (1, 1), (0, 1)],
    3: [(0, 0), (1, 1), (2, 2), (1, 2), (0, 2), (0, 1)],
}


def voigt_tensor(dim: int) -> np.ndarray:
    """
    Selection tensor T[v, i, j] of the Voigt components.

    Normal component v = (i, i): T[v, i, i] = 1.
    Shear component v = (i, j): T[v, i, j] = T[v, j, i] = 1.
    """
    pairs = VOIGT_PAIRS[dim]
    T = np.zeros((len(pairs), dim, dim))
    for v, (i, j) in enumerate(pairs):
        T[v, i, j] = 1.0
        T[v, j, i] = 1.0
    return T


@dataclass
class StrainOperator:
    """
    Strain-displacement operator at one quadrature point.

    Attributes:
        linear: B(F_ref), shape (nv, n_dof); equals B_L when u_ref = 0
        quadratic: Hq = d2E/du2, shape (nv, n_dof, n_dof), or None if not requested
        strain: E(u_ref), shape (nv,), or None when u_ref = 0
    """
    linear: PolyArray
    quadratic: Optional[PolyArray] = None
    strain: Optional[PolyArray] = None


@dataclass
class PointKinematics:
    """Shape values, parametric gradients and Jacobian determinant at a point."""
    N: np.ndarray
    G: PolyArray
    det: PolyArray


class KinematicsConstants:
    DET_TOLERANCE = 1e-12  # det J0 <= tol * h^dim is treated as degenerate


class ElementKinematics:
    """
    Kinematics of one element with parameter-dependent node positions.

    Args:
        shape: Reference element (shape functions)
        coords: Node positions as a PolyArray of shape (n_nodes, dim)
        tag: Element identifier used in error messages
        series: Acceptance rule for the series of 1/det J, None to skip it
        full_coords: Node positions on ``series.full_index``, when that index
            is larger than the one of ``coords``
    """

    def __init__(self, shape: BaseFE, coords: PolyArray, tag=None,
                 series: Optional[SeriesAcceptance] = None, full_coords: Optional[PolyArray] = None):
        if coords.shape != (shape.n_nodes, shape.dim):
            raise ValueError(
                f"{shape.name} needs coordinates of shape {(shape.n_nodes, shape.dim)}, got {coords.shape}")
        self.shape = shape
        self.coords = coords
        self.tag = tag
        self.series = series
        self.full_coords = full_coords
        self.dim = shape.dim
        self.n_dof = shape.n_nodes * shape.dim
        self.nv = len(VOIGT_PAIRS[shape.dim])
        self._T = voigt_tensor(shape.dim)
        X0 = coords.constant_term
        extent = np.max(X0, axis=0) - np.min(X0, axis=0)
        self._scale = float(np.max(extent)) ** self.dim if np.max(extent) > 0 else 0.0

    @classmethod
    def from_mesh(cls, mesh, element, index, schema, series: Optional[SeriesAcceptance] = None) -> "ElementKinematics":
        """Build the parametric node positions of a mesh element."""
        shape = ELEMENT_TYPES[element.type]
        coords = cls.node_positions(mesh, element, index, schema)
        full_coords = None
        if series is not None and series.full_index is not index:
            full_coords = cls.node_positions(mesh, element, series.full_index, schema)
        return cls(shape, coords, tag=element.tag, series=series, full_coords=full_coords)

    @staticmethod
    def node_positions(mesh, element, index, schema) -> PolyArray:
        """X0 + sum of delta_i V_i over the morph fields, shape (n_nodes, dim)."""
        nodes = list(element.nodes)
        coeffs = np.zeros((len(index), len(nodes), mesh.dim))
        coeffs[0] = mesh.nodes[nodes]
        for name, field in mesh.morphs.items():
            k = index.unit(schema.slot(name))
            if k is not None:
                coeffs[k] = field[nodes]
        return PolyArray(index, coeffs)

    # ----- shape functions -----
    def shape_functions(self, point) -> Tuple[np.ndarray, np.ndarray]:
        """Shape function values (n_nodes,) and reference gradients (n_nodes, dim)."""
        return self.shape.N_dN(np.asarray(point, dtype=float))

    # ----- jacobian -----
    def jacobian(self, point) -> Tuple[PolyArray, PolyArray, PolyArray]:
        """
        Jacobian J_ij = Σ_a X_ai ∂N_a/∂ξ_j, its determinant and adjugate.

        Raises:
            InvalidElementGeometry: if det J at nominal parameters is non-positive
        """
        _, dN = self.shape_functions(point)
        J = self.coords.T @ dN
        det, adj = self._det_adj(J)
        det0 = float(det.constant_term)
        if det0 <= KinematicsConstants.DET_TOLERANCE * self._scale:
            raise InvalidElementGeometry(
                f"Non-positive Jacobian determinant {det0:.3e} in {self.shape.name} element "
                f"{self.tag} at reference point {np.asarray(point).tolist()}",
                element=self.tag, det=det0)
        return J, det, adj

    def _det_adj(self, J: PolyArray) -> Tuple[PolyArray, PolyArray]:
        d = self.dim
        if d == 1:
            det = J[0, 0]
            adj = PolyArray.constant(J.index, np.ones((1, 1)))
            return det, adj
        e = [[J[i, j] for j in range(d)] for i in range(d)]
        if d == 2:
            det = e[0][0] * e[1][1] - e[0][1] * e[1][0]
            adj = PolyArray.stack([
                PolyArray.stack([e[1][1], -e[0][1]]),
                PolyArray.stack([-e[1][0], e[0][0]]),
            ])
            return det, adj
        a = [
            [e[1][1] * e[2][2] - e[1][2] * e[2][1],
             e[0][2] * e[2][1] - e[0][1] * e[2][2],
             e[0][1] * e[1][2] - e[0][2] * e[1][1]],
            [e[1][2] * e[2][0] - e[1][0] * e[2][2],
             e[0][0] * e[2][2] - e[0][2] * e[2][0],
             e[0][2] * e[1][0] - e[0][0] * e[1][2]],
            [e[1][0] * e[2][1] - e[1][1] * e[2][0],
             e[0][1] * e[2][0] - e[0][0] * e[2][1],
             e[0][0] * e[1][1] - e[0][1] * e[1][0]],
        ]
        det = e[0][0] * a[0][0] + e[0][1] * a[1][0] + e[0][2] * a[2][0]
        adj = PolyArray.stack([PolyArray.stack(row) for row in a])
        return det, adj

    def _inverse_det(self, dN: np.ndarray, det: PolyArray) -> PolyArray:
        if self.series is None:
            return det.reciprocal()
        if self.full_coords is None:
            full = det
        else:
            full, _ = self._det_adj(self.full_coords.T @ dN)
        return self.series.reciprocal(full, f"det J of {self.shape.name} element {self.tag}")

    def gradients(self, point) -> PointKinematics:
        """Spatial gradients G = dN/dX (n_nodes, dim) as polynomials."""
        N, dN = self.shape_functions(point)
        _, det, adj = self.jacobian(point)
        G = (dN @ adj) * self._inverse_det(dN, det)
        return PointKinematics(N=N, G=G, det=det)

    # ----- strain operators -----
    def strain_operator(self, G: PolyArray, u_ref: Optional[np.ndarray] = None,
                        quadratic: bool = True) -> StrainOperator:
        """
        Linear and quadratic parts of the Green-Lagrange operator.

        Args:
            G: Spatial gradients (n_nodes, dim)
            u_ref: Element reference displacement (n_dof,), None for u = 0
            quadratic: Also build the Hessian tensor Hq

        Returns:
            StrainOperator with linear = B(F_ref), quadratic = Hq and the
            reference strain (None when u_ref is None)
        """
        n, d, nv = self.shape.n_nodes, self.dim, self.nv
        T = self._T
        B_L = PolyArray.einsum("vkj,aj->vak", T, G).reshape(nv, n * d)

        Hq = None
        if quadratic or u_ref is not None:
            GT = PolyArray.einsum("vij,ai->vaj", T, G)
            S = PolyArray.einsum("vaj,bj->vab", GT, G)
            eye = np.eye(d)
            Hq = S.linear_map(lambda c: np.einsum("vab,kl->vakbl", c, eye).reshape(nv, n * d, n * d))

        if u_ref is None:
            return StrainOperator(linear=B_L, quadratic=Hq if quadratic else None)

        U = np.asarray(u_ref, dtype=float).reshape(n, d)
        H = PolyArray.einsum("ak,ai->ki", U, G)
        TH = PolyArray.einsum("vij,ki->vkj", T, H)
        B_q = PolyArray.einsum("vkj,aj->vak", TH, G).reshape(nv, n * d)
        u = U.ravel()
        strain = B_L @ u + (B_q @ u) * 0.5
        return StrainOperator(linear=B_L + B_q, quadratic=Hq, strain=strain)

    @staticmethod
    def geometric_stiffness(stress: PolyArray, Hq: PolyArray) -> PolyArray:
        """Initial-stress stiffness Σ_v S_v Hq_v = kron(G S G^T, I)."""
        return PolyArray.einsum("v,vab->ab", stress, Hq)
