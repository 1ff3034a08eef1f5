"""
Reference Assembler
===================

Conventional numeric assembly at fixed parameter values. Node positions
are moved along the morph fields, the Jacobian is inverted with
``np.linalg.inv`` and the material is evaluated through its closed-form
numeric path. Quadrature selection, DOF numbering, reduction and force
tensor column layout are the ones of the parametric engine, so both
assemblers agree at nominal values up to round-off.

Used to cross-check the degree-0 coefficients and to measure the
truncation error of the parametric expansion away from nominal.
"""

from typing import Dict, Mapping, Optional

import numpy as np
import scipy.sparse as sp

from PolyCore.Assembly.LocalAssembler import FORCE_KINDS, MATRIX_KINDS, compress_symmetric, select_quadrature
from PolyCore.Assembly.SparsePattern import ReductionMap, multiset_columns, multiset_count, multiset_rank
from PolyCore.Errors import InvalidElementGeometry
from PolyCore.Objects.ConstitutiveLaw.Material import MaterialLaw
from PolyCore.Objects.FEM.Kinematics import KinematicsConstants, voigt_tensor
from PolyCore.Objects.FEM.Mesh import ELEMENT_TYPES, Element, Mesh
from PolyCore.Objects.Parameters.Schema import ParameterSchema


class ReferenceAssembler:
    """
    Baseline numeric assembler.

    Args:
        mesh: Mesh (not modified)
        materials: Mapping material key -> MaterialLaw
        schema: ParameterSchema
        config: AssemblyConfig of the parametric run to compare with; only
            quadrature_order, constraint_set and reference_displacement are used
    """

    def __init__(self, mesh: Mesh, materials: Mapping[str, MaterialLaw], schema: ParameterSchema, config=None):
        self.mesh = mesh
        self.materials = materials
        self.schema = schema
        self.quadrature_order = getattr(config, "quadrature_order", None)
        constraints = set(mesh.fixed) | set(getattr(config, "constraint_set", ()))
        self.reduction = ReductionMap(mesh.n_dofs, sorted(constraints))
        u_ref = getattr(config, "reference_displacement", None)
        self.reference_displacement = None if u_ref is None or not np.any(u_ref) else np.asarray(u_ref, dtype=float)
        self.kinds = tuple(getattr(config, "matrix_kinds", MATRIX_KINDS))
        self.T = voigt_tensor(mesh.dim)
        self._rules = {}

    def rules(self, kind: str):
        """Quadrature rules of the parametric engine for the configured kinds."""
        kinds = self.kinds if kind in self.kinds else self.kinds + (kind,)
        if kinds not in self._rules:
            self._rules[kinds], _ = select_quadrature(self.mesh, self.materials, kinds, self.quadrature_order,
                                                      self.reference_displacement is not None)
        return self._rules[kinds]

    # ----- element kinematics -----
    def coordinates(self, element: Element, values: Dict[str, float]) -> np.ndarray:
        nodes = list(element.nodes)
        X = self.mesh.nodes[nodes].copy()
        for name, field in self.mesh.morphs.items():
            X += (values[name] - self.schema[name].nominal) * field[nodes]
        return X

    def gradients(self, element: Element, X: np.ndarray, point):
        shape = ELEMENT_TYPES[element.type]
        N, dN = shape.N_dN(np.asarray(point, dtype=float))
        J = X.T @ dN
        det = np.linalg.det(J)
        extent = np.max(X, axis=0) - np.min(X, axis=0)
        if det <= KinematicsConstants.DET_TOLERANCE * float(np.max(extent)) ** shape.dim:
            raise InvalidElementGeometry(
                f"Non-positive Jacobian determinant {det:.3e} in {shape.name} element {element.tag}",
                element=element.tag, det=det)
        G = dN @ np.linalg.inv(J)
        return N, G, det

    def operators(self, G: np.ndarray, u_e: Optional[np.ndarray] = None):
        """Numeric B_L, Hq and, for a displacement, B(F) and E(u)."""
        T = self.T
        n, d = G.shape
        nv = T.shape[0]
        B_L = np.einsum("vkj,aj->vak", T, G).reshape(nv, n * d)
        S = np.einsum("vaj,bj->vab", np.einsum("vij,ai->vaj", T, G), G)
        Hq = np.einsum("vab,kl->vakbl", S, np.eye(d)).reshape(nv, n * d, n * d)
        if u_e is None:
            return B_L, Hq, B_L, np.zeros(nv)
        Hu = np.einsum("vab,b->va", Hq, u_e)
        return B_L, Hq, B_L + Hu, B_L @ u_e + 0.5 * Hu @ u_e

    def section(self, element: Element, values: Dict[str, float]) -> float:
        if self.mesh.dim == 3:
            return 1.0
        if isinstance(element.section, str):
            return values[element.section]
        return float(element.section)

    def element_matrices(self, element: Element, values: Dict[str, float], u_e: Optional[np.ndarray] = None,
                         kinds=("stiffness",)) -> Dict[str, np.ndarray]:
        """Local numeric matrices of the requested kinds for one element at absolute parameter values."""
        material = self.materials[element.material]
        dim = self.mesh.dim
        X = self.coordinates(element, values)
        rule = self.rules(kinds[0])[element.type]
        C = material.elasticity(dim, values)
        k = material.hardening(values)
        rho = material.density(values)
        t = self.section(element, values)
        n_dof = X.shape[0] * dim
        need_stiffness = "stiffness" in kinds or "damping" in kinds
        need_mass = "mass" in kinds or "damping" in kinds

        K = np.zeros((n_dof, n_dof))
        M = np.zeros((n_dof, n_dof))
        A2 = np.zeros((n_dof,) * 3) if "quadratic_force" in kinds else None
        A3 = np.zeros((n_dof,) * 4) if "cubic_force" in kinds else None
        for q in range(len(rule)):
            N, G, det = self.gradients(element, X, rule.points[q])
            dV = det * rule.weights[q] * t
            B_L, Hq, B, E = self.operators(G, u_e)
            if need_stiffness and u_e is None:
                K += B.T @ C @ B * dV
            elif need_stiffness:
                stress = material.stress(E, dim, values)
                K += (B.T @ material.tangent(E, dim, values) @ B + np.einsum("v,vab->ab", stress, Hq)) * dV
            if need_mass:
                M += rho * np.kron(np.outer(N, N), np.eye(dim)) * dV
            CB = C @ B_L
            if A2 is not None:
                A2 += (0.5 * np.einsum("wc,wab->cab", CB, Hq) + np.einsum("vac,vb->cab", Hq, CB)) * dV
            if A3 is not None:
                A3 += 0.5 * np.einsum("vca,vbe->cabe", Hq, np.einsum("vw,wbe->vbe", C, Hq)) * dV
                if k != 0.0:
                    K0 = B_L.T @ CB
                    A3 += k * np.einsum("ca,be->cabe", K0, K0) * dV

        out = {"stiffness": K, "mass": M}
        if "damping" in kinds:
            alpha, beta = material.rayleigh(values)
            out["damping"] = alpha * M + beta * K
        if A2 is not None:
            out["quadratic_force"] = compress_symmetric(A2, 2)
        if A3 is not None:
            out["cubic_force"] = compress_symmetric(A3, 3)
        return out

    # ----- global assembly -----
    def assemble(self, kind: str, values=None) -> sp.csr_matrix:
        """
        Global matrix of one kind on the free DOFs at absolute parameter values.

        Args:
            kind: Matrix kind
            values: Mapping or sequence of absolute values, nominal if None

        Returns:
            csr_matrix, (N, N) for square kinds, (N, C(N + r - 1, r)) for force tensors
        """
        if kind not in MATRIX_KINDS:
            raise ValueError(f"Unknown matrix kind '{kind}'")
        if kind in FORCE_KINDS and self.reference_displacement is not None:
            raise ValueError("Force tensors are expansions about u = 0")
        values = self.schema.values(values)
        N = self.reduction.n_free
        order = FORCE_KINDS.get(kind)
        shape = (N, N) if order is None else (N, multiset_count(N, order))

        rows, cols, vals = [], [], []
        for element in self.mesh.sorted_elements():
            dofs = self.mesh.element_dofs(element)
            u_e = None if self.reference_displacement is None else self.reference_displacement[dofs]
            if u_e is not None and not np.any(u_e):
                u_e = None
            local = self.element_matrices(element, values, u_e, kinds=(kind,))[kind]
            free = self.reduction.reduce(dofs)
            keep_rows = np.flatnonzero(free >= 0)
            if order is None:
                keep_cols = keep_rows
                global_cols = free[keep_cols]
            else:
                combos = multiset_columns(len(dofs), order)
                keep_cols = np.flatnonzero(np.all(free[combos] >= 0, axis=1))
                global_cols = np.array([multiset_rank(np.sort(free[combos[c]]), N) for c in keep_cols],
                                       dtype=np.int64)
            block = local[np.ix_(keep_rows, keep_cols)]
            rows.append(np.repeat(free[keep_rows], len(keep_cols)))
            cols.append(np.tile(global_cols, len(keep_rows)))
            vals.append(block.ravel())

        if not rows:
            return sp.csr_matrix(shape)
        A = sp.coo_matrix((np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))), shape=shape)
        return A.tocsr()

    def internal_force(self, u_free, values=None) -> np.ndarray:
        """
        Green-Lagrange internal force f(u) = Σ B(u)^T S(E(u)) dV on the free DOFs.

        Args:
            u_free: Displacement of the free DOFs (constrained DOFs are zero)
            values: Absolute parameter values, nominal if None
        """
        values = self.schema.values(values)
        u = self.reduction.expand(np.asarray(u_free, dtype=float))
        f = np.zeros(self.mesh.n_dofs)
        dim = self.mesh.dim
        for element in self.mesh.sorted_elements():
            dofs = self.mesh.element_dofs(element)
            material = self.materials[element.material]
            X = self.coordinates(element, values)
            rule = self.rules("cubic_force")[element.type]
            t = self.section(element, values)
            for q in range(len(rule)):
                _, G, det = self.gradients(element, X, rule.points[q])
                _, _, B, E = self.operators(G, u[dofs])
                f[dofs] += B.T @ material.stress(E, dim, values) * det * rule.weights[q] * t
        return f[self.reduction.free]
