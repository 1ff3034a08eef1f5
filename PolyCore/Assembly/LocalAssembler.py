"""
Parametric Local Assembler
==========================

Integrates one element's contributions as polynomials in the parameter
deviations. At each quadrature point every operand (gradients, strain
operators, modulus, density, section, Jacobian determinant) is a PolyArray;
operand products use the truncated monomial multiplication, and
quadrature-point terms are summed in ascending point order.

Kinds
-----
stiffness : K = Σ_qp (B^T C_T B + Σ_v S_v Hq_v) dV at the reference state
mass : M = Σ_qp ρ kron(N N^T, I) dV
damping : C = α M + β K (Rayleigh, per material)
quadratic_force, cubic_force : coefficient tensors of the order-2 and
    order-3 internal force about u = 0. Columns are multisets of local
    DOFs in ``combinations_with_replacement`` order.
"""

from itertools import permutations
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from PolyCore.Assembly.SparsePattern import multiset_columns, multiset_weights
from PolyCore.Errors import QuadratureOrderInsufficient
from PolyCore.Objects.ConstitutiveLaw.Material import MaterialContext, MaterialLaw
from PolyCore.Objects.FEM.Kinematics import ElementKinematics
from PolyCore.Objects.FEM.Mesh import ELEMENT_TYPES, Element, Mesh
from PolyCore.Objects.FEM.Quadrature import QuadRule, required_degree, rule_for
from PolyCore.Objects.Parameters.Polynomial import PolyArray
from PolyCore.Objects.Parameters.Series import SeriesAcceptance

SQUARE_KINDS = ("stiffness", "mass", "damping")
FORCE_KINDS = {"quadratic_force": 2, "cubic_force": 3}
MATRIX_KINDS = SQUARE_KINDS + tuple(FORCE_KINDS)


def compress_symmetric(tensor, order: int):
    """
    Collapse a (n, n, ..., n) force tensor onto multiset columns.

    The coefficient of u^m for a multiset m is the sum of the tensor
    entries over the distinct orderings of m. Summing over all `order`!
    axis permutations counts each distinct ordering prod(mult!) times,
    hence the weights.

    Accepts a PolyArray (collapsed per coefficient) or a plain ndarray.
    """
    n = tensor.shape[0]
    combos = multiset_columns(n, order)
    weights = multiset_weights(n, order)
    perms = list(permutations(range(order)))

    def collapse(c):
        acc = np.zeros((n, len(combos)))
        for p in perms:
            acc += c[(slice(None),) + tuple(combos[:, p[i]] for i in range(order))]
        return acc * weights

    if isinstance(tensor, PolyArray):
        return tensor.linear_map(collapse)
    return collapse(np.asarray(tensor, dtype=float))


# Shape-function gradient factors per integrand (affine element, u_ref = 0)
GRADIENT_FACTORS = {"stiffness": 2, "quadratic_force": 3, "cubic_force": 4}


def integrand_degree(shape, kind: str, nonzero_reference: bool = False, hardening: bool = False) -> int:
    """
    Polynomial degree of a kind's integrand in the reference coordinates.

    Stiffness at a nonzero reference state carries the strain in B(F),
    doubling the gradient factors; with a hardening law the tangent adds
    two strain factors more.
    """
    if kind == "mass":
        return required_degree(shape, 0, mass=True)
    if kind == "damping":
        return max(integrand_degree(shape, "stiffness", nonzero_reference, hardening),
                   integrand_degree(shape, "mass"))
    factors = GRADIENT_FACTORS[kind]
    if kind == "stiffness" and nonzero_reference:
        factors = 8 if hardening else 4
    return required_degree(shape, factors)


def select_quadrature(mesh: Mesh, materials: Mapping[str, MaterialLaw], kinds,
                      quadrature_order: Optional[Mapping[str, int]] = None,
                      nonzero_reference: bool = False) -> Tuple[Dict[str, QuadRule], List[QuadratureOrderInsufficient]]:
    """
    One quadrature rule per element type present in the mesh.

    Without an explicit order the rule is chosen to integrate the highest
    integrand degree among the requested kinds. Every (type, kind) pair the
    rule cannot integrate exactly yields one QuadratureOrderInsufficient,
    in element-type then kind order.

    Returns:
        (rules, diagnostics)
    """
    quadrature_order = quadrature_order or {}
    hardening: Dict[str, bool] = {}
    for e in mesh.sorted_elements():
        hardening[e.type] = hardening.get(e.type, False) or materials[e.material].has_hardening

    rules, diagnostics = {}, []
    for name in sorted(hardening):
        shape = ELEMENT_TYPES[name]
        needed = {kind: integrand_degree(shape, kind, nonzero_reference, hardening[name]) for kind in kinds}
        exactness = quadrature_order.get(name, max(needed.values()))
        rule = rule_for(shape, exactness)
        rules[name] = rule
        for kind in kinds:
            if rule.exactness < needed[kind]:
                diagnostics.append(QuadratureOrderInsufficient(name, kind, needed[kind], rule.exactness))
    return rules, diagnostics


class LocalAssembler:
    """
    Element-level polynomial integration.

    The assembler is stateless between elements and can be shared by worker
    threads: it only reads the mesh, materials, schema and rules.

    Args:
        mesh: Mesh with node coordinates and morph fields
        materials: Mapping material key -> MaterialLaw
        schema: ParameterSchema
        index: MonomialIndex of the run
        rules: Quadrature rule per element type tag
        kinds: Matrix kinds to produce
        series_tolerance: Acceptance threshold for rational material and Jacobian series
        reference_displacement: Full DOF vector of the reference state, or None
    """

    def __init__(self, mesh: Mesh, materials: Mapping[str, MaterialLaw], schema, index,
                 rules: Mapping[str, QuadRule], kinds, series_tolerance: float = 0.05,
                 reference_displacement: Optional[np.ndarray] = None):
        self.mesh = mesh
        self.materials = materials
        self.schema = schema
        self.index = index
        self.rules = rules
        self.kinds = tuple(kinds)
        self.series_tolerance = series_tolerance
        self.reference_displacement = reference_displacement
        self.series = SeriesAcceptance.for_schema(schema, index, series_tolerance)

        self.need_stiffness = "stiffness" in self.kinds or "damping" in self.kinds
        self.need_mass = "mass" in self.kinds or "damping" in self.kinds
        self.force_orders = {kind: FORCE_KINDS[kind] for kind in self.kinds if kind in FORCE_KINDS}

    def context(self) -> MaterialContext:
        return MaterialContext(self.index, self.schema, series=self.series)

    def contribution(self, element: Element) -> Dict[str, PolyArray]:
        """
        Local polynomial matrices of one element, keyed by kind.

        Raises:
            InvalidElementGeometry: inverted or degenerate element
            NonPolynomialMaterialLaw: material cannot be expanded
        """
        kin = ElementKinematics.from_mesh(self.mesh, element, self.index, self.schema, series=self.series)
        dim = kin.dim
        rule = self.rules[element.type]
        material = self.materials[element.material]
        ctx = self.context()

        u_e = None
        if self.reference_displacement is not None:
            u_e = np.asarray(self.reference_displacement, dtype=float)[self.mesh.element_dofs(element)]
            if not np.any(u_e):
                u_e = None
        quadratic = u_e is not None or bool(self.force_orders)
        need_strain = self.need_stiffness or bool(self.force_orders)

        C = material.elasticity_polynomial(ctx, dim) if need_strain else None
        section = ctx.parameter(element.section) if dim < 3 else None
        rho = material.density_polynomial(ctx) if self.need_mass else None
        hardening = material.hardening_polynomial(ctx) if "cubic_force" in self.force_orders else None

        acc: Dict[str, PolyArray] = {}
        eye = np.eye(dim)

        for q in range(len(rule)):
            pk = kin.gradients(rule.points[q])
            dV = pk.det * rule.weights[q]
            if section is not None:
                dV = dV * section

            op = kin.strain_operator(pk.G, u_e, quadratic=quadratic) if need_strain else None

            if self.need_stiffness:
                B = op.linear
                if op.strain is None:
                    Kq = B.T @ (C @ B)
                else:
                    CT = material.tangent_polynomial(ctx, dim, op.strain)
                    S = material.stress_polynomial(ctx, dim, op.strain)
                    Kq = B.T @ (CT @ B) + kin.geometric_stiffness(S, op.quadratic)
                self._accumulate(acc, "stiffness", Kq * dV)

            if self.need_mass:
                NN = np.kron(np.outer(pk.N, pk.N), eye)
                self._accumulate(acc, "mass", (rho * dV) * NN)

            if self.force_orders:
                Hq = op.quadratic
                CB = C @ op.linear
                if "quadratic_force" in self.force_orders:
                    A2 = PolyArray.einsum("wc,wab->cab", CB, Hq) * 0.5 + PolyArray.einsum("vac,vb->cab", Hq, CB)
                    self._accumulate(acc, "quadratic_force", A2 * dV)
                if "cubic_force" in self.force_orders:
                    CHq = PolyArray.einsum("vw,wbe->vbe", C, Hq)
                    A3 = PolyArray.einsum("vca,vbe->cabe", Hq, CHq) * 0.5
                    if hardening is not None:
                        K0 = op.linear.T @ CB
                        A3 = A3 + PolyArray.einsum("ca,be->cabe", K0, K0) * hardening
                    self._accumulate(acc, "cubic_force", A3 * dV)

        out = {}
        if "stiffness" in self.kinds:
            out["stiffness"] = acc["stiffness"]
        if "mass" in self.kinds:
            out["mass"] = acc["mass"]
        if "damping" in self.kinds:
            alpha, beta = material.rayleigh_polynomial(ctx)
            out["damping"] = acc["mass"] * alpha + acc["stiffness"] * beta
        for kind, order in self.force_orders.items():
            out[kind] = compress_symmetric(acc[kind], order)
        return out

    @staticmethod
    def _accumulate(acc: Dict[str, PolyArray], kind: str, term: PolyArray):
        acc[kind] = term if kind not in acc else acc[kind] + term
