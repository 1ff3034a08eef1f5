"""
Tests for the assembly building blocks.

Tests cover:
- Multiset column numbering of force tensors
- Dirichlet reduction map
- Frozen sparse pattern and slot lookup
- PolynomialMatrix access and evaluation
- Quadrature planning and diagnostics
- Global scatter on a small bar
"""
from math import comb

import numpy as np
import pytest

from PolyCore.Assembly import (
    GlobalAssembler, LocalAssembler, PolynomialMatrix, ReductionMap, SparsePattern, compress_symmetric,
    integrand_degree, multiset_columns, multiset_count, multiset_products, multiset_rank, multiset_weights,
    select_quadrature)
from PolyCore.Errors import QuadratureOrderInsufficient
from PolyCore.Objects.ConstitutiveLaw import LinearElastic
from PolyCore.Objects.FEM import ELEMENT_TYPES, Mesh
from PolyCore.Objects.Parameters import Monomial, MonomialIndex, Parameter, ParameterSchema


# =============================================================================
# MULTISETS
# =============================================================================

@pytest.mark.unit
class TestMultisets:
    """Tests for force-tensor column numbering."""

    @pytest.mark.parametrize("n,order", [(4, 2), (5, 3), (1, 3), (7, 2)])
    def test_count(self, n, order):
        """Test C(n + r - 1, r) columns in lexicographic order."""
        cols = multiset_columns(n, order)
        assert len(cols) == multiset_count(n, order) == comb(n + order - 1, order)
        assert [tuple(c) for c in cols] == sorted(tuple(c) for c in cols)
        assert np.all(np.diff(cols, axis=1) >= 0)

    @pytest.mark.parametrize("n,order", [(4, 2), (6, 3), (3, 4)])
    def test_rank_inverts_enumeration(self, n, order):
        """Test the closed-form rank of every column is its position."""
        for position, combo in enumerate(multiset_columns(n, order)):
            assert multiset_rank(combo, n) == position

    def test_weights(self):
        """Test 1 / prod(multiplicity!) for repeated indices."""
        cols = [tuple(c) for c in multiset_columns(3, 3)]
        weights = multiset_weights(3, 3)
        assert weights[cols.index((0, 0, 0))] == pytest.approx(1.0 / 6.0)
        assert weights[cols.index((0, 0, 2))] == pytest.approx(0.5)
        assert weights[cols.index((0, 1, 2))] == 1.0

    def test_products(self):
        """Test monomials of a vector in column order."""
        u = np.array([2.0, 3.0])
        assert np.allclose(multiset_products(u, 2), [4.0, 6.0, 9.0])
        assert np.allclose(multiset_products(u, 3), [8.0, 12.0, 18.0, 27.0])

    @pytest.mark.parametrize("order,subscripts", [(2, "cab,a,b->c"), (3, "cabe,a,b,e->c")])
    def test_compress_symmetric(self, order, subscripts):
        """Test the compressed tensor reproduces the full contraction."""
        rng = np.random.default_rng(7)
        n = 4
        tensor = rng.standard_normal((n,) * (order + 1))
        u = rng.standard_normal(n)
        compressed = compress_symmetric(tensor, order)
        assert compressed.shape == (n, multiset_count(n, order))
        full = np.einsum(subscripts, tensor, *([u] * order))
        assert np.allclose(compressed @ multiset_products(u, order), full)


# =============================================================================
# REDUCTION AND PATTERN
# =============================================================================

@pytest.mark.unit
class TestReductionMap:
    """Tests for Dirichlet elimination numbering."""

    def test_numbering(self):
        """Test free DOFs are renumbered in ascending order."""
        red = ReductionMap(6, [4, 0, 4])
        assert red.free.tolist() == [1, 2, 3, 5]
        assert red.n_free == 4
        assert red.reduce([0, 1, 5]).tolist() == [-1, 0, 3]

    def test_expand(self):
        """Test constrained DOFs are zero in the full vector."""
        red = ReductionMap(4, [1])
        assert red.expand([1.0, 2.0, 3.0]).tolist() == [1.0, 0.0, 2.0, 3.0]

    def test_out_of_range(self):
        """Test constrained DOFs outside the system raise ValueError."""
        with pytest.raises(ValueError):
            ReductionMap(3, [3])


@pytest.mark.unit
class TestSparsePattern:
    """Tests for the frozen CSR pattern."""

    @pytest.fixture
    def pattern(self):
        return SparsePattern.from_entries([0, 0, 1, 2, 0], [0, 2, 1, 2, 2], (3, 3))

    def test_duplicates_merged(self, pattern):
        """Test repeated entries occupy one slot."""
        assert pattern.nnz == 4
        assert pattern.indptr.tolist() == [0, 2, 3, 4]
        assert pattern.row_indices().tolist() == [0, 0, 1, 2]

    def test_slots(self, pattern):
        """Test slot lookup in any order."""
        assert pattern.slots([2, 0, 0], [2, 2, 0]).tolist() == [3, 1, 0]

    def test_missing_entry(self, pattern):
        """Test entries outside the pattern raise KeyError."""
        with pytest.raises(KeyError):
            pattern.slots([1], [0])
        with pytest.raises(KeyError):
            pattern.slots([0], [1])

    def test_read_only(self, pattern):
        """Test the frozen arrays cannot be written."""
        with pytest.raises(ValueError):
            pattern.indices[0] = 1


# =============================================================================
# POLYNOMIAL MATRIX
# =============================================================================

@pytest.mark.unit
class TestPolynomialMatrix:
    """Tests for PolynomialMatrix access and evaluation."""

    @pytest.fixture
    def matrix(self):
        index = MonomialIndex(1, 2)
        pattern = SparsePattern.from_entries([0, 0, 1, 1], [0, 1, 0, 1], (2, 2))
        data = np.array([[2.0, -1.0, -1.0, 2.0],
                         [1.0, 0.0, 0.0, 1.0],
                         [0.0, 0.5, 0.5, 0.0]])
        return PolynomialMatrix("stiffness", index, pattern, data, names=("E",), nominal=[10.0])

    def test_access(self, matrix):
        """Test coefficient matrices by position, exponent tuple and Monomial."""
        assert np.allclose(matrix[0].toarray(), [[2.0, -1.0], [-1.0, 2.0]])
        assert np.allclose(matrix[(1,)].toarray(), np.eye(2))
        assert np.allclose(matrix[Monomial((2,))].toarray(), [[0.0, 0.5], [0.5, 0.0]])
        assert (2,) in matrix and (3,) not in matrix
        assert len(matrix) == 3
        assert matrix.shape == (2, 2)

    def test_bad_access(self, matrix):
        """Test unknown monomials raise KeyError or IndexError."""
        with pytest.raises(KeyError):
            matrix[(3,)]
        with pytest.raises(IndexError):
            matrix[5]

    def test_triplets(self, matrix):
        """Test (row, col, value) export of one coefficient."""
        rows, cols, vals = matrix.triplets((1,))
        assert rows.tolist() == [0, 0, 1, 1]
        assert cols.tolist() == [0, 1, 0, 1]
        assert vals.tolist() == [1.0, 0.0, 0.0, 1.0]

    def test_evaluate(self, matrix):
        """Test A(p) = sum data_k m_k(p - nominal)."""
        assert np.allclose(matrix.evaluate().toarray(), matrix[0].toarray())
        expected = np.array([[4.0, 1.0], [1.0, 4.0]])
        assert np.allclose(matrix.evaluate({"E": 12.0}).toarray(), expected)
        assert np.allclose(matrix.evaluate([12.0]).toarray(), expected)

    def test_evaluate_unknown(self, matrix):
        """Test unknown names and wrong lengths are rejected."""
        with pytest.raises(KeyError):
            matrix.evaluate({"nu": 0.3})
        with pytest.raises(ValueError):
            matrix.evaluate([1.0, 2.0])

    def test_read_only(self, matrix):
        """Test the coefficient data cannot be modified, and copies are independent."""
        with pytest.raises(ValueError):
            matrix.data[0, 0] = 5.0
        copy = matrix[0]
        copy.data[0] = 99.0
        assert matrix.data[0, 0] == 2.0

    def test_items_and_symmetry(self, matrix):
        """Test items() walks every monomial and symmetry holds."""
        assert [m.exponents for m, _ in matrix.items()] == [(0,), (1,), (2,)]
        assert matrix.is_symmetric()

    def test_asymmetric(self):
        """Test a nonsymmetric coefficient is detected."""
        index = MonomialIndex(1, 0)
        pattern = SparsePattern.from_entries([0, 1], [1, 0], (2, 2))
        matrix = PolynomialMatrix("stiffness", index, pattern, np.array([[1.0, 2.0]]))
        assert not matrix.is_symmetric()

    def test_shape_mismatch(self):
        """Test data not matching (M, nnz) raises ValueError."""
        pattern = SparsePattern.from_entries([0], [0], (1, 1))
        with pytest.raises(ValueError):
            PolynomialMatrix("mass", MonomialIndex(1, 1), pattern, np.zeros((1, 1)))


# =============================================================================
# QUADRATURE PLAN
# =============================================================================

@pytest.mark.fem
class TestQuadraturePlan:
    """Tests for integrand degrees and rule selection."""

    def test_integrand_degrees(self):
        """Test per-kind degrees on Quad4."""
        quad = ELEMENT_TYPES["quad4"]
        assert integrand_degree(quad, "stiffness") == 2
        assert integrand_degree(quad, "mass") == 2
        assert integrand_degree(quad, "damping") == 2
        assert integrand_degree(quad, "quadratic_force") == 3
        assert integrand_degree(quad, "cubic_force") == 4
        assert integrand_degree(quad, "stiffness", nonzero_reference=True) == 4
        assert integrand_degree(quad, "stiffness", nonzero_reference=True, hardening=True) == 8

    def test_select_exact(self, plate_mesh, steel):
        """Test the default rule integrates every requested kind exactly."""
        rules, diagnostics = select_quadrature(plate_mesh, {"steel": steel}, ("stiffness", "cubic_force"))
        assert diagnostics == []
        assert rules["quad4"].exactness >= 4
        assert len(rules["quad4"]) == 9

    def test_override_diagnostics(self, plate_mesh, steel):
        """Test an explicit low order yields one diagnostic per kind."""
        rules, diagnostics = select_quadrature(plate_mesh, {"steel": steel}, ("stiffness", "mass"),
                                               quadrature_order={"quad4": 1})
        assert len(rules["quad4"]) == 1
        assert diagnostics == [QuadratureOrderInsufficient("quad4", "stiffness", 2, 1),
                               QuadratureOrderInsufficient("quad4", "mass", 2, 1)]
        assert "quad4" in str(diagnostics[0])

    def test_hardening_detected(self, plate_mesh, hardening_material):
        """Test a hardening law raises the stiffness degree at a nonzero reference."""
        rules, _ = select_quadrature(plate_mesh, {"steel": hardening_material}, ("stiffness",),
                                     nonzero_reference=True)
        assert rules["quad4"].exactness >= 8


# =============================================================================
# GLOBAL SCATTER
# =============================================================================

@pytest.mark.fem
class TestGlobalAssembler:
    """Tests for pattern construction and scatter."""

    @pytest.fixture
    def bar(self):
        mesh = Mesh.line(2, 2.0, material="bar")
        mesh.fix_node(0)
        return mesh

    @pytest.fixture
    def schema(self):
        return ParameterSchema((Parameter("E", 1.0),))

    def test_scatter_before_prepare(self, bar, schema):
        """Test scatter without a frozen pattern raises RuntimeError."""
        glob = GlobalAssembler(bar, ReductionMap(bar.n_dofs, bar.fixed), schema.index(1), ("stiffness",))
        with pytest.raises(RuntimeError):
            glob.scatter(0, {})

    def test_patterns(self, bar, schema):
        """Test constrained rows and columns are dropped from every pattern."""
        reduction = ReductionMap(bar.n_dofs, bar.fixed)
        glob = GlobalAssembler(bar, reduction, schema.index(1), ("stiffness", "mass", "quadratic_force"))
        glob.prepare(bar.sorted_elements())
        assert glob.patterns["stiffness"] is glob.patterns["mass"]
        assert glob.patterns["stiffness"].nnz == 4
        assert glob.patterns["quadratic_force"].shape == (2, 3)
        # element 0 keeps row 0 with column (0, 0), element 1 all of (2 rows) x (3 columns)
        assert glob.patterns["quadratic_force"].nnz == 6

    def test_bar_stiffness(self, bar, schema):
        """Test the scattered stiffness of a two-element bar with E as parameter."""
        schema = ParameterSchema((Parameter("E", 3.0),))
        materials = {"bar": LinearElastic(E="E")}
        index = schema.index(1)
        reduction = ReductionMap(bar.n_dofs, bar.fixed)
        rules, _ = select_quadrature(bar, materials, ("stiffness",))
        local = LocalAssembler(bar, materials, schema, index, rules, ("stiffness",))
        glob = GlobalAssembler(bar, reduction, index, ("stiffness",))
        elements = bar.sorted_elements()
        glob.prepare(elements)
        for position, element in enumerate(elements):
            glob.scatter(position, local.contribution(element))
        K = glob.finalize(schema.names, schema.nominal)["stiffness"]
        assert np.allclose(K[0].toarray(), 3.0 * np.array([[2.0, -1.0], [-1.0, 1.0]]))
        assert np.allclose(K[1].toarray(), np.array([[2.0, -1.0], [-1.0, 1.0]]))
        assert K.names == ("E",)
