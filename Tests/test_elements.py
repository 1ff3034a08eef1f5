"""
Tests for reference elements, quadrature and mesh construction.

Tests cover:
- Shape function partition of unity and nodal interpolation
- Gauss and triangle rule exactness
- Quadrature rule selection and integrand degree estimates
- Mesh builders, DOF numbering and validation
"""
from math import factorial

import numpy as np
import pytest

from PolyCore.Objects.FEM import (
    ELEMENT_TYPES, Mesh, QuadRule, gauss_legendre, required_degree, rule_for, tensor_rule, triangle_rule)
from PolyCore.Objects.FEM.Quadrature import QuadratureConstants


# =============================================================================
# SHAPE FUNCTIONS
# =============================================================================

@pytest.mark.fem
class TestShapeFunctions:
    """Tests for every registered element type."""

    @pytest.mark.parametrize("name", sorted(ELEMENT_TYPES))
    def test_partition_of_unity(self, name):
        """Test sum N = 1 and sum dN = 0 at an interior point."""
        shape = ELEMENT_TYPES[name]
        xi = np.full(shape.dim, 0.2)
        N, dN = shape.N_dN(xi)
        assert N.shape == (shape.n_nodes,)
        assert dN.shape == (shape.n_nodes, shape.dim)
        assert np.sum(N) == pytest.approx(1.0)
        assert np.allclose(np.sum(dN, axis=0), 0.0, atol=1e-12)

    @pytest.mark.parametrize("name", sorted(ELEMENT_TYPES))
    def test_kronecker_delta(self, name):
        """Test N_a(xi_b) = delta_ab at the reference nodes."""
        shape = ELEMENT_TYPES[name]
        ref = shape.reference_nodes()
        values = np.array([shape.N_dN(x)[0] for x in ref])
        assert np.allclose(values, np.eye(shape.n_nodes), atol=1e-12)

    @pytest.mark.parametrize("name", sorted(ELEMENT_TYPES))
    def test_gradient_finite_difference(self, name):
        """Test dN against central differences of N."""
        shape = ELEMENT_TYPES[name]
        xi = np.full(shape.dim, 0.15)
        _, dN = shape.N_dN(xi)
        h = 1e-6
        for j in range(shape.dim):
            step = np.zeros(shape.dim)
            step[j] = h
            fd = (shape.N_dN(xi + step)[0] - shape.N_dN(xi - step)[0]) / (2 * h)
            assert np.allclose(dN[:, j], fd, atol=1e-8)

    def test_registry(self):
        """Test the closed element catalogue."""
        assert set(ELEMENT_TYPES) == {"line2", "line3", "triangle3", "triangle6", "quad4", "quad9", "hex8", "hex27"}
        assert ELEMENT_TYPES["quad9"].order == 2
        assert ELEMENT_TYPES["triangle3"].simplex

    def test_hex27_reproduces_quadratic_field(self):
        """Test the triquadratic element interpolates x^2 y z exactly."""
        shape = ELEMENT_TYPES["hex27"]
        ref = shape.reference_nodes()
        field = ref[:, 0] ** 2 * ref[:, 1] * ref[:, 2]
        xi = np.array([0.3, -0.45, 0.7])
        N, dN = shape.N_dN(xi)
        assert N @ field == pytest.approx(xi[0] ** 2 * xi[1] * xi[2])
        assert np.allclose(dN.T @ field, [2 * xi[0] * xi[1] * xi[2], xi[0] ** 2 * xi[2], xi[0] ** 2 * xi[1]])

    def test_hex27_corners_match_hex8(self):
        """Test the first eight hex27 nodes are the hex8 corners in the same order."""
        assert np.array_equal(ELEMENT_TYPES["hex27"].reference_nodes()[:8], ELEMENT_TYPES["hex8"].reference_nodes())


# =============================================================================
# QUADRATURE
# =============================================================================

@pytest.mark.fem
class TestQuadrature:
    """Tests for Gauss-Legendre and triangle rules."""

    def test_gauss_invalid(self):
        """Test zero points raises ValueError."""
        with pytest.raises(ValueError):
            gauss_legendre(0)

    @pytest.mark.parametrize("n", [1, 2, 3, 5])
    def test_gauss_exactness(self, n):
        """Test n-point Gauss integrates x^k exactly up to k = 2n - 1."""
        x, w = gauss_legendre(n)
        for k in range(2 * n):
            exact = 2.0 / (k + 1) if k % 2 == 0 else 0.0
            assert np.sum(w * x ** k) == pytest.approx(exact, abs=1e-14)

    @pytest.mark.parametrize("dim", [1, 2, 3])
    def test_tensor_weights(self, dim):
        """Test weights sum to the reference measure 2^dim."""
        rule = tensor_rule(3, dim)
        assert len(rule) == 3 ** dim
        assert np.sum(rule.weights) == pytest.approx(2.0 ** dim)
        assert rule.exactness == 5

    def test_tensor_ordering(self):
        """Test the first coordinate varies fastest."""
        rule = tensor_rule(2, 2)
        assert rule.points[0, 1] == rule.points[1, 1]
        assert rule.points[0, 0] < rule.points[1, 0]

    @pytest.mark.parametrize("exactness", QuadratureConstants.TRIANGLE_EXACTNESS)
    def test_triangle_exactness(self, exactness):
        """Test integral of x^a y^b over the unit triangle is a! b! / (a + b + 2)!."""
        rule = triangle_rule(exactness)
        assert rule.exactness == exactness
        assert np.sum(rule.weights) == pytest.approx(0.5)
        x, y = rule.points[:, 0], rule.points[:, 1]
        for a in range(exactness + 1):
            for b in range(exactness + 1 - a):
                exact = factorial(a) * factorial(b) / factorial(a + b + 2)
                assert np.sum(rule.weights * x ** a * y ** b) == pytest.approx(exact, rel=1e-10)

    def test_triangle_rounds_up(self):
        """Test a degree-3 request returns the degree-4 rule."""
        assert triangle_rule(3).exactness == 4
        assert len(triangle_rule(3)) == 6


@pytest.mark.fem
class TestRuleSelection:
    """Tests for rule_for and required_degree."""

    def test_rule_for_quad(self):
        """Test the point count grows with the requested degree."""
        quad = ELEMENT_TYPES["quad4"]
        assert len(rule_for(quad, 1)) == 1
        assert len(rule_for(quad, 2)) == 4
        assert len(rule_for(quad, 4)) == 9

    def test_rule_for_caps(self):
        """Test requests above the largest rule return it with lower exactness."""
        quad = ELEMENT_TYPES["quad4"]
        rule = rule_for(quad, 40)
        assert rule.exactness == 2 * QuadratureConstants.MAX_GAUSS_POINTS - 1
        tri = rule_for(ELEMENT_TYPES["triangle6"], 8)
        assert tri.exactness == 5

    def test_rule_for_hex(self):
        """Test hexahedra use the 3D tensor rule."""
        rule = rule_for(ELEMENT_TYPES["hex8"], 3)
        assert isinstance(rule, QuadRule)
        assert rule.points.shape == (8, 3)

    def test_required_degree(self):
        """Test affine integrand degrees."""
        assert required_degree(ELEMENT_TYPES["line2"], 2) == 0
        assert required_degree(ELEMENT_TYPES["quad4"], 2) == 2
        assert required_degree(ELEMENT_TYPES["quad4"], 4) == 4
        assert required_degree(ELEMENT_TYPES["triangle6"], 3) == 3
        assert required_degree(ELEMENT_TYPES["quad9"], 2, mass=True) == 4
        assert required_degree(ELEMENT_TYPES["triangle3"], 2) == 0


# =============================================================================
# MESH
# =============================================================================

@pytest.mark.fem
class TestMesh:
    """Tests for Mesh construction and validation."""

    def test_line(self):
        """Test a bar of n elements has n + 1 nodes."""
        mesh = Mesh.line(4, 2.0, material="bar")
        assert mesh.dim == 1
        assert mesh.n_nodes == 5
        assert [e.tag for e in mesh.elements] == [0, 1, 2, 3]

    def test_line3_nodes(self):
        """Test Line3 puts the mid node last."""
        mesh = Mesh.line(1, 1.0, material="bar", element_type="line3")
        assert mesh.elements[0].nodes == (0, 2, 1)

    def test_rectangular_grid(self, plate_mesh):
        """Test node count, connectivity and DOF count."""
        assert plate_mesh.n_nodes == 15
        assert plate_mesh.n_dofs == 30
        assert plate_mesh.elements[0].nodes == (0, 1, 6, 5)
        assert len(plate_mesh.fixed) == 6

    @pytest.mark.parametrize("element_type,count", [("quad9", 2), ("triangle3", 4), ("triangle6", 4)])
    def test_grid_types(self, element_type, count):
        """Test element counts for every grid element type."""
        mesh = Mesh.from_rectangular_grid(2, 1, 2.0, 1.0, material="m", element_type=element_type)
        assert len(mesh.elements) == count
        mesh.validate()

    def test_box_grid(self):
        """Test a Hex8 box grid."""
        mesh = Mesh.from_box_grid(2, 1, 1, 2.0, 1.0, 1.0, material="m")
        assert mesh.n_nodes == 12
        assert mesh.dim == 3
        mesh.validate()

    def test_box_grid_hex27(self):
        """Test a Hex27 box grid shares mid-side nodes and keeps nodes in place."""
        mesh = Mesh.from_box_grid(2, 1, 1, 2.0, 1.0, 1.0, material="m", element_type="hex27")
        assert mesh.n_nodes == 5 * 3 * 3
        assert len(mesh.elements) == 2
        mesh.validate()
        first, second = mesh.elements
        assert len(first.nodes) == 27
        assert len(set(first.nodes) & set(second.nodes)) == 9
        shape = ELEMENT_TYPES["hex27"]
        # the first cell spans [0, 1] x [0, 1] x [0, 1]: X = (xi + 1) / 2
        coords = mesh.nodes[list(first.nodes)]
        assert np.allclose(coords, (shape.reference_nodes() + 1.0) / 2.0)

    def test_box_grid_rejects_type(self):
        """Test unsupported box grid element types."""
        with pytest.raises(ValueError):
            Mesh.from_box_grid(1, 1, 1, 1.0, 1.0, 1.0, material="m", element_type="quad4")

    def test_element_dofs(self, plate_mesh):
        """Test node-major DOF numbering."""
        dofs = plate_mesh.element_dofs(plate_mesh.elements[0])
        assert dofs.tolist() == [0, 1, 2, 3, 12, 13, 10, 11]

    def test_sorted_elements(self):
        """Test elements come back in ascending tag order."""
        mesh = Mesh(np.array([[0.0], [1.0], [2.0]]))
        mesh.add_element("line2", (1, 2), "bar", tag=5)
        mesh.add_element("line2", (0, 1), "bar", tag=2)
        assert [e.tag for e in mesh.sorted_elements()] == [2, 5]

    def test_scaling_morph(self, bar_mesh):
        """Test the length morph is x / L0 along the axis."""
        assert np.allclose(bar_mesh.morphs["L"][:, 0], bar_mesh.nodes[:, 0] / 2.0)

    def test_bad_morph_shape(self, bar_mesh):
        """Test a morph field of the wrong shape raises ValueError."""
        with pytest.raises(ValueError):
            bar_mesh.add_morph("h", np.zeros((2, 1)))

    def test_fix_out_of_range(self, single_bar):
        """Test fixing an unknown node or DOF raises ValueError."""
        with pytest.raises(ValueError):
            single_bar.fix_node(5)
        with pytest.raises(ValueError):
            single_bar.fix_dofs([7])

    def test_nonpositive_section(self, single_bar):
        """Test a zero section raises ValueError."""
        with pytest.raises(ValueError):
            single_bar.add_element("line2", (0, 1), "bar", section=0.0)

    @pytest.mark.parametrize("element_type,nodes,match", [
        ("tet4", (0, 1), "unknown element type"),
        ("quad4", (0, 1, 2, 3), "2D"),
        ("line2", (0, 0), "repeated node"),
        ("line2", (0, 9), "out of range"),
    ])
    def test_validate(self, element_type, nodes, match):
        """Test invalid elements are reported by validate()."""
        mesh = Mesh.line(1, 1.0, material="bar")
        mesh.add_element(element_type, nodes, "bar")
        with pytest.raises(ValueError, match=match):
            mesh.validate()

    def test_duplicate_tag(self):
        """Test duplicate element tags are reported."""
        mesh = Mesh.line(2, 1.0, material="bar")
        mesh.add_element("line2", (0, 1), "bar", tag=0)
        with pytest.raises(ValueError, match="Duplicate element tag"):
            mesh.validate()
