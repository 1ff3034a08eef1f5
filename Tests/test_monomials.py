"""
Tests for the parameter vector and monomial index.

Tests cover:
- Graded monomial ordering and prefix property
- Truncating multiplication table
- Degree ceilings (DegreeOverflow)
- ParameterSchema validation and deviations
"""
import numpy as np
import pytest

from PolyCore.Errors import DegreeOverflow
from PolyCore.Objects.Parameters import (
    Monomial, MonomialConstants, MonomialIndex, Parameter, ParameterSchema)


@pytest.mark.unit
class TestMonomial:
    """Tests for the Monomial value type."""

    def test_degree_and_product(self):
        """Test degree is the exponent sum and products add exponents."""
        a = Monomial((1, 0, 2))
        b = Monomial((0, 1, 1))
        assert a.degree == 3
        assert (a * b).exponents == (1, 1, 3)

    def test_equality_by_value(self):
        """Test monomials compare and hash by exponents."""
        assert Monomial((1, 2)) == Monomial([1, 2])
        assert len({Monomial((1, 2)), Monomial((1, 2))}) == 1

    def test_negative_exponent_rejected(self):
        """Test negative exponents raise ValueError."""
        with pytest.raises(ValueError):
            Monomial((1, -1))

    def test_to_string(self):
        """Test readable labels with parameter names."""
        assert Monomial((2, 1)).to_string(["E", "L"]) == "dE^2*dL"
        assert Monomial((0, 0)).to_string(["E", "L"]) == "1"


@pytest.mark.unit
class TestMonomialIndex:
    """Tests for MonomialIndex ordering and multiplication."""

    def test_size(self):
        """Test the index holds C(n + D, D) monomials."""
        assert len(MonomialIndex(2, 2)) == 6
        assert len(MonomialIndex(3, 4)) == 35
        assert len(MonomialIndex(1, 0)) == 1

    def test_graded_order(self):
        """Test degree ascending, lexicographically descending within a degree."""
        index = MonomialIndex(2, 2)
        expected = [(0, 0), (1, 0), (0, 1), (2, 0), (1, 1), (0, 2)]
        assert [m.exponents for m in index] == expected
        assert index.position((1, 1)) == 4

    def test_prefix_property(self):
        """Test the index for a lower degree is the head of a higher one."""
        low = MonomialIndex(3, 2)
        high = MonomialIndex(3, 5)
        assert low.is_prefix_of(high)
        assert not high.is_prefix_of(low)
        assert np.array_equal(high.exponents[:len(low)], low.exponents)

    def test_truncated_products(self):
        """Test products above D are dropped silently."""
        index = MonomialIndex(2, 2)
        dE = index.position((1, 0))
        dL2 = index.position((0, 2))
        dL = index.position((0, 1))
        assert index.multiply(dE, dL2) is None
        assert index.table[dE, dL2] == -1
        assert index.multiply(dE, dL) == index.position((1, 1))

    def test_pairs_ordered(self):
        """Test pairs of a monomial are sorted by i then j."""
        index = MonomialIndex(2, 3)
        k = index.position((1, 1))
        pairs = index.pairs(k)
        assert pairs == sorted(pairs)
        assert (0, k) in pairs and (k, 0) in pairs
        for i, j in pairs:
            assert index.table[i, j] == k

    def test_unit_positions(self):
        """Test degree-one monomial positions, None when D = 0."""
        index = MonomialIndex(3, 1)
        assert [index.unit(s) for s in range(3)] == [1, 2, 3]
        assert MonomialIndex(3, 0).unit(1) is None

    def test_evaluate(self):
        """Test monomial values at a deviation vector."""
        index = MonomialIndex(2, 2)
        values = index.evaluate([2.0, 3.0])
        assert np.allclose(values, [1.0, 2.0, 3.0, 4.0, 6.0, 9.0])

    def test_unknown_monomial(self):
        """Test positions of truncated monomials raise KeyError."""
        index = MonomialIndex(2, 1)
        assert (1, 1) not in index
        with pytest.raises(KeyError):
            index.position((1, 1))

    def test_negative_degree(self):
        """Test a negative degree bound raises ValueError."""
        with pytest.raises(ValueError):
            MonomialIndex(2, -1)

    def test_degree_ceiling(self):
        """Test degree above the ceiling raises DegreeOverflow."""
        with pytest.raises(DegreeOverflow):
            MonomialIndex(1, MonomialConstants.MAX_DEGREE + 1)

    def test_size_ceiling(self):
        """Test an index larger than the monomial ceiling raises DegreeOverflow."""
        with pytest.raises(DegreeOverflow):
            MonomialIndex(10, 12)

    def test_degree_overflow_is_value_error(self):
        """Test DegreeOverflow can be caught as ValueError."""
        with pytest.raises(ValueError):
            MonomialIndex(2, 50)

    @pytest.mark.parametrize("n,degree", [(1, 5), (2, 4), (3, 4), (4, 6), (0, 0)])
    def test_rank_matches_position(self, n, degree):
        """Test the closed-form rank of every exponent row equals its enumeration position."""
        index = MonomialIndex(n, degree)
        assert index.rank(index.exponents).tolist() == list(range(len(index)))

    def test_table_matches_exponent_sums(self):
        """Test every retained product points at the monomial with the summed exponents."""
        index = MonomialIndex(3, 4)
        for i, a in enumerate(index.exponents):
            for j, b in enumerate(index.exponents):
                e = tuple(int(x) for x in a + b)
                if sum(e) <= index.degree:
                    assert index.table[i, j] == index.position(e)
                else:
                    assert index.table[i, j] == -1

    def test_table_is_compact(self):
        """Test the product table is stored as int32."""
        index = MonomialIndex(4, 10)
        assert len(index) == 1001
        assert index.table.dtype == np.int32
        assert index.table[index.unit(0), index.unit(3)] == index.position((1, 0, 0, 1))

    def test_size_ceiling_boundary(self):
        """Test 3003 monomials (n = 6, D = 8) exceed the ceiling while 792 (n = 5, D = 7) do not."""
        assert MonomialIndex.count(6, 8) > MonomialConstants.MAX_MONOMIALS
        with pytest.raises(DegreeOverflow):
            MonomialIndex(6, 8)
        assert len(MonomialIndex(5, 7)) == 792


@pytest.mark.unit
class TestParameterSchema:
    """Tests for Parameter and ParameterSchema."""

    def test_default_spread(self):
        """Test spread defaults to 10% of |nominal|, 1.0 for zero nominal."""
        assert Parameter("E", 200.0).spread == pytest.approx(20.0)
        assert Parameter("E", -5.0).spread == pytest.approx(0.5)
        assert Parameter("E", 0.0).spread == 1.0

    def test_invalid_role(self):
        """Test unknown roles raise ValueError."""
        with pytest.raises(ValueError):
            Parameter("E", 1.0, role="thermal")

    def test_duplicate_names(self):
        """Test duplicate parameter names raise ValueError."""
        with pytest.raises(ValueError):
            ParameterSchema((Parameter("E", 1.0), Parameter("E", 2.0)))

    def test_from_dict(self):
        """Test tuple, mapping and scalar parameter definitions."""
        schema = ParameterSchema.from_dict({
            "E": (210e9, "material"),
            "L": {"nominal": 2.0, "role": "geometric", "spread": 0.1},
            "rho": 7850.0,
        })
        assert schema.names == ("E", "L", "rho")
        assert schema["L"].role == "geometric"
        assert schema["L"].spread == 0.1
        assert schema.of_role("material") == ("E", "rho")

    def test_deltas(self):
        """Test deviations from nominal for mapping and sequence input."""
        schema = ParameterSchema.from_dict({"E": 10.0, "L": 2.0})
        assert np.allclose(schema.deltas({"L": 2.5}), [0.0, 0.5])
        assert np.allclose(schema.deltas([11.0, 1.0]), [1.0, -1.0])
        assert np.allclose(schema.deltas(), [0.0, 0.0])

    def test_unknown_name_in_values(self):
        """Test values for unknown parameters raise KeyError."""
        schema = ParameterSchema.from_dict({"E": 10.0})
        with pytest.raises(KeyError):
            schema.values({"G": 1.0})

    def test_variable(self):
        """Test a parameter as polynomial equals nominal plus deviation."""
        schema = ParameterSchema.from_dict({"E": 10.0, "L": 2.0})
        index = schema.index(2)
        L = schema.variable(index, "L")
        assert L.coeffs[0] == 2.0
        assert L.coeffs[index.position((0, 1))] == 1.0
        assert L.evaluate([0.0, 0.3]) == pytest.approx(2.3)

    def test_check_names(self):
        """Test role and existence checks raise ValueError."""
        schema = ParameterSchema.from_dict({"E": (1.0, "material"), "L": (1.0, "geometric")})
        schema.check_names(["E"], role="material")
        with pytest.raises(ValueError, match="unknown parameter"):
            schema.check_names(["G"])
        with pytest.raises(ValueError, match="geometric"):
            schema.check_names(["L"], role="material")
