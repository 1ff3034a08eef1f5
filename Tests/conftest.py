"""
Shared fixtures for PolyCore tests.

This module provides simple, reusable fixtures for testing.
"""
import numpy as np
import pytest
import scipy.sparse as sp

from PolyCore.Objects.ConstitutiveLaw import LinearElastic, PolynomialHardening
from PolyCore.Objects.FEM import Mesh
from PolyCore.Objects.Parameters import Parameter, ParameterSchema


# =============================================================================
# ConstitutiveLaw Fixtures
# =============================================================================

@pytest.fixture
def steel():
    """Steel material: E=210 GPa, nu=0.3, rho=7850 kg/m3."""
    return LinearElastic(E=210e9, nu=0.3, rho=7850.0)


@pytest.fixture
def parametric_steel():
    """Steel with parametric modulus, Poisson ratio and density."""
    return LinearElastic(E="E", nu="nu", rho="rho", alpha=0.1, beta=1e-4)


@pytest.fixture
def soft_material():
    """Soft plane-stress material with O(1) moduli for force-tensor checks."""
    return LinearElastic(E=1000.0, nu=0.25)


@pytest.fixture
def hardening_material():
    """Soft material with quartic strain energy."""
    return PolynomialHardening(E=1000.0, nu=0.25, k=1e-2)


# =============================================================================
# Parameter Fixtures
# =============================================================================

@pytest.fixture
def steel_schema():
    """E, nu and rho around steel values."""
    return ParameterSchema((
        Parameter("E", 210e9),
        Parameter("nu", 0.3, spread=0.02),
        Parameter("rho", 7850.0),
    ))


@pytest.fixture
def bar_schema():
    """Modulus E and bar length L (geometric)."""
    return ParameterSchema((
        Parameter("E", 210e9),
        Parameter("L", 2.0, role="geometric"),
    ))


# =============================================================================
# Mesh Fixtures
# =============================================================================

@pytest.fixture
def single_bar():
    """One Line2 element of length 2 and section 1e-4."""
    return Mesh.line(1, 2.0, material="bar", section=1e-4)


@pytest.fixture
def bar_mesh():
    """Three Line2 elements on [0, 2], clamped at x = 0, with a length morph."""
    mesh = Mesh.line(3, 2.0, material="bar", section=1e-4)
    mesh.fix_node(0)
    mesh.add_scaling_morph("L", axis=0, reference_length=2.0)
    return mesh


@pytest.fixture
def plate_mesh():
    """4x2 Quad4 plate on [0, 4] x [0, 1], thickness 0.01, clamped left edge."""
    mesh = Mesh.from_rectangular_grid(4, 2, 4.0, 1.0, material="steel", section=0.01)
    for node in range(0, mesh.n_nodes, 5):
        mesh.fix_node(node)
    return mesh


@pytest.fixture
def small_plate():
    """2x1 Quad4 plate on [0, 2] x [0, 1], clamped left edge (8 free DOFs)."""
    mesh = Mesh.from_rectangular_grid(2, 1, 2.0, 1.0, material="soft", section=0.1)
    mesh.fix_node(0)
    mesh.fix_node(3)
    return mesh


# =============================================================================
# Helper Functions
# =============================================================================

def dense(matrix):
    """Dense ndarray of a sparse or dense matrix."""
    return matrix.toarray() if sp.issparse(matrix) else np.asarray(matrix)


def is_symmetric(matrix, tol=1e-10):
    """Check if matrix is symmetric."""
    matrix = dense(matrix)
    scale = max(np.max(np.abs(matrix)), 1.0e-300)
    return np.allclose(matrix, matrix.T, rtol=tol, atol=tol * scale)


def is_positive_semidefinite(matrix, tol=1e-10):
    """Check if matrix is positive semi-definite (allows zero eigenvalues)."""
    matrix = dense(matrix)
    eigenvalues = np.linalg.eigvalsh(0.5 * (matrix + matrix.T))
    return np.all(eigenvalues >= -tol * max(np.max(np.abs(eigenvalues)), 1.0))


def relative_error(a, b):
    """Frobenius norm of a - b relative to b."""
    a, b = dense(a), dense(b)
    return np.linalg.norm(a - b) / np.linalg.norm(b)
