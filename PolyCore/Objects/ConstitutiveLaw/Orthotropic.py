import numpy as np

from PolyCore.Errors import NonPolynomialMaterialLaw
from PolyCore.Objects.ConstitutiveLaw.Material import (
    MaterialLaw, MaterialContext, Value, DEPENDENCY_RATIONAL, DEPENDENCY_TRANSCENDENTAL)
from PolyCore.Objects.Parameters.Polynomial import PolyArray


class OrthotropicPlaneStress(MaterialLaw):
    """
    Orthotropic lamina in plane stress, rotated by a fiber angle.

    The material-axes modulus

        Q = 1/(1 - nu12 nu21) [[E1, nu12 E2, 0], [nu12 E2, E2, 0], [0, 0, G12 (1 - nu12 nu21)]]

    is rotated into the global axes as Q_bar = T^T Q T, where T is the
    engineering strain transformation for the angle theta (radians).

    A parametric fiber angle enters through sin/cos, which has no finite
    polynomial form. In that case the polynomial path raises
    NonPolynomialMaterialLaw unless ``polynomial_override`` is given: a
    callable ``(ctx, dim) -> PolyArray`` returning the 3x3 modulus
    polynomial (e.g. a Taylor fit chosen by the caller).

    Parameters
    ----------
    E1, E2 : float or str
        Moduli along and across the fibers
    nu12 : float or str
        Major Poisson's ratio
    G12 : float or str
        In-plane shear modulus
    theta : float or str
        Fiber angle [rad]
    polynomial_override : callable, optional
        Replacement for the polynomial modulus
    """

    tag = "ORTHO"

    def __init__(self, E1: Value, E2: Value, nu12: Value, G12: Value, theta: Value = 0.0,
                 rho: Value = 0.0, alpha: Value = 0.0, beta: Value = 0.0, polynomial_override=None):
        super().__init__(rho=rho, alpha=alpha, beta=beta)
        self.E1 = E1
        self.E2 = E2
        self.nu12 = nu12
        self.G12 = G12
        self.theta = theta
        self.polynomial_override = polynomial_override

    @staticmethod
    def rotation(theta: float) -> np.ndarray:
        c, s = np.cos(theta), np.sin(theta)
        return np.array([[c * c, s * s, c * s],
                         [s * s, c * c, -c * s],
                         [-2.0 * c * s, 2.0 * c * s, c * c - s * s]])

    @staticmethod
    def _check_dim(dim):
        if dim != 2:
            raise ValueError(f"OrthotropicPlaneStress is a 2D law, got dimension {dim}")

    def elasticity(self, dim: int, values=None) -> np.ndarray:
        self._check_dim(dim)
        E1 = self._value(self.E1, values)
        E2 = self._value(self.E2, values)
        nu12 = self._value(self.nu12, values)
        G12 = self._value(self.G12, values)
        den = 1.0 - nu12 * nu12 * E2 / E1
        Q = np.array([[E1 / den, nu12 * E2 / den, 0.0],
                      [nu12 * E2 / den, E2 / den, 0.0],
                      [0.0, 0.0, G12]])
        T = self.rotation(self._value(self.theta, values))
        return T.T @ Q @ T

    def elasticity_polynomial(self, ctx: MaterialContext, dim: int) -> PolyArray:
        self._check_dim(dim)
        if self.polynomial_override is not None:
            C = self.polynomial_override(ctx, dim)
            if not isinstance(C, PolyArray) or C.shape != (3, 3):
                raise ValueError("polynomial_override must return a 3x3 PolyArray")
            return C
        if isinstance(self.theta, str):
            raise NonPolynomialMaterialLaw(
                f"Fiber angle '{self.theta}' enters through sin/cos; "
                f"supply polynomial_override to expand it", parameter=self.theta)

        E1 = ctx.parameter(self.E1)
        E2 = ctx.parameter(self.E2)
        nu12 = ctx.parameter(self.nu12)
        G12 = ctx.parameter(self.G12)
        # E1/(1 - nu12^2 E2/E1) = E1^2/(E1 - nu12^2 E2)
        def denominator(c):
            v = c.parameter(self.nu12)
            return c.parameter(self.E1) - v * v * c.parameter(self.E2)

        inv = ctx.reciprocal(denominator, "E1 - nu12^2 E2")
        E1E2 = E1 * E2 * inv
        zero = ctx.constant(0.0)
        Q = PolyArray.stack([
            PolyArray.stack([E1 * E1 * inv, nu12 * E1E2, zero]),
            PolyArray.stack([nu12 * E1E2, E1E2, zero]),
            PolyArray.stack([zero, zero, G12]),
        ])
        T = self.rotation(float(self.theta))
        return T.T @ Q @ T

    def parameter_dependency(self):
        deps = [super().parameter_dependency(), self._names(self.G12)]
        for attr in (self.E1, self.E2, self.nu12):
            if isinstance(attr, str):
                deps.append({attr: DEPENDENCY_RATIONAL})
        if isinstance(self.theta, str):
            deps.append({self.theta: DEPENDENCY_TRANSCENDENTAL})
        return self._merge(*deps)
