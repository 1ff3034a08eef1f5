# -*- coding: utf-8 -*-

from abc import ABC, abstractmethod
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np

from PolyCore.Objects.Parameters.Polynomial import PolyArray
from PolyCore.Objects.Parameters.Series import SeriesAcceptance

Value = Union[float, str]

DEPENDENCY_RATIONAL = "rational"
DEPENDENCY_TRANSCENDENTAL = "transcendental"


# =============================================================================
# VOIGT HELPERS
# =============================================================================

def voigt_size(dim: int) -> int:
    return {1: 1, 2: 3, 3: 6}[dim]


def _plane_stress_parts():
    base = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 0.5]])
    nu_part = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, -0.5]])
    return base, nu_part


def _plane_strain_parts():
    base = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 0.5]])
    nu_part = np.array([[-1.0, 1.0, 0.0], [1.0, -1.0, 0.0], [0.0, 0.0, -1.0]])
    return base, nu_part


def _isotropic_3d_parts():
    lam_part = np.zeros((6, 6))
    lam_part[:3, :3] = 1.0
    mu_part = np.diag([2.0, 2.0, 2.0, 1.0, 1.0, 1.0])
    return lam_part, mu_part


# =============================================================================
# POLYNOMIAL CONTEXT
# =============================================================================

class MaterialContext:
    """
    Binds a monomial index and a parameter schema for the polynomial path.

    Turns material attributes (numbers or parameter names) into polynomials
    and applies the series acceptance rule to rational dependencies.
    """

    def __init__(self, index, schema, series_tolerance: float = 0.05, series: Optional[SeriesAcceptance] = None):
        self.index = index
        self.schema = schema
        self.series = series if series is not None else SeriesAcceptance.for_schema(schema, index, series_tolerance)
        self.series_tolerance = self.series.tolerance

    def expanded(self) -> "MaterialContext":
        """Context on the untruncated index used to judge denominators."""
        if self.series.full_index is self.index:
            return self
        return MaterialContext(self.series.full_index, self.schema, series=self.series)

    def parameter(self, value: Value) -> PolyArray:
        if isinstance(value, str):
            return self.schema.variable(self.index, value)
        return PolyArray.constant(self.index, float(value))

    def constant(self, value) -> PolyArray:
        return PolyArray.constant(self.index, value)

    def reciprocal(self, denominator: Callable[["MaterialContext"], PolyArray], what: str = "denominator",
                   parameter: Optional[str] = None) -> PolyArray:
        """
        1/denominator as a truncated series, rejected when it converges too slowly.

        Args:
            denominator: Builds the denominator from a context. It is built on
                the expanded index, so the acceptance rule sees every term,
                then truncated to this context's degree.
            what: Label used in error messages
            parameter: Parameter named in the error, if any

        Raises:
            NonPolynomialMaterialLaw: see SeriesAcceptance
        """
        return self.series.reciprocal(denominator(self.expanded()), what, parameter)


# =============================================================================
# BASE CLASS
# =============================================================================

class MaterialLaw(ABC):
    """
    Capability set shared by every constitutive law.

    Each law exposes two paths:

    - a closed-form numeric path (``elasticity``, ``stress``, ``tangent``,
      ``density``, ``rayleigh``) evaluated at absolute parameter values,
      used by the baseline assembler;
    - a polynomial path (``*_polynomial``) returning PolyArray objects in
      the parameter deviations, used by the parametric assembler.

    Attributes that may depend on parameters accept either a number or the
    name of a schema parameter.

    Parameters
    ----------
    rho : float or str
        Density
    alpha : float or str
        Mass-proportional Rayleigh coefficient
    beta : float or str
        Stiffness-proportional Rayleigh coefficient
    """

    tag = "BASE"
    has_hardening = False

    def __init__(self, rho: Value = 0.0, alpha: Value = 0.0, beta: Value = 0.0):
        self.rho = rho
        self.alpha = alpha
        self.beta = beta

    # ----- helpers -----
    @staticmethod
    def _value(attr: Value, values: Optional[Mapping[str, float]]) -> float:
        if isinstance(attr, str):
            if values is None or attr not in values:
                raise KeyError(f"No value given for parameter '{attr}'")
            return float(values[attr])
        return float(attr)

    @staticmethod
    def _names(*attrs) -> Dict[str, int]:
        return {a: 1 for a in attrs if isinstance(a, str)}

    @staticmethod
    def _merge(*deps: Dict[str, Union[int, str]]) -> Dict[str, Union[int, str]]:
        def rank(kind):
            if kind == DEPENDENCY_TRANSCENDENTAL:
                return (2, 0)
            if kind == DEPENDENCY_RATIONAL:
                return (1, 0)
            return (0, kind)

        out = {}
        for dep in deps:
            for name, kind in dep.items():
                if name not in out or rank(kind) > rank(out[name]):
                    out[name] = kind
        return out

    # ----- capability set: numeric path -----
    @abstractmethod
    def elasticity(self, dim: int, values: Optional[Mapping[str, float]] = None) -> np.ndarray:
        """Small-strain modulus C in Voigt notation (engineering shear)."""
        pass

    def hardening(self, values: Optional[Mapping[str, float]] = None) -> float:
        return 0.0

    def stress(self, strain: np.ndarray, dim: int, values=None) -> np.ndarray:
        """Second Piola-Kirchhoff stress S = dW/dE."""
        C = self.elasticity(dim, values)
        k = self.hardening(values)
        CE = C @ strain
        return CE * (1.0 + k * float(strain @ CE))

    def tangent(self, strain: np.ndarray, dim: int, values=None) -> np.ndarray:
        """Tangent modulus C_T = dS/dE."""
        C = self.elasticity(dim, values)
        k = self.hardening(values)
        CE = C @ strain
        return C * (1.0 + k * float(strain @ CE)) + 2.0 * k * np.outer(CE, CE)

    def density(self, values=None) -> float:
        return self._value(self.rho, values)

    def rayleigh(self, values=None):
        return self._value(self.alpha, values), self._value(self.beta, values)

    # ----- capability set: polynomial path -----
    @abstractmethod
    def elasticity_polynomial(self, ctx: MaterialContext, dim: int) -> PolyArray:
        pass

    def hardening_polynomial(self, ctx: MaterialContext) -> Optional[PolyArray]:
        return None

    def stress_polynomial(self, ctx: MaterialContext, dim: int, strain: PolyArray) -> PolyArray:
        C = self.elasticity_polynomial(ctx, dim)
        CE = C @ strain
        k = self.hardening_polynomial(ctx)
        if k is None:
            return CE
        phi = PolyArray.einsum("i,i->", strain, CE)
        return CE + CE * (k * phi)

    def tangent_polynomial(self, ctx: MaterialContext, dim: int, strain: Optional[PolyArray] = None) -> PolyArray:
        C = self.elasticity_polynomial(ctx, dim)
        k = self.hardening_polynomial(ctx)
        if k is None or strain is None:
            return C
        CE = C @ strain
        phi = PolyArray.einsum("i,i->", strain, CE)
        outer = PolyArray.einsum("i,j->ij", CE, CE)
        return C + C * (k * phi) + outer * (2.0 * k)

    def density_polynomial(self, ctx: MaterialContext) -> PolyArray:
        return ctx.parameter(self.rho)

    def rayleigh_polynomial(self, ctx: MaterialContext):
        return ctx.parameter(self.alpha), ctx.parameter(self.beta)

    # ----- capability set: dependency declaration -----
    def parameter_dependency(self) -> Dict[str, Union[int, str]]:
        """
        Degree of the dependency on each referenced parameter.

        Values are an integer polynomial degree, ``'rational'`` (accepted
        through a truncated series) or ``'transcendental'`` (needs a
        polynomial override).
        """
        return self._names(self.rho, self.alpha, self.beta)

    def parameters(self):
        return tuple(self.parameter_dependency().keys())

    def __repr__(self):
        return f"{type(self).__name__}(tag={self.tag})"


# =============================================================================
# LINEAR ELASTIC
# =============================================================================

class LinearElastic(MaterialLaw):
    """
    Isotropic linear elastic (Saint Venant-Kirchhoff) material.

    The modulus depends linearly on E. A parametric Poisson ratio enters
    through 1/(1 - nu^2), 1/((1 + nu)(1 - 2 nu)) or 1/(1 + nu), which are
    expanded as truncated series.

    Parameters
    ----------
    E : float or str
        Young's modulus
    nu : float or str
        Poisson's ratio
    rho : float or str
        Density
    plane : str
        'stress' or 'strain', used for 2D
    alpha, beta : float or str
        Rayleigh damping coefficients
    """

    tag = "LINEL"

    def __init__(self, E: Value, nu: Value = 0.0, rho: Value = 0.0, plane: str = "stress",
                 alpha: Value = 0.0, beta: Value = 0.0):
        super().__init__(rho=rho, alpha=alpha, beta=beta)
        if plane not in ("stress", "strain"):
            raise ValueError(f"plane must be 'stress' or 'strain', got '{plane}'")
        if not isinstance(nu, str) and not -1.0 < float(nu) < 0.5:
            raise ValueError(f"Poisson's ratio must lie in (-1, 0.5), got {nu}")
        self.E = E
        self.nu = nu
        self.plane = plane

    def elasticity(self, dim: int, values=None) -> np.ndarray:
        E = self._value(self.E, values)
        nu = self._value(self.nu, values)
        if dim == 1:
            return np.array([[E]])
        if dim == 2:
            if self.plane == "stress":
                base, nu_part = _plane_stress_parts()
                return E / (1.0 - nu ** 2) * (base + nu * nu_part)
            base, nu_part = _plane_strain_parts()
            return E / ((1.0 + nu) * (1.0 - 2.0 * nu)) * (base + nu * nu_part)
        if dim == 3:
            lam_part, mu_part = _isotropic_3d_parts()
            lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
            mu = E / (2.0 * (1.0 + nu))
            return lam * lam_part + mu * mu_part
        raise ValueError(f"Unsupported dimension {dim}")

    def elasticity_polynomial(self, ctx: MaterialContext, dim: int) -> PolyArray:
        E = ctx.parameter(self.E)
        if dim == 1:
            return E.reshape(1, 1)
        nu = ctx.parameter(self.nu)
        name = self.nu if isinstance(self.nu, str) else None

        def one_minus_nu2(c):
            v = c.parameter(self.nu)
            return 1.0 - v * v

        def lame_denominator(c):
            v = c.parameter(self.nu)
            return (1.0 + v) * (1.0 - 2.0 * v)

        if dim == 2:
            if self.plane == "stress":
                base, nu_part = _plane_stress_parts()
                factor = E * ctx.reciprocal(one_minus_nu2, "1 - nu^2", name)
            else:
                base, nu_part = _plane_strain_parts()
                factor = E * ctx.reciprocal(lame_denominator, "(1 + nu)(1 - 2 nu)", name)
            return factor * (nu * nu_part + base)
        if dim == 3:
            lam_part, mu_part = _isotropic_3d_parts()
            lam = E * nu * ctx.reciprocal(lame_denominator, "(1 + nu)(1 - 2 nu)", name)
            mu = E * ctx.reciprocal(lambda c: 2.0 * (1.0 + c.parameter(self.nu)), "2 (1 + nu)", name)
            return lam * lam_part + mu * mu_part
        raise ValueError(f"Unsupported dimension {dim}")

    def parameter_dependency(self):
        deps = [super().parameter_dependency(), self._names(self.E)]
        if isinstance(self.nu, str):
            deps.append({self.nu: DEPENDENCY_RATIONAL})
        return self._merge(*deps)


# =============================================================================
# POLYNOMIAL HARDENING
# =============================================================================

class PolynomialHardening(LinearElastic):
    """
    Nonlinear elastic material with quartic strain energy.

    W = phi/2 + k phi^2/4, with phi = E^T C E, gives

        S   = C E (1 + k phi)
        C_T = C (1 + k phi) + 2 k (C E)(C E)^T

    The hardening coefficient k may be a parameter; it couples with the
    modulus and the strain state, giving naturally cubic terms in the
    parameters.

    Parameters
    ----------
    k : float or str
        Hardening coefficient (1/energy density)
    """

    tag = "POLYHARD"
    has_hardening = True

    def __init__(self, E: Value, nu: Value = 0.0, k: Value = 0.0, rho: Value = 0.0,
                 plane: str = "stress", alpha: Value = 0.0, beta: Value = 0.0):
        super().__init__(E, nu=nu, rho=rho, plane=plane, alpha=alpha, beta=beta)
        self.k = k

    def hardening(self, values=None) -> float:
        return self._value(self.k, values)

    def hardening_polynomial(self, ctx: MaterialContext) -> PolyArray:
        return ctx.parameter(self.k)

    def parameter_dependency(self):
        return self._merge(super().parameter_dependency(), self._names(self.k))


# =============================================================================
# NUMERICALLY LINEARIZED PASSTHROUGH
# =============================================================================

class Linearized(MaterialLaw):
    """
    Placeholder for a law linearized numerically elsewhere.

    The tangent is a fixed matrix with no parameter dependence; stress is
    D @ E. Only density and Rayleigh coefficients may be parameters.
    """

    tag = "LINEARIZED"

    def __init__(self, D, rho: Value = 0.0, alpha: Value = 0.0, beta: Value = 0.0):
        super().__init__(rho=rho, alpha=alpha, beta=beta)
        D = np.atleast_2d(np.asarray(D, dtype=float))
        if D.shape[0] != D.shape[1] or D.shape[0] not in (1, 3, 6):
            raise ValueError(f"Linearized tangent must be 1x1, 3x3 or 6x6, got {D.shape}")
        self.D = D

    def _check_dim(self, dim):
        if voigt_size(dim) != self.D.shape[0]:
            raise ValueError(f"Tangent of size {self.D.shape[0]} does not match dimension {dim}")

    def elasticity(self, dim: int, values=None) -> np.ndarray:
        self._check_dim(dim)
        return self.D.copy()

    def elasticity_polynomial(self, ctx: MaterialContext, dim: int) -> PolyArray:
        self._check_dim(dim)
        return ctx.constant(self.D)
