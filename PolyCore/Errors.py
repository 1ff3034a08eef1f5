# -*- coding: utf-8 -*-
"""
Error Taxonomy - Fatal and Non-Fatal Assembly Conditions
=========================================================

Fatal conditions abort the whole ``assemble`` call, no partial operator is
ever returned:

- **InvalidElementGeometry**: non-positive Jacobian determinant (inverted or
  degenerate element).
- **NonPolynomialMaterialLaw**: a material dependency cannot be represented
  by a truncated polynomial (transcendental in a parameter, or a rational
  series that does not converge fast enough).
- **AssemblyAborted**: raised by the engine, wraps one of the above in
  ``reason``.

Caller misuse, rejected before assembly starts:

- **DegreeOverflow**: requested truncation degree above the ceiling.

Non-fatal:

- **QuadratureOrderInsufficient**: emitted with ``warnings.warn`` and
  attached to the result diagnostics.
"""

import os
import warnings


def custom_warning_format(message, category, filename, lineno, file=None, line=None):
    file_short_name = filename.replace(os.path.dirname(filename), "")
    file_short_name = file_short_name.replace("\\", "").replace("/", "")
    return f"Warning! In file {file_short_name}, line {lineno}: {message}\n"


warnings.formatwarning = custom_warning_format


# =============================================================================
# FATAL CONDITIONS
# =============================================================================

class InvalidElementGeometry(RuntimeError):
    """Raised when the Jacobian determinant of an element is non-positive.

    This typically indicates:
    - Clockwise node ordering (inverted element)
    - Collapsed element (coincident or collinear nodes)
    - A morph field that folds the element at nominal parameters
    """

    def __init__(self, message, element=None, det=None):
        super().__init__(message)
        self.element = element
        self.det = det


class NonPolynomialMaterialLaw(RuntimeError):
    """Raised when a material law cannot be expanded as a polynomial.

    Either a parameter enters a transcendental function (e.g. a fiber angle
    inside sin/cos) and no polynomial override was supplied, or a rational
    dependency (material denominator or Jacobian determinant) has a series
    that is too slow to converge at the parameter spread.
    """

    def __init__(self, message, parameter=None):
        super().__init__(message)
        self.parameter = parameter


class AssemblyCancelled(RuntimeError):
    """Raised when the cancellation flag is set between two elements."""
    pass


class AssemblyAborted(RuntimeError):
    """Raised when assembly stops on a fatal per-element condition.

    The underlying exception is available as ``reason``. No matrices are
    returned when this is raised.
    """

    def __init__(self, reason):
        element = getattr(reason, "element", None)
        where = f" (element {element})" if element is not None else ""
        super().__init__(f"Assembly aborted{where}: {type(reason).__name__}: {reason}")
        self.reason = reason


# =============================================================================
# CALLER MISUSE
# =============================================================================

class DegreeOverflow(ValueError):
    """Raised when a truncation degree above the supported ceiling is requested.

    Products of monomials above the truncation degree are dropped silently;
    this error only concerns the degree bound itself.
    """
    pass


# =============================================================================
# NON-FATAL CONDITIONS
# =============================================================================

class QuadratureOrderInsufficient(UserWarning):
    """Quadrature rule cannot integrate the integrand degree exactly.

    Assembly proceeds with the configured rule; the resulting coefficients
    are approximate. One instance is reported per (element type, kind).
    """

    def __init__(self, element_type, kind, required, available):
        super().__init__(
            f"Quadrature for '{element_type}' ({kind}) integrates degree {available} exactly, "
            f"integrand needs degree {required}; result is approximate."
        )
        self.element_type = element_type
        self.kind = kind
        self.required = required
        self.available = available

    def __eq__(self, other):
        if not isinstance(other, QuadratureOrderInsufficient):
            return NotImplemented
        return (self.element_type, self.kind, self.required, self.available) == \
            (other.element_type, other.kind, other.required, other.available)

    def __hash__(self):
        return hash((self.element_type, self.kind, self.required, self.available))
