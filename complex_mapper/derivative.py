"""Local derivative of the active function, analytic when possible.

:func:`derive` returns one of two variants:

- :class:`AnalyticDerivative` holds ``f'`` compiled from ``sympy.diff``.
- :class:`NumericDerivative` estimates the local linear map with forward
  differences of step ``h`` along ``+1`` and ``+i``.

Both expose :meth:`evaluate_tangent`, which returns the images of ``z``,
``z + 1`` and ``z + i`` under the local linear approximation, or ``None``
where the function is undefined.
"""

from __future__ import annotations

import cmath
import logging
from dataclasses import dataclass
from typing import Optional, Union

import sympy as sp

from .magnitude_guard import MAGNITUDE_LIMIT_SQ, clamp
from .numpify import ComplexFunction, CompiledExpression, EvaluationError, numpify_cached
from .ParseExpression import Z

__all__ = [
    "NON_HOLOMORPHIC",
    "TangentProbe",
    "AnalyticDerivative",
    "NumericDerivative",
    "DerivativeMode",
    "derive",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Operators without a complex derivative; their symbolic "derivative" is not a
# local linear map of the plane.
NON_HOLOMORPHIC = (
    sp.Abs,
    sp.re,
    sp.im,
    sp.conjugate,
    sp.arg,
    sp.sign,
    sp.floor,
    sp.ceiling,
)


@dataclass(frozen=True)
class TangentProbe:
    """Images of ``z``, ``z + 1`` and ``z + i`` under the local linear map."""

    value: complex
    horizontal: complex
    vertical: complex


@dataclass(frozen=True)
class AnalyticDerivative:
    """Derivative obtained by symbolic differentiation."""

    function: ComplexFunction
    derivative: ComplexFunction
    limit_sq: float = MAGNITUDE_LIMIT_SQ

    @property
    def expr(self) -> sp.Expr:
        return self.derivative.symbolic

    def slope(self, z: complex) -> Optional[complex]:
        return _evaluate(self.derivative, z)

    def evaluate_tangent(self, z: complex) -> Optional[TangentProbe]:
        fz = _evaluate(self.function, z)
        if fz is None:
            return None
        dz = self.slope(z)
        if dz is None:
            return None
        return _probe(fz, dz, 1j * dz, self.limit_sq)


@dataclass(frozen=True)
class NumericDerivative:
    """Forward-difference estimate of the local linear map.

    Values are approximate; do not compare them bit-for-bit with the
    analytic derivative.
    """

    function: ComplexFunction
    step: float = 0.1
    limit_sq: float = MAGNITUDE_LIMIT_SQ

    def _differences(self, z: complex) -> Optional[tuple[complex, complex, complex]]:
        h = self.step
        samples = [_evaluate(self.function, w) for w in (z, z + h, z + 1j * h)]
        if any(w is None for w in samples):
            return None
        fz, f_right, f_up = samples
        d_right, d_up = (f_right - fz) / h, (f_up - fz) / h
        if not (cmath.isfinite(d_right) and cmath.isfinite(d_up)):
            return None
        return fz, d_right, d_up

    def slope(self, z: complex) -> Optional[complex]:
        diffs = self._differences(z)
        return None if diffs is None else diffs[1]

    def evaluate_tangent(self, z: complex) -> Optional[TangentProbe]:
        diffs = self._differences(z)
        if diffs is None:
            return None
        fz, d_right, d_up = diffs
        return _probe(fz, d_right, d_up, self.limit_sq)


DerivativeMode = Union[AnalyticDerivative, NumericDerivative]


def _evaluate(function: ComplexFunction, z: complex) -> Optional[complex]:
    """Raw ``function(z)``; faults and non-finite results become ``None``.

    The magnitude guard is not applied here, only to the probe endpoints.
    """
    try:
        w = function(z)
    except EvaluationError as exc:
        logger.debug("derivative: %s", exc)
        return None
    return w if cmath.isfinite(w) else None


def _probe(fz: complex, d_right: complex, d_up: complex, limit_sq: float) -> Optional[TangentProbe]:
    value = clamp(fz, limit_sq)
    horizontal = clamp(fz + d_right, limit_sq)
    vertical = clamp(fz + d_up, limit_sq)
    if value is None or horizontal is None or vertical is None:
        return None
    return TangentProbe(value=value, horizontal=horizontal, vertical=vertical)


def _symbolic_derivative(expr: sp.Expr) -> Optional[sp.Expr]:
    if expr.has(*NON_HOLOMORPHIC):
        return None
    try:
        d = sp.diff(expr, Z)
    except Exception as exc:
        logger.debug("derive: sympy.diff failed for %s: %s", expr, exc)
        return None
    if d.has(sp.Derivative, sp.Subs):
        return None
    return d


def derive(
    compiled: CompiledExpression,
    *,
    step: float = 0.1,
    limit_sq: float = MAGNITUDE_LIMIT_SQ,
) -> DerivativeMode:
    """Return the derivative provider for ``compiled``; never raises for valid input.

    Parameters
    ----------
    compiled : CompiledExpression
        Result of :func:`compile_expression`.
    step : float
        Forward-difference step used if the numeric fallback is chosen.
    limit_sq : float
        Magnitude guard threshold applied to probe points.
    """
    d = _symbolic_derivative(compiled.expr)
    if d is not None:
        try:
            return AnalyticDerivative(
                function=compiled.function,
                derivative=numpify_cached(d),
                limit_sq=limit_sq,
            )
        except Exception as exc:
            logger.debug("derive: derivative of %s does not compile: %s", compiled.expr, exc)

    logger.info(
        "No closed-form derivative for %r; using forward differences (h=%g).",
        compiled.text,
        step,
    )
    return NumericDerivative(function=compiled.function, step=step, limit_sq=limit_sq)
