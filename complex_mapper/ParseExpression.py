"""Text-to-SymPy parsing for single-variable complex expressions.

The default pass uses SymPy's standard transformations plus ``convert_xor``
so ``z^2`` means a power. When that pass fails, a second pass that also
allows implicit multiplication (``2z``, ``z sin z``) is tried. This keeps
parsing forgiving for hand-typed input while still rejecting text that is not
an expression in ``z``.
"""

from __future__ import annotations

from typing import Any

import sympy as sp
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

__all__ = ["Z", "ExpressionParseError", "parse_expression"]

Z = sp.Symbol("z")

_STRICT_TRANSFORMS = standard_transformations + (convert_xor,)
_IMPLICIT_TRANSFORMS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
)

_LOCAL_NAMES: dict[str, Any] = {
    "z": Z,
    "e": sp.E,
    "i": sp.I,
    "j": sp.I,
    "ln": sp.log,
    "conj": sp.conjugate,
    "abs": sp.Abs,
}


class ExpressionParseError(ValueError):
    """Raised when expression text cannot become a function of ``z``."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source


def _parse_once(text: str, transformations: tuple) -> sp.Basic:
    return parse_expr(text, local_dict=dict(_LOCAL_NAMES), transformations=transformations)


def _validate(expr: Any, text: str) -> sp.Expr:
    if not isinstance(expr, sp.Expr):
        raise ExpressionParseError(
            f"Input {text!r} is not a scalar expression (got {type(expr).__name__}).",
            source=text,
        )

    unknown_symbols = sorted(s.name for s in expr.free_symbols if s != Z)
    if unknown_symbols:
        raise ExpressionParseError(
            f"Unknown identifier(s) in {text!r}: {', '.join(unknown_symbols)}. "
            "The only free variable is z.",
            source=text,
        )

    undefined = sorted({app.func.__name__ for app in expr.atoms(AppliedUndef)})
    if undefined:
        raise ExpressionParseError(
            f"Unknown function(s) in {text!r}: {', '.join(undefined)}.",
            source=text,
        )
    return expr


def parse_expression(text: str) -> sp.Expr:
    """Parse ``text`` into a SymPy expression in the free variable ``z``.

    Parameters
    ----------
    text : str
        Infix expression such as ``"z^2 + 1"`` or ``"e^z"``.

    Returns
    -------
    sympy.Expr
        Parsed expression whose only free symbol (if any) is :data:`Z`.

    Raises
    ------
    ExpressionParseError
        If the text is empty, malformed in both parsing passes, or refers to
        identifiers other than ``z`` and the known functions and constants.

    Examples
    --------
    >>> parse_expression("z^2")  # doctest: +SKIP
    z**2
    >>> parse_expression("2z")  # doctest: +SKIP
    2*z

    Notes
    -----
    SymPy's ``parse_expr`` evaluates the transformed source with ``eval``.
    Avoid feeding it untrusted input outside an interactive session.
    """
    if not isinstance(text, str):
        raise TypeError(f"parse_expression expects a string, got {type(text).__name__}")
    stripped = text.strip()
    if not stripped:
        raise ExpressionParseError("Expression is empty.", source=text)

    strict_err = None
    try:
        return _validate(_parse_once(stripped, _STRICT_TRANSFORMS), text)
    except ExpressionParseError as e:
        strict_err = e
    except Exception as e:
        strict_err = e

    try:
        return _validate(_parse_once(stripped, _IMPLICIT_TRANSFORMS), text)
    except ExpressionParseError:
        if isinstance(strict_err, ExpressionParseError):
            raise strict_err
        raise
    except Exception as implicit_err:
        if isinstance(strict_err, ExpressionParseError):
            raise strict_err from implicit_err
        raise ExpressionParseError(
            f"Could not parse {text!r}.\n"
            f"Strict error: {type(strict_err).__name__}: {strict_err}\n"
            f"Implicit error: {type(implicit_err).__name__}: {implicit_err}",
            source=text,
        ) from implicit_err
