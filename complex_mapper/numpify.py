"""
numpify: Compile single-variable SymPy expressions to complex NumPy callables
=============================================================================

Purpose
-------
Turn a SymPy expression in ``z`` into a :class:`ComplexFunction` that evaluates
with NumPy on ``complex128`` scalars and arrays. The generated source is kept
on the result so it can be inspected.

Public API
----------
- :func:`numpify`
- :func:`numpify_cached`
- :func:`compile_expression`
- :class:`ComplexFunction`
- :class:`CompiledExpression`
- :class:`EvaluationError`

Unknown functions
-----------------
SymPy's NumPy printer prints functions it does not know as bare calls
(``gamma(z)``). Those have no NumPy implementation here, so compilation is
refused with a ``ValueError`` before any code is generated. The same applies
to expressions whose printed code reaches outside NumPy (``math.erf``,
``functools.reduce`` for ``Max``/``Min``, ``builtins.sum`` for ``Sum``): the
generated function runs on ``complex128`` arrays only.

Logging
-------
This module uses Python's standard :mod:`logging` library and is silent by
default. To see compile timings:

>>> import logging
>>> logging.basicConfig(level=logging.DEBUG)
>>> logging.getLogger("complex_mapper.numpify").setLevel(logging.DEBUG)
"""

from __future__ import annotations

import logging
import textwrap
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, cast

import numpy as np
import sympy as sp
from sympy.printing.numpy import NumPyPrinter

from .ParseExpression import Z, ExpressionParseError, parse_expression

__all__ = [
    "EvaluationError",
    "ComplexFunction",
    "CompiledExpression",
    "numpify",
    "numpify_cached",
    "compile_expression",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_ARG_NAME = "z"


class EvaluationError(ArithmeticError):
    """Raised when a compiled function is undefined at a specific input."""


class ComplexFunction:
    """Compiled SymPy->NumPy callable of the single complex variable ``z``.

    Calling with a scalar returns a Python ``complex`` (which may be
    non-finite). :meth:`evaluate_array` returns a ``complex128`` array of the
    input's shape. Floating-point warnings are suppressed; every exception
    raised by the generated code is re-raised as :class:`EvaluationError`.
    """

    __slots__ = ("_fn", "symbolic", "source")

    def __init__(self, fn: Callable[[Any], Any], symbolic: sp.Expr, source: str) -> None:
        self._fn = fn
        self.symbolic = symbolic
        self.source = source

    def __call__(self, z: complex) -> complex:
        try:
            with np.errstate(all="ignore"):
                value = self._fn(np.complex128(z))
            return complex(value)
        except Exception as exc:
            raise EvaluationError(f"{self.symbolic} is undefined at z={z!r}: {exc}") from exc

    def evaluate_array(self, zs: Any) -> np.ndarray:
        arr = np.asarray(zs, dtype=np.complex128)
        try:
            with np.errstate(all="ignore"):
                out = self._fn(arr)
            return np.broadcast_to(np.asarray(out, dtype=np.complex128), arr.shape).copy()
        except Exception as exc:
            raise EvaluationError(f"{self.symbolic} failed on array input: {exc}") from exc

    def __repr__(self) -> str:
        return f"ComplexFunction({self.symbolic!r})"


@dataclass(frozen=True)
class CompiledExpression:
    """Parsed and compiled form of one expression text."""

    text: str
    expr: sp.Expr
    function: ComplexFunction


def numpify(expr: Any, *, cache: bool = True) -> ComplexFunction:
    """Compile a SymPy expression in ``z`` into a :class:`ComplexFunction`.

    By default this uses the same LRU-backed cache as :func:`numpify_cached`.
    Pass ``cache=False`` to force a fresh compile.
    """
    if cache:
        return numpify_cached(expr)
    return _numpify_uncached(expr)


def _require_bound_functions(expr: sp.Basic, printer: NumPyPrinter) -> None:
    """Reject functions that would print as bare calls with nothing behind them."""
    missing: set[str] = set()

    for app in expr.atoms(sp.Function):
        name = app.func.__name__
        try:
            code = printer.doprint(app).strip()
        except Exception:
            missing.add(name)
            continue

        if code.startswith(f"{name}("):
            missing.add(name)

    if missing:
        raise ValueError(
            "Expression uses function(s) without a NumPy implementation: "
            + ", ".join(sorted(missing))
        )


def _require_numpy_only(printer: NumPyPrinter) -> None:
    """Reject printed code that references modules other than NumPy."""
    foreign = sorted(
        module
        for module in printer.module_imports
        if module != "numpy" and not module.startswith("numpy.")
    )
    if foreign:
        names = sorted(
            f"{module}.{name}" for module in foreign for name in printer.module_imports[module]
        )
        raise ValueError(
            "Expression uses function(s) without a NumPy implementation: " + ", ".join(names)
        )


# Sample inputs for a trial run of freshly generated code.
_TRIAL_INPUT = np.array([0.5 + 0.25j, -1.0 + 0.0j], dtype=np.complex128)


def _check_generated(fn: Callable[[Any], Any], expr: sp.Expr) -> None:
    """Run ``fn`` once; a broken name lookup means the code can never evaluate."""
    try:
        with np.errstate(all="ignore"):
            fn(_TRIAL_INPUT)
    except (NameError, AttributeError, ImportError) as exc:
        raise ValueError(f"Generated code for {expr} cannot run: {exc}") from exc
    except Exception as exc:
        # Undefined at the trial points only; other inputs may still evaluate.
        logger.debug("numpify: trial evaluation of %s failed: %s", expr, exc)


def _numpify_uncached(expr: Any) -> ComplexFunction:
    """Compile ``expr`` into a NumPy-evaluable complex function (uncached).

    Raises
    ------
    TypeError
        If ``expr`` is not SymPy-compatible.
    ValueError
        If ``expr`` has free symbols other than ``z`` or uses functions with
        no NumPy counterpart.

    Notes
    -----
    This function uses ``exec`` to define the generated function.
    """
    try:
        expr_sym = sp.sympify(expr)
    except Exception as e:
        raise TypeError(f"numpify expects a SymPy-compatible expression, got {type(expr)}") from e
    if not isinstance(expr_sym, sp.Expr):
        raise TypeError(f"numpify expects a SymPy expression, got {type(expr_sym)}")

    extra = sorted(s.name for s in expr_sym.free_symbols if s != Z)
    if extra:
        raise ValueError(f"Expression contains symbols other than z: {', '.join(extra)}")

    log_debug = logger.isEnabledFor(logging.DEBUG)
    t_total0 = time.perf_counter() if log_debug else None

    printer = NumPyPrinter(settings={"user_functions": {}, "allow_unknown_functions": True})
    _require_bound_functions(expr_sym, printer)

    try:
        expr_code = printer.doprint(expr_sym)
    except Exception as exc:
        raise ValueError(f"Expression cannot be printed as NumPy code: {type(exc).__name__}: {exc}") from exc
    _require_numpy_only(printer)

    lines = [
        f"def _generated({_ARG_NAME}):",
        f"    {_ARG_NAME} = numpy.asarray({_ARG_NAME}, dtype=numpy.complex128)",
    ]
    if not expr_sym.free_symbols:
        lines.append(f"    return ({expr_code}) + numpy.zeros({_ARG_NAME}.shape, dtype=numpy.complex128)")
    else:
        lines.append(f"    return {expr_code}")
    src = "\n".join(lines)

    glb: Dict[str, Any] = {"numpy": np}
    loc: Dict[str, Any] = {}
    exec(src, glb, loc)
    fn = cast(Callable[[Any], Any], loc["_generated"])
    _check_generated(fn, expr_sym)
    fn.__doc__ = textwrap.dedent(
        f"""
        Auto-generated NumPy function from SymPy expression.

        expr: {expr_sym!r}

        Source:
        {src}
        """
    ).strip()

    if log_debug:
        logger.debug(
            "numpify: compiled %s in %.2f ms",
            expr_sym,
            1000.0 * (time.perf_counter() - cast(float, t_total0)),
        )

    return ComplexFunction(fn=fn, symbolic=cast(sp.Expr, expr_sym), source=src)


_NUMPIFY_CACHE_MAXSIZE = 128


@lru_cache(maxsize=_NUMPIFY_CACHE_MAXSIZE)
def _numpify_cached_impl(expr: sp.Expr) -> ComplexFunction:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("numpify_cached: cache MISS for %s", expr)
    return _numpify_uncached(expr)


def numpify_cached(expr: Any) -> ComplexFunction:
    """Cached version of :func:`numpify`.

    The cache key is the sympified expression. Compiled functions are
    immutable, so sharing them between views is safe. Clear the cache with
    ``numpify_cached.cache_clear()``.
    """
    expr_sym = sp.sympify(expr)
    if not isinstance(expr_sym, sp.Expr):
        raise TypeError(f"numpify_cached expects a SymPy expression, got {type(expr_sym)}")
    return _numpify_cached_impl(expr_sym)


numpify_cached.cache_info = _numpify_cached_impl.cache_info  # type: ignore[attr-defined]
numpify_cached.cache_clear = _numpify_cached_impl.cache_clear  # type: ignore[attr-defined]


def compile_expression(text: str) -> CompiledExpression:
    """Parse and compile ``text`` into a :class:`CompiledExpression`.

    Raises
    ------
    ExpressionParseError
        For malformed text, unknown identifiers, or functions that cannot be
        evaluated numerically.
    """
    expr = parse_expression(text)
    try:
        function = numpify_cached(expr)
    except Exception as exc:
        raise ExpressionParseError(f"Cannot evaluate {text!r}: {exc}", source=text) from exc
    return CompiledExpression(text=text, expr=expr, function=function)
