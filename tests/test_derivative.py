from __future__ import annotations

import cmath
import logging

import pytest

from complex_mapper.derivative import AnalyticDerivative, NumericDerivative, derive
from complex_mapper.numpify import compile_expression


def _derive(text: str, **kwargs):
    return derive(compile_expression(text), **kwargs)


def test_polynomial_has_analytic_derivative_and_probes() -> None:
    mode = _derive("z^2")
    assert isinstance(mode, AnalyticDerivative)
    assert mode.slope(1) == pytest.approx(2)

    probe = mode.evaluate_tangent(1 + 0j)

    assert probe is not None
    assert probe.value == pytest.approx(1)
    assert probe.horizontal == pytest.approx(3)
    assert probe.vertical == pytest.approx(1 + 2j)


def test_exponential_probes_at_origin() -> None:
    mode = _derive("e^z")
    assert isinstance(mode, AnalyticDerivative)

    probe = mode.evaluate_tangent(0j)

    assert probe is not None
    assert probe.value == pytest.approx(1)
    assert mode.slope(0j) == pytest.approx(1)
    assert probe.horizontal == pytest.approx(2)
    assert probe.vertical == pytest.approx(1 + 1j)


@pytest.mark.parametrize("text", ["abs(z)", "conj(z)", "re(z) + i*im(z)^2", "arg(z)"])
def test_non_holomorphic_expressions_fall_back_to_numeric(text: str) -> None:
    mode = _derive(text)
    assert isinstance(mode, NumericDerivative)

    probe = mode.evaluate_tangent(0.7 + 0.4j)

    assert probe is not None
    for w in (probe.value, probe.horizontal, probe.vertical):
        assert cmath.isfinite(w)


def test_numeric_fallback_uses_forward_differences() -> None:
    mode = _derive("conj(z)", step=0.1)
    z = 1 + 1j

    probe = mode.evaluate_tangent(z)

    assert probe is not None
    assert probe.horizontal == pytest.approx(z.conjugate() + 1)
    assert probe.vertical == pytest.approx(z.conjugate() - 1j)


def test_numeric_estimate_approximates_the_true_derivative() -> None:
    mode = NumericDerivative(function=compile_expression("z^2").function, step=0.1)
    assert mode.slope(1 + 0j) == pytest.approx(2, abs=0.2)


def test_fallback_is_logged_as_information(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="complex_mapper.derivative"):
        _derive("abs(z)")
    assert "forward differences" in caplog.text


@pytest.mark.parametrize("text", ["1/z", "log(z)"])
def test_tangent_is_absent_where_function_is_undefined(text: str) -> None:
    assert _derive(text).evaluate_tangent(0j) is None
    numeric = NumericDerivative(function=compile_expression(text).function)
    assert numeric.evaluate_tangent(0j) is None


def test_numeric_slope_uses_unguarded_samples() -> None:
    mode = _derive("1000*conj(z)", step=0.1)
    assert isinstance(mode, NumericDerivative)

    # f(2) = 2000 lies outside the guard radius of 1000.
    assert mode.slope(2 + 0j) == pytest.approx(1000)


def test_analytic_slope_is_not_clamped() -> None:
    mode = _derive("e^z")
    assert mode.slope(10 + 0j) == pytest.approx(cmath.exp(10))


def test_only_tangent_endpoints_are_clamped() -> None:
    probe = _derive("e^z").evaluate_tangent(10 + 0j)

    assert probe is not None
    for w in (probe.value, probe.horizontal, probe.vertical):
        assert abs(w) == pytest.approx(1000)
    assert probe.value == pytest.approx(1000)
    assert probe.vertical == pytest.approx(cmath.exp(1j * cmath.pi / 4) * 1000)
