"""Command-level behaviour of ``ViewState``: scenarios, invariants, debouncing."""

from __future__ import annotations

import cmath
import dataclasses
import math
import threading
from unittest.mock import patch

import pytest

from complex_mapper.config import MapperConfig
from complex_mapper.ParseExpression import ExpressionParseError
from complex_mapper.presets import disk_points
from complex_mapper.sampling import map_sequence
from complex_mapper.view_state import MapperState, ViewState

SYNC = MapperConfig(debounce_ms=0)


def _aligned(view: ViewState) -> bool:
    domain, image = view.domain_path, view.image_path
    return len(domain) == len(image) and all(
        (z is None) == (w is None) for z, w in zip(domain, image)
    )


def test_default_view_starts_idle_with_exponential() -> None:
    view = ViewState(config=SYNC)
    snap = view.snapshot()

    assert view.state is MapperState.IDLE
    assert snap.expression == "e^z"
    assert snap.scale_src == 5.0
    assert snap.scale_dst == 50.0
    assert snap.derivative_mode == "analytic"
    assert snap.domain_path == () and snap.image_path == ()
    assert snap.pointer is None
    assert not snap.grid_stale
    assert snap.grid_domain == tuple(view.grid())


def test_invalid_initial_expression_raises() -> None:
    with pytest.raises(ExpressionParseError):
        ViewState("z^", config=SYNC)


def test_square_maps_point_and_probes() -> None:
    view = ViewState("z^2", config=SYNC)
    view.append_point((1, 0))

    assert view.image_path == (pytest.approx(1),)

    sample = view.set_pointer(1 + 0j)

    assert sample is not None
    assert view.snapshot().derivative_mode == "analytic"
    assert sample.value == pytest.approx(1)
    assert sample.horizontal == pytest.approx(3)
    assert sample.vertical == pytest.approx(1 + 2j)


def test_exponential_probes_at_origin() -> None:
    view = ViewState("e^z", config=SYNC)
    view.append_point(0)
    sample = view.set_pointer(0)

    assert view.image_path[0] == pytest.approx(1)
    assert sample is not None
    assert view.derivative.slope(0j) == pytest.approx(1)
    assert sample.horizontal == pytest.approx(2)
    assert sample.vertical == pytest.approx(1 + 1j)


def test_malformed_expression_keeps_previous_function_and_path() -> None:
    view = ViewState("z^2", config=SYNC)
    view.extend_path([1, 2j, None])
    before = view.snapshot()

    fault = view.submit_expression("z^")

    assert isinstance(fault, ExpressionParseError)
    assert view.state is MapperState.FAULTED_RECOMPILE
    assert view.last_error is fault
    after = view.snapshot()
    assert after.expression == "z^2"
    assert after.domain_path == before.domain_path
    assert after.image_path == before.image_path
    assert after.state == "faulted_recompile"
    assert after.last_error == str(fault)

    # Drawing continues with the active function.
    view.append_point(3)
    assert view.image_path[-1] == pytest.approx(9)

    assert view.submit_expression("z^3") is None
    assert view.state is MapperState.IDLE
    assert view.last_error is None


def test_resubmitting_active_text_clears_fault_without_recompute() -> None:
    view = ViewState("z^2", config=SYNC)
    function = view.function
    view.submit_expression("bogus(")

    assert view.submit_expression("z^2") is None
    assert view.state is MapperState.IDLE
    assert view.function is function


def test_breaks_are_aligned_from_the_first_point() -> None:
    view = ViewState("z^2", config=SYNC)
    view.append_point(None)
    view.append_point((0, 0))
    view.append_point((1, 0))

    assert view.domain_path == (None, 0j, 1 + 0j)
    assert view.image_path[0] is None
    assert view.image_path[1:] == (pytest.approx(0), pytest.approx(1))


def test_pole_on_grid_becomes_a_gap() -> None:
    view = ViewState("1/z", config=SYNC)
    snap = view.snapshot()

    origins = [i for i, z in enumerate(snap.grid_domain) if z == 0]
    assert origins
    for i in origins:
        assert snap.grid_image[i] is None
        assert snap.grid_image[i - 1] is not None
        assert snap.grid_image[i + 1] is not None
    assert all(w is None or abs(w) <= 1000 + 1e-9 for w in snap.grid_image)


def test_new_expression_recomputes_stored_path_and_pointer() -> None:
    view = ViewState("z^2", config=SYNC)
    view.extend_path([1, None, 1j])
    view.set_pointer(1)

    assert view.submit_expression("2*z") is None

    assert view.image_path == (pytest.approx(2), None, pytest.approx(2j))
    assert view.pointer is not None
    assert view.pointer.horizontal == pytest.approx(4)
    assert _aligned(view)


def test_non_holomorphic_expression_uses_numeric_mode() -> None:
    view = ViewState("abs(z)", config=SYNC)
    sample = view.set_pointer(0.5 + 0.5j)

    assert view.snapshot().derivative_mode == "numeric"
    assert sample is not None
    assert cmath.isfinite(sample.horizontal) and cmath.isfinite(sample.vertical)


def test_pointer_absent_outside_view_or_where_undefined() -> None:
    view = ViewState("1/z", config=SYNC)

    assert view.set_pointer(0) is None
    assert view.set_pointer(10 + 0j) is None
    assert view.set_pointer(1) is not None
    assert view.set_pointer(None) is None
    assert view.pointer is None


def test_zoom_in_on_source_drops_pointer_that_leaves_the_view() -> None:
    view = ViewState("z", config=SYNC)
    view.set_pointer(2 + 0j)
    assert view.pointer is not None

    view.zoom("src", "in")

    assert view.scale_src == pytest.approx(5 / 1.3)
    assert view.pointer is None


def test_scale_changes_resample_grid() -> None:
    view = ViewState("z", config=SYNC)

    assert view.set_scale("src", 2.0) == pytest.approx(10.0)
    snap = view.snapshot()
    assert snap.grid.pitch == pytest.approx(1.0)
    assert snap.grid_domain == tuple(view.grid())

    view.zoom("dst", "out")
    assert view.scale_dst == pytest.approx(50 * 1.3)
    view.zoom("dst", "in")
    assert view.scale_dst == pytest.approx(50.0)


@pytest.mark.parametrize("factor", [0.0, -1.0, math.nan, math.inf])
def test_invalid_scale_factor_is_rejected(factor: float) -> None:
    view = ViewState(config=SYNC)
    with pytest.raises(ValueError):
        view.set_scale("src", factor)
    assert view.scale_src == 5.0


def test_invalid_plane_and_direction_are_rejected() -> None:
    view = ViewState(config=SYNC)
    with pytest.raises(ValueError):
        view.set_scale("middle", 2.0)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        view.zoom("src", "sideways")  # type: ignore[arg-type]


def test_viewport_changes_grid_aspect() -> None:
    view = ViewState(config=SYNC)
    view.set_viewport(1000, 500)

    grid = view.snapshot().grid
    assert grid.half_width == pytest.approx(2.5)
    assert grid.half_height == pytest.approx(1.25)
    assert grid.pitch == pytest.approx(0.25)

    with pytest.raises(ValueError):
        view.set_viewport(0, 100)


def test_strokes_add_dot_and_single_break() -> None:
    view = ViewState("z", config=SYNC)
    view.begin_stroke(0.5)
    view.append_point(1)

    assert view.domain_path == (0.5 + 0j, 0.5 + 0j, 1 + 0j)
    assert view.latest_segment() == ((0.5 + 0j, 1 + 0j), (0.5 + 0j, 1 + 0j))

    assert view.end_stroke() is True
    assert view.end_stroke() is False
    assert view.domain_path[-1] is None
    assert view.latest_segment() == (None, None)

    with pytest.raises(ValueError):
        view.begin_stroke(None)


def test_latest_segment_skips_undefined_image() -> None:
    view = ViewState("1/z", config=SYNC)
    view.extend_path([1, 0])

    domain, image = view.latest_segment()

    assert domain == (1 + 0j, 0j)
    assert image is None


def test_clear_and_presets_replace_path() -> None:
    view = ViewState("z^2", config=SYNC)
    view.extend_path([1, 2, 3])

    view.load_preset("disk")

    expected = disk_points(0.8 * 5.0 / 2, samples=64)
    assert view.domain_path == tuple(expected)
    assert _aligned(view)

    view.load_preset("pacman")
    assert view.domain_path[0] == 0j
    assert _aligned(view)

    view.clear_path()
    assert view.domain_path == () and view.image_path == ()


def test_unknown_preset_leaves_path_untouched() -> None:
    view = ViewState(config=SYNC)
    view.extend_path([1, 2])

    with pytest.raises(ValueError):
        view.load_preset("hexagon")

    assert view.domain_path == (1 + 0j, 2 + 0j)


def test_invalid_point_in_batch_stores_nothing() -> None:
    view = ViewState(config=SYNC)

    with pytest.raises((TypeError, ValueError)):
        view.extend_path([1, "not a number", 2])

    assert view.domain_path == ()


def test_snapshot_is_frozen_and_detached() -> None:
    view = ViewState("z", config=SYNC)
    view.append_point(1)
    snap = view.snapshot()

    view.append_point(2)

    assert snap.domain_path == (1 + 0j,)
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap.scale_src = 1.0  # type: ignore[misc]


class _FakeTimer:
    created: list["_FakeTimer"] = []

    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.daemon = False
        self.cancelled = False
        _FakeTimer.created.append(self)

    def start(self) -> None:
        pass

    def cancel(self) -> None:
        self.cancelled = True


def test_rapid_zooms_coalesce_into_one_grid_recompute() -> None:
    _FakeTimer.created.clear()
    with patch("complex_mapper.debouncing.threading.Timer", _FakeTimer):
        view = ViewState("z^2", config=MapperConfig(debounce_ms=100))
        initial = view.snapshot().grid_domain

        view.zoom("src", "out")
        view.zoom("src", "out")
        view.set_viewport(400, 300)

        snap = view.snapshot()
        assert snap.grid_stale
        assert snap.grid_domain == initial
        assert len(_FakeTimer.created) == 1

        _FakeTimer.created[0].callback()

    snap = view.snapshot()
    assert not snap.grid_stale
    assert snap.grid_domain == tuple(view.grid())
    assert snap.grid.half_width == pytest.approx(5 * 1.3 * 1.3 / 2)


def test_flush_runs_pending_recompute_and_close_cancels() -> None:
    _FakeTimer.created.clear()
    with patch("complex_mapper.debouncing.threading.Timer", _FakeTimer):
        view = ViewState("z", config=MapperConfig(debounce_ms=100))
        assert view.flush() is False

        view.submit_expression("z + 1")
        assert view.snapshot().grid_stale
        assert view.flush() is True
        snap = view.snapshot()
        assert not snap.grid_stale
        assert snap.grid_image[0] == pytest.approx(snap.grid_domain[0] + 1)

        view.zoom("src", "in")
        view.close()
        assert _FakeTimer.created[-1].cancelled
        assert view.snapshot().grid_stale


@pytest.mark.parametrize("text", ["zoo", "Integral(z, z)", "erf(z)"])
def test_unprintable_expression_is_returned_as_a_fault(text: str) -> None:
    view = ViewState("z^2", config=SYNC)
    view.append_point(2)

    fault = view.submit_expression(text)

    assert isinstance(fault, ExpressionParseError)
    assert view.state is MapperState.FAULTED_RECOMPILE
    assert view.expression == "z^2"
    view.append_point(3)
    assert view.image_path == (pytest.approx(4), pytest.approx(9))


@pytest.mark.parametrize("with_path", [False, True])
@pytest.mark.parametrize("text", ["erf(z)", "Max(z, 1)", "Min(z, 2)", "zoo", "Integral(z, z)"])
def test_submitted_expression_never_breaks_mapping(text: str, with_path: bool) -> None:
    _FakeTimer.created.clear()
    with patch("complex_mapper.debouncing.threading.Timer", _FakeTimer):
        view = ViewState("z^2", config=MapperConfig(debounce_ms=100))
        if with_path:
            view.extend_path([1, 2j, None, -1])

        fault = view.submit_expression(text)
        if fault is not None:
            assert view.state is MapperState.FAULTED_RECOMPILE
            assert view.expression == "z^2"
        view.flush()

        view.append_point(0.5 + 0.5j)
        view.set_pointer(0.5 + 0.5j)
        snap = view.snapshot()

    assert not snap.grid_stale
    assert _aligned(view)
    images = map_sequence(view.function, [1, 0.5j, -2], limit_sq=1e6)
    for w in list(snap.image_path) + list(snap.grid_image) + images:
        assert w is None or cmath.isfinite(w)


def test_failed_commit_restores_previous_function(monkeypatch) -> None:
    view = ViewState("z^2", config=SYNC)
    view.append_point(2)
    view.set_pointer(1)
    before = view.snapshot()
    function = view.function

    def boom() -> None:
        raise RuntimeError("grid recompute failed")

    monkeypatch.setattr(view, "_request_grid_recompute", boom)
    with pytest.raises(RuntimeError):
        view.submit_expression("z^3")

    assert view.function is function
    after = view.snapshot()
    assert after.expression == "z^2"
    assert after.image_path == before.image_path
    assert after.pointer == before.pointer
    assert after.derivative_mode == before.derivative_mode


def test_destination_zoom_does_not_resample_grid() -> None:
    _FakeTimer.created.clear()
    with patch("complex_mapper.debouncing.threading.Timer", _FakeTimer):
        view = ViewState("z^2", config=MapperConfig(debounce_ms=100))
        grid = view.snapshot().grid_domain

        view.zoom("dst", "out")
        snap = view.snapshot()

    assert _FakeTimer.created == []
    assert not snap.grid_stale
    assert snap.grid_domain == grid
    assert snap.scale_dst == pytest.approx(50 * 1.3)


def test_accessors_wait_for_a_running_mutation() -> None:
    view = ViewState(config=SYNC)
    seen: list[float] = []

    with view._lock:
        reader = threading.Thread(target=lambda: seen.append(view.scale_src))
        reader.start()
        reader.join(timeout=0.05)
        assert reader.is_alive()
        view._scale_src = 7.0
    reader.join(timeout=1.0)

    assert seen == [7.0]
