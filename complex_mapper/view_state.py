"""Owned, command-driven state of one source/destination view pair.

``ViewState`` is the only object that mutates the active function, the drawn
path, the view scales and the pointer sample. Collaborators call its
operations and read :meth:`ViewState.snapshot` between them.

State machine
-------------
``IDLE``
    The last submitted expression compiled.
``FAULTED_RECOMPILE``
    The last submitted expression was rejected; the previous function is
    still active and drawing continues with it.

Grid recomputes triggered by zooming, resizing or a new function are
coalesced by a :class:`CoalescingDebouncer` so a burst of triggers produces a
single recompute with the latest scale and function. Path images are
recomputed immediately.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
from typing import Any, Iterable, Literal, Optional, Union

from .config import DEFAULT_CONFIG, MapperConfig
from .debouncing import CoalescingDebouncer
from .derivative import AnalyticDerivative, DerivativeMode, derive
from .InputConvert import coerce_point
from .MapSnapshot import MapSnapshot, PointerSample
from .numpify import CompiledExpression, ComplexFunction, compile_expression
from .ParseExpression import ExpressionParseError
from .presets import PresetKind, preset_points
from .sampling import GridSpec, PathPoint, map_sequence

__all__ = ["MapperState", "ViewState"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Plane = Literal["src", "dst"]
_PLANES = ("src", "dst")


class MapperState(enum.Enum):
    IDLE = "idle"
    FAULTED_RECOMPILE = "faulted_recompile"


class ViewState:
    """Mapping state for one interactive view.

    Parameters
    ----------
    expression : str, optional
        Initial expression; defaults to ``config.default_expression``. An
        invalid initial expression raises :class:`ExpressionParseError`.
    config : MapperConfig, optional
        Policy values (scales, zoom factor, guard threshold, debounce delay).

    Examples
    --------
    >>> view = ViewState("z^2", config=MapperConfig(debounce_ms=0))  # doctest: +SKIP
    >>> view.append_point(1)  # doctest: +SKIP
    >>> view.snapshot().image_path  # doctest: +SKIP
    ((1+0j),)
    """

    def __init__(self, expression: Optional[str] = None, *, config: MapperConfig = DEFAULT_CONFIG) -> None:
        self._config = config
        self._lock = threading.RLock()

        compiled = compile_expression(config.default_expression if expression is None else expression)
        self._compiled: CompiledExpression = compiled
        self._derivative: DerivativeMode = self._derive(compiled)
        self._state = MapperState.IDLE
        self._last_error: Optional[ExpressionParseError] = None

        self._domain_path: list[PathPoint] = []
        self._image_path: list[PathPoint] = []

        self._scale_src = float(config.scale_src)
        self._scale_dst = float(config.scale_dst)
        self._viewport: tuple[int, int] = (int(config.viewport[0]), int(config.viewport[1]))

        self._pointer_z: Optional[complex] = None
        self._pointer: Optional[PointerSample] = None

        self._grid_domain: tuple[PathPoint, ...] = ()
        self._grid_image: tuple[PathPoint, ...] = ()
        self._grid_stale = True
        self._debouncer: Optional[CoalescingDebouncer] = None
        if config.debounce_ms > 0:
            self._debouncer = CoalescingDebouncer(self._recompute_grid, delay_ms=config.debounce_ms)
        self._recompute_grid()

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> MapperConfig:
        return self._config

    @property
    def state(self) -> MapperState:
        with self._lock:
            return self._state

    @property
    def expression(self) -> str:
        with self._lock:
            return self._compiled.text

    @property
    def function(self) -> ComplexFunction:
        with self._lock:
            return self._compiled.function

    @property
    def derivative(self) -> DerivativeMode:
        with self._lock:
            return self._derivative

    @property
    def last_error(self) -> Optional[ExpressionParseError]:
        with self._lock:
            return self._last_error

    @property
    def scale_src(self) -> float:
        with self._lock:
            return self._scale_src

    @property
    def scale_dst(self) -> float:
        with self._lock:
            return self._scale_dst

    @property
    def pointer(self) -> Optional[PointerSample]:
        with self._lock:
            return self._pointer

    @property
    def domain_path(self) -> tuple[PathPoint, ...]:
        with self._lock:
            return tuple(self._domain_path)

    @property
    def image_path(self) -> tuple[PathPoint, ...]:
        with self._lock:
            return tuple(self._image_path)

    def grid(self) -> GridSpec:
        """Return the grid generator for the current source scale and viewport."""
        with self._lock:
            width, height = self._viewport
            scale = self._scale_src
        return GridSpec.for_view(
            scale,
            width,
            height,
            pitch_px=self._config.grid_pitch_px,
            substeps=self._config.grid_substeps,
        )

    def latest_segment(self) -> tuple[Optional[tuple[complex, complex]], Optional[tuple[complex, complex]]]:
        """Return the last drawn domain and image segments for incremental drawing.

        Either entry is ``None`` when the segment is broken at one end or the
        path holds fewer than two points.
        """
        with self._lock:
            if len(self._domain_path) < 2:
                return None, None
            z1, z2 = self._domain_path[-2:]
            w1, w2 = self._image_path[-2:]
        domain = (z1, z2) if z1 is not None and z2 is not None else None
        image = (w1, w2) if w1 is not None and w2 is not None else None
        return domain, image

    def snapshot(self) -> MapSnapshot:
        """Return an immutable view of the current state."""
        with self._lock:
            return MapSnapshot(
                expression=self._compiled.text,
                state=self._state.value,
                last_error=None if self._last_error is None else str(self._last_error),
                derivative_mode="analytic" if isinstance(self._derivative, AnalyticDerivative) else "numeric",
                scale_src=self._scale_src,
                scale_dst=self._scale_dst,
                viewport=self._viewport,
                domain_path=tuple(self._domain_path),
                image_path=tuple(self._image_path),
                grid=self.grid(),
                grid_domain=self._grid_domain,
                grid_image=self._grid_image,
                grid_stale=self._grid_stale,
                pointer=self._pointer,
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def submit_expression(self, text: str) -> Optional[ExpressionParseError]:
        """Compile ``text`` and make it the active function.

        Returns
        -------
        ExpressionParseError or None
            The fault when ``text`` is rejected (the previous function, path
            and pointer stay untouched), otherwise ``None``.
        """
        with self._lock:
            if text == self._compiled.text:
                self._state = MapperState.IDLE
                self._last_error = None
                return None

            try:
                compiled = compile_expression(text)
            except ExpressionParseError as exc:
                self._state = MapperState.FAULTED_RECOMPILE
                self._last_error = exc
                logger.warning("Rejected expression %r: %s", text, exc)
                return exc

            # Everything derived from the new function is computed before any
            # field is replaced.
            derivative = self._derive(compiled)
            image_path = map_sequence(compiled.function, self._domain_path, limit_sq=self._config.magnitude_limit_sq)
            pointer = self._sample_pointer(derivative)

            previous = (self._compiled, self._derivative, self._image_path, self._pointer, self._grid_stale)
            self._compiled = compiled
            self._derivative = derivative
            self._image_path = image_path
            self._pointer = pointer
            try:
                self._request_grid_recompute()
            except Exception:
                self._compiled, self._derivative, self._image_path, self._pointer, self._grid_stale = previous
                raise
            self._state = MapperState.IDLE
            self._last_error = None
        logger.debug("Active expression is now %r", text)
        return None

    def append_point(self, z: Any) -> None:
        """Append one domain point (or ``None`` for a break) and its image."""
        self.extend_path([z])

    def extend_path(self, points: Iterable[Any]) -> None:
        """Append several points; all are validated before anything is stored."""
        coerced = [coerce_point(p) for p in points]
        with self._lock:
            images = map_sequence(self._compiled.function, coerced, limit_sq=self._config.magnitude_limit_sq)
            self._domain_path.extend(coerced)
            self._image_path.extend(images)

    def begin_stroke(self, z: Any) -> None:
        """Start a stroke; the point is stored twice so a click shows a dot."""
        point = coerce_point(z)
        if point is None:
            raise ValueError("begin_stroke needs a point, got None")
        self.extend_path([point, point])

    def end_stroke(self) -> bool:
        """Break the path after a stroke. Returns ``False`` if it already ends in a break."""
        with self._lock:
            if not self._domain_path or self._domain_path[-1] is None:
                return False
            self._domain_path.append(None)
            self._image_path.append(None)
            return True

    def clear_path(self) -> None:
        with self._lock:
            self._domain_path = []
            self._image_path = []

    def load_preset(self, kind: Union[PresetKind, str]) -> None:
        """Replace the path with a generated shape sized to the source view."""
        radius = self._config.preset_radius_ratio * self._scale_src / 2
        points = preset_points(kind, radius, samples=self._config.preset_samples)
        with self._lock:
            self.clear_path()
            self.extend_path(points)

    def set_scale(self, which: Plane, factor: float) -> float:
        """Multiply the ``"src"`` or ``"dst"`` scale by ``factor``; returns the new scale."""
        if which not in _PLANES:
            raise ValueError(f"which must be one of {_PLANES}, got {which!r}")
        factor = float(factor)
        if not (math.isfinite(factor) and factor > 0):
            raise ValueError(f"scale factor must be a positive finite number, got {factor!r}")

        with self._lock:
            current = self._scale_src if which == "src" else self._scale_dst
            new = current * factor
            if not (math.isfinite(new) and new > 0):
                raise ValueError(f"scale {current!r} * {factor!r} leaves the representable range")
            if which == "src":
                self._scale_src = new
                self._refresh_pointer()
                self._request_grid_recompute()
            else:
                # Grid samples depend only on the source scale and viewport.
                self._scale_dst = new
        return new

    def zoom(self, which: Plane, direction: Literal["in", "out"]) -> float:
        """Apply one zoom step; zooming in shrinks the visible span."""
        if direction == "in":
            return self.set_scale(which, 1.0 / self._config.zoom_factor)
        if direction == "out":
            return self.set_scale(which, self._config.zoom_factor)
        raise ValueError(f"direction must be 'in' or 'out', got {direction!r}")

    def set_viewport(self, width_px: int, height_px: int) -> None:
        """Record a new source-view size in pixels and resample the grid."""
        if width_px <= 0 or height_px <= 0:
            raise ValueError(f"viewport must be positive, got {(width_px, height_px)!r}")
        with self._lock:
            self._viewport = (int(width_px), int(height_px))
            self._refresh_pointer()
            self._request_grid_recompute()

    def set_pointer(self, z: Any) -> Optional[PointerSample]:
        """Move the pointer to ``z`` (``None`` clears it) and return the new sample."""
        point = coerce_point(z)
        with self._lock:
            self._pointer_z = point
            self._refresh_pointer()
            return self._pointer

    def flush(self) -> bool:
        """Run a pending grid recompute now. Returns ``True`` if one ran."""
        if self._debouncer is None:
            return False
        return self._debouncer.flush()

    def close(self) -> None:
        """Drop any pending recompute."""
        if self._debouncer is not None:
            self._debouncer.cancel()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _derive(self, compiled: CompiledExpression) -> DerivativeMode:
        return derive(
            compiled,
            step=self._config.derivative_step,
            limit_sq=self._config.magnitude_limit_sq,
        )

    def _in_source_view(self, z: complex) -> bool:
        width, height = self._viewport
        half_width = self._scale_src / 2
        half_height = half_width * height / width
        return abs(z.real) <= half_width and abs(z.imag) <= half_height

    def _sample_pointer(self, derivative: DerivativeMode) -> Optional[PointerSample]:
        z = self._pointer_z
        if z is None or not self._in_source_view(z):
            return None
        probe = derivative.evaluate_tangent(z)
        if probe is None:
            return None
        return PointerSample(
            z=z,
            value=probe.value,
            horizontal=probe.horizontal,
            vertical=probe.vertical,
        )

    def _refresh_pointer(self) -> None:
        self._pointer = self._sample_pointer(self._derivative)

    def _request_grid_recompute(self) -> None:
        self._grid_stale = True
        if self._debouncer is None:
            self._recompute_grid()
        else:
            self._debouncer()

    def _recompute_grid(self) -> None:
        with self._lock:
            domain = tuple(self.grid())
            image = tuple(map_sequence(self._compiled.function, domain, limit_sq=self._config.magnitude_limit_sq))
            self._grid_domain = domain
            self._grid_image = image
            self._grid_stale = False
        logger.debug("Recomputed grid: %d samples for %r", len(domain), self._compiled.text)
