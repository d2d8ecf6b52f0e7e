"""Point, path and grid sampling through a compiled complex function.

Paths are plain lists of ``PathPoint`` values where ``None`` marks a break.
Mapping is index-wise, so a mapped path has the same length as its domain
path and a ``None`` at every index where the domain path has one. Points where
the function is undefined also map to ``None``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np

from .magnitude_guard import MAGNITUDE_LIMIT_SQ, clamp, clamp_array
from .numpify import ComplexFunction, EvaluationError

__all__ = ["PathPoint", "map_point", "map_sequence", "GridSpec"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

PathPoint = Optional[complex]


def map_point(
    function: ComplexFunction,
    z: PathPoint,
    *,
    limit_sq: float = MAGNITUDE_LIMIT_SQ,
) -> PathPoint:
    """Map one domain point, turning faults and non-finite results into ``None``."""
    if z is None:
        return None
    try:
        fz = function(z)
    except EvaluationError as exc:
        logger.debug("map_point: %s", exc)
        return None
    return clamp(fz, limit_sq)


def map_sequence(
    function: ComplexFunction,
    points: Sequence[PathPoint],
    *,
    limit_sq: float = MAGNITUDE_LIMIT_SQ,
) -> list[PathPoint]:
    """Map a path index-wise, preserving its length and break positions.

    Evaluation is vectorized; if the array evaluation faults as a whole the
    points are evaluated one by one so a single bad point only breaks itself.
    """
    n = len(points)
    if n == 0:
        return []

    present = np.fromiter((z is not None for z in points), dtype=bool, count=n)
    domain = np.array([0j if z is None else z for z in points], dtype=np.complex128)

    try:
        image = clamp_array(function.evaluate_array(domain[present]), limit_sq)
    except EvaluationError as exc:
        logger.debug("map_sequence: array evaluation failed (%s); mapping point-wise", exc)
        return [map_point(function, z, limit_sq=limit_sq) for z in points]

    out: list[PathPoint] = [None] * n
    for idx, w in zip(np.flatnonzero(present), image):
        if not np.isnan(w.real):
            out[idx] = complex(w)
    return out


@dataclass(frozen=True)
class GridSpec:
    """Restartable lazy description of the reference grid in the source plane.

    Iterating yields the vertical gridlines (left to right) and then the
    horizontal ones (bottom to top). Each line is sampled ``substeps`` times
    per cell so its image under a curved map renders smoothly, and every line
    is followed by a ``None`` break. Each iteration starts from scratch.

    Parameters
    ----------
    half_width, half_height : float
        Half extents of the visible source region.
    pitch : float
        Distance between neighbouring gridlines in plane units.
    substeps : int
        Samples per cell along each line.
    """

    half_width: float
    half_height: float
    pitch: float
    substeps: int = 10

    def __post_init__(self) -> None:
        if not (math.isfinite(self.pitch) and self.pitch > 0):
            raise ValueError(f"pitch must be a positive finite number, got {self.pitch!r}")
        if self.half_width < 0 or self.half_height < 0:
            raise ValueError("half extents must be non-negative")
        if self.substeps < 1:
            raise ValueError(f"substeps must be >= 1, got {self.substeps!r}")

    @classmethod
    def for_view(
        cls,
        scale: float,
        width_px: float,
        height_px: float,
        *,
        pitch_px: float = 50.0,
        substeps: int = 10,
    ) -> "GridSpec":
        """Build the grid for a view ``scale`` plane units wide.

        The pitch is ``pitch_px`` screen pixels converted to plane units, so
        the on-screen density of gridlines stays constant while zooming.
        """
        units_per_px = scale / width_px
        return cls(
            half_width=scale / 2,
            half_height=height_px * units_per_px / 2,
            pitch=pitch_px * units_per_px,
            substeps=substeps,
        )

    @property
    def cells_x(self) -> int:
        return int(self.half_width // self.pitch) + 1

    @property
    def cells_y(self) -> int:
        return int(self.half_height // self.pitch) + 1

    def vertical_lines(self) -> Iterator[np.ndarray]:
        nx, ny = self.cells_x, self.cells_y
        ys = np.arange(-ny * self.substeps, ny * self.substeps + 1) * (self.pitch / self.substeps)
        for k in range(-nx, nx + 1):
            yield k * self.pitch + 1j * ys

    def horizontal_lines(self) -> Iterator[np.ndarray]:
        nx, ny = self.cells_x, self.cells_y
        xs = np.arange(-nx * self.substeps, nx * self.substeps + 1) * (self.pitch / self.substeps)
        for k in range(-ny, ny + 1):
            yield xs + 1j * (k * self.pitch)

    def lines(self) -> Iterator[np.ndarray]:
        yield from self.vertical_lines()
        yield from self.horizontal_lines()

    def __iter__(self) -> Iterator[PathPoint]:
        for line in self.lines():
            for z in line:
                yield complex(z)
            yield None

    def __len__(self) -> int:
        nx, ny = self.cells_x, self.cells_y
        vertical = (2 * nx + 1) * (2 * ny * self.substeps + 2)
        horizontal = (2 * ny + 1) * (2 * nx * self.substeps + 2)
        return vertical + horizontal
