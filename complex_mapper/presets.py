"""Programmatic domain shapes that can replace the drawn path."""

from __future__ import annotations

import enum
import math
from typing import Union

import numpy as np

from .sampling import PathPoint

__all__ = ["PresetKind", "disk_points", "pacman_points", "preset_points"]


class PresetKind(str, enum.Enum):
    DISK = "disk"
    PACMAN = "pacman"


def _stroke(points: np.ndarray) -> list[PathPoint]:
    return [complex(z) for z in points] + [None]


def disk_points(
    radius: float,
    *,
    rings: int = 6,
    spokes: int = 12,
    samples: int = 64,
) -> list[PathPoint]:
    """Sample a filled disk: concentric circles out to the boundary, then spokes.

    Each circle is closed (its first point is repeated at the end) and every
    stroke ends with a ``None`` break.
    """
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius!r}")
    theta = np.linspace(0.0, 2 * math.pi, samples + 1)
    theta[-1] = 0.0
    circle = np.exp(1j * theta)

    out: list[PathPoint] = []
    for k in range(1, rings + 1):
        out.extend(_stroke(radius * k / rings * circle))

    t = np.linspace(0.0, radius, samples // 2 + 1)
    for k in range(spokes):
        out.extend(_stroke(t * np.exp(2j * math.pi * k / spokes)))
    return out


def pacman_points(
    radius: float,
    *,
    mouth: float = math.pi / 3,
    spokes: int = 24,
    samples: int = 64,
) -> list[PathPoint]:
    """Sample a disk sector with a wedge of angle ``mouth`` removed around +1.

    The outline (upper jaw, arc, lower jaw) is one stroke; radial spokes
    across the remaining sector follow as separate strokes.
    """
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius!r}")
    if not 0 < mouth < 2 * math.pi:
        raise ValueError(f"mouth must be in (0, 2*pi), got {mouth!r}")

    start, stop = mouth / 2, 2 * math.pi - mouth / 2
    radial = np.linspace(0.0, radius, samples // 2 + 1)
    arc = radius * np.exp(1j * np.linspace(start, stop, samples + 1))
    outline = np.concatenate(
        [
            radial * np.exp(1j * start),
            arc[1:],
            radial[::-1][1:] * np.exp(1j * stop),
        ]
    )

    out = _stroke(outline)
    for angle in np.linspace(start, stop, spokes + 2)[1:-1]:
        out.extend(_stroke(radial * np.exp(1j * angle)))
    return out


def preset_points(kind: Union[PresetKind, str], radius: float, *, samples: int = 64) -> list[PathPoint]:
    """Dispatch to the generator for ``kind`` (``"disk"`` or ``"pacman"``)."""
    try:
        kind = PresetKind(kind)
    except ValueError:
        options = ", ".join(k.value for k in PresetKind)
        raise ValueError(f"Unknown preset {kind!r}; expected one of: {options}") from None

    if kind is PresetKind.DISK:
        return disk_points(radius, samples=samples)
    return pacman_points(radius, samples=samples)
