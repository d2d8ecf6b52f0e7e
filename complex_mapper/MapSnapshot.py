"""Immutable snapshots of a view's mapping state.

A ``MapSnapshot`` captures everything a renderer needs for one frame: the
paired domain/image paths, the mapped reference grid, the pointer sample, the
two view scales, and the last expression fault. Sequences are tuples so a
snapshot can be handed to another thread without copying.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .sampling import GridSpec, PathPoint


@dataclass(frozen=True)
class PointerSample:
    """Pointer position with its image and derivative probes.

    Parameters
    ----------
    z : complex
        Pointer position in the source plane.
    value : complex
        ``f(z)``.
    horizontal : complex
        Image of ``z + 1`` under the local linear map.
    vertical : complex
        Image of ``z + i`` under the local linear map.
    """

    z: complex
    value: complex
    horizontal: complex
    vertical: complex


@dataclass(frozen=True)
class MapSnapshot:
    """Immutable record of one view's state between operations.

    Parameters
    ----------
    expression : str
        Source text of the active function.
    state : str
        ``"idle"`` or ``"faulted_recompile"``.
    last_error : str or None
        Message of the last rejected expression, if the view is faulted.
    derivative_mode : str
        ``"analytic"`` or ``"numeric"``.
    scale_src, scale_dst : float
        Visual spans of the source and destination planes.
    viewport : tuple[int, int]
        Source view size in pixels.
    domain_path, image_path : tuple[PathPoint, ...]
        Paired drawn path; equal length, breaks at the same indices.
    grid : GridSpec
        Generator for the reference grid at ``scale_src``.
    grid_domain, grid_image : tuple[PathPoint, ...]
        Last computed grid samples and their images.
    grid_stale : bool
        ``True`` while a grid recompute is pending.
    pointer : PointerSample or None
        Present only while the pointer hovers a point where ``f`` is defined.
    """

    expression: str
    state: str
    last_error: Optional[str]
    derivative_mode: str
    scale_src: float
    scale_dst: float
    viewport: tuple[int, int]
    domain_path: tuple[PathPoint, ...]
    image_path: tuple[PathPoint, ...]
    grid: GridSpec
    grid_domain: tuple[PathPoint, ...]
    grid_image: tuple[PathPoint, ...]
    grid_stale: bool
    pointer: Optional[PointerSample]

    def __repr__(self) -> str:
        return (
            f"MapSnapshot(expression={self.expression!r}, state={self.state!r}, "
            f"path={len(self.domain_path)}, grid={len(self.grid_domain)}, "
            f"pointer={self.pointer is not None})"
        )
