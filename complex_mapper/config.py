"""Policy constants for the mapping pipeline.

All tunables live on one frozen :class:`MapperConfig` so a view can be built
with different policies (for example ``debounce_ms=0`` in scripts and tests)
without touching module globals.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class MapperConfig:
    """Immutable bundle of policy values used by :class:`ViewState`.

    Parameters
    ----------
    default_expression : str
        Expression compiled at startup.
    scale_src, scale_dst : float
        Initial visual span (plane units across the view width) of the
        source and destination planes.
    zoom_factor : float
        Multiplier applied by one zoom step (``> 1``).
    magnitude_limit_sq : float
        Squared magnitude above which evaluated points are rescaled.
    derivative_step : float
        Forward-difference step for the numeric derivative fallback.
    grid_pitch_px : float
        Grid cell pitch in screen pixels.
    grid_substeps : int
        Samples per grid cell along each gridline.
    viewport : tuple[int, int]
        Initial source-view size in pixels ``(width, height)``.
    debounce_ms : int
        Delay for coalesced grid recomputes; ``0`` recomputes synchronously.
    preset_radius_ratio : float
        Preset shape radius as a fraction of the source half-span.
    preset_samples : int
        Samples per closed ring or arc in preset shapes.
    """

    default_expression: str = "e^z"
    scale_src: float = 5.0
    scale_dst: float = 50.0
    zoom_factor: float = 1.3
    magnitude_limit_sq: float = 1e6
    derivative_step: float = 0.1
    grid_pitch_px: float = 50.0
    grid_substeps: int = 10
    viewport: tuple[int, int] = (500, 500)
    debounce_ms: int = 100
    preset_radius_ratio: float = 0.8
    preset_samples: int = 64

    def __post_init__(self) -> None:
        for name in (
            "scale_src",
            "scale_dst",
            "magnitude_limit_sq",
            "derivative_step",
            "grid_pitch_px",
            "preset_radius_ratio",
        ):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be a positive finite number, got {value!r}")
        if not (math.isfinite(self.zoom_factor) and self.zoom_factor > 1):
            raise ValueError(f"zoom_factor must be > 1, got {self.zoom_factor!r}")
        if self.grid_substeps < 1:
            raise ValueError(f"grid_substeps must be >= 1, got {self.grid_substeps!r}")
        if self.preset_samples < 3:
            raise ValueError(f"preset_samples must be >= 3, got {self.preset_samples!r}")
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms!r}")
        width, height = self.viewport
        if width <= 0 or height <= 0:
            raise ValueError(f"viewport must be positive, got {self.viewport!r}")


DEFAULT_CONFIG = MapperConfig()

__all__ = ["MapperConfig", "DEFAULT_CONFIG"]
