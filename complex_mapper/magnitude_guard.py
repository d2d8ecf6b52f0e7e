"""Magnitude guard for evaluated points.

Points with a non-finite component become path breaks (``None``). Finite
points whose squared magnitude exceeds the limit are pulled toward the origin
so the magnitude equals ``sqrt(limit_sq)`` while the argument is unchanged.
Some renderers drop a whole connected path when one coordinate is
astronomically large; clamping keeps the rest of the path visible.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

__all__ = ["MAGNITUDE_LIMIT_SQ", "clamp", "clamp_array"]

MAGNITUDE_LIMIT_SQ = 1e6


def clamp(value: Optional[complex], limit_sq: float = MAGNITUDE_LIMIT_SQ) -> Optional[complex]:
    """Return ``value`` guarded against non-finite and extreme magnitudes.

    Parameters
    ----------
    value : complex or None
        Evaluated point, or ``None`` when evaluation faulted.
    limit_sq : float
        Squared magnitude threshold.

    Returns
    -------
    complex or None
        ``None`` for faulted or non-finite input, otherwise a finite complex
        with squared magnitude at most ``limit_sq``.
    """
    if value is None:
        return None
    re, im = float(value.real), float(value.imag)
    if not (math.isfinite(re) and math.isfinite(im)):
        return None
    if re * re + im * im <= limit_sq:
        return complex(re, im)

    # Normalize by the larger component first so huge inputs cannot overflow.
    peak = max(abs(re), abs(im))
    unit_re, unit_im = re / peak, im / peak
    norm = math.hypot(unit_re, unit_im)
    radius = math.sqrt(limit_sq)
    return complex(unit_re / norm * radius, unit_im / norm * radius)


def clamp_array(values: np.ndarray, limit_sq: float = MAGNITUDE_LIMIT_SQ) -> np.ndarray:
    """Vectorized :func:`clamp`; non-finite entries come back as ``nan+nanj``."""
    arr = np.array(values, dtype=np.complex128, copy=True)
    finite = np.isfinite(arr.real) & np.isfinite(arr.imag)
    arr[~finite] = complex(np.nan, np.nan)

    with np.errstate(over="ignore", invalid="ignore"):
        mag_sq = arr.real * arr.real + arr.imag * arr.imag
    over = finite & (mag_sq > limit_sq)
    if np.any(over):
        big = arr[over]
        peak = np.maximum(np.abs(big.real), np.abs(big.imag))
        unit = big / peak
        arr[over] = unit / np.abs(unit) * math.sqrt(limit_sq)
    return arr
