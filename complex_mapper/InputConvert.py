from __future__ import annotations

import math
from typing import Any, Optional

import numpy as np
import sympy as sp

__all__ = ["coerce_point"]


def coerce_point(obj: Any) -> Optional[complex]:
    """
    Convert `obj` to a finite complex point, or pass `None` through.

    Accepted inputs:
    - None (a path break)
    - complex, float, int and NumPy numbers
    - a 2-sequence `(re, im)` of real numbers
    - a string: tried as `complex(s)` first, else parsed and evaluated by SymPy
      (`"1+2*I"`, `"sqrt(2)"`)

    Raises
    ------
    TypeError
        If `obj` is a bool or an unsupported type.
    ValueError
        If conversion fails or the value is not finite.
    """
    if obj is None:
        return None
    if isinstance(obj, (bool, np.bool_)):
        raise TypeError("bool is not a valid point")

    if isinstance(obj, (int, float, complex, np.number)):
        value = complex(obj)
    elif isinstance(obj, str):
        value = _from_string(obj)
    elif isinstance(obj, (tuple, list, np.ndarray)):
        if len(obj) != 2:
            raise ValueError(f"Point pairs need exactly 2 components, got {len(obj)}.")
        re, im = obj
        if isinstance(re, complex) or isinstance(im, complex):
            raise ValueError(f"Point pair components must be real, got {obj!r}.")
        try:
            value = complex(float(re), float(im))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Could not convert {obj!r} to a point.") from e
    else:
        try:
            value = complex(obj)
        except Exception as e:
            raise TypeError(f"Unsupported point type {type(obj).__name__}.") from e

    if not (math.isfinite(value.real) and math.isfinite(value.imag)):
        raise ValueError(f"Point {obj!r} is not finite.")
    return value


def _from_string(s: str) -> complex:
    text = s.strip()
    if text == "":
        raise ValueError("Cannot convert empty string to a point.")

    try:
        return complex(text)
    except ValueError:
        pass

    try:
        return complex(sp.sympify(text).evalf())
    except Exception as e:
        raise ValueError(f"Could not convert {s!r} to a point (neither directly nor via SymPy).") from e
