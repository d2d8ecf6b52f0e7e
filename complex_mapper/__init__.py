"""Top-level public API for the ``complex_mapper`` package.

This module re-exports the mapping core so users can import from a single
namespace, for example:

>>> from complex_mapper import ViewState, MapperConfig  # doctest: +SKIP
>>> view = ViewState("z^2", config=MapperConfig(debounce_ms=0))  # doctest: +SKIP

Lower-level building blocks (expression compiler, derivative provider,
magnitude guard, samplers) are exported for renderers and tests that want to
drive the pipeline directly.
"""

# Optional explicit module handle to avoid callable/module name ambiguity.
from . import numpify as numpify_module
from .config import DEFAULT_CONFIG, MapperConfig
from .debouncing import CoalescingDebouncer
from .derivative import (
    AnalyticDerivative,
    DerivativeMode,
    NumericDerivative,
    TangentProbe,
    derive,
)
from .figure_render import MapStyle, render_figure
from .InputConvert import coerce_point
from .magnitude_guard import MAGNITUDE_LIMIT_SQ, clamp, clamp_array
from .MapSnapshot import MapSnapshot, PointerSample
from .numpify import (
    CompiledExpression,
    ComplexFunction,
    EvaluationError,
    compile_expression,
    numpify,
    numpify_cached,
)
from .ParseExpression import Z, ExpressionParseError, parse_expression
from .presets import PresetKind, disk_points, pacman_points, preset_points
from .sampling import GridSpec, PathPoint, map_point, map_sequence
from .view_state import MapperState, ViewState
