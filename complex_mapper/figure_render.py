"""Plotly rendering of a :class:`MapSnapshot`.

The renderer only reads snapshots. Paths keep their ``None`` breaks, which
Plotly draws as gaps when ``connectgaps`` is off, so broken strokes and
undefined grid samples are never bridged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .MapSnapshot import MapSnapshot
from .sampling import PathPoint

__all__ = ["MapStyle", "path_xy", "render_figure"]


@dataclass(frozen=True)
class MapStyle:
    """Colors and widths used by :func:`render_figure`."""

    grid_color: str = "#CCC"
    grid_width: float = 1.0
    axis_color: str = "#555"
    axis_width: float = 1.0
    path_color: str = "black"
    path_width: float = 2.0
    horizontal_probe_color: str = "red"
    vertical_probe_color: str = "green"
    probe_width: float = 3.0
    height_px: int = 500


def path_xy(points: Sequence[PathPoint]) -> tuple[list[Optional[float]], list[Optional[float]]]:
    """Split a path into Plotly ``x``/``y`` lists, keeping breaks as ``None``."""
    xs: list[Optional[float]] = []
    ys: list[Optional[float]] = []
    for z in points:
        if z is None:
            xs.append(None)
            ys.append(None)
        else:
            xs.append(z.real)
            ys.append(z.imag)
    return xs, ys


def _line(points: Sequence[PathPoint], *, name: str, color: str, width: float) -> go.Scatter:
    xs, ys = path_xy(points)
    return go.Scatter(
        x=xs,
        y=ys,
        mode="lines",
        name=name,
        line=dict(color=color, width=width),
        connectgaps=False,
        hoverinfo="skip",
        showlegend=False,
    )


def _axes(half_x: float, half_y: float, style: MapStyle) -> go.Scatter:
    return _line(
        [complex(-half_x, 0), complex(half_x, 0), None, complex(0, -half_y), complex(0, half_y)],
        name="axes",
        color=style.axis_color,
        width=style.axis_width,
    )


def render_figure(snapshot: MapSnapshot, style: Optional[MapStyle] = None) -> go.Figure:
    """Build a two-panel figure: source plane (left) and destination plane (right).

    Parameters
    ----------
    snapshot : MapSnapshot
        State to draw.
    style : MapStyle, optional
        Colors and widths; defaults to :class:`MapStyle`.

    Returns
    -------
    plotly.graph_objects.Figure
        Figure with traces named ``grid``, ``axes``, ``path`` and, when a
        pointer sample is present, ``probe +1`` and ``probe +i`` in each panel.
    """
    style = style or MapStyle()
    width, height = snapshot.viewport
    aspect = height / width
    src_half = (snapshot.scale_src / 2, snapshot.scale_src / 2 * aspect)
    dst_half = (snapshot.scale_dst / 2, snapshot.scale_dst / 2 * aspect)

    title = snapshot.expression if snapshot.last_error is None else f"{snapshot.expression} (last input rejected)"
    fig = make_subplots(rows=1, cols=2, subplot_titles=("z", f"f(z) = {title}"))

    panels = (
        (1, snapshot.grid_domain, snapshot.domain_path, src_half),
        (2, snapshot.grid_image, snapshot.image_path, dst_half),
    )
    for col, grid, path, (half_x, half_y) in panels:
        fig.add_trace(_line(grid, name="grid", color=style.grid_color, width=style.grid_width), row=1, col=col)
        fig.add_trace(_axes(half_x, half_y, style), row=1, col=col)
        fig.add_trace(_line(path, name="path", color=style.path_color, width=style.path_width), row=1, col=col)
        fig.update_xaxes(range=[-half_x, half_x], showgrid=False, zeroline=False, row=1, col=col)
        fig.update_yaxes(range=[-half_y, half_y], showgrid=False, zeroline=False, row=1, col=col)

    pointer = snapshot.pointer
    if pointer is not None:
        z = pointer.z
        probes = (
            ("probe +1", style.horizontal_probe_color, (z, z + 1), (pointer.value, pointer.horizontal)),
            ("probe +i", style.vertical_probe_color, (z, z + 1j), (pointer.value, pointer.vertical)),
        )
        for name, color, src_segment, dst_segment in probes:
            fig.add_trace(_line(src_segment, name=name, color=color, width=style.probe_width), row=1, col=1)
            fig.add_trace(_line(dst_segment, name=name, color=color, width=style.probe_width), row=1, col=2)

    fig.update_layout(height=style.height_px, margin=dict(l=20, r=20, t=40, b=20), plot_bgcolor="white")
    return fig
