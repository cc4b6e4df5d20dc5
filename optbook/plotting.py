"""Line-chart helpers used throughout the chapter notebooks.

The helpers wrap matplotlib the same way in every notebook so that figures
have a consistent size and axis styling. Everything accepts tensors, NumPy
arrays or lists.
"""

from __future__ import annotations

import itertools
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import matplotlib

if "IPython" not in sys.modules and not os.environ.get("DISPLAY") and "MPLBACKEND" not in os.environ:
    # Headless CI and pytest runs have no display to draw on.
    matplotlib.use("Agg")

from matplotlib import pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure

import torch

from optbook.tensor_utils import arange, map_scalar, to_numpy

logger = logging.getLogger(__name__)

DEFAULT_FIGSIZE: Tuple[float, float] = (3.5, 2.5)
DEFAULT_FMTS: Tuple[str, ...] = ("-", "m--", "g-.", "r:")


def use_svg_display() -> None:
    """Render inline notebook figures as SVG. No-op outside IPython."""
    if "IPython" not in sys.modules:
        return
    from matplotlib_inline import backend_inline

    backend_inline.set_matplotlib_formats("svg")


def set_figsize(figsize: Tuple[float, float] = DEFAULT_FIGSIZE) -> None:
    use_svg_display()
    plt.rcParams["figure.figsize"] = figsize


def set_axes(
    axes: Axes,
    xlabel: Optional[str],
    ylabel: Optional[str],
    xlim: Optional[Tuple[float, float]],
    ylim: Optional[Tuple[float, float]],
    xscale: str,
    yscale: str,
    legend: Optional[Sequence[str]],
) -> None:
    """Apply labels, limits, scales and legend to ``axes``."""
    axes.set_xlabel(xlabel)
    axes.set_ylabel(ylabel)
    axes.set_xscale(xscale)
    axes.set_yscale(yscale)
    axes.set_xlim(xlim)
    axes.set_ylim(ylim)
    if legend:
        axes.legend(legend)
    axes.grid()


def _has_one_axis(series: Any) -> bool:
    if hasattr(series, "ndim"):
        return series.ndim == 1 or (series.ndim == 2 and series.shape[0] == 1)
    return isinstance(series, (list, tuple)) and len(series) > 0 and not hasattr(series[0], "__len__")


def _flatten_series(series: Any) -> Any:
    if hasattr(series, "ndim") and series.ndim == 2 and series.shape[0] == 1:
        return series.reshape(-1)
    return series


def plot(
    X: Any,
    Y: Any = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
    legend: Optional[Sequence[str]] = None,
    xlim: Optional[Tuple[float, float]] = None,
    ylim: Optional[Tuple[float, float]] = None,
    xscale: str = "linear",
    yscale: str = "linear",
    fmts: Sequence[str] = DEFAULT_FMTS,
    figsize: Tuple[float, float] = DEFAULT_FIGSIZE,
    axes: Optional[Axes] = None,
) -> Axes:
    """Plot one or more data series as lines.

    ``X`` alone is plotted against its indices. A single ``X`` with a list of
    ``Y`` series plots every series against the same ``X``. Otherwise ``X``
    and ``Y`` are paired series lists and must have the same length.
    """
    if legend is None:
        legend = []
    set_figsize(figsize)
    if axes is None:
        axes = plt.gca()

    if _has_one_axis(X):
        X = [X]
    if Y is None:
        X, Y = [[]] * len(X), X
    elif _has_one_axis(Y):
        Y = [Y]
    if len(X) == 1 and len(Y) > 1:
        X = X * len(Y)
    if len(X) != len(Y):
        raise ValueError(f"got {len(X)} x series for {len(Y)} y series")

    axes.cla()
    for x, y, fmt in zip(X, Y, itertools.cycle(fmts)):
        y = to_numpy(_flatten_series(y))
        if len(x):
            axes.plot(to_numpy(_flatten_series(x)), y, fmt)
        else:
            axes.plot(y, fmt)
    set_axes(axes, xlabel, ylabel, xlim, ylim, xscale, yscale, legend)
    return axes


def annotate(text: str, xy: Tuple[float, float], xytext: Tuple[float, float], axes: Optional[Axes] = None) -> None:
    axes = axes or plt.gca()
    axes.annotate(text, xy=xy, xytext=xytext, arrowprops=dict(arrowstyle="->"))


def show_trace(results: Sequence[float], f: Callable[[float], float], axes: Optional[Axes] = None) -> Axes:
    """Draw a 1-d optimization trace on top of the objective ``f``."""
    if not results:
        raise ValueError("results must contain at least one iterate")
    n = max(abs(min(results)), abs(max(results)), 1e-2)
    f_line = arange(-n, n, 0.01)
    trace = torch.tensor(list(results), dtype=torch.get_default_dtype())
    return plot(
        [f_line, trace],
        [map_scalar(f, f_line), map_scalar(f, trace)],
        "x",
        "f(x)",
        fmts=["-", "-o"],
        axes=axes,
    )


def show_trace_2d(
    f: Callable[[torch.Tensor, torch.Tensor], torch.Tensor],
    results: Sequence[Tuple[float, float]],
    axes: Optional[Axes] = None,
) -> Axes:
    """Contour plot of a 2-d objective with the iterate path drawn on top."""
    set_figsize()
    axes = axes or plt.gca()
    axes.plot(*zip(*results), "-o", color="#ff7f0e")
    x1, x2 = torch.meshgrid(arange(-5.5, 1.0, 0.1), arange(-3.0, 1.0, 0.1), indexing="ij")
    axes.contour(to_numpy(x1), to_numpy(x2), to_numpy(f(x1, x2)), colors="#1f77b4")
    axes.set_xlabel("x1")
    axes.set_ylabel("x2")
    return axes


def save_figure(target: Union[Figure, Axes], path: Union[str, Path], dpi: int = 150) -> Path:
    """Write the figure owning ``target`` to ``path``; the suffix picks the format."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    figure = target.get_figure() if isinstance(target, Axes) else target
    figure.savefig(path, dpi=dpi, bbox_inches="tight")
    logger.info("Saved figure to %s", path)
    return path


def close_all() -> None:
    plt.close("all")


__all__: List[str] = [
    "use_svg_display",
    "set_figsize",
    "set_axes",
    "plot",
    "annotate",
    "show_trace",
    "show_trace_2d",
    "save_figure",
    "close_all",
]
