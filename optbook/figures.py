"""Chapter figures that notebooks and the CLI both render."""

from __future__ import annotations

from typing import Callable, Dict

import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from optbook import plotting
from optbook.optimization import convexity, gd
from optbook.tensor_utils import arange, linspace, map_scalar


def convexity_figure() -> Figure:
    """Chords of ``f``, ``g`` and ``h`` between -1.5 and 1 (only ``g`` is nonconvex)."""
    x = arange(-2.0, 2.0, 0.01)
    segment = arange(-1.5, 1.0 + 1e-9, 2.5)
    plotting.use_svg_display()
    fig, axes = plt.subplots(1, 3, figsize=(9, 3))
    for ax, name in zip(axes, ("f", "g", "h")):
        func = convexity.DEMO_FUNCTIONS[name]
        plotting.plot([x, segment], [map_scalar(func, x), map_scalar(func, segment)], axes=ax)
        ax.set_title(f"{name}(x)")
    fig.tight_layout()
    return fig


def jensen_figure() -> Figure:
    """``E[f(X)]`` against ``f(E[X])`` for two-point distributions of ``h``."""
    h = convexity.DEMO_FUNCTIONS["h"]
    weights = linspace(0.0, 1.0, 21)
    gaps = map_scalar(lambda p: convexity.jensen_gap(h, [-2.0, 2.0], [p, 1.0 - p]), weights)
    fig, ax = plt.subplots(figsize=plotting.DEFAULT_FIGSIZE)
    plotting.plot(weights, gaps, "P(X = -2)", "Jensen gap", axes=ax)
    return fig


def gd_figure(eta: float = 0.2) -> Figure:
    """Gradient descent trace on ``f(x) = x^2`` from ``x = 10``."""
    results = gd.gd(eta, gd.f_1d_grad)
    fig, ax = plt.subplots(figsize=plotting.DEFAULT_FIGSIZE)
    plotting.show_trace(results, gd.f_1d, axes=ax)
    return fig


FIGURES: Dict[str, Callable[[], Figure]] = {
    "convexity": convexity_figure,
    "jensen": jensen_figure,
    "gd": gd_figure,
}
