import math

import pytest
import torch
from matplotlib import pyplot as plt
from matplotlib.axes import Axes

from optbook import plotting
from optbook.figures import FIGURES
from optbook.optimization import gd
from optbook.tensor_utils import DomainError, arange


def test_plot_single_series_against_indices():
    ax = plotting.plot([1.0, 2.0, 3.0])
    assert isinstance(ax, Axes)
    lines = ax.get_lines()
    assert len(lines) == 1
    assert list(lines[0].get_xdata()) == [0, 1, 2]


def test_plot_broadcasts_single_x_over_many_y():
    x = arange(0.0, 1.0, 0.25)
    fig, ax = plt.subplots()
    plotting.plot(x, [x, x * 2, x * 3], legend=["a", "b", "c"], axes=ax)
    assert len(ax.get_lines()) == 3
    assert ax.get_legend() is not None


def test_plot_series_count_mismatch():
    x = arange(0.0, 1.0, 0.5)
    with pytest.raises(ValueError, match="x series"):
        plotting.plot([x, x, x], [x, x])


def test_plot_labels_and_scale():
    fig, ax = plt.subplots()
    plotting.plot([1.0, 10.0], [1.0, 100.0], "x", "y", yscale="log", axes=ax)
    assert ax.get_xlabel() == "x"
    assert ax.get_ylabel() == "y"
    assert ax.get_yscale() == "log"


def test_plot_row_tensor_is_one_series():
    y = torch.ones(1, 4)
    ax = plotting.plot(y)
    assert len(ax.get_lines()) == 1


def test_show_trace_draws_objective_and_iterates():
    results = gd.gd(0.2, gd.f_1d_grad)
    ax = plotting.show_trace(results, gd.f_1d)
    assert len(ax.get_lines()) == 2
    assert len(ax.get_lines()[1].get_xdata()) == len(results)


def test_show_trace_requires_results():
    with pytest.raises(ValueError):
        plotting.show_trace([], gd.f_1d)


def test_show_trace_reports_domain_errors():
    with pytest.raises(DomainError):
        plotting.show_trace([0.5, 1.0], math.log)


def test_show_trace_2d():
    results = gd.train_2d(gd.gd_2d(0.1), steps=5)
    ax = plotting.show_trace_2d(gd.f_2d, results)
    assert ax.get_xlabel() == "x1"


def test_save_figure_creates_parent_dirs(tmp_path):
    ax = plotting.plot([1.0, 2.0])
    path = plotting.save_figure(ax, tmp_path / "figs" / "line.png")
    assert path.exists()
    assert path.stat().st_size > 0


@pytest.mark.parametrize("name", sorted(FIGURES))
def test_chapter_figures_render(name, tmp_path):
    fig = FIGURES[name]()
    path = plotting.save_figure(fig, tmp_path / f"{name}.svg")
    assert path.read_text(encoding="utf-8").lstrip().startswith("<?xml")
