"""Global pytest configuration.

External pytest plugins are not auto-loaded so that environment-provided
plugins cannot interfere with test discovery and capture. Figures are drawn
with the non-interactive Agg backend.
"""

import os
import logging
import sys
import warnings
from pathlib import Path

import pytest

os.environ.setdefault("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")
os.environ.setdefault("MPLBACKEND", "Agg")
# Torch debug logging fires from atexit hooks after pytest closed its capture streams.
os.environ.pop("TORCH_LOGS", None)

REPO_ROOT = Path(__file__).resolve().parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

warnings.filterwarnings(
    "ignore",
    message="Matplotlib is currently using agg",
    category=UserWarning,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """The CLI callback reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    if "matplotlib.pyplot" in sys.modules:
        sys.modules["matplotlib.pyplot"].close("all")
