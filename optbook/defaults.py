"""Default values for the notebook runner.

All defaults can be overridden by CLI flags (``--timeout``, ``--kernel``,
``--output-dir``, ...). Environment variables are not consulted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

# Per-cell execution timeout handed to nbconvert.
DEFAULT_CELL_TIMEOUT_SECONDS = 600
# The whole nbconvert process gets this many cell timeouts before it is killed.
PROCESS_TIMEOUT_MULTIPLIER = 2
DEFAULT_KERNEL_NAME = "python3"
DEFAULT_OUTPUT_DIR = Path("test_output")
SUMMARY_FILENAME = "summary.json"
GROUPS_FILENAME = "notebook_groups.yaml"
# Lines of stderr kept on failed notebooks.
STDERR_TAIL_LINES = 40


@dataclass
class RunnerDefaults:
    timeout_seconds: int = DEFAULT_CELL_TIMEOUT_SECONDS
    kernel_name: str = DEFAULT_KERNEL_NAME
    output_dir: Path = DEFAULT_OUTPUT_DIR
    jupyter_executable: str = "jupyter"
    fail_fast: bool = False
    dry_run: bool = False


_defaults = RunnerDefaults()


def get_defaults() -> RunnerDefaults:
    return _defaults
