"""Execute chapter notebooks as smoke tests.

Each notebook is executed once with ``jupyter nbconvert --execute --to html``
in its own subprocess, so a crashing kernel cannot take the runner down. The
HTML rendering lands under the output directory, mirroring the notebook's
path relative to the repository root, and a ``summary.json`` describing the
run is written next to it.

There is no retry: a notebook either runs every cell without raising, or it
is reported as failed.

nbconvert is started in a new session. When the process timeout expires the
whole process group is killed, which takes the kernel nbconvert spawned down
with it. A kernel that moves itself into yet another session is out of reach
and exits only once it notices its parent is gone. On platforms without
``os.killpg`` only nbconvert itself is killed.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from optbook.defaults import (
    PROCESS_TIMEOUT_MULTIPLIER,
    STDERR_TAIL_LINES,
    SUMMARY_FILENAME,
    get_defaults,
)
from optbook.discovery import DEFAULT_REPO_ROOT, notebook_slug, resolve_targets
from optbook.logger import log_notebook_complete, log_notebook_error, log_notebook_start
from optbook.notebooks.groups import get_group

logger = logging.getLogger(__name__)


class NotebookStatus(str, Enum):
    passed = "passed"
    failed = "failed"
    timeout = "timeout"
    error = "error"
    skipped = "skipped"


_FAILING = {NotebookStatus.failed, NotebookStatus.timeout, NotebookStatus.error}


@dataclass
class RunnerConfig:
    timeout_seconds: int = field(default_factory=lambda: get_defaults().timeout_seconds)
    kernel_name: str = field(default_factory=lambda: get_defaults().kernel_name)
    output_dir: Path = field(default_factory=lambda: get_defaults().output_dir)
    jupyter_executable: str = field(default_factory=lambda: get_defaults().jupyter_executable)
    fail_fast: bool = field(default_factory=lambda: get_defaults().fail_fast)
    dry_run: bool = field(default_factory=lambda: get_defaults().dry_run)

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.output_dir = Path(self.output_dir)

    @property
    def process_timeout_seconds(self) -> int:
        return self.timeout_seconds * PROCESS_TIMEOUT_MULTIPLIER


class NotebookResult(BaseModel):
    """Outcome of executing one notebook."""

    notebook: str = Field(..., description="Notebook path relative to the repository root")
    group: Optional[str] = Field(None, description="Group the notebook was run for")
    status: NotebookStatus
    duration_s: float = Field(0.0, description="Wall time of the nbconvert process")
    returncode: Optional[int] = None
    command: List[str] = Field(default_factory=list)
    html_path: Optional[str] = None
    error: Optional[str] = Field(None, description="Tail of stderr or the reason the run did not start")

    schemaVersion: str = Field("1.0", description="Schema version for forward compatibility")

    @property
    def failed(self) -> bool:
        return self.status in _FAILING


class RunSummary(BaseModel):
    """All notebook results of one runner invocation."""

    group: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    duration_s: float = 0.0
    results: List[NotebookResult] = Field(default_factory=list)

    schemaVersion: str = Field("1.0", description="Schema version for forward compatibility")

    @property
    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in NotebookStatus}
        for result in self.results:
            totals[result.status.value] += 1
        return totals

    @property
    def succeeded(self) -> bool:
        return not any(result.failed for result in self.results)

    @property
    def failures(self) -> List[NotebookResult]:
        return [result for result in self.results if result.failed]

    def write(self, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / SUMMARY_FILENAME
        payload = self.model_dump_json(indent=2)
        path.write_text(payload, encoding="utf-8")
        return path


def _output_dir_for(notebook: Path, config: RunnerConfig, root: Path) -> Path:
    slug = notebook_slug(notebook, root)
    return (config.output_dir / Path(slug).parent).resolve()


def build_command(notebook: Path, config: RunnerConfig, root: Optional[Path] = None) -> List[str]:
    """The nbconvert invocation that executes ``notebook`` and renders it to HTML."""
    root = Path(root or DEFAULT_REPO_ROOT)
    return [
        config.jupyter_executable,
        "nbconvert",
        "--to",
        "html",
        "--execute",
        f"--ExecutePreprocessor.timeout={config.timeout_seconds}",
        f"--ExecutePreprocessor.kernel_name={config.kernel_name}",
        "--output-dir",
        str(_output_dir_for(notebook, config, root)),
        str(Path(notebook).resolve()),
    ]


def _tail(text: Optional[str], lines: int = STDERR_TAIL_LINES) -> Optional[str]:
    if not text:
        return None
    return "\n".join(text.strip().splitlines()[-lines:])


def _kill_process_group(process: subprocess.Popen) -> None:
    if hasattr(os, "killpg"):
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
    process.kill()


def _execute(command: List[str], cwd: str, timeout: int) -> subprocess.CompletedProcess:
    """Like ``subprocess.run``, but a timeout kills the process group, not just the leader."""
    with subprocess.Popen(
        command,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        start_new_session=True,
    ) as process:
        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_process_group(process)
            # Reap the leader; the pipes close once the whole group is gone.
            process.communicate()
            raise
    return subprocess.CompletedProcess(command, process.returncode, stdout, stderr)


def run_notebook(
    notebook: Path,
    config: Optional[RunnerConfig] = None,
    root: Optional[Path] = None,
    *,
    group: Optional[str] = None,
) -> NotebookResult:
    """Execute one notebook; failures are reported in the result, never raised."""
    config = config or RunnerConfig()
    root = Path(root or DEFAULT_REPO_ROOT)
    notebook = Path(notebook)
    slug = notebook_slug(notebook, root)
    command = build_command(notebook, config, root)

    if config.dry_run:
        logger.info("Dry run: %s", " ".join(command))
        return NotebookResult(notebook=slug, group=group, status=NotebookStatus.skipped, command=command)

    html_path = _output_dir_for(notebook, config, root) / f"{notebook.stem}.html"
    log_notebook_start(logger, slug, group)
    start = time.perf_counter()
    try:
        completed = _execute(command, str(notebook.resolve().parent), config.process_timeout_seconds)
    except subprocess.TimeoutExpired:
        duration = time.perf_counter() - start
        message = f"TIMEOUT after {config.process_timeout_seconds} s"
        log_notebook_error(logger, slug, message, group)
        return NotebookResult(
            notebook=slug,
            group=group,
            status=NotebookStatus.timeout,
            duration_s=duration,
            command=command,
            error=message,
        )
    except OSError as exc:
        message = f"could not start {config.jupyter_executable!r}: {exc}"
        log_notebook_error(logger, slug, message, group)
        return NotebookResult(notebook=slug, group=group, status=NotebookStatus.error, command=command, error=message)

    duration = time.perf_counter() - start
    if completed.returncode == 0:
        log_notebook_complete(logger, slug, duration, group)
        return NotebookResult(
            notebook=slug,
            group=group,
            status=NotebookStatus.passed,
            duration_s=duration,
            returncode=0,
            command=command,
            html_path=str(html_path),
        )

    error = _tail(completed.stderr) or f"nbconvert exited with code {completed.returncode}"
    log_notebook_error(logger, slug, error.splitlines()[-1], group)
    return NotebookResult(
        notebook=slug,
        group=group,
        status=NotebookStatus.failed,
        duration_s=duration,
        returncode=completed.returncode,
        command=command,
        html_path=str(html_path) if html_path.exists() else None,
        error=error,
    )


def run_notebooks(
    notebooks: Sequence[Path],
    config: Optional[RunnerConfig] = None,
    root: Optional[Path] = None,
    *,
    group: Optional[str] = None,
    write_summary: bool = True,
) -> RunSummary:
    """Execute notebooks sequentially; with ``fail_fast`` stop after the first failure."""
    config = config or RunnerConfig()
    root = Path(root or DEFAULT_REPO_ROOT)
    summary = RunSummary(group=group)
    start = time.perf_counter()
    for notebook in notebooks:
        result = run_notebook(notebook, config, root, group=group)
        summary.results.append(result)
        if result.failed and config.fail_fast:
            logger.warning("Stopping after first failure (--fail-fast)")
            break
    summary.duration_s = time.perf_counter() - start
    counts = summary.counts
    logger.info(
        "%d notebook(s): %d passed, %d failed, %d timed out, %d errored, %d skipped",
        len(summary.results),
        counts["passed"],
        counts["failed"],
        counts["timeout"],
        counts["error"],
        counts["skipped"],
    )
    if write_summary:
        path = summary.write(config.output_dir)
        logger.debug("Wrote run summary to %s", path)
    return summary


def run_group(
    name: str,
    config: Optional[RunnerConfig] = None,
    root: Optional[Path] = None,
    groups: Optional[Mapping[str, List[str]]] = None,
) -> RunSummary:
    """Look up group ``name``, resolve its identifiers and execute the notebooks.

    Raises:
        UnknownGroupError: ``name`` is not a configured group.
        IdentifierNotFoundError: an identifier of the group matches no notebook.
    """
    root = Path(root or DEFAULT_REPO_ROOT)
    identifiers = get_group(name, groups)
    notebooks = resolve_targets(identifiers, root)
    logger.info("Group %s: %d notebook(s) from %s", name, len(notebooks), " ".join(identifiers))
    return run_notebooks(notebooks, config, root, group=name)


__all__ = [
    "NotebookStatus",
    "RunnerConfig",
    "NotebookResult",
    "RunSummary",
    "build_command",
    "run_notebook",
    "run_notebooks",
    "run_group",
]
