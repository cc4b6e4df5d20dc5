"""Tests for the notebook runner.

A fake ``jupyter`` script stands in for nbconvert: it writes the HTML file
into ``--output-dir`` and fails for notebooks whose source contains ``raise``.
"""

import json
import stat
import subprocess
import sys
import time

import pytest

from optbook.harness import notebook_runner
from optbook.harness.notebook_runner import (
    NotebookResult,
    NotebookStatus,
    RunnerConfig,
    RunSummary,
    build_command,
    run_group,
    run_notebook,
    run_notebooks,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="fake jupyter is a shebang script")

FAKE_JUPYTER = """#!{python}
import sys
import time
from pathlib import Path

args = sys.argv[1:]
assert args[0] == "nbconvert", args
out = Path(args[args.index("--output-dir") + 1])
notebook = Path(args[-1])
if "raise" in notebook.read_text():
    sys.stderr.write("Traceback (most recent call last):\\nValueError: boom\\n")
    sys.exit(1)
out.mkdir(parents=True, exist_ok=True)
(out / (notebook.stem + ".html")).write_text("<html></html>")
"""


@pytest.fixture
def fake_jupyter(tmp_path):
    script = tmp_path / "bin" / "jupyter"
    script.parent.mkdir()
    script.write_text(FAKE_JUPYTER.format(python=sys.executable), encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def book(tmp_path):
    root = tmp_path / "book"
    (root / "chapter_a").mkdir(parents=True)
    (root / "chapter_a" / "good.ipynb").write_text('{"cells": []}', encoding="utf-8")
    (root / "chapter_a" / "bad.ipynb").write_text('{"cells": ["raise"]}', encoding="utf-8")
    (root / "chapter_a" / "other.ipynb").write_text('{"cells": []}', encoding="utf-8")
    return root


@pytest.fixture
def config(tmp_path, fake_jupyter):
    return RunnerConfig(timeout_seconds=30, output_dir=tmp_path / "out", jupyter_executable=fake_jupyter)


def test_runner_config_defaults():
    config = RunnerConfig()
    assert config.timeout_seconds == 600
    assert config.kernel_name == "python3"
    assert config.process_timeout_seconds == 1200


def test_runner_config_rejects_non_positive_timeout():
    with pytest.raises(ValueError):
        RunnerConfig(timeout_seconds=0)


def test_build_command(book, config):
    command = build_command(book / "chapter_a" / "good.ipynb", config, book)
    assert command[:5] == [config.jupyter_executable, "nbconvert", "--to", "html", "--execute"]
    assert "--ExecutePreprocessor.timeout=30" in command
    assert "--ExecutePreprocessor.kernel_name=python3" in command
    out_dir = command[command.index("--output-dir") + 1]
    assert out_dir == str((config.output_dir / "chapter_a").resolve())
    assert command[-1].endswith("good.ipynb")


def test_run_notebook_passes(book, config):
    result = run_notebook(book / "chapter_a" / "good.ipynb", config, book)
    assert result.status is NotebookStatus.passed
    assert result.returncode == 0
    assert result.notebook == "chapter_a/good.ipynb"
    assert result.html_path.endswith("good.html")
    assert (config.output_dir / "chapter_a" / "good.html").exists()


def test_run_notebook_failure_keeps_stderr_tail(book, config):
    result = run_notebook(book / "chapter_a" / "bad.ipynb", config, book)
    assert result.status is NotebookStatus.failed
    assert result.failed
    assert result.returncode == 1
    assert "ValueError: boom" in result.error
    assert result.html_path is None


def test_run_notebook_dry_run_does_not_execute(book, config, monkeypatch):
    def _no_popen(*args, **kwargs):
        raise AssertionError("no process may be started in dry-run mode")

    monkeypatch.setattr(subprocess, "Popen", _no_popen)
    config.dry_run = True
    result = run_notebook(book / "chapter_a" / "good.ipynb", config, book, group="SMOKE")
    assert result.status is NotebookStatus.skipped
    assert result.group == "SMOKE"
    assert result.command[1] == "nbconvert"
    assert not result.failed


def test_run_notebook_timeout(book, config, monkeypatch):
    def _timeout(command, cwd, timeout):
        assert timeout == config.process_timeout_seconds
        raise subprocess.TimeoutExpired(command, timeout)

    monkeypatch.setattr(notebook_runner, "_execute", _timeout)
    result = run_notebook(book / "chapter_a" / "good.ipynb", config, book)
    assert result.status is NotebookStatus.timeout
    assert result.error == "TIMEOUT after 60 s"


HANGING_JUPYTER = """#!{python}
import subprocess
import sys
import time
import time

kernel = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(120)"])
with open({pid_file!r}, "w") as f:
    f.write(str(kernel.pid))
time.sleep(120)
"""


def _process_alive(pid):
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return False
    return state != "Z"


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="reads /proc")
def test_run_notebook_timeout_kills_spawned_kernel(book, tmp_path):
    pid_file = tmp_path / "kernel.pid"
    script = tmp_path / "bin" / "hanging-jupyter"
    script.parent.mkdir(exist_ok=True)
    script.write_text(HANGING_JUPYTER.format(python=sys.executable, pid_file=str(pid_file)), encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    config = RunnerConfig(timeout_seconds=1, output_dir=tmp_path / "out", jupyter_executable=str(script))

    start = time.monotonic()
    result = run_notebook(book / "chapter_a" / "good.ipynb", config, book)
    assert result.status is NotebookStatus.timeout
    assert time.monotonic() - start < 30

    kernel_pid = int(pid_file.read_text())
    deadline = time.monotonic() + 10
    while _process_alive(kernel_pid) and time.monotonic() < deadline:
        time.sleep(0.1)
    assert not _process_alive(kernel_pid)


def test_run_notebook_missing_executable(book, config, tmp_path):
    config.jupyter_executable = str(tmp_path / "no-such-jupyter")
    result = run_notebook(book / "chapter_a" / "good.ipynb", config, book)
    assert result.status is NotebookStatus.error
    assert "could not start" in result.error


def test_run_notebooks_writes_summary(book, config):
    notebooks = [book / "chapter_a" / name for name in ("good.ipynb", "bad.ipynb", "other.ipynb")]
    summary = run_notebooks(notebooks, config, book, group="SMOKE")
    assert [r.status for r in summary.results] == [
        NotebookStatus.passed,
        NotebookStatus.failed,
        NotebookStatus.passed,
    ]
    assert not summary.succeeded
    assert [f.notebook for f in summary.failures] == ["chapter_a/bad.ipynb"]
    assert summary.counts["passed"] == 2

    payload = json.loads((config.output_dir / "summary.json").read_text(encoding="utf-8"))
    assert payload["group"] == "SMOKE"
    assert {r["group"] for r in payload["results"]} == {"SMOKE"}
    assert payload["schemaVersion"] == "1.0"
    assert len(payload["results"]) == 3
    assert payload["results"][1]["status"] == "failed"


def test_run_notebooks_fail_fast(book, config):
    config.fail_fast = True
    notebooks = [book / "chapter_a" / name for name in ("bad.ipynb", "good.ipynb")]
    summary = run_notebooks(notebooks, config, book, write_summary=False)
    assert len(summary.results) == 1
    assert not (config.output_dir / "summary.json").exists()


def test_run_group(book, config):
    groups = {"SMOKE": ["good.ipynb", "other.ipynb"]}
    summary = run_group("smoke", config, book, groups)
    assert summary.group == "smoke"
    assert summary.succeeded
    assert [r.notebook for r in summary.results] == ["chapter_a/good.ipynb", "chapter_a/other.ipynb"]


def test_summary_round_trips_through_json():
    summary = RunSummary(group="G", results=[NotebookResult(notebook="a.ipynb", status=NotebookStatus.timeout)])
    loaded = RunSummary.model_validate_json(summary.model_dump_json())
    assert loaded.results[0].status is NotebookStatus.timeout
    assert not loaded.succeeded
