#!/usr/bin/env python3
"""
optbook - notebook smoke tests and chapter figures (Typer)

    python -m cli.optbook groups list
    python -m cli.optbook notebooks run CH11
    python -m cli.optbook plot convexity --output figures/convexity.svg
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import typer

from optbook.defaults import DEFAULT_CELL_TIMEOUT_SECONDS, DEFAULT_KERNEL_NAME, DEFAULT_OUTPUT_DIR
from optbook.discovery import DEFAULT_REPO_ROOT, IdentifierNotFoundError, notebook_slug, resolve_targets
from optbook.logger import setup_logging
from optbook.notebooks.groups import GroupConfigError, UnknownGroupError, get_group, load_groups

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


# =============================================================================
# ENV LOADING
# =============================================================================

def load_env() -> None:
    """Load .env and .env.local files; .env.local wins over the environment."""
    for env_name in [".env", ".env.local"]:
        env_file = REPO_ROOT / env_name
        if env_file.exists():
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, _, value = line.partition("=")
                        key = key.strip()
                        value = value.strip().strip('"').strip("'")
                        if env_name == ".env.local" or key not in os.environ:
                            if key and value:
                                os.environ[key] = value


load_env()


class FigureChoice(str, Enum):
    convexity = "convexity"
    jensen = "jensen"
    gd = "gd"


def _rewrite_help_aliases(argv: List[str]) -> List[str]:
    """Support `optbook help` and `optbook <category> help` as help aliases."""
    if len(argv) > 1 and argv[1] == "help":
        return [argv[0], "help", *argv[2:]]
    if len(argv) > 2 and argv[2] == "help":
        return [argv[0], "help", argv[1], *argv[3:]]
    return argv


def _fail(message: str, code: int = EXIT_USAGE) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=code)


def _load_groups_or_exit(groups_file: Optional[Path]):
    try:
        return load_groups(groups_file)
    except GroupConfigError as exc:
        _fail(str(exc))


# =============================================================================
# Typer app + subcommands
# =============================================================================

app = typer.Typer(
    name="optbook",
    help="Optimization chapter notebooks: smoke tests and figures",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
groups_app = typer.Typer(help="Inspect CI notebook groups")
notebooks_app = typer.Typer(help="Resolve and execute notebooks")


@app.callback()
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    log_format: str = typer.Option("text", "--log-format", help="File log format: text or json"),
) -> None:
    setup_logging(level="DEBUG" if verbose else "INFO", log_file=log_file, log_format=log_format)
    ctx.obj = {"verbose": verbose}


# =============================================================================
# Category: groups
# =============================================================================

@groups_app.command("list", help="List group names and their identifiers")
def groups_list(
    groups_file: Optional[Path] = typer.Option(None, "--groups-file", help="YAML file overriding the default groups"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    groups = _load_groups_or_exit(groups_file)
    if json_output:
        typer.echo(json.dumps(groups, indent=2))
        return
    for name in sorted(groups):
        typer.echo(f"{name}: {' '.join(groups[name])}")


@groups_app.command("show", help="Show the identifiers of one group")
def groups_show(
    name: str = typer.Argument(..., help="Group name, e.g. CH11"),
    groups_file: Optional[Path] = typer.Option(None, "--groups-file", help="YAML file overriding the default groups"),
) -> None:
    groups = _load_groups_or_exit(groups_file)
    try:
        identifiers = get_group(name, groups)
    except UnknownGroupError as exc:
        _fail(str(exc))
    for identifier in identifiers:
        typer.echo(identifier)


# =============================================================================
# Category: notebooks
# =============================================================================

def _runner_config(timeout: int, kernel: str, output_dir: Path, fail_fast: bool, dry_run: bool, jupyter: str):
    from optbook.harness.notebook_runner import RunnerConfig

    try:
        return RunnerConfig(
            timeout_seconds=timeout,
            kernel_name=kernel,
            output_dir=output_dir,
            jupyter_executable=jupyter,
            fail_fast=fail_fast,
            dry_run=dry_run,
        )
    except ValueError as exc:
        _fail(str(exc))


def _report(summary) -> int:
    for result in summary.results:
        typer.echo(f"{result.status.value:8s} {result.notebook}")
    for failure in summary.failures:
        typer.echo(f"\n--- {failure.notebook} ({failure.status.value}) ---", err=True)
        if failure.error:
            typer.echo(failure.error, err=True)
    return EXIT_OK if summary.succeeded else EXIT_FAILED


@notebooks_app.command("run", help="Execute every notebook of the given group(s)")
def notebooks_run(
    groups: List[str] = typer.Argument(..., help="Group name(s), e.g. CH11_THEORY"),
    timeout: int = typer.Option(DEFAULT_CELL_TIMEOUT_SECONDS, "--timeout", help="Per-cell timeout in seconds"),
    kernel: str = typer.Option(DEFAULT_KERNEL_NAME, "--kernel", help="Jupyter kernel name"),
    output_dir: Path = typer.Option(DEFAULT_OUTPUT_DIR, "--output-dir", help="Where HTML renderings are written"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop after the first failing notebook"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the commands without executing"),
    jupyter: str = typer.Option("jupyter", "--jupyter", help="Jupyter executable"),
    groups_file: Optional[Path] = typer.Option(None, "--groups-file", help="YAML file overriding the default groups"),
    root: Path = typer.Option(DEFAULT_REPO_ROOT, "--root", help="Repository root holding the notebooks"),
) -> None:
    from optbook.harness.notebook_runner import RunSummary, run_notebooks

    config = _runner_config(timeout, kernel, output_dir, fail_fast, dry_run, jupyter)
    known = _load_groups_or_exit(groups_file)
    try:
        resolved = [(name, resolve_targets(get_group(name, known), root)) for name in groups]
    except (UnknownGroupError, IdentifierNotFoundError) as exc:
        _fail(str(exc))

    combined = RunSummary(group=" ".join(groups))
    # A notebook named by several groups runs once, under the first group naming it.
    seen = set()
    for name, notebooks in resolved:
        notebooks = [nb for nb in notebooks if nb.resolve() not in seen]
        seen.update(nb.resolve() for nb in notebooks)
        if not notebooks:
            continue
        summary = run_notebooks(notebooks, config, root, group=name, write_summary=False)
        combined.results.extend(summary.results)
        combined.duration_s += summary.duration_s
        if config.fail_fast and not summary.succeeded:
            break
    combined.write(config.output_dir)
    raise typer.Exit(code=_report(combined))


@notebooks_app.command("targets", help="Execute notebooks named by explicit identifiers")
def notebooks_targets(
    identifiers: List[str] = typer.Argument(..., help="Chapter directories, notebook names or paths"),
    timeout: int = typer.Option(DEFAULT_CELL_TIMEOUT_SECONDS, "--timeout", help="Per-cell timeout in seconds"),
    kernel: str = typer.Option(DEFAULT_KERNEL_NAME, "--kernel", help="Jupyter kernel name"),
    output_dir: Path = typer.Option(DEFAULT_OUTPUT_DIR, "--output-dir", help="Where HTML renderings are written"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop after the first failing notebook"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the commands without executing"),
    jupyter: str = typer.Option("jupyter", "--jupyter", help="Jupyter executable"),
    root: Path = typer.Option(DEFAULT_REPO_ROOT, "--root", help="Repository root holding the notebooks"),
) -> None:
    from optbook.harness.notebook_runner import run_notebooks

    config = _runner_config(timeout, kernel, output_dir, fail_fast, dry_run, jupyter)
    try:
        notebooks = resolve_targets(identifiers, root)
    except IdentifierNotFoundError as exc:
        _fail(str(exc))
    summary = run_notebooks(notebooks, config, root)
    raise typer.Exit(code=_report(summary))


@notebooks_app.command("resolve", help="Print the notebooks a group expands to")
def notebooks_resolve(
    group: str = typer.Argument(..., help="Group name"),
    groups_file: Optional[Path] = typer.Option(None, "--groups-file", help="YAML file overriding the default groups"),
    root: Path = typer.Option(DEFAULT_REPO_ROOT, "--root", help="Repository root holding the notebooks"),
) -> None:
    known = _load_groups_or_exit(groups_file)
    try:
        notebooks = resolve_targets(get_group(group, known), root)
    except (UnknownGroupError, IdentifierNotFoundError) as exc:
        _fail(str(exc))
    for notebook in notebooks:
        typer.echo(notebook_slug(notebook, root))


# =============================================================================
# Category: plot
# =============================================================================

@app.command("plot", help="Render a chapter figure to a file")
def plot_figure(
    figure: FigureChoice = typer.Argument(..., help="Figure to render", show_choices=True),
    output: Path = typer.Option(..., "--output", "-o", help="Output path (.png, .svg, .pdf)"),
) -> None:
    from optbook.figures import FIGURES
    from optbook.plotting import close_all, save_figure

    try:
        save_figure(FIGURES[figure.value](), output)
    finally:
        close_all()
    typer.echo(str(output))


@app.command("help", help="Show help (alias for --help)")
def help_command(topic: Optional[List[str]] = typer.Argument(None, help="Command or category to show help for")) -> None:
    click_cmd = typer.main.get_command(app)
    args = ["--help"] if not topic else [*topic, "--help"]
    try:
        click_cmd.main(args=args, prog_name="optbook", standalone_mode=False)
    except SystemExit as exc:
        raise typer.Exit(code=exc.code or 0)


app.add_typer(groups_app, name="groups")
app.add_typer(notebooks_app, name="notebooks")


# =============================================================================
# Main entry point
# =============================================================================

def main() -> int:
    sys.argv = _rewrite_help_aliases(sys.argv)
    try:
        app()
    except SystemExit as exc:  # Typer raises SystemExit
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
