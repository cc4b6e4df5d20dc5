"""Notebook discovery utilities.

Resolves the identifiers used by CI groups into notebook paths. An identifier
is one of:

  - a directory relative to the root (``chapter_optimization``): every
    notebook below it
  - a notebook file name (``convexity.ipynb``): every notebook with that
    name anywhere under the root
  - a relative notebook path (``chapter_optimization/gd.ipynb``)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# Repository root (the directory holding chapter_* folders)
DEFAULT_REPO_ROOT = Path(__file__).resolve().parents[1]

NOTEBOOK_SUFFIX = ".ipynb"

_IGNORE_DIRS = {
    ".git",
    "__pycache__",
    ".ipynb_checkpoints",
    ".pytest_cache",
    "node_modules",
    ".venv",
    "venv",
    "build",
    "dist",
    "test_output",
}


class IdentifierNotFoundError(ValueError):
    def __init__(self, identifier: str, root: Path):
        self.identifier = identifier
        self.root = root
        super().__init__(f"no notebook matches identifier '{identifier}' under {root}")


def _walk_notebooks(directory: Path) -> Iterable[Path]:
    for current, dirnames, filenames in os.walk(directory):
        dirnames[:] = [d for d in dirnames if d not in _IGNORE_DIRS and not d.startswith(".")]
        for fname in filenames:
            if fname.endswith(NOTEBOOK_SUFFIX):
                yield Path(current) / fname


def iter_notebooks(directory: Path) -> List[Path]:
    """All notebooks below ``directory``, sorted by path."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(_walk_notebooks(directory), key=lambda p: p.as_posix())


def resolve_identifier(token: str, root: Optional[Path] = None) -> List[Path]:
    """Expand one identifier into notebook paths.

    Raises:
        IdentifierNotFoundError: nothing under ``root`` matches.
    """
    root = Path(root or DEFAULT_REPO_ROOT).resolve()
    identifier = token.strip().replace("\\", "/").rstrip("/")
    if not identifier:
        raise ValueError("Identifier cannot be empty.")

    candidate = root / identifier
    if candidate.is_dir():
        matches = iter_notebooks(candidate)
    elif candidate.is_file() and candidate.suffix == NOTEBOOK_SUFFIX:
        matches = [candidate]
    elif identifier.endswith(NOTEBOOK_SUFFIX) and "/" not in identifier:
        matches = [p for p in iter_notebooks(root) if p.name == identifier]
    else:
        matches = []

    if not matches:
        raise IdentifierNotFoundError(token, root)
    return matches


def resolve_targets(tokens: Iterable[str], root: Optional[Path] = None, *, strict: bool = True) -> List[Path]:
    """Resolve identifiers in order, keeping the first occurrence of each notebook.

    With ``strict=False`` identifiers that match nothing are logged and skipped.
    """
    root = Path(root or DEFAULT_REPO_ROOT).resolve()
    resolved: List[Path] = []
    seen = set()
    for token in tokens:
        try:
            matches = resolve_identifier(token, root)
        except IdentifierNotFoundError:
            if strict:
                raise
            logger.warning("Skipping identifier '%s': no matching notebook under %s", token, root)
            continue
        for path in matches:
            key = path.resolve()
            if key not in seen:
                seen.add(key)
                resolved.append(path)
    return resolved


def discover_chapters(root: Optional[Path] = None) -> List[Path]:
    """Directories named ``chapter_*`` that hold at least one notebook."""
    root = Path(root or DEFAULT_REPO_ROOT)
    if not root.is_dir():
        return []
    chapters = [
        d for d in root.iterdir()
        if d.is_dir() and d.name.startswith("chapter_") and iter_notebooks(d)
    ]
    return sorted(chapters, key=lambda p: p.name)


def notebook_slug(notebook: Path, root: Optional[Path] = None) -> str:
    """Notebook path relative to the root, or its name when it lies outside."""
    root = Path(root or DEFAULT_REPO_ROOT)
    try:
        return notebook.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return notebook.name


__all__ = [
    "DEFAULT_REPO_ROOT",
    "IdentifierNotFoundError",
    "iter_notebooks",
    "resolve_identifier",
    "resolve_targets",
    "discover_chapters",
    "notebook_slug",
]
