"""CI job groups: group name -> notebook/chapter identifiers.

The mapping is plain data. Values are written the way the workflow env block
writes them, as one space separated string, and may also be YAML lists.
``notebook_groups.yaml`` at the repository root overrides or extends the
defaults below.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from optbook.defaults import GROUPS_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_GROUPS_FILE = Path(__file__).resolve().parents[2] / GROUPS_FILENAME

DEFAULT_GROUPS: Dict[str, str] = {
    "CH11_THEORY": "optimization-intro.ipynb convexity.ipynb",
    "CH11_GD": "gd.ipynb sgd.ipynb momentum.ipynb",
    "CH11_ADAPTIVE": "adagrad.ipynb rmsprop.ipynb adadelta.ipynb adam.ipynb lr-scheduler.ipynb",
    "CH11": "chapter_optimization",
    "REST": "utils",
}


class GroupConfigError(ValueError):
    """The groups file could not be read or has an invalid shape."""


class UnknownGroupError(KeyError):
    def __init__(self, name: str, known: List[str]):
        self.name = name
        self.known = known
        super().__init__(f"unknown group {name!r}; known groups: {', '.join(known) or '(none)'}")

    def __str__(self) -> str:
        return self.args[0]


def split_identifiers(text: str) -> List[str]:
    return text.split()


class GroupsFile(BaseModel):
    """Schema of ``notebook_groups.yaml``."""

    groups: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("groups", mode="before")
    @classmethod
    def _split_strings(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("groups must be a mapping of group name to identifiers")
        normalized = {}
        for name, identifiers in value.items():
            if isinstance(identifiers, str):
                identifiers = split_identifiers(identifiers)
            normalized[str(name)] = identifiers
        return normalized


def _parse(raw: object, source: str) -> Dict[str, List[str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise GroupConfigError(f"{source}: expected a mapping, got {type(raw).__name__}")
    # Accept both {"groups": {...}} and a bare mapping, which may name a group "groups".
    wrapped = set(raw) == {"groups"} and (raw["groups"] is None or isinstance(raw["groups"], dict))
    payload = raw if wrapped else {"groups": raw}
    try:
        return GroupsFile.model_validate(payload).groups
    except ValidationError as exc:
        raise GroupConfigError(f"{source}: {exc}") from exc


def load_groups(path: Optional[Union[str, Path]] = None) -> Dict[str, List[str]]:
    """Default groups overlaid with the YAML file at ``path`` (or the repository default).

    An explicitly given path must exist; the repository default is optional.
    """
    groups = {name: split_identifiers(text) for name, text in DEFAULT_GROUPS.items()}
    if path is None:
        candidate = DEFAULT_GROUPS_FILE
        if not candidate.exists():
            return groups
    else:
        candidate = Path(path)
        if not candidate.exists():
            raise GroupConfigError(f"groups file not found: {candidate}")
    try:
        raw = yaml.safe_load(candidate.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise GroupConfigError(f"{candidate}: invalid YAML: {exc}") from exc
    overrides = _parse(raw, str(candidate))
    logger.debug("Loaded %d group(s) from %s", len(overrides), candidate)
    groups.update(overrides)
    return groups


def get_group(name: str, groups: Optional[Mapping[str, List[str]]] = None) -> List[str]:
    """Identifiers of group ``name``; exact match first, then case-insensitive."""
    if groups is None:
        groups = load_groups()
    if name in groups:
        return list(groups[name])
    folded = {key.upper(): key for key in groups}
    if name.upper() in folded:
        return list(groups[folded[name.upper()]])
    raise UnknownGroupError(name, sorted(groups))


__all__ = [
    "DEFAULT_GROUPS",
    "GroupConfigError",
    "UnknownGroupError",
    "GroupsFile",
    "split_identifiers",
    "load_groups",
    "get_group",
]
