"""Notebook group configuration."""

from optbook.notebooks.groups import (
    DEFAULT_GROUPS,
    GroupConfigError,
    UnknownGroupError,
    get_group,
    load_groups,
    split_identifiers,
)

__all__ = [
    "DEFAULT_GROUPS",
    "GroupConfigError",
    "UnknownGroupError",
    "get_group",
    "load_groups",
    "split_identifiers",
]
