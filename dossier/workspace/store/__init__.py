"""Filesystem primitives and the persisted config record."""

from dossier.workspace.store.config import ConfigStore
from dossier.workspace.store.local import (
    assert_directory_capability,
    ensure_subdirectory,
    ensure_subdirectory_reported,
    read_json,
    write_json,
)

__all__ = [
    "ConfigStore",
    "assert_directory_capability",
    "ensure_subdirectory",
    "ensure_subdirectory_reported",
    "read_json",
    "write_json",
]
