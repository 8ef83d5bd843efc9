"""Workspace root bootstrap.

Stamps a root directory with ``.workspace-marker.json`` the first time it is
opened; afterwards opening it is a read-only no-op.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.layout import REQUIRED_ROOT_DIRECTORIES, WORKSPACE_MARKER_FILE
from dossier.workspace.models.workspace import WorkspaceMarker
from dossier.workspace.store.local import (
    assert_directory_capability,
    ensure_subdirectory,
    path_exists,
    read_json,
    write_json,
)


@dataclass(frozen=True)
class WorkspaceHandle:
    root: Path
    marker: WorkspaceMarker


@dataclass
class EnsureResult:
    missing: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)


async def initialise_workspace(root: Path) -> WorkspaceHandle:
    """Return the root's marker, writing a fresh one only if absent."""
    await assert_directory_capability(root)

    raw = await read_json(root, WORKSPACE_MARKER_FILE)
    if raw is not None:
        try:
            return WorkspaceHandle(root=root, marker=WorkspaceMarker.model_validate(raw))
        except ValidationError as exc:
            msg = "Workspace marker is corrupted"
            raise ClientWorkspaceError(msg, exc, root / WORKSPACE_MARKER_FILE) from exc

    marker = WorkspaceMarker()
    marker = marker.model_copy(update={"updated_at": marker.created_at})
    await write_json(root, WORKSPACE_MARKER_FILE, marker.to_record())
    logger.info("Workspace initialised at {}", root)
    return WorkspaceHandle(root=root, marker=marker)


async def ensure_workspace_directories(
    root: Path,
    confirm: Callable[[str], bool] | None = None,
) -> EnsureResult:
    """Create the root-level folders every workspace carries.

    *confirm* is asked before each creation; a declined or failed creation is
    reported in ``missing`` instead of raising.
    """
    result = EnsureResult()
    for name in REQUIRED_ROOT_DIRECTORIES:
        if await path_exists(root / name):
            continue
        if confirm is not None and not confirm(name):
            result.missing.append(name)
            continue
        try:
            await ensure_subdirectory(root, name)
        except ClientWorkspaceError as exc:
            logger.error("Creating workspace folder {} failed: {}", name, exc)
            result.missing.append(name)
        else:
            result.created.append(name)
    return result
