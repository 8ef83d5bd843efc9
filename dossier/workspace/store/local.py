"""Structure primitives for the local workspace tree.

Idempotent building blocks used by every manager: read-JSON-or-None,
write-JSON, get-or-create subdirectory.  Blocking filesystem calls run in
the thread pool through ``anyio.to_thread.run_sync``.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed over the target.  A failed write removes the temporary file, so
a log or metadata record is never left half-written.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from functools import partial
from pathlib import Path
from typing import Any

from anyio import to_thread
from loguru import logger

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.models.client import StructureIssue
from dossier.workspace.models.enums import StructureIssueType


# -- Capability ----------------------------------------------------------------


async def assert_directory_capability(path: Path) -> None:
    """Raise ``ClientWorkspaceError`` unless *path* is a usable read/write directory."""
    usable = await to_thread.run_sync(partial(_is_usable_directory, path))
    if not usable:
        msg = "Directory access is not available for this location"
        raise ClientWorkspaceError(msg, path=path)


# -- JSON records --------------------------------------------------------------


async def read_json(directory: Path, name: str) -> Any | None:
    """Parse ``directory / name``.  Returns ``None`` when the file is absent.

    Unreadable, undecodable or malformed content raises ``ClientWorkspaceError``.
    """
    path = directory / name
    try:
        raw = await to_thread.run_sync(partial(_read_file, path))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Failed to read {name}"
        raise ClientWorkspaceError(msg, exc, path) from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in {name}"
        raise ClientWorkspaceError(msg, exc, path) from exc


async def write_json(directory: Path, name: str, value: Any) -> None:
    data = json.dumps(value, indent=2, ensure_ascii=False)
    await write_text(directory / name, data)


# -- Raw text ------------------------------------------------------------------


async def read_text(path: Path) -> str:
    """Read a UTF-8 file.  Raises ``FileNotFoundError`` if missing.

    Any other read failure, including undecodable bytes, raises
    ``ClientWorkspaceError``.
    """
    try:
        return await to_thread.run_sync(partial(_read_file, path))
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Failed to read {path.name}"
        raise ClientWorkspaceError(msg, exc, path) from exc


async def write_text(path: Path, data: str) -> None:
    try:
        await to_thread.run_sync(partial(_atomic_write, path, data))
    except OSError as exc:
        msg = f"Failed to write {path.name}"
        raise ClientWorkspaceError(msg, exc, path) from exc


async def remove_file(path: Path) -> bool:
    """Delete a file.  Failures are logged, not raised."""
    try:
        await to_thread.run_sync(path.unlink)
    except OSError as exc:
        logger.warning("Could not remove {}: {}", path, exc)
        return False
    return True


# -- Directories ---------------------------------------------------------------


async def ensure_subdirectory(parent: Path, name: str) -> Path:
    """Get-or-create ``parent / name`` without reporting."""
    path = parent / name
    try:
        await to_thread.run_sync(partial(_mkdir, path))
    except OSError as exc:
        msg = f'Unable to create or open folder "{name}"'
        raise ClientWorkspaceError(msg, exc, path) from exc
    return path


async def ensure_subdirectory_reported(parent: Path, name: str, issues: list[StructureIssue]) -> Path:
    """Get-or-create ``parent / name``; a creation is appended to *issues*."""
    path = parent / name
    try:
        exists = await to_thread.run_sync(path.is_dir)
    except OSError as exc:
        msg = f'Unable to access folder "{name}"'
        raise ClientWorkspaceError(msg, exc, path) from exc
    if exists:
        return path

    await ensure_subdirectory(parent, name)
    issues.append(
        StructureIssue(
            type=StructureIssueType.DIRECTORY_CREATED,
            path=f"{parent.name}/{name}",
            message=f'The "{name}" subfolder was missing and has been created.',
        )
    )
    logger.info("Created missing folder {}", path)
    return path


async def count_files(directory: Path) -> int:
    """Number of plain files directly inside *directory*."""
    try:
        return await to_thread.run_sync(partial(_count_files, directory))
    except OSError as exc:
        msg = f"Unable to list {directory.name}"
        raise ClientWorkspaceError(msg, exc, directory) from exc


async def list_subdirectories(directory: Path) -> list[str]:
    try:
        return await to_thread.run_sync(partial(_list_subdirectories, directory))
    except OSError as exc:
        msg = f"Unable to list {directory.name}"
        raise ClientWorkspaceError(msg, exc, directory) from exc


async def create_directory(path: Path) -> None:
    """Create exactly *path*.  Raises ``FileExistsError`` if the name is taken."""
    await to_thread.run_sync(partial(path.mkdir, parents=False, exist_ok=False))


async def path_exists(path: Path) -> bool:
    return await to_thread.run_sync(path.exists)


async def is_file(path: Path) -> bool:
    return await to_thread.run_sync(path.is_file)


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    The temp file lives in the target directory so ``os.replace`` is atomic
    on POSIX and Windows alike.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _mkdir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _count_files(directory: Path) -> int:
    with os.scandir(directory) as it:
        return sum(1 for entry in it if entry.is_file())


def _list_subdirectories(directory: Path) -> list[str]:
    with os.scandir(directory) as it:
        return sorted(entry.name for entry in it if entry.is_dir())


def _is_usable_directory(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.R_OK | os.W_OK | os.X_OK)
