"""Read/write helpers for a client's ``metadata.json``."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.layout import METADATA_FILE
from dossier.workspace.models.client import ClientMetadata
from dossier.workspace.store.local import read_json, write_json


async def read_client_metadata(directory: Path) -> ClientMetadata | None:
    """Return the parsed record, ``None`` if the file does not exist.

    A file that exists but does not hold a valid record raises
    ``ClientWorkspaceError``.
    """
    raw = await read_json(directory, METADATA_FILE)
    if raw is None:
        return None
    try:
        return ClientMetadata.model_validate(raw)
    except ValidationError as exc:
        msg = f'Folder "{directory.name}" does not contain valid metadata'
        raise ClientWorkspaceError(msg, exc, directory / METADATA_FILE) from exc


async def write_client_metadata(directory: Path, metadata: ClientMetadata) -> None:
    await write_json(directory, METADATA_FILE, metadata.to_record())


async def touch_client(directory: Path) -> ClientMetadata | None:
    """Bump ``updatedAt``.  No-op for folders without metadata."""
    metadata = await read_client_metadata(directory)
    if metadata is None:
        return None
    metadata = metadata.touched()
    await write_client_metadata(directory, metadata)
    return metadata
