"""Client folders: structure check, enumeration and creation.

A directory is a client record iff it holds ``metadata.json``.  Reading a
client repairs what is missing (metadata when a fallback name is known,
``documents/``, ``media/``, ``Conversations/``, at least one log) and reports
each repair as a ``StructureIssue`` instead of failing.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.layout import CONVERSATIONS_DIR, DOCUMENTS_DIR, MEDIA_DIR, METADATA_FILE, is_reserved_name
from dossier.workspace.managers.conversations import (
    ensure_default_conversation_file,
    list_conversation_files,
    parse_conversation_records,
    summarise_records,
)
from dossier.workspace.managers.metadata import read_client_metadata, touch_client, write_client_metadata
from dossier.workspace.models.client import ClientMetadata, ClientSummary, StructureIssue
from dossier.workspace.models.conversation import ConversationFileSummary
from dossier.workspace.models.enums import StructureIssueType
from dossier.workspace.naming import display_name_from_slug, name_sort_key, slugify
from dossier.workspace.store.local import (
    count_files,
    create_directory,
    ensure_subdirectory,
    ensure_subdirectory_reported,
    is_file,
    list_subdirectories,
    path_exists,
    read_text,
)

__all__ = [
    "create_client",
    "ensure_client_structure",
    "ensure_documents_directory",
    "ensure_media_directory",
    "is_client_directory",
    "list_clients",
    "touch_client",
]


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


async def ensure_client_structure(directory: Path, fallback_name: str | None = None) -> ClientSummary:
    """Verify and repair a client folder, then compute its summary.

    Raises ``ClientWorkspaceError`` when the folder has no metadata and no
    *fallback_name* was given, or when a sub-entry cannot be read or written.
    """
    slug = directory.name
    issues: list[StructureIssue] = []

    metadata = await read_client_metadata(directory)
    if metadata is None:
        if not fallback_name:
            msg = f'Folder "{slug}" does not contain valid metadata.'
            raise ClientWorkspaceError(msg, path=directory / METADATA_FILE)
        metadata = ClientMetadata(name=fallback_name)
        metadata = metadata.model_copy(update={"updated_at": metadata.created_at})
        await write_client_metadata(directory, metadata)
        issues.append(
            StructureIssue(
                type=StructureIssueType.METADATA_CREATED,
                path=f"{slug}/{METADATA_FILE}",
                message=f"{METADATA_FILE} was recreated for this client folder.",
            )
        )

    documents_dir = await ensure_subdirectory_reported(directory, DOCUMENTS_DIR, issues)
    media_dir = await ensure_subdirectory_reported(directory, MEDIA_DIR, issues)
    await ensure_subdirectory_reported(directory, CONVERSATIONS_DIR, issues)

    conversations = await list_conversation_files(directory)
    if not conversations:
        conversations = [await ensure_default_conversation_file(directory, issues)]

    conversation_lines, last_conversation_at = await _conversation_stats(directory, conversations)

    fields = metadata.model_dump()
    fields.update(
        slug=slug,
        directory=directory,
        conversation_lines=conversation_lines,
        documents_count=await count_files(documents_dir),
        media_count=await count_files(media_dir),
        last_conversation_at=last_conversation_at,
        conversations=conversations,
        structure_issues=issues,
    )
    return ClientSummary.model_validate(fields)


async def _conversation_stats(
    directory: Path,
    conversations: list[ConversationFileSummary],
) -> tuple[int, str | None]:
    """Total records across logs and the latest record timestamp.

    A log that cannot be read or decoded counts as zero records.
    """
    total = 0
    latest: str | None = None
    for conversation in conversations:
        path = directory / CONVERSATIONS_DIR / conversation.filename
        try:
            records = parse_conversation_records(await read_text(path))
        except (OSError, ClientWorkspaceError) as exc:
            logger.warning("Reading conversation {} failed: {}", path, exc)
            continue
        count, stamp = summarise_records(records)
        total += count
        if stamp and (latest is None or stamp > latest):
            latest = stamp
    return total, latest


async def ensure_documents_directory(directory: Path) -> Path:
    return await ensure_subdirectory(directory, DOCUMENTS_DIR)


async def ensure_media_directory(directory: Path) -> Path:
    return await ensure_subdirectory(directory, MEDIA_DIR)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


async def is_client_directory(directory: Path) -> bool:
    """True iff *directory* holds ``metadata.json``."""
    try:
        return await is_file(directory / METADATA_FILE)
    except OSError as exc:
        msg = "Unable to check the client folder."
        raise ClientWorkspaceError(msg, exc, directory) from exc


async def list_clients(root: Path) -> list[ClientSummary]:
    """Structure-check every client folder under *root*, sorted by name.

    Dot-prefixed and reserved folders are skipped.  A folder that fails is
    logged and left out; it never fails the whole listing.
    """
    results: list[ClientSummary] = []
    for name in await list_subdirectories(root):
        if name.startswith(".") or is_reserved_name(name):
            continue
        try:
            summary = await ensure_client_structure(root / name, display_name_from_slug(name) or name)
        except (ClientWorkspaceError, OSError) as exc:
            logger.warning("Skipping client folder {}: {}", name, exc)
            continue
        results.append(summary)
    return sort_clients(results)


def sort_clients(clients: list[ClientSummary]) -> list[ClientSummary]:
    return sorted(clients, key=lambda client: (name_sort_key(client.name), client.slug))


async def create_client(root: Path, slug: str, display_name: str = "") -> ClientSummary:
    """Create ``root/<slugify(slug)>`` and its full structure.

    The sanitised slug must be exactly available: an existing sibling with
    that name is a validation error, never silently suffixed.
    """
    clean = slug.strip()
    if not clean:
        msg = "The folder name cannot be empty."
        raise ClientWorkspaceError(msg)

    folder = slugify(clean)
    if not folder:
        msg = "The folder name contains unsupported characters."
        raise ClientWorkspaceError(msg)
    if is_reserved_name(folder):
        msg = "This name is reserved and cannot be used."
        raise ClientWorkspaceError(msg)

    directory = root / folder
    if await path_exists(directory):
        msg = "A folder with this name already exists. Please choose another name."
        raise ClientWorkspaceError(msg, path=directory)

    try:
        await create_directory(directory)
    except FileExistsError as exc:
        msg = "A folder with this name already exists. Please choose another name."
        raise ClientWorkspaceError(msg, exc, directory) from exc
    except OSError as exc:
        msg = f'Unable to create folder "{folder}".'
        raise ClientWorkspaceError(msg, exc, directory) from exc

    summary = await ensure_client_structure(directory, display_name.strip() or folder)
    logger.info("Client folder created: {} ({})", folder, summary.name)
    return summary.model_copy(update={"structure_issues": []})

