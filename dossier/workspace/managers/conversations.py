"""Conversation store: append-style JSON logs inside ``<client>/Conversations``.

Each log is a JSON array of ``ConversationEntry`` records.  Older tools wrote
newline-delimited JSON, so every read accepts both shapes.  Writes always
produce the array form and replace the whole file (read-modify-write for
appends).

Passing a ``ClientLockRegistry`` to ``save_conversation`` or
``append_conversation_entries`` serialises the read-modify-write per client.
Without one, two concurrent appends on the same log can lose entries.
"""

from __future__ import annotations

import contextlib
import json
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from pathlib import Path
from typing import Any

from anyio import to_thread
from loguru import logger
from pydantic import ValidationError

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.layout import CONVERSATION_EXTENSION, CONVERSATIONS_DIR, LEGACY_CONVERSATION_FILE
from dossier.workspace.managers.metadata import touch_client
from dossier.workspace.models.client import StructureIssue
from dossier.workspace.models.conversation import ConversationEntry, ConversationFileSummary
from dossier.workspace.models.enums import ConversationRole, StructureIssueType
from dossier.workspace.registry import ClientLockRegistry
from dossier.workspace.store.local import ensure_subdirectory, is_file, read_text, remove_file, write_text

EMPTY_LOG = "[]"

# Epoch values above this are milliseconds (1e11 seconds is year 5138).
_EPOCH_MILLIS_THRESHOLD = 1e11


@dataclass(frozen=True)
class LoadedConversation:
    entries: list[ConversationEntry]
    filename: str


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_conversation_text(text: str) -> list[ConversationEntry]:
    """Parse a log in either supported shape into typed entries.

    JSON array first; a JSON string (double-encoded lines) or a single object
    next; otherwise one JSON record per line, skipping lines that do not
    parse.
    """
    return entries_from_records(parse_conversation_records(text))


def entries_from_records(records: Iterable[Any]) -> list[ConversationEntry]:
    """Typed view of decoded records.

    Records that are not entries at all (not an object, no role) are left out
    with a warning.  Writers work on the raw records, so those stay on disk.
    """
    entries: list[ConversationEntry] = []
    for record in records:
        try:
            entries.append(ConversationEntry.model_validate(record))
        except ValidationError as exc:
            logger.warning("Skipping invalid conversation record: {}", exc.errors()[0]["msg"])
    return entries


def parse_conversation_records(text: str) -> list[Any]:
    """Decoded records of a log, unvalidated and unchanged."""
    if not text.strip():
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return _parse_lines(text)
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        return [parsed]
    if isinstance(parsed, str):
        return _parse_lines(parsed)
    return []


def _parse_lines(text: str) -> list[Any]:
    records = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            logger.warning("Ignoring unparseable conversation line: {!r}", line[:80])
    return records


def serialize_records(records: Iterable[Any]) -> str:
    return json.dumps(list(records), indent=2, ensure_ascii=False)


def summarise_records(records: Iterable[Any]) -> tuple[int, str | None]:
    """Record count and latest timestamp (ISO, UTC) of a decoded log.

    Every record counts.  Timestamps may be ISO strings or epoch numbers in
    seconds or milliseconds.
    """
    count = 0
    latest: str | None = None
    for record in records:
        count += 1
        if not isinstance(record, dict):
            continue
        stamp = normalise_timestamp(record.get("timestamp"))
        if stamp and (latest is None or stamp > latest):
            latest = stamp
    return count, latest


def normalise_timestamp(value: Any) -> str | None:
    """ISO-8601 ``...Z`` form of *value*, or None when it is not a timestamp."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
        try:
            moment = datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, str) and value.strip():
        return value
    return None


# ---------------------------------------------------------------------------
# Filenames and listing
# ---------------------------------------------------------------------------


def generate_conversation_filename(now: datetime | None = None) -> str:
    """``conv-DD-MM-YYYY-HH-mm.json`` in local time."""
    now = now or datetime.now()
    return f"conv-{now:%d-%m-%Y-%H-%M}{CONVERSATION_EXTENSION}"


def build_conversation_entry(
    role: ConversationRole | str,
    content: str,
    metadata: dict[str, Any] | None = None,
) -> ConversationEntry:
    return ConversationEntry(role=ConversationRole(role), content=content, metadata=metadata)


async def ensure_conversations_directory(directory: Path) -> Path:
    return await ensure_subdirectory(directory, CONVERSATIONS_DIR)


async def list_conversation_files(directory: Path) -> list[ConversationFileSummary]:
    """All logs of a client, most recently modified first."""
    conversations_dir = await ensure_conversations_directory(directory)
    try:
        stats = await to_thread.run_sync(partial(_scan_logs, conversations_dir))
    except OSError as exc:
        msg = "Unable to list conversations"
        raise ClientWorkspaceError(msg, exc, conversations_dir) from exc
    return [_summary(directory, name, mtime, size) for name, mtime, size in stats]


async def ensure_default_conversation_file(
    directory: Path,
    issues: list[StructureIssue] | None = None,
) -> ConversationFileSummary:
    """Return the newest log, migrating or creating one when there is none.

    Order: existing logs, then the legacy ``conversation.jsonl`` at the client
    root (migrated and deleted), then a fresh empty log.  Migrations and
    creations are appended to *issues* when given.
    """
    conversations_dir = await ensure_conversations_directory(directory)
    existing = await list_conversation_files(directory)
    if existing:
        return existing[0]

    legacy_path = directory / LEGACY_CONVERSATION_FILE
    if await is_file(legacy_path):
        # Records are carried over verbatim; only the container changes.
        records = parse_conversation_records(await read_text(legacy_path))
        filename = await _available_filename(conversations_dir)
        await write_text(conversations_dir / filename, serialize_records(records))
        await remove_file(legacy_path)
        logger.info("Migrated legacy log of {} ({} records) to {}", directory.name, len(records), filename)
        _report(
            issues,
            StructureIssueType.LEGACY_CONVERSATION_MIGRATED,
            directory,
            filename,
            "Legacy conversation file converted to the JSON format.",
        )
        return await _stat_summary(directory, filename)

    filename = await _available_filename(conversations_dir)
    await write_text(conversations_dir / filename, EMPTY_LOG)
    _report(
        issues,
        StructureIssueType.CONVERSATION_CREATED,
        directory,
        filename,
        "No conversation history found. An empty file was added.",
    )
    return await _stat_summary(directory, filename)


async def get_conversation_file(directory: Path, filename: str | None = None) -> tuple[Path, str]:
    """Resolve a log path; never fails with "no log".

    An explicit *filename* gets ``.json`` when it lacks it and may not exist
    yet; otherwise the newest log, otherwise a freshly created default.
    """
    conversations_dir = await ensure_conversations_directory(directory)
    if filename:
        filename = _log_filename(filename)
    else:
        existing = await list_conversation_files(directory)
        if existing:
            filename = existing[0].filename
        else:
            filename = (await ensure_default_conversation_file(directory)).filename
    return conversations_dir / filename, filename


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------


async def load_conversation(directory: Path, filename: str | None = None) -> LoadedConversation:
    path, filename = await get_conversation_file(directory, filename)
    try:
        text = await read_text(path)
    except FileNotFoundError:
        return LoadedConversation(entries=[], filename=filename)
    return LoadedConversation(entries=parse_conversation_text(text), filename=filename)


async def save_conversation(
    directory: Path,
    entries: Sequence[ConversationEntry],
    filename: str | None = None,
    *,
    locks: ClientLockRegistry | None = None,
) -> str:
    """Overwrite a log with *entries* and bump the client's ``updatedAt``."""
    async with _guard(locks, directory):
        path, filename = await get_conversation_file(directory, filename)
        await _write_log(directory, path, [entry.to_record() for entry in entries])
    return filename


async def append_conversation_entries(
    directory: Path,
    new_entries: Sequence[ConversationEntry],
    filename: str | None = None,
    *,
    locks: ClientLockRegistry | None = None,
) -> LoadedConversation:
    """Read, concatenate, write.  Returns the merged log.

    The existing records are written back as they were read, so keys and
    records this package does not model survive an append.
    """
    async with _guard(locks, directory):
        path, filename = await get_conversation_file(directory, filename)
        try:
            records = parse_conversation_records(await read_text(path))
        except FileNotFoundError:
            records = []
        records.extend(entry.to_record() for entry in new_entries)
        await _write_log(directory, path, records)
    return LoadedConversation(entries=entries_from_records(records), filename=filename)


async def create_conversation_file(directory: Path, desired_name: str | None = None) -> ConversationFileSummary:
    """Create an empty log.

    A generated name that is already taken gets a ``-2``, ``-3``... suffix;
    an explicit *desired_name* that already exists is rejected.
    """
    conversations_dir = await ensure_conversations_directory(directory)
    if desired_name:
        filename = _log_filename(desired_name)
        if await is_file(conversations_dir / filename):
            msg = f'A conversation named "{filename}" already exists.'
            raise ClientWorkspaceError(msg, path=conversations_dir / filename)
    else:
        filename = await _available_filename(conversations_dir)
    await write_text(conversations_dir / filename, EMPTY_LOG)
    logger.info("Created conversation {} for {}", filename, directory.name)
    return await _stat_summary(directory, filename)


async def _write_log(directory: Path, path: Path, records: Sequence[Any]) -> None:
    try:
        await write_text(path, serialize_records(records))
    except ClientWorkspaceError as exc:
        msg = "Failed to save the conversation."
        raise ClientWorkspaceError(msg, exc.cause or exc, path) from exc
    await touch_client(directory)


def _guard(locks: ClientLockRegistry | None, directory: Path) -> contextlib.AbstractAsyncContextManager[Any]:
    if locks is None:
        return contextlib.nullcontext()
    return locks.hold(directory)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _log_filename(name: str) -> str:
    """*name* with the log extension, rejected when it is not a plain file name."""
    if not name.strip() or name in (".", "..") or "/" in name or "\\" in name:
        msg = f'Invalid conversation file name "{name}".'
        raise ClientWorkspaceError(msg)
    if not name.lower().endswith(CONVERSATION_EXTENSION):
        name += CONVERSATION_EXTENSION
    return name


async def _available_filename(conversations_dir: Path) -> str:
    base = generate_conversation_filename()
    stem = base.removesuffix(CONVERSATION_EXTENSION)
    candidate, counter = base, 2
    while await is_file(conversations_dir / candidate):
        candidate = f"{stem}-{counter}{CONVERSATION_EXTENSION}"
        counter += 1
    return candidate


def _report(
    issues: list[StructureIssue] | None,
    issue_type: StructureIssueType,
    directory: Path,
    filename: str,
    message: str,
) -> None:
    if issues is None:
        return
    issues.append(StructureIssue(type=issue_type, path=_relative(directory, filename), message=message))


def _relative(directory: Path, filename: str) -> str:
    return f"{directory.name}/{CONVERSATIONS_DIR}/{filename}"


def _summary(directory: Path, filename: str, mtime: float, size: int) -> ConversationFileSummary:
    modified = datetime.fromtimestamp(mtime, tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return ConversationFileSummary(
        filename=filename,
        path=_relative(directory, filename),
        last_modified=modified,
        size=size,
    )


async def _stat_summary(directory: Path, filename: str) -> ConversationFileSummary:
    path = directory / CONVERSATIONS_DIR / filename
    st = await to_thread.run_sync(path.stat)
    return _summary(directory, filename, st.st_mtime, st.st_size)


def _scan_logs(conversations_dir: Path) -> list[tuple[str, float, int]]:
    """``(name, mtime, size)`` for every log, newest first."""
    found = []
    with os.scandir(conversations_dir) as it:
        for entry in it:
            if not entry.is_file() or entry.name.startswith("."):
                continue
            if not entry.name.lower().endswith(CONVERSATION_EXTENSION):
                continue
            st = entry.stat()
            found.append((entry.name, st.st_mtime, st.st_size))
    found.sort(key=lambda item: (item[1], item[0]), reverse=True)
    return found
