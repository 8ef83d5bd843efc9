from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.managers.clients import (
    create_client,
    ensure_client_structure,
    ensure_documents_directory,
    ensure_media_directory,
    is_client_directory,
    list_clients,
)
from dossier.workspace.models.enums import StructureIssueType


def _conversation_files(directory: Path) -> list[Path]:
    return sorted((directory / "Conversations").glob("*.json"))


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


async def test_structure_repairs_missing_folders(make_client: Callable[..., Path]) -> None:
    directory = make_client("dupont", "Jean Dupont")
    (directory / "Conversations").mkdir()
    (directory / "Conversations" / "conv-01-01-2024-10-00.json").write_text("[]", encoding="utf-8")

    summary = await ensure_client_structure(directory)

    assert (directory / "documents").is_dir()
    assert (directory / "media").is_dir()
    created = [issue for issue in summary.structure_issues if issue.type == StructureIssueType.DIRECTORY_CREATED]
    assert sorted(issue.path for issue in created) == ["dupont/documents", "dupont/media"]
    assert len(summary.structure_issues) == 2


async def test_structure_creates_empty_log(make_client: Callable[..., Path]) -> None:
    directory = make_client("dupont")

    summary = await ensure_client_structure(directory)

    files = _conversation_files(directory)
    assert len(files) == 1
    assert json.loads(files[0].read_text(encoding="utf-8")) == []
    assert summary.conversation_lines == 0
    assert summary.last_conversation_at is None
    types = [issue.type for issue in summary.structure_issues]
    assert StructureIssueType.CONVERSATION_CREATED in types


async def test_structure_migrates_legacy_log(make_client: Callable[..., Path]) -> None:
    directory = make_client("martin")
    lines = [
        {"id": f"e{i}", "timestamp": f"2024-02-0{i}T10:00:00.000Z", "role": "user", "content": f"message {i}"}
        for i in (1, 2, 3)
    ]
    (directory / "conversation.jsonl").write_text("\n".join(json.dumps(line) for line in lines), encoding="utf-8")

    summary = await ensure_client_structure(directory)

    assert not (directory / "conversation.jsonl").exists()
    files = _conversation_files(directory)
    assert len(files) == 1
    migrated = json.loads(files[0].read_text(encoding="utf-8"))
    assert [entry["content"] for entry in migrated] == ["message 1", "message 2", "message 3"]
    assert [entry["id"] for entry in migrated] == ["e1", "e2", "e3"]

    migrations = [
        issue for issue in summary.structure_issues if issue.type == StructureIssueType.LEGACY_CONVERSATION_MIGRATED
    ]
    assert len(migrations) == 1
    assert summary.conversation_lines == 3
    assert summary.last_conversation_at == "2024-02-03T10:00:00.000Z"


async def test_structure_migration_keeps_every_legacy_record(make_client: Callable[..., Path]) -> None:
    directory = make_client("martin")
    records = [
        {"id": 17, "timestamp": 1706781600000, "role": "user", "content": "epoch millis"},
        {"id": "e2", "timestamp": "2024-02-02T10:00:00.000Z", "role": "assistant", "content": "x", "author": "JD"},
        {"id": "e3", "timestamp": "2024-01-15T10:00:00.000Z", "role": "tool", "content": "lookup"},
    ]
    (directory / "conversation.jsonl").write_text("\n".join(json.dumps(r) for r in records), encoding="utf-8")

    summary = await ensure_client_structure(directory)

    (log,) = _conversation_files(directory)
    assert json.loads(log.read_text(encoding="utf-8")) == records
    assert summary.conversation_lines == 3
    assert summary.last_conversation_at == "2024-02-02T10:00:00.000Z"


async def test_structure_counts_records_outside_the_entry_model(make_client: Callable[..., Path]) -> None:
    directory = make_client("martin")
    (directory / "Conversations").mkdir()
    records = [{"note": "no role"}, "free text", {"role": "user", "content": "hi", "timestamp": 1_800_000_000}]
    (directory / "Conversations" / "conv-a.json").write_text(json.dumps(records), encoding="utf-8")

    summary = await ensure_client_structure(directory)

    assert summary.conversation_lines == 3
    assert summary.last_conversation_at == "2027-01-15T08:00:00.000Z"


async def test_structure_counts_undecodable_log_as_empty(make_client: Callable[..., Path]) -> None:
    directory = make_client("martin")
    (directory / "Conversations").mkdir()
    (directory / "Conversations" / "conv-bad.json").write_bytes(b"\xff\xfe not utf-8")
    (directory / "Conversations" / "conv-ok.json").write_text(
        json.dumps([{"role": "user", "content": "hi"}]), encoding="utf-8"
    )

    summary = await ensure_client_structure(directory)

    assert summary.conversation_lines == 1
    assert {c.filename for c in summary.conversations} == {"conv-bad.json", "conv-ok.json"}


async def test_structure_without_metadata_and_fallback_fails(root: Path) -> None:
    (root / "stray").mkdir()

    with pytest.raises(ClientWorkspaceError, match="valid metadata"):
        await ensure_client_structure(root / "stray")


async def test_structure_recreates_metadata_with_fallback(root: Path) -> None:
    (root / "stray").mkdir()

    summary = await ensure_client_structure(root / "stray", "Stray Folder")

    assert summary.name == "Stray Folder"
    assert (root / "stray" / "metadata.json").is_file()
    assert StructureIssueType.METADATA_CREATED in [issue.type for issue in summary.structure_issues]


async def test_structure_counts_documents_and_media(make_client: Callable[..., Path]) -> None:
    directory = make_client("dupont")
    (directory / "documents").mkdir()
    (directory / "documents" / "contract.pdf").write_bytes(b"%PDF")
    (directory / "documents" / "id.png").write_bytes(b"png")
    (directory / "media").mkdir()
    (directory / "media" / "voice.m4a").write_bytes(b"m4a")

    summary = await ensure_client_structure(directory)

    assert summary.documents_count == 2
    assert summary.media_count == 1


async def test_structure_keeps_unknown_metadata_keys(make_client: Callable[..., Path]) -> None:
    directory = make_client("dupont", customField="kept")

    summary = await ensure_client_structure(directory)

    assert summary.metadata.model_extra == {"customField": "kept"}
    assert "slug" not in summary.metadata.to_record()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


async def test_is_client_directory(make_client: Callable[..., Path], root: Path) -> None:
    assert await is_client_directory(make_client("dupont")) is True
    (root / "empty").mkdir()
    assert await is_client_directory(root / "empty") is False
    assert await is_client_directory(root / "missing") is False


async def test_list_clients_skips_reserved_and_hidden(make_client: Callable[..., Path], root: Path) -> None:
    make_client("zoe", "Zoé Laurent")
    make_client("adam", "Adam Martin")
    (root / "templates").mkdir()
    (root / ".hidden").mkdir()

    clients = await list_clients(root)

    assert [client.slug for client in clients] == ["adam", "zoe"]
    assert [client.name for client in clients] == ["Adam Martin", "Zoé Laurent"]


async def test_list_clients_sorts_accent_insensitively(make_client: Callable[..., Path], root: Path) -> None:
    make_client("b", "Eric")
    make_client("a", "Émile")
    make_client("c", "adam")

    clients = await list_clients(root)

    assert [client.name for client in clients] == ["adam", "Émile", "Eric"]


async def test_list_clients_isolates_broken_folder(make_client: Callable[..., Path], root: Path) -> None:
    make_client("good")
    broken = root / "broken"
    broken.mkdir()
    (broken / "metadata.json").write_text("{not json", encoding="utf-8")

    clients = await list_clients(root)

    assert [client.slug for client in clients] == ["good"]


async def test_list_clients_skips_undecodable_metadata(make_client: Callable[..., Path], root: Path) -> None:
    make_client("good")
    broken = root / "broken"
    broken.mkdir()
    (broken / "metadata.json").write_bytes(b'{"name": "\xe9lodie"}')

    clients = await list_clients(root)

    assert [client.slug for client in clients] == ["good"]


async def test_list_clients_adopts_folder_without_metadata(root: Path) -> None:
    (root / "jean_paul").mkdir()

    clients = await list_clients(root)

    assert [client.name for client in clients] == ["Jean Paul"]
    assert (root / "jean_paul" / "metadata.json").is_file()


async def test_create_client(root: Path) -> None:
    summary = await create_client(root, "Amira Belkacem", "Amira Belkacem")

    assert summary.slug == "amira-belkacem"
    assert summary.name == "Amira Belkacem"
    assert summary.structure_issues == []
    for name in ("documents", "media", "Conversations"):
        assert (root / "amira-belkacem" / name).is_dir()
    assert len(_conversation_files(root / "amira-belkacem")) == 1


async def test_create_client_twice_fails(root: Path) -> None:
    await create_client(root, "dupont")

    with pytest.raises(ClientWorkspaceError, match="already exists"):
        await create_client(root, "dupont")

    assert [p.name for p in root.iterdir() if p.name.startswith("dupont")] == ["dupont"]


@pytest.mark.parametrize(
    ("slug", "message"),
    [("   ", "cannot be empty"), ("!!!", "unsupported characters"), ("Templates", "reserved")],
)
async def test_create_client_validation(root: Path, slug: str, message: str) -> None:
    with pytest.raises(ClientWorkspaceError, match=message):
        await create_client(root, slug)
    assert list(root.iterdir()) == []


async def test_ensure_documents_and_media_directories(make_client: Callable[..., Path]) -> None:
    directory = make_client("dupont")

    assert await ensure_documents_directory(directory) == directory / "documents"
    assert await ensure_media_directory(directory) == directory / "media"
    assert (directory / "documents").is_dir()
    assert (directory / "media").is_dir()
