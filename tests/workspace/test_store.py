"""Unit tests for the filesystem primitives and ConfigStore.

No network required -- uses a temporary directory.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.models.enums import StructureIssueType
from dossier.workspace.store.config import ConfigStore
from dossier.workspace.store.local import (
    assert_directory_capability,
    count_files,
    ensure_subdirectory,
    ensure_subdirectory_reported,
    read_json,
    read_text,
    write_json,
    write_text,
)


async def test_write_and_read_json(tmp_path: Path) -> None:
    await write_json(tmp_path, "record.json", {"name": "Élodie", "tags": ["a"]})

    assert await read_json(tmp_path, "record.json") == {"name": "Élodie", "tags": ["a"]}
    # Non-ASCII is stored as is.
    assert "Élodie" in (tmp_path / "record.json").read_text(encoding="utf-8")


async def test_read_json_missing_returns_none(tmp_path: Path) -> None:
    assert await read_json(tmp_path, "absent.json") is None


async def test_read_json_invalid_raises(tmp_path: Path) -> None:
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ClientWorkspaceError) as exc_info:
        await read_json(tmp_path, "broken.json")
    assert exc_info.value.path == tmp_path / "broken.json"


async def test_read_text_missing_raises_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        await read_text(tmp_path / "absent.txt")


async def test_read_json_undecodable_bytes_raise_workspace_error(tmp_path: Path) -> None:
    (tmp_path / "latin1.json").write_bytes(b'{"name": "\xe9lodie"}')

    with pytest.raises(ClientWorkspaceError, match="Failed to read latin1.json") as exc_info:
        await read_json(tmp_path, "latin1.json")
    assert isinstance(exc_info.value.cause, UnicodeDecodeError)
    assert exc_info.value.path == tmp_path / "latin1.json"


async def test_read_text_undecodable_bytes_raise_workspace_error(tmp_path: Path) -> None:
    (tmp_path / "log.json").write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(ClientWorkspaceError) as exc_info:
        await read_text(tmp_path / "log.json")
    assert isinstance(exc_info.value.cause, UnicodeDecodeError)


async def test_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    await write_text(tmp_path / "log.json", "[]")
    await write_text(tmp_path / "log.json", "[1]")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["log.json"]
    assert (tmp_path / "log.json").read_text(encoding="utf-8") == "[1]"


async def test_write_text_creates_parent(tmp_path: Path) -> None:
    await write_text(tmp_path / "nested" / "deeper" / "file.txt", "hello")

    assert (tmp_path / "nested" / "deeper" / "file.txt").read_text(encoding="utf-8") == "hello"


async def test_write_text_into_file_path_raises(tmp_path: Path) -> None:
    (tmp_path / "blocker").write_text("x", encoding="utf-8")

    with pytest.raises(ClientWorkspaceError):
        await write_text(tmp_path / "blocker" / "file.txt", "data")


async def test_ensure_subdirectory_is_idempotent(tmp_path: Path) -> None:
    first = await ensure_subdirectory(tmp_path, "documents")
    second = await ensure_subdirectory(tmp_path, "documents")

    assert first == second == tmp_path / "documents"
    assert first.is_dir()


async def test_ensure_subdirectory_reported_only_on_creation(tmp_path: Path) -> None:
    issues = []
    await ensure_subdirectory_reported(tmp_path, "media", issues)
    await ensure_subdirectory_reported(tmp_path, "media", issues)

    assert len(issues) == 1
    assert issues[0].type == StructureIssueType.DIRECTORY_CREATED
    assert issues[0].path == f"{tmp_path.name}/media"


async def test_count_files_ignores_directories(tmp_path: Path) -> None:
    (tmp_path / "a.pdf").write_bytes(b"%PDF")
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    (tmp_path / "sub").mkdir()

    assert await count_files(tmp_path) == 2


async def test_assert_directory_capability(tmp_path: Path) -> None:
    await assert_directory_capability(tmp_path)

    with pytest.raises(ClientWorkspaceError):
        await assert_directory_capability(tmp_path / "missing")

    (tmp_path / "file").write_text("x", encoding="utf-8")
    with pytest.raises(ClientWorkspaceError):
        await assert_directory_capability(tmp_path / "file")


# ---------------------------------------------------------------------------
# ConfigStore
# ---------------------------------------------------------------------------


async def test_config_store_empty_when_absent(tmp_path: Path) -> None:
    config = await ConfigStore(tmp_path / "config.json").load()

    assert config.last_workspace is None
    assert config.last_workspace_path is None


async def test_config_store_remembers_workspace(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "cfg" / "config.json")
    await store.remember_workspace(tmp_path / "ws")

    raw = json.loads((tmp_path / "cfg" / "config.json").read_text(encoding="utf-8"))
    assert raw == {"lastWorkspace": str(tmp_path / "ws")}

    reloaded = await ConfigStore(tmp_path / "cfg" / "config.json").load()
    assert reloaded.last_workspace_path == tmp_path / "ws"


async def test_config_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[oops", encoding="utf-8")

    config = await ConfigStore(path).load()
    assert config.last_workspace is None
