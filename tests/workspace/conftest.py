"""Shared fixtures for workspace tests.

Everything runs against ``tmp_path``; no network is touched.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from dossier.workspace.settings import _get_settings_cached


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An empty, writable workspace root."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def make_client(root: Path) -> Callable[..., Path]:
    """Create a bare client folder holding only ``metadata.json``."""

    def _make(slug: str, name: str | None = None, **extra: object) -> Path:
        directory = root / slug
        directory.mkdir()
        record = {
            "id": f"id-{slug}",
            "name": name or slug,
            "createdAt": "2024-01-01T00:00:00.000Z",
            "updatedAt": "2024-01-01T00:00:00.000Z",
            **extra,
        }
        (directory / "metadata.json").write_text(json.dumps(record), encoding="utf-8")
        return directory

    return _make


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Point config at ``tmp_path`` and drop any cached settings."""
    for name in (
        "DOSSIER_WORKSPACE_ROOT",
        "DOSSIER_LOG_FILE",
        "DOSSIER_PROFILE_SERVICE_URL",
        "DOSSIER_PROFILE_SERVICE_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DOSSIER_CONFIG_PATH", str(tmp_path / "config" / "config.json"))
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()
