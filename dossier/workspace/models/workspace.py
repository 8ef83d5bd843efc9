"""Workspace-level records: the root marker and the persisted CLI/app config."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field

from dossier.workspace.models.base import RecordModel, utc_now_iso

WORKSPACE_MARKER_VERSION = 1


class WorkspaceMarker(RecordModel):
    """Stamped once into ``<root>/.workspace-marker.json``."""

    version: int = WORKSPACE_MARKER_VERSION
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class WorkspaceConfig(RecordModel):
    """Locally persisted pointer to the last workspace the user opened."""

    last_workspace: str | None = None

    @property
    def last_workspace_path(self) -> Path | None:
        return Path(self.last_workspace) if self.last_workspace else None
