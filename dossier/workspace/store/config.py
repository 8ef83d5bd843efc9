"""Persisted pointer to the last opened workspace.

Stored as a single JSON record (``{"lastWorkspace": "/path/to/root"}``) at the
configured ``config_path``.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from dossier.workspace.errors import ClientWorkspaceError
from dossier.workspace.models.workspace import WorkspaceConfig
from dossier.workspace.store.local import read_json, write_json


class ConfigStore:
    """Load/save lifecycle for ``WorkspaceConfig``."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> WorkspaceConfig:
        """Return the stored config, or an empty one when absent or unreadable."""
        try:
            raw = await read_json(self._path.parent, self._path.name)
        except ClientWorkspaceError as exc:
            logger.warning("Ignoring unreadable config {}: {}", self._path, exc)
            return WorkspaceConfig()
        if raw is None:
            return WorkspaceConfig()
        try:
            return WorkspaceConfig.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid config {}: {}", self._path, exc)
            return WorkspaceConfig()

    async def save(self, config: WorkspaceConfig) -> None:
        await write_json(self._path.parent, self._path.name, config.to_record())

    async def remember_workspace(self, root: Path) -> WorkspaceConfig:
        config = await self.load()
        config = config.model_copy(update={"last_workspace": str(root)})
        await self.save(config)
        return config
