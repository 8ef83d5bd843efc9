"""Directory pickers for the coordinator.

``StaticDirectoryPicker`` hands out paths decided up front (CLI arguments,
tests); ``PromptDirectoryPicker`` asks on the terminal.  Both raise
``SelectionCancelled`` when no choice is made.
"""

from __future__ import annotations

from pathlib import Path

import click
from anyio import to_thread

from dossier.workspace.errors import SelectionCancelled


class StaticDirectoryPicker:
    def __init__(self, workspace: Path | None = None, client: Path | None = None) -> None:
        self.workspace = workspace
        self.client = client

    async def pick_workspace(self) -> Path:
        if self.workspace is None:
            raise SelectionCancelled
        return self.workspace

    async def pick_client(self, start_in: Path | None = None) -> Path:
        if self.client is None:
            raise SelectionCancelled
        if not self.client.is_absolute() and start_in is not None:
            return start_in / self.client
        return self.client


class PromptDirectoryPicker:
    """Asks for directories on stdin.  An empty answer or Ctrl-C cancels."""

    async def pick_workspace(self) -> Path:
        return await self._ask("Workspace folder")

    async def pick_client(self, start_in: Path | None = None) -> Path:
        return await self._ask("Client folder", base=start_in)

    async def _ask(self, label: str, base: Path | None = None) -> Path:
        try:
            raw = await to_thread.run_sync(lambda: click.prompt(label, default="", show_default=False))
        except click.Abort:
            raise SelectionCancelled from None
        if not raw.strip():
            raise SelectionCancelled
        path = Path(raw.strip()).expanduser()
        if base is not None and not path.is_absolute():
            path = base / path
        return path
