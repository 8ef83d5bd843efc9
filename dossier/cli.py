from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click

from dossier.workspace.errors import ClientWorkspaceError

T = TypeVar("T")


@click.group()
@click.option("--log-level", default=None, help="Log level (default: from DOSSIER_LOG_LEVEL or INFO).")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also log to this rotating file (default: DOSSIER_LOG_FILE).",
)
def main(log_level: str | None, log_file: Path | None) -> None:
    """Dossier - local client-case workspace with conversation logs."""
    from dossier.workspace.log import setup_logging
    from dossier.workspace.settings import get_settings

    settings = get_settings()
    setup_logging(log_level or settings.log_level, log_file or settings.log_file)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class EchoNotifier:
    """Prints coordinator notices on the terminal."""

    def info(self, message: str) -> None:
        click.echo(message)

    def success(self, message: str) -> None:
        click.secho(message, fg="green")

    def warning(self, message: str) -> None:
        click.secho(message, fg="yellow", err=True)

    def error(self, message: str) -> None:
        click.secho(message, fg="red", err=True)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning workspace errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except ClientWorkspaceError as exc:
        raise click.ClickException(exc.message) from exc


_root_option = click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Workspace root (default: DOSSIER_WORKSPACE_ROOT or the last opened workspace).",
)


async def _resolve_root(root: Path | None) -> Path:
    from dossier.workspace.settings import get_settings
    from dossier.workspace.store.config import ConfigStore

    if root is not None:
        return root
    settings = get_settings()
    if settings.workspace_root:
        return Path(settings.workspace_root).expanduser()
    config = await ConfigStore(settings.resolved_config_path()).load()
    if config.last_workspace_path is not None:
        return config.last_workspace_path
    msg = "No workspace selected. Pass --root or run `dossier init ROOT` first."
    raise ClientWorkspaceError(msg)


async def _client_directory(root: Path | None, slug: str) -> Path:
    from dossier.workspace.managers.clients import is_client_directory

    directory = await _resolve_root(root) / slug
    if not await is_client_directory(directory):
        msg = f'Unknown client folder "{slug}".'
        raise ClientWorkspaceError(msg, path=directory)
    return directory


def _coordinator(picker: Any = None) -> Any:
    from dossier.workspace.coordinator import WorkspaceCoordinator
    from dossier.workspace.pickers import StaticDirectoryPicker
    from dossier.workspace.profiles import build_profile_service
    from dossier.workspace.settings import get_settings
    from dossier.workspace.store.config import ConfigStore

    settings = get_settings()
    return WorkspaceCoordinator(
        picker or StaticDirectoryPicker(),
        EchoNotifier(),
        profiles=build_profile_service(settings),
        config_store=ConfigStore(settings.resolved_config_path()),
    )


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


@main.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
def init(root: Path) -> None:
    """Open ROOT as the workspace, creating its marker and folders if needed."""

    async def _init() -> Path | None:
        coordinator = _coordinator()
        try:
            return await coordinator.open_workspace(root)
        finally:
            await coordinator.aclose()

    if _run(_init()) is None:
        raise SystemExit(1)


@main.command()
@_root_option
def clients(root: Path | None) -> None:
    """List client folders (repairing them on the way)."""
    from dossier.workspace.managers.clients import list_clients

    async def _list() -> list[Any]:
        return await list_clients(await _resolve_root(root))

    items = _run(_list())
    if not items:
        click.echo("No client folders.")
        return
    for client in items:
        last = client.last_conversation_at or "-"
        click.echo(
            f"{client.slug:<30} {client.name:<30} lines={client.conversation_lines} "
            f"docs={client.documents_count} media={client.media_count} last={last}"
        )


@main.command()
@click.argument("slug")
@click.option("--name", "display_name", default="", help="Client full name (default: derived from SLUG).")
@click.option("--email", default="", help="Contact email.")
@click.option("--phone", default="", help="Contact phone.")
@_root_option
def create(slug: str, display_name: str, email: str, phone: str, root: Path | None) -> None:
    """Create a client folder named after SLUG (and its remote profile)."""
    from dossier.workspace.models.profile import NewClientDetails
    from dossier.workspace.profiles import split_display_name

    first_name, last_name = split_display_name(display_name)
    details = NewClientDetails(folder_slug=slug, first_name=first_name, last_name=last_name, email=email, phone=phone)

    async def _create() -> Any:
        coordinator = _coordinator()
        try:
            if await coordinator.open_workspace(await _resolve_root(root)) is None:
                return None
            return await coordinator.create_client_folder(details)
        finally:
            await coordinator.aclose()

    if _run(_create()) is None:
        raise SystemExit(1)


@main.command("open")
@_root_option
def open_client(root: Path | None) -> None:
    """Interactively pick a client folder and show its active conversation."""
    from dossier.workspace.pickers import PromptDirectoryPicker

    async def _open() -> Any:
        coordinator = _coordinator(PromptDirectoryPicker())
        try:
            if root is not None and await coordinator.open_workspace(root) is None:
                return None
            if not await coordinator.pick_client():
                return None
            return coordinator.state
        finally:
            await coordinator.aclose()

    state = _run(_open())
    if state is None:
        raise SystemExit(1)
    for entry in state.conversation:
        click.echo(f"[{entry.timestamp}] {entry.role}: {entry.content}")


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


@main.command()
@click.argument("slug")
@_root_option
def conversations(slug: str, root: Path | None) -> None:
    """List the conversation logs of a client, newest first."""
    from dossier.workspace.managers.conversations import list_conversation_files

    async def _list() -> list[Any]:
        return await list_conversation_files(await _client_directory(root, slug))

    for item in _run(_list()):
        click.echo(f"{item.filename:<32} {item.last_modified or '-':<26} {item.size or 0}")


@main.command("new-conversation")
@click.argument("slug")
@click.option("--name", default=None, help="File name (default: conv-DD-MM-YYYY-HH-mm.json).")
@_root_option
def new_conversation(slug: str, name: str | None, root: Path | None) -> None:
    """Create an empty conversation log for a client."""
    from dossier.workspace.managers.conversations import create_conversation_file

    async def _create() -> Any:
        return await create_conversation_file(await _client_directory(root, slug), name)

    created = _run(_create())
    click.echo(created.filename)


@main.command()
@click.argument("slug")
@click.option("--conversation", default=None, help="Log file name (default: most recent).")
@_root_option
def show(slug: str, conversation: str | None, root: Path | None) -> None:
    """Print the entries of a conversation log."""
    from dossier.workspace.managers.conversations import load_conversation

    async def _load() -> Any:
        return await load_conversation(await _client_directory(root, slug), conversation)

    loaded = _run(_load())
    click.secho(loaded.filename, bold=True)
    for entry in loaded.entries:
        click.echo(f"[{entry.timestamp}] {entry.role}: {entry.content}")


@main.command()
@click.argument("slug")
@click.argument("role", type=click.Choice(["user", "assistant", "system"]))
@click.argument("content")
@click.option("--conversation", default=None, help="Log file name (default: most recent).")
@_root_option
def append(slug: str, role: str, content: str, conversation: str | None, root: Path | None) -> None:
    """Append one message to a conversation log."""
    from dossier.workspace.managers.conversations import append_conversation_entries, build_conversation_entry
    from dossier.workspace.registry import ClientLockRegistry

    async def _append() -> Any:
        directory = await _client_directory(root, slug)
        entry = build_conversation_entry(role, content)
        return await append_conversation_entries(directory, [entry], conversation, locks=ClientLockRegistry())

    loaded = _run(_append())
    click.echo(f"{loaded.filename}: {len(loaded.entries)} entries")


if __name__ == "__main__":
    main()
