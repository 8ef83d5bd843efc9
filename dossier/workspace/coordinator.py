"""Workspace coordinator -- current selection plus the actions that change it.

States::

    NoWorkspace -> WorkspaceSelected -> ClientSelected -> ConversationLoaded

The coordinator owns the "currently selected" pointers (root, client slug,
conversation filename) and a cache of what it last read.  The filesystem is
the source of truth: after every mutating action the affected parts of the
cache are re-derived from disk.

Every outcome is reported through the ``Notifier`` port; errors surface as
short messages, never tracebacks.  Remote profile sync is optional and is
switched off for the session as soon as the service reports that its table
is missing.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from dossier.workspace.errors import ClientWorkspaceError, SelectionCancelled
from dossier.workspace.managers.clients import (
    create_client,
    ensure_client_structure,
    is_client_directory,
    list_clients,
    sort_clients,
)
from dossier.workspace.managers.conversations import (
    append_conversation_entries,
    build_conversation_entry,
    create_conversation_file,
    list_conversation_files,
    load_conversation,
    save_conversation,
)
from dossier.workspace.managers.workspaces import ensure_workspace_directories, initialise_workspace
from dossier.workspace.models.client import ClientSummary
from dossier.workspace.models.conversation import ConversationEntry, ConversationFileSummary
from dossier.workspace.models.enums import ConversationRole, StructureIssueType
from dossier.workspace.models.profile import ClientProfile, ClientProfileInput, NewClientDetails
from dossier.workspace.notifications import LoggingNotifier, Notifier
from dossier.workspace.profiles import DUPLICATE_CODE, FOREIGN_KEY_CODE, ProfileService, ProfileServiceError
from dossier.workspace.registry import ClientLockRegistry
from dossier.workspace.store.config import ConfigStore


_INFO_ISSUES = frozenset({StructureIssueType.CONVERSATION_CREATED, StructureIssueType.LEGACY_CONVERSATION_MIGRATED})


class DirectoryPicker(Protocol):
    """Source of directory capabilities (a dialog, a prompt, fixed paths).

    Both methods raise ``SelectionCancelled`` when the user dismisses them.
    """

    async def pick_workspace(self) -> Path: ...

    async def pick_client(self, start_in: Path | None = None) -> Path: ...


@dataclass
class WorkspaceState:
    root: Path | None = None
    loading: bool = False
    error: str | None = None
    clients: list[ClientSummary] = field(default_factory=list)
    selected_slug: str | None = None
    conversation: list[ConversationEntry] = field(default_factory=list)
    conversation_filename: str | None = None
    conversations: list[ConversationFileSummary] = field(default_factory=list)
    client_profiles: dict[str, ClientProfile] = field(default_factory=dict)
    profiles_enabled: bool = True

    @property
    def selected_client(self) -> ClientSummary | None:
        if self.selected_slug is None:
            return None
        return self.find_client(self.selected_slug)

    def find_client(self, slug: str) -> ClientSummary | None:
        return next((client for client in self.clients if client.slug == slug), None)


class WorkspaceCoordinator:
    """Drives the registry and conversation store in response to user actions."""

    def __init__(
        self,
        picker: DirectoryPicker,
        notifier: Notifier | None = None,
        *,
        profiles: ProfileService | None = None,
        config_store: ConfigStore | None = None,
        locks: ClientLockRegistry | None = None,
    ) -> None:
        self._picker = picker
        self._notifier = notifier or LoggingNotifier()
        self._profiles = profiles
        self._config_store = config_store
        self._locks = locks or ClientLockRegistry()
        self._profile_attempts: set[str] = set()
        self.state = WorkspaceState(profiles_enabled=profiles is not None)

    async def aclose(self) -> None:
        """Release the profile service connection, if it holds one."""
        close = getattr(self._profiles, "aclose", None)
        if close is not None:
            await close()

    # -- Helpers ---------------------------------------------------------------

    @property
    def profiles_active(self) -> bool:
        return self._profiles is not None and self.state.profiles_enabled

    def _profile_service(self) -> ProfileService | None:
        return self._profiles if self.state.profiles_enabled else None

    @contextmanager
    def _loading(self) -> Iterator[None]:
        self.state.loading = True
        try:
            yield
        finally:
            self.state.loading = False

    def _fail(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            logger.error("{}: {}", message, exc)
        self.state.error = message
        self._notifier.error(message)

    def _disable_profiles(self) -> None:
        if not self.state.profiles_enabled:
            return
        self.state.profiles_enabled = False
        logger.info("Profile table missing, disabling client profile sync")
        self._notifier.info("Client profiles disabled: the profile table is unavailable.")

    async def _remember(self, root: Path) -> None:
        if self._config_store is None:
            return
        try:
            await self._config_store.remember_workspace(root)
        except ClientWorkspaceError as exc:
            logger.warning("Could not remember workspace {}: {}", root, exc)

    def _replace_client(self, summary: ClientSummary) -> None:
        others = [client for client in self.state.clients if client.slug != summary.slug]
        self.state.clients = sort_clients([*others, summary])

    # -- Listing ---------------------------------------------------------------

    async def load_clients(self, root: Path, preferred_slug: str | None = None) -> list[ClientSummary]:
        """Bootstrap *root*, list its clients and fetch remote profiles.

        Keeps *preferred_slug* (or else the current selection) selected when it
        is still present.  Raises after notifying when *root* is unusable.
        """
        with self._loading():
            if preferred_slug is None:
                self._profile_attempts.clear()
                self.state.client_profiles = {}
            try:
                if await is_client_directory(root):
                    msg = "Select the workspace root folder, not a client folder."
                    raise ClientWorkspaceError(msg, path=root)
                await initialise_workspace(root)
                items = await list_clients(root)
            except ClientWorkspaceError as exc:
                self._fail(exc.message, exc)
                raise
            except OSError as exc:
                self._fail("Unable to load the client folders.", exc)
                raise

            await self._refresh_profiles(items)

            self.state.clients = items
            previous = self.state.selected_slug if root == self.state.root else None
            slugs = {item.slug for item in items}
            if preferred_slug in slugs:
                self.state.selected_slug = preferred_slug
            elif previous in slugs:
                self.state.selected_slug = previous
            else:
                self.state.selected_slug = None
                self._reset_conversation()
            self.state.error = None
            return items

    async def _refresh_profiles(self, items: Sequence[ClientSummary]) -> None:
        service = self._profile_service()
        if service is None:
            return
        try:
            profiles = await service.fetch_profiles()
        except ProfileServiceError as exc:
            if exc.is_unavailable:
                self._disable_profiles()
            else:
                logger.warning("Loading client profiles failed: {}", exc)
            return

        self.state.client_profiles = profiles
        local = {item.slug for item in items}
        missing = sorted(slug for slug in profiles if slug not in local)
        if missing:
            folders = ", ".join(f"/{slug}" for slug in missing)
            self._notifier.warning(
                f"These folders are missing from the workspace: {folders}. "
                "Restore them or remove them from the client database."
            )

    async def refresh_clients(self) -> list[ClientSummary]:
        if self.state.root is None:
            return []
        try:
            items = await self.load_clients(self.state.root)
        except (ClientWorkspaceError, OSError):
            return []
        client = self.state.selected_client
        if client is not None:
            await self._sync_conversations(client)
        return items

    # -- Workspace -------------------------------------------------------------

    async def choose_workspace(self) -> Path | None:
        """Prompt for a root, bootstrap it and list its clients.

        Returns ``None`` when the prompt was cancelled or the folder rejected.
        """
        try:
            root = await self._picker.pick_workspace()
        except SelectionCancelled:
            return None
        except ClientWorkspaceError as exc:
            self._fail(exc.message, exc)
            return None
        return await self.open_workspace(root)

    async def open_workspace(self, root: Path) -> Path | None:
        """Make *root* the current workspace (no prompt).  ``None`` if rejected."""
        try:
            await self.load_clients(root)
        except (ClientWorkspaceError, OSError):
            return None
        self.state.root = root
        await self._remember(root)
        self._notifier.success(f"Workspace {root.name} selected")
        await self._check_workspace_directories(root)
        return root

    async def restore_workspace(self) -> Path | None:
        """Reopen the workspace remembered in the config record, if still usable."""
        if self._config_store is None:
            return None
        config = await self._config_store.load()
        root = config.last_workspace_path
        if root is None or not root.is_dir():
            return None
        try:
            await self.load_clients(root)
        except (ClientWorkspaceError, OSError):
            return None
        self.state.root = root
        return root

    async def _check_workspace_directories(self, root: Path) -> None:
        result = await ensure_workspace_directories(root)
        if result.created:
            self._notifier.success(f"Created folder(s): {', '.join(result.created)}.")
        if result.missing:
            self._notifier.warning(f"Missing folder(s): {', '.join(result.missing)}.")

    # -- Client selection ------------------------------------------------------

    async def pick_client(self) -> bool:
        """Prompt for a client folder, choosing the workspace first if needed."""
        try:
            root = self.state.root
            if root is None:
                candidate = await self._picker.pick_workspace()
                try:
                    clients = await self.load_clients(candidate)
                except (ClientWorkspaceError, OSError):
                    return False
                if not clients:
                    self._fail("The selected folder contains no client folders. Select the workspace root.")
                    return False
                self.state.root = candidate
                await self._remember(candidate)
                root = candidate

            directory = await self._picker.pick_client(root)
            if not await is_client_directory(directory):
                self._fail("Choose a client folder containing a metadata.json file.")
                return False
            if directory.resolve().parent != root.resolve():
                self._fail("This folder does not belong to the current workspace.")
                return False

            slug = directory.name
            try:
                clients = await self.load_clients(root, slug)
            except (ClientWorkspaceError, OSError):
                return False
            matching = next((client for client in clients if client.slug == slug), None)
            if matching is None:
                self._fail("This folder is not a client folder of the workspace.")
                return False

            await self.select_client(slug)
            self._notifier.success(f"Client folder {matching.name} loaded")
            return True
        except SelectionCancelled:
            return False
        except ClientWorkspaceError as exc:
            self._fail(exc.message, exc)
            return False

    async def select_client(self, slug: str) -> ClientSummary | None:
        client = self.state.find_client(slug)
        if client is None:
            self._fail(f'Unknown client folder "{slug}".')
            return None
        if slug != self.state.selected_slug:
            self._reset_conversation()
        self.state.selected_slug = slug
        await self._activate(client)
        return self.state.find_client(slug)

    def clear_selection(self) -> None:
        self.state.selected_slug = None
        self._reset_conversation()

    def _reset_conversation(self) -> None:
        self.state.conversation = []
        self.state.conversation_filename = None
        self.state.conversations = []

    async def _activate(self, client: ClientSummary) -> None:
        self._announce_structure_issues(client)
        await self._ensure_remote_profile(client)
        with self._loading():
            filename = await self._sync_conversations(client)
            if filename and await self._load_entries(client, filename):
                self._notifier.success(f'Conversation "{filename}" loaded.')

    def _announce_structure_issues(self, client: ClientSummary) -> None:
        if not client.structure_issues:
            return
        for issue in client.structure_issues:
            if issue.type in _INFO_ISSUES:
                self._notifier.info(issue.message)
            else:
                self._notifier.warning(issue.message)
        self._replace_client(client.model_copy(update={"structure_issues": []}))

    async def _ensure_remote_profile(self, client: ClientSummary) -> None:
        """Create an empty remote profile for a client that has none.

        A successful creation is not repeated until the next full listing; a
        failed one is retried on the next selection.  The upsert is keyed by
        slug, so a retry cannot duplicate the profile.
        """
        service = self._profile_service()
        if service is None or self.state.root is None:
            return
        slug = client.slug
        if slug in self.state.client_profiles or slug in self._profile_attempts:
            return
        self._profile_attempts.add(slug)
        try:
            profile = await service.upsert_profile(ClientProfileInput(slug=slug, display_name=client.name))
        except ProfileServiceError as exc:
            if exc.is_unavailable:
                self._disable_profiles()
            else:
                logger.error("Auto-creating profile for {} failed: {}", slug, exc)
                self._profile_attempts.discard(slug)
                self._notifier.error("Unable to create the client profile in the database.")
            return
        self.state.client_profiles[slug] = profile
        self._notifier.warning(f"No remote profile for {client.name}. An empty profile was created.")

    # -- Conversations ---------------------------------------------------------

    async def _sync_conversations(self, client: ClientSummary, preferred: str | None = None) -> str | None:
        """Refresh the log list; keep a still-valid current log, else the newest."""
        try:
            items = await list_conversation_files(client.directory)
            if not items:
                items = [await create_conversation_file(client.directory)]
                self._notifier.info(f"No conversation found for {client.name}. An empty file was created.")
        except ClientWorkspaceError as exc:
            self._fail("Unable to read the conversations of this folder.", exc)
            self.state.conversations = []
            self.state.conversation_filename = None
            return None

        self.state.conversations = items
        names = {item.filename for item in items}
        if preferred in names:
            current = preferred
        elif self.state.conversation_filename in names:
            current = self.state.conversation_filename
        else:
            current = items[0].filename
        self.state.conversation_filename = current
        return current

    async def _load_entries(self, client: ClientSummary, filename: str) -> bool:
        try:
            loaded = await load_conversation(client.directory, filename)
        except ClientWorkspaceError as exc:
            self._fail("Unable to load the conversation of this folder.", exc)
            return False
        self.state.conversation = loaded.entries
        self.state.conversation_filename = loaded.filename
        return True

    async def _refresh_summary(self, client: ClientSummary) -> None:
        try:
            summary = await ensure_client_structure(client.directory, client.name)
        except ClientWorkspaceError as exc:
            logger.warning("Refreshing summary of {} failed: {}", client.slug, exc)
            return
        self._replace_client(summary.model_copy(update={"structure_issues": []}))

    async def select_conversation(self, filename: str) -> bool:
        client = self.state.selected_client
        if client is None:
            self._fail("Select a client folder first.")
            return False
        if filename not in {item.filename for item in self.state.conversations}:
            self._fail(f'Unknown conversation "{filename}".')
            return False
        self.state.conversation_filename = filename
        return await self._load_entries(client, filename)

    async def create_conversation(self) -> ConversationFileSummary | None:
        client = self.state.selected_client
        if client is None:
            self._fail("Select a client folder before creating a conversation.")
            return None
        try:
            created = await create_conversation_file(client.directory)
        except ClientWorkspaceError as exc:
            self._fail("Unable to create the conversation.", exc)
            return None
        await self._sync_conversations(client, created.filename)
        await self._load_entries(client, created.filename)
        await self._refresh_summary(client)
        self._notifier.success("New conversation created")
        return created

    async def append_conversation(self, entries: Sequence[ConversationEntry]) -> list[ConversationEntry] | None:
        """Append *entries* to the active log of the selected client."""
        client = self.state.selected_client
        if client is None:
            self._fail("No client folder selected.")
            return None

        target = self.state.conversation_filename or await self._sync_conversations(client)
        if target is None:
            return None

        try:
            loaded = await append_conversation_entries(client.directory, entries, target, locks=self._locks)
        except ClientWorkspaceError as exc:
            self._fail(exc.message, exc)
            return None

        self.state.conversation = loaded.entries
        self.state.conversation_filename = loaded.filename
        await self._sync_conversations(client, loaded.filename)
        await self._refresh_summary(client)
        self._notifier.success("Conversation saved")
        return loaded.entries

    async def append_message(
        self,
        role: ConversationRole | str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> list[ConversationEntry] | None:
        return await self.append_conversation([build_conversation_entry(role, content, metadata)])

    async def save_conversation(self, entries: Sequence[ConversationEntry]) -> str | None:
        """Overwrite the active log of the selected client with *entries*."""
        client = self.state.selected_client
        if client is None:
            self._fail("No client folder selected.")
            return None

        target = self.state.conversation_filename or await self._sync_conversations(client)
        if target is None:
            return None

        try:
            filename = await save_conversation(client.directory, entries, target, locks=self._locks)
        except ClientWorkspaceError as exc:
            self._fail(exc.message, exc)
            return None

        self.state.conversation = list(entries)
        self.state.conversation_filename = filename
        await self._sync_conversations(client, filename)
        await self._refresh_summary(client)
        self._notifier.success("Conversation saved")
        return filename

    # -- Client creation and profiles ------------------------------------------

    async def create_client_folder(self, details: NewClientDetails) -> ClientSummary | None:
        root = self.state.root
        if root is None:
            self._fail("Select a workspace first.")
            return None

        try:
            summary = await create_client(root, details.folder_slug, details.friendly_name)
        except ClientWorkspaceError as exc:
            self._fail(exc.message, exc)
            return None

        self._profile_attempts.add(summary.slug)
        service = self._profile_service()
        if service is not None:
            await self._push_new_profile(service, details, summary.slug)

        self._replace_client(summary)
        await self.select_client(summary.slug)
        self._notifier.success(f'Client folder "{summary.name}" ready ({root.name}/{summary.slug}).')
        if summary.slug != details.folder_slug:
            self._notifier.info(f'Name adjusted to "{summary.slug}" to match the folder format.')
        return summary

    async def _push_new_profile(self, service: ProfileService, details: NewClientDetails, slug: str) -> None:
        try:
            profile = await service.upsert_profile(details.profile_input(slug))
        except ProfileServiceError as exc:
            if exc.is_unavailable:
                self._disable_profiles()
            elif exc.code == DUPLICATE_CODE:
                self._fail("Could not save the client profile: a client with this name already exists.", exc)
            elif exc.code == FOREIGN_KEY_CODE:
                self._fail("Insufficient permissions: check your account or sign in again.", exc)
            else:
                self._fail("Could not save the client profile.", exc)
            return
        self.state.client_profiles[slug] = profile

    async def save_client_profile(self, slug: str, details: ClientProfileInput) -> ClientProfile | None:
        """Upsert remote profile fields; the local cache changes only on success."""
        if self.state.root is None:
            self._fail("Select a workspace first.")
            return None
        service = self._profile_service()
        if service is None:
            self._notifier.info("Client profiles are not available.")
            return None

        display_name = (details.display_name or "").strip() or f"{details.first_name} {details.last_name}".strip()
        payload = details.model_copy(update={"slug": slug, "display_name": display_name or slug})
        try:
            profile = await service.upsert_profile(payload)
        except ProfileServiceError as exc:
            if exc.is_unavailable:
                self._disable_profiles()
            else:
                self._fail("Unable to save the client details.", exc)
            return None
        self.state.client_profiles[slug] = profile
        self._notifier.success("Client profile updated")
        return profile
