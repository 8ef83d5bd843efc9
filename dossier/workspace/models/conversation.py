"""Conversation log records."""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field

from dossier.workspace.models.base import RecordModel, new_id, utc_now_iso
from dossier.workspace.models.enums import ConversationRole


class ConversationEntry(RecordModel):
    """One role-tagged message in a conversation log.

    Logs are shared with other tools, so validation is lenient: unknown keys
    are kept (``model_extra``), roles outside ``ConversationRole`` stay plain
    strings and epoch timestamps stay numbers.
    """

    model_config = ConfigDict(extra="allow")

    id: str | int = Field(default_factory=lambda: new_id(10))
    timestamp: str | int | float = Field(default_factory=utc_now_iso)
    role: ConversationRole | str = Field(union_mode="left_to_right")
    content: str = ""
    metadata: dict[str, Any] | None = None


class ConversationFileSummary(RecordModel):
    filename: str
    path: str
    last_modified: str | None = None
    size: int | None = None
