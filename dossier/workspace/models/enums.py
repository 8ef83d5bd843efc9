"""Shared enumerations used across the workspace layer."""

from __future__ import annotations

from enum import StrEnum

# -- Conversation ------------------------------------------------------------


class ConversationRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# -- Structure ---------------------------------------------------------------


class StructureIssueType(StrEnum):
    """Kinds of self-healing repair applied while checking a client folder."""

    METADATA_CREATED = "metadata_created"
    DIRECTORY_CREATED = "directory_created"
    CONVERSATION_CREATED = "conversation_created"
    LEGACY_CONVERSATION_MIGRATED = "legacy_conversation_migrated"


# -- Notifications -----------------------------------------------------------


class NoticeLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
