"""Data models for the workspace layer."""

from dossier.workspace.models.base import RecordModel, new_id, utc_now_iso
from dossier.workspace.models.client import ClientMetadata, ClientSummary, StructureIssue
from dossier.workspace.models.conversation import ConversationEntry, ConversationFileSummary
from dossier.workspace.models.enums import ConversationRole, NoticeLevel, StructureIssueType
from dossier.workspace.models.profile import ClientProfile, ClientProfileInput, NewClientDetails
from dossier.workspace.models.workspace import WorkspaceConfig, WorkspaceMarker

__all__ = [
    # Client
    "ClientMetadata",
    # Profile
    "ClientProfile",
    "ClientProfileInput",
    "ClientSummary",
    # Conversation
    "ConversationEntry",
    "ConversationFileSummary",
    # Enums
    "ConversationRole",
    "NewClientDetails",
    "NoticeLevel",
    # Base
    "RecordModel",
    "StructureIssue",
    "StructureIssueType",
    # Workspace
    "WorkspaceConfig",
    "WorkspaceMarker",
    "new_id",
    "utc_now_iso",
]
