"""Client record models.

``ClientMetadata`` is the only persisted piece (``<slug>/metadata.json``);
``ClientSummary`` adds figures derived on every read.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ConfigDict, Field

from dossier.workspace.models.base import RecordModel, new_id, utc_now_iso
from dossier.workspace.models.conversation import ConversationFileSummary
from dossier.workspace.models.enums import StructureIssueType


class ClientMetadata(RecordModel):
    """Contents of ``metadata.json``.

    Keys written by other tools are kept (``model_extra``) so that rewriting
    the file never drops them.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    name: str
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    tags: list[str] | None = None
    notes: str | None = None

    def touched(self) -> ClientMetadata:
        return self.model_copy(update={"updated_at": utc_now_iso()})


class StructureIssue(RecordModel):
    """A repair made while validating a client folder.  Reported, never stored."""

    type: StructureIssueType
    path: str
    message: str


class ClientSummary(ClientMetadata):
    slug: str
    directory: Path
    conversation_lines: int = 0
    documents_count: int = 0
    media_count: int = 0
    last_conversation_at: str | None = None
    conversations: list[ConversationFileSummary] = Field(default_factory=list)
    structure_issues: list[StructureIssue] = Field(default_factory=list)

    @property
    def metadata(self) -> ClientMetadata:
        """The persisted part of this summary."""
        derived = set(ClientSummary.model_fields) - set(ClientMetadata.model_fields)
        return ClientMetadata.model_validate(self.model_dump(exclude=derived))
