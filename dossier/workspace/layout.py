"""On-disk layout contract for a workspace root and its client folders.

    <root>/.workspace-marker.json
    <root>/<slug>/metadata.json
    <root>/<slug>/documents/
    <root>/<slug>/media/
    <root>/<slug>/Conversations/conv-DD-MM-YYYY-HH-mm.json

``conversation.jsonl`` at the client root is the legacy single-log format;
it is migrated into ``Conversations/`` on first structure check.
"""

from __future__ import annotations

WORKSPACE_MARKER_FILE = ".workspace-marker.json"
METADATA_FILE = "metadata.json"
LEGACY_CONVERSATION_FILE = "conversation.jsonl"

DOCUMENTS_DIR = "documents"
MEDIA_DIR = "media"
CONVERSATIONS_DIR = "Conversations"
CONVERSATION_EXTENSION = ".json"

RESERVED_ROOT_DIRECTORIES = frozenset({"template", "templates"})
"""Root-level names that are never client slugs (compared lower-cased)."""

REQUIRED_ROOT_DIRECTORIES = ("templates",)
"""Root-level folders a workspace is expected to carry."""


def is_reserved_name(name: str) -> bool:
    return name.lower() in RESERVED_ROOT_DIRECTORIES
