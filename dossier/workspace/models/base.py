"""Base model and value helpers for on-disk records.

Files on disk use camelCase keys (``createdAt``); Python code uses
snake_case.  ``RecordModel`` accepts both and dumps the disk spelling.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """JSON-ready dict in the on-disk key spelling."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def utc_now_iso() -> str:
    """``2026-10-17T09:30:00.000Z`` style timestamp."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id(length: int = 12) -> str:
    return uuid.uuid4().hex[:length]
