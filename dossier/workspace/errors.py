"""Error types shared by the workspace layer."""

from __future__ import annotations

from pathlib import Path


class ClientWorkspaceError(Exception):
    """Single error kind raised by the workspace layer.

    Callers distinguish failures by ``message`` (validation, capability,
    I/O), not by subclass.  ``path`` points at the offending entry when one
    is known.
    """

    def __init__(self, message: str, cause: BaseException | None = None, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.path = Path(path) if path is not None else None
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} ({self.path})"
        return self.message


class SelectionCancelled(Exception):  # noqa: N818
    """The user dismissed a directory selection prompt.

    Not an error: callers swallow it and leave state untouched.
    """
