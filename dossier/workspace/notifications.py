"""Notification port used by the coordinator.

The data layer never talks to the user.  The coordinator reports each
outcome (repair, creation, sync, failure) through a ``Notifier``; the UI or
CLI decides how to show it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from loguru import logger

from dossier.workspace.models.enums import NoticeLevel


@runtime_checkable
class Notifier(Protocol):
    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Sends notices to the log.  Default when no UI is attached."""

    def info(self, message: str) -> None:
        logger.info(message)

    def success(self, message: str) -> None:
        logger.success(message)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class RecordingNotifier:
    """Keeps every notice in order; used by tests and batch tooling."""

    def __init__(self) -> None:
        self.notices: list[tuple[NoticeLevel, str]] = []

    def info(self, message: str) -> None:
        self.notices.append((NoticeLevel.INFO, message))

    def success(self, message: str) -> None:
        self.notices.append((NoticeLevel.SUCCESS, message))

    def warning(self, message: str) -> None:
        self.notices.append((NoticeLevel.WARNING, message))

    def error(self, message: str) -> None:
        self.notices.append((NoticeLevel.ERROR, message))

    def messages(self, level: NoticeLevel | None = None) -> list[str]:
        return [message for lvl, message in self.notices if level is None or lvl == level]

    def clear(self) -> None:
        self.notices.clear()
