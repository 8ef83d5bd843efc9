"""Tests for the loguru sinks installed by ``setup_logging``."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from dossier.workspace.log import setup_logging


@pytest.fixture(autouse=True)
def _release_sinks() -> Iterator[None]:
    yield
    # Closes the file sink so tmp_path can be cleaned up.
    logger.remove()


def test_file_sink_receives_loguru_and_stdlib_records(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "dossier.log"

    setup_logging("info", log_file)
    logger.info("Migrated legacy log of dupont")
    logging.getLogger("dossier.tests").warning("Skipping client folder broken")
    logging.getLogger("httpx").info("HTTP Request: GET /clients")
    logger.debug("not at this level")
    logger.remove()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("Migrated legacy log of dupont")
    assert "| INFO     |" in lines[0]
    assert lines[1].endswith("Skipping client folder broken")
    assert "| WARNING  |" in lines[1]


def test_no_file_sink_by_default(tmp_path: Path) -> None:
    setup_logging("DEBUG")
    logger.info("stderr only")

    assert list(tmp_path.iterdir()) == []
