"""Tests for CLI logging setup."""

from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from codeguard.utils.logging import configure_logging


@pytest.fixture
def clean_root():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    root.handlers = [h for h in root.handlers if not isinstance(h, RichHandler)]
    yield root
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_configure_logging_is_idempotent(clean_root: logging.Logger) -> None:
    configure_logging()
    configure_logging(verbose=True)

    rich_handlers = [h for h in clean_root.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert clean_root.level == logging.DEBUG
    assert rich_handlers[0].level == logging.DEBUG


def test_default_level_is_warning(clean_root: logging.Logger) -> None:
    configure_logging()
    assert clean_root.level == logging.WARNING
