"""Unit tests for logging helpers."""

import logging

import pytest

from src.core.logging import log_with_context, span


@pytest.mark.unit
def test_log_with_context_attaches_extra_fields(caplog):
    """Test context fields land on the log record."""
    logger = logging.getLogger("tests.logging")

    with caplog.at_level(logging.INFO, logger="tests.logging"):
        log_with_context(logger, "info", "Pair executed", pair_id="42", decision="merge")

    record = caplog.records[-1]
    assert record.getMessage() == "Pair executed"
    assert record.pair_id == "42"
    assert record.decision == "merge"


@pytest.mark.unit
def test_log_with_context_respects_level(caplog):
    """Test the level name selects the logger method."""
    logger = logging.getLogger("tests.logging")

    with caplog.at_level(logging.WARNING, logger="tests.logging"):
        log_with_context(logger, "debug", "Hidden")
        log_with_context(logger, "WARNING", "Shown", task_id="task-1")

    assert [r.getMessage() for r in caplog.records] == ["Shown"]


@pytest.mark.unit
def test_span_is_context_manager():
    """Test spans wrap a block without altering its result."""
    with span("tests.span"):
        value = 1 + 1

    assert value == 2
