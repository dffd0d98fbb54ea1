"""Tests for JSON log formatting."""

import json
import logging

import pytest

from marksync.core.logging_utils import (
    EnhancedJsonFormatter,
    generate_correlation_id,
    setup_json_logging,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="marksync.sync.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="bookmark_added",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestEnhancedJsonFormatter:
    def test_sync_fields_grouped(self):
        formatter = EnhancedJsonFormatter(include_location=False, include_process_info=False)
        payload = json.loads(
            formatter.format(
                _record(
                    identity="alice",
                    bookmark_id="b1",
                    correlation_id="abc123",
                    status_code=503,
                )
            )
        )

        assert payload["message"] == "bookmark_added"
        assert payload["level"] == "INFO"
        assert payload["sync"] == {"identity": "alice", "bookmark_id": "b1"}
        assert payload["correlation_id"] == "abc123"
        assert payload["extra"] == {"status_code": 503}
        assert "module" not in payload

    def test_location_included_by_default(self):
        payload = json.loads(EnhancedJsonFormatter().format(_record()))
        assert payload["line"] == 10
        assert "process" in payload

    def test_sets_serialized(self):
        formatter = EnhancedJsonFormatter(include_location=False, include_process_info=False)
        payload = json.loads(formatter.format(_record(deleting=frozenset({"b", "a"}))))
        assert payload["extra"]["deleting"] == "a,b"


def test_correlation_ids_are_unique():
    ids = {generate_correlation_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(value) == 12 for value in ids)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_stdlib_json_logging_setup(restore_root_logger):
    setup_json_logging("warning", use_loguru=False)

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, EnhancedJsonFormatter)
