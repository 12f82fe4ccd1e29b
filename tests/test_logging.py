"""Tests for the context-aware log formatter."""
import logging
from ci_migrator.core.logging import ContextFormatter

FMT = "%(levelname)s [task_id=%(task_id)s stage=%(stage)s] - %(message)s"


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("ci_migrator.core.engine", logging.INFO, __file__, 1, "stage started", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_defaults_missing_context():
    assert ContextFormatter(FMT).format(_record()) == "INFO [task_id=- stage=-] - stage started"


def test_formatter_uses_task_context():
    line = ContextFormatter(FMT).format(_record(task_id="test-1", stage="builds"))
    assert line == "INFO [task_id=test-1 stage=builds] - stage started"
