"""
Unit tests for structured logging and correlation context.
"""

import json
import logging

from localrag.core.logging import (
    CorrelationContext,
    HumanReadableFormatter,
    StructuredFormatter,
    log_with_context,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="localrag.pipeline.ingestion",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Ingested report.pdf",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Tests for log formatters."""

    def test_structured_formatter_includes_correlation_fields(self):
        line = StructuredFormatter(include_timestamp=False).format(
            make_record(file_id="f-1", stage="storing")
        )
        entry = json.loads(line)

        assert entry["message"] == "Ingested report.pdf"
        assert entry["file_id"] == "f-1"
        assert entry["stage"] == "storing"
        assert "timestamp" not in entry

    def test_human_readable_formatter_appends_context(self):
        line = HumanReadableFormatter(include_timestamp=False).format(
            make_record(owner_id="kb-1")
        )

        assert line.endswith("[owner_id=kb-1]")


class TestCorrelationContext:
    """Tests for CorrelationContext."""

    def test_nested_contexts_merge_and_restore(self):
        with CorrelationContext(owner_id="kb-1"):
            with CorrelationContext(file_id="f-1"):
                assert CorrelationContext.get_current() == {"owner_id": "kb-1", "file_id": "f-1"}
            assert CorrelationContext.get_current() == {"owner_id": "kb-1"}

        assert CorrelationContext.get_current() == {}

    def test_log_with_context_passes_fields(self, caplog):
        logger = logging.getLogger("localrag.test")

        with caplog.at_level(logging.INFO, logger="localrag.test"):
            with CorrelationContext(file_id="f-9"):
                log_with_context(logger, logging.INFO, "stage change", stage="chunking")

        record = caplog.records[-1]
        assert record.file_id == "f-9"
        assert record.stage == "chunking"
