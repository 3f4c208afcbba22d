"""Unit tests for logging helpers."""

import logging

from rich.logging import RichHandler

from fa_audit.utils.logging import ContextFormatter, configure_logging, get_logger, get_logger_with_context


def make_record(**extra):
    record = logging.LogRecord("fa_audit.core.scanner", logging.INFO, __file__, 1, "scanned", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestGetLogger:
    """Tests for logger naming."""

    def test_prefix(self):
        """Test short names are placed under the fa_audit namespace."""
        assert get_logger("rpc.supra").name == "fa_audit.rpc.supra"
        assert get_logger("fa_audit.core.diff").name == "fa_audit.core.diff"
        assert get_logger("fa_audit").name == "fa_audit"

    def test_context_adapter(self):
        """Test bound context is attached to every record."""
        adapter = get_logger_with_context("core.scanner", asset="coin:0x1::m::T")

        msg, kwargs = adapter.process("scanned", {"extra": {"audit_context": {"modules": 2}}})

        assert msg == "scanned"
        assert kwargs["extra"]["audit_context"] == {"asset": "coin:0x1::m::T", "modules": 2}


class TestContextFormatter:
    """Tests for ContextFormatter."""

    def test_appends_sorted_pairs(self):
        """Test context fields are appended as sorted key=value pairs."""
        record = make_record(audit_context={"asset": "fa:0xf", "attempt": 2})

        assert ContextFormatter("%(message)s").format(record) == "scanned asset=fa:0xf attempt=2"

    def test_no_context(self):
        """Test records without context are left alone."""
        assert ContextFormatter("%(message)s").format(make_record()) == "scanned"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_handler(self):
        """Test the default handler is a rich console handler."""
        configure_logging(level="warning")

        logger = logging.getLogger("fa_audit")
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.propagate is False

    def test_structured_handler(self):
        """Test structured logging uses the context formatter."""
        configure_logging(level="DEBUG", structured=True)

        handler = logging.getLogger("fa_audit").handlers[0]
        assert not isinstance(handler, RichHandler)
        assert isinstance(handler.formatter, ContextFormatter)
