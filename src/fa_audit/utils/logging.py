"""Logging setup for scans, diffs and RPC traffic."""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "fa_audit"

STRUCTURED_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class ContextFormatter(logging.Formatter):
    """Formatter that appends bound context (asset, endpoint, ...) as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "audit_context", None)
        if not context:
            return message
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{message} {pairs}"


def configure_logging(level: str = "INFO", structured: bool = False) -> None:
    """Route fa-audit logs to stderr.

    Stdout carries JSON output, so every handler writes to stderr.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        structured: Timestamped key=value lines instead of rich console output
    """
    if structured:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(ContextFormatter(STRUCTURED_FORMAT))
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(ContextFormatter("%(message)s"))

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    logger.handlers = [handler]
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the fa_audit namespace, e.g. ``get_logger("rpc.supra")``."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


class AuditLoggerAdapter(logging.LoggerAdapter):
    """Adapter that binds audit context to every record it emits."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["audit_context"] = {**self.extra, **extra.get("audit_context", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger_with_context(name: str, **context: Any) -> AuditLoggerAdapter:
    """Get a logger that tags its records, e.g. with ``asset=coin:0x1::m::T``."""
    return AuditLoggerAdapter(get_logger(name), context)
