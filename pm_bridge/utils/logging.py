"""Logging utilities and configuration."""

import logging
import logging.handlers
import sys
from typing import Iterable, Optional

from pm_bridge.config.settings import LoggingConfig


# Client libraries log full request URLs and headers at DEBUG
QUIET_LOGGERS = ('urllib3', 'requests', 'github', 'jira')

REDACTED = "***"

_traceback_formatter = logging.Formatter()


class RedactingFilter(logging.Filter):
    """Replace configured secrets in rendered log messages and tracebacks."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        self.secrets = [s for s in secrets if s and len(s) >= 4]

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True

        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None

        # Formatters reuse exc_text when it is already set
        if record.exc_info and not record.exc_text:
            record.exc_text = _traceback_formatter.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)
        if record.stack_info:
            record.stack_info = self.redact(record.stack_info)
        return True


def setup_logging(config: LoggingConfig, secrets: Optional[Iterable[str]] = None) -> None:
    """Set up logging for the whole process.

    Args:
        config: Level, format and optional rotating file target
        secrets: Credential values masked in every emitted record
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = logging.Formatter(config.format)
    redactor = RedactingFilter(secrets or ())

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.file_path:
        handlers.append(logging.handlers.RotatingFileHandler(
            config.file_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


class StructuredLogger:
    """Logger emitting ``EVENT=<name> key=value`` lines."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_event(self, level: str, event: str, **kwargs) -> None:
        """Log a structured event with additional context."""
        message = f"EVENT={event}"
        if kwargs:
            context = " ".join([f"{k}={v}" for k, v in kwargs.items()])
            message = f"{message} {context}"

        self.logger.log(getattr(logging, level.upper()), message)

    def log_tool_call(self, tool: str, outcome: str, **kwargs) -> None:
        """Log completion of a tool invocation."""
        self.log_event("INFO", "TOOL_CALL", tool=tool, outcome=outcome, **kwargs)

    def log_scope_violation(self, tool: str, resource: str, requested: str) -> None:
        """Log a denied access attempt."""
        self.log_event("WARNING", "SCOPE_VIOLATION",
                       tool=tool, resource=resource, requested=requested)

    def log_rate_limited(self, tool: str, retry_after_ms: int) -> None:
        """Log a call rejected by the rate limiter."""
        self.log_event("WARNING", "RATE_LIMITED", tool=tool, retry_after_ms=retry_after_ms)

    def log_audit(self, action: str, **kwargs) -> None:
        """Audit log for registration decisions; emitted even when INFO is filtered."""
        level = max(logging.INFO, self.logger.getEffectiveLevel())
        self.logger.log(level, f"EVENT=AUDIT action={action}" + "".join(
            f" {k}={v}" for k, v in kwargs.items()
        ))
