"""
Logging for the placement matching engine.

Loguru sinks for the console, a rotating application log and a separate
audit log. Lines written while the queue processor handles a task carry
that task's id (see task_context). Audit entries go through audit_log and
are tagged with one of AUDIT_TYPES.
"""

import re
import sys
from typing import Any

from loguru import logger

from placement_matching.utils.config import LoggingSettings, get_settings

# Audit channels: processor runs, queued triggers, queue cleanup
AUDIT_TYPES = frozenset({"RUN", "TRIGGER", "CLEANUP"})

AUDIT_LOG_NAME = "matching_audit.log"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<magenta>{extra[task_id]}</magenta> | "
    "<level>{message}</level>"
)

# Error text from the driver can echo the connection string
_MONGO_CREDENTIALS = re.compile(r"(mongodb(?:\+srv)?://)[^@/\s]+@")
_SECRET_KEYS = ("password", "secret")


def setup_logging(settings: LoggingSettings | None = None) -> None:
    """
    Install the console, application and audit sinks.

    Safe to call again; existing sinks are replaced.
    """
    app_settings = get_settings()
    log_settings = settings or app_settings.logging

    logger.remove()
    logger.configure(extra={"task_id": "-"})

    # Locals stay out of tracebacks unless debugging in development
    diagnose = app_settings.debug and app_settings.environment == "development"

    if log_settings.console_output:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=log_settings.level,
            colorize=True,
            backtrace=True,
            diagnose=diagnose,
        )

    if log_settings.file_output:
        _add_file_sinks(log_settings, diagnose)

    logger.info(
        f"Logging initialized - level {log_settings.level}, "
        f"file output {'on' if log_settings.file_output else 'off'}"
    )


def _add_file_sinks(log_settings: LoggingSettings, diagnose: bool) -> None:
    log_file = log_settings.file_path
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # enqueue=True: the scheduler thread and task workers write concurrently
    logger.add(
        log_file,
        format=log_settings.format,
        level=log_settings.level,
        rotation=log_settings.rotation,
        retention=log_settings.retention,
        compression="zip",
        backtrace=True,
        diagnose=diagnose,
        enqueue=True,
    )
    logger.add(
        log_file.parent / AUDIT_LOG_NAME,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {extra[audit_type]: <7} | {message}",
        level="INFO",
        filter=lambda record: "audit_type" in record["extra"],
        rotation="1 week",
        retention="1 year",
        compression="zip",
        enqueue=True,
    )


def get_logger(name: str) -> Any:
    """Logger bound to a component name (typically __name__)."""
    return logger.bind(name=name)


def task_context(task_id: str):
    """Context manager tagging every log line inside it with a task id."""
    return logger.contextualize(task_id=task_id)


def redact(value: Any) -> Any:
    """
    Strip credentials from audit details.

    Values under password/secret keys are masked, and the user:password
    part of any MongoDB connection string inside a string is replaced.
    """
    if isinstance(value, dict):
        return {
            k: "***" if any(s in str(k).lower() for s in _SECRET_KEYS) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    if isinstance(value, str):
        return _MONGO_CREDENTIALS.sub(r"\1***@", value)
    return value


def audit_log(action: str, details: dict[str, Any], audit_type: str = "RUN") -> None:
    """
    Write one line to the audit log.

    Args:
        action: What happened (e.g. "batch_processed", "manual_trigger")
        details: Context for the entry; credentials are redacted
        audit_type: One of AUDIT_TYPES

    Raises:
        ValueError: If audit_type is not a known channel
    """
    if audit_type not in AUDIT_TYPES:
        raise ValueError(f"Unknown audit type: {audit_type}")
    logger.bind(audit_type=audit_type).info(f"{action} | {redact(details)}")


class LoggerMixin:
    """Gives a class a `logger` bound to its class name."""

    @property
    def logger(self) -> Any:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


# Module-level logger for quick access
log = logger
