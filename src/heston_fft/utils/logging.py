"""
Logging for the pricing engine.

Handlers are attached to the ``heston_fft`` package logger only, so an
application's root logging setup is left alone. Contextual fields (strike,
expiry, grid size) travel on each record as ``extra_fields``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from heston_fft.core.config import LoggingConfig

PACKAGE_LOGGER = "heston_fft"


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_fields", None) or {}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Contextual fields are merged into the top level of the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Single-line console format with context in brackets."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            # Keep any traceback below the context
            head, sep, tail = line.partition("\n")
            line = f"{head} [{pairs}]{sep}{tail}"
        return line


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Install handlers on the package logger.

    Calling it again replaces the handlers from the previous call. With no
    handlers configured, records propagate to the root logger as usual.

    Args:
        config: Logging configuration. If None, uses defaults.

    Returns:
        The configured package logger
    """
    config = config or LoggingConfig()
    level = getattr(logging, config.level)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(level)

    handlers: list[logging.Handler] = []
    if config.console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(JSONFormatter() if config.format == "json" else TextFormatter())
        handlers.append(console)

    if config.log_dir is not None:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = logging.FileHandler(config.log_dir / f"heston_fft_{stamp}.log")
        log_file.setFormatter(JSONFormatter())
        handlers.append(log_file)

    for handler in handlers:
        handler.setLevel(level)
        package_logger.addHandler(handler)
    package_logger.propagate = not handlers

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, typically called with ``__name__``."""
    return logging.getLogger(name)


class ContextAdapter(logging.LoggerAdapter):
    """Attaches fixed context to every record; per-call context wins on clashes."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = {**self.extra, **extra.get("extra_fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_contextual_logger(name: str, **context: Any) -> ContextAdapter:
    """
    Logger that tags every record with ``context``.

    Example:
        >>> log = get_contextual_logger(__name__, strike=105.0, expiry=0.25)
        >>> log.info("Calibration started")
    """
    return ContextAdapter(get_logger(name), context)
