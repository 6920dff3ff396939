"""
Structured JSON logging configuration.

Provides a JSON formatter and a ``setup_logging()`` function that
replaces the default logging configuration with structured output.
Each log record is emitted as a single JSON line containing
``timestamp``, ``level``, ``logger`` and ``message``, plus ``view`` and
``statement`` when the record carries them as extras.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import json
import logging
from datetime import UTC, datetime

# LogRecord extras copied into the JSON line when present.
EXTRA_FIELDS = ("view", "statement")


class JSONFormatter(logging.Formatter):
    """Logging formatter that outputs a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        """Format *record* as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure the root logger with structured JSON output.

    Removes any existing handlers on the root logger and installs
    a single ``StreamHandler`` using :class:`JSONFormatter`.

    Args:
        level: Logging level for the root logger.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicate output.
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
