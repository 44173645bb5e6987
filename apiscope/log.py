"""
Structured JSON logging.

Every log line is a single JSON object so log collectors can index fields
such as tool, decision or status_code. Structured fields are attached with

    logger.info("Tool call completed", extra={"event_data": {"tool": name}})

Logs go to stderr: with the stdio transport, stdout carries the MCP protocol
itself and must not be written to.
"""

import json
import logging
import sys

ROOT_LOGGER_NAME = "apiscope"


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "WARNING",
         "logger": "apiscope.invoker", "message": "Tool call rejected by scope",
         "tool": "secrets_list", "decision": "denied"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "event_data"):
            log_entry.update(record.event_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "info") -> logging.Logger:
    """Install the JSON handler on the package logger and return it."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONLogFormatter())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers[:] = [handler]
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return logger
