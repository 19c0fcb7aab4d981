"""Structured JSON logging for the relay process."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping

import structlog

SERVICE_NAME = "catering-relay"

# Bolt and the Slack SDK log every HTTP round trip at DEBUG/INFO.
_CHATTY_LOGGERS = ("slack_bolt", "slack_sdk")


def add_service_name(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Tag each event so relay lines can be told apart in shared log streams."""

    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: int = logging.INFO, *, slack_level: int = logging.WARNING) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(slack_level)
