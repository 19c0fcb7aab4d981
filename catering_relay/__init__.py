"""Catering request relay package initialisation."""

from .background import run_async  # noqa: F401
from .config import AppSettings, get_settings  # noqa: F401
from .logging_config import configure_logging  # noqa: F401
from .models import CateringRequest, ConversationRef, Decision, RequestStatus  # noqa: F401

__all__ = [
    "AppSettings",
    "get_settings",
    "run_async",
    "configure_logging",
    "CateringRequest",
    "ConversationRef",
    "Decision",
    "RequestStatus",
]
