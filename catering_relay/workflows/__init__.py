"""Catering request models, formatting, storage and notifications."""

from .models import CateringSubmission
from .messages import (
    build_request_message,
    build_decision_update,
    build_expired_update,
    build_thread_reply,
    APPROVE_ACTION_ID,
    PARTIAL_ACTION_ID,
    DENY_ACTION_ID,
)
from .modal import (
    build_deny_modal,
    build_partial_approval_modal,
    DENY_MODAL_CALLBACK_ID,
    PARTIAL_MODAL_CALLBACK_ID,
)
from .emails import build_decision_email
from .formatting import format_date, format_time, format_timestamp
from .storage import RequestStore, get_request_store

__all__ = [
    "CateringSubmission",
    "build_request_message",
    "build_decision_update",
    "build_expired_update",
    "build_thread_reply",
    "build_decision_email",
    "build_deny_modal",
    "build_partial_approval_modal",
    "format_date",
    "format_time",
    "format_timestamp",
    "RequestStore",
    "get_request_store",
    "APPROVE_ACTION_ID",
    "PARTIAL_ACTION_ID",
    "DENY_ACTION_ID",
    "DENY_MODAL_CALLBACK_ID",
    "PARTIAL_MODAL_CALLBACK_ID",
]
