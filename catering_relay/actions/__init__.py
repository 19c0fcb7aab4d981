"""Utilities for handling Slack interaction payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class ActionContext:
    """Parsed context describing a decision button click."""

    request_id: str
    action: str


def parse_action_context(raw_value: str, *, expected_action: str | None = None) -> ActionContext:
    """Parse a button value of the form ``{"request_id": ..., "action": ...}``."""

    try:
        payload = json.loads(raw_value)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ValueError("Invalid action payload.") from exc

    if not isinstance(payload, dict):
        raise ValueError("Invalid action payload.")

    request_id = payload.get("request_id")
    action = payload.get("action")

    if not isinstance(request_id, str) or not request_id:
        raise ValueError("Invalid action payload.")
    if not isinstance(action, str) or not action:
        raise ValueError("Invalid action payload.")
    if expected_action is not None and action != expected_action:
        raise ValueError("Action payload does not match the clicked button.")

    return ActionContext(request_id=request_id, action=action)


def is_user_authorized(user_id: str | None, allowed_ids: Iterable[str]) -> bool:
    """Return True when the user is in the configured approver allow list."""

    if not user_id:
        return False
    normalized = {item.strip() for item in allowed_ids if item}
    return user_id in normalized
