"""Block Kit message builders for catering requests."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

from catering_relay.models import CateringRequest, RequestStatus

from .formatting import format_date, format_date_time, format_time, format_timestamp

APPROVE_ACTION_ID = "approve_all"
PARTIAL_ACTION_ID = "partial_approval"
DENY_ACTION_ID = "deny_request"
DECISION_BLOCK_ID = "approval_actions"

_MISSING_VALUE = "_Not provided_"

_STATUS_EMOJI = {
    RequestStatus.APPROVED: ":white_check_mark:",
    RequestStatus.PARTIALLY_APPROVED: ":large_yellow_circle:",
    RequestStatus.DENIED: ":no_entry_sign:",
    RequestStatus.EXPIRED: ":hourglass:",
}

_REPLY_VERBS = {
    RequestStatus.APPROVED: "Approved",
    RequestStatus.PARTIALLY_APPROVED: "Partially approved",
    RequestStatus.DENIED: "Denied",
}


def _or_missing(value: Any) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return _MISSING_VALUE
    return str(value)


def _mrkdwn_section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _room_list(rooms: Iterable[str]) -> str:
    return ", ".join(rooms) or "_None_"


def _fields_grid(request: CateringRequest) -> Dict[str, Any]:
    details = request.details
    return {
        "type": "section",
        "fields": [
            {"type": "mrkdwn", "text": f"*Event:*\n{_or_missing(details.event_name)}"},
            {"type": "mrkdwn", "text": f"*Client:*\n{_or_missing(details.client_name)}"},
            {"type": "mrkdwn", "text": f"*Date:*\n{format_date(details.event_date)}"},
            {"type": "mrkdwn", "text": f"*Guests:*\n{details.guest_count}"},
        ],
    }


def _timeline_block(request: CateringRequest) -> Dict[str, Any]:
    details = request.details
    lines = [
        f"*Setup:* {format_date_time(details.setup_date or details.event_date, details.setup_time)}",
        f"*Event:* {format_time(details.start_time)} - {format_time(details.end_time)}",
        f"*Teardown:* {format_date_time(details.teardown_date or details.event_date, details.teardown_time)}",
    ]
    return _mrkdwn_section("\n".join(lines))


def _rooms_block(request: CateringRequest) -> Dict[str, Any]:
    decision = request.decision
    if decision is not None and decision.status is RequestStatus.PARTIALLY_APPROVED:
        return _mrkdwn_section(
            f"*Approved Rooms:*\n{_room_list(decision.approved_rooms)}\n"
            f"*Declined Rooms:*\n{_room_list(decision.declined_rooms)}"
        )
    return _mrkdwn_section(f"*Rooms Requested:*\n{_room_list(request.rooms)}")


def _contact_block(request: CateringRequest) -> Dict[str, Any]:
    details = request.details
    return _mrkdwn_section(
        f"*Party Planner:*\n{details.planner_name}\n{details.planner_email}\n{details.planner_phone}"
    )


def _extras_block(request: CateringRequest) -> Dict[str, Any] | None:
    details = request.details
    lines: List[str] = []
    if details.officiant:
        lines.append(f"*Officiant:* {details.officiant}")
    if details.parking_needed:
        lines.append("*Parking:* Required")
    if details.music_needed:
        lines.append("*Music:* Required")
    if details.notes:
        lines.append(f"*Notes:* {details.notes}")
    if not lines:
        return None
    return _mrkdwn_section("\n".join(lines))


def _detail_blocks(request: CateringRequest, header: str) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": header, "emoji": True}},
        _fields_grid(request),
        _timeline_block(request),
        _rooms_block(request),
        _contact_block(request),
    ]
    extras = _extras_block(request)
    if extras is not None:
        blocks.append(extras)
    return blocks


def _button_value(request_id: str, action: str) -> str:
    return json.dumps({"request_id": request_id, "action": action}, separators=(",", ":"))


def _decision_buttons(request_id: str) -> Dict[str, Any]:
    return {
        "type": "actions",
        "block_id": DECISION_BLOCK_ID,
        "elements": [
            {
                "type": "button",
                "text": {"type": "plain_text", "text": "Approve All", "emoji": True},
                "style": "primary",
                "action_id": APPROVE_ACTION_ID,
                "value": _button_value(request_id, APPROVE_ACTION_ID),
            },
            {
                "type": "button",
                "text": {"type": "plain_text", "text": "Partial Approval", "emoji": True},
                "action_id": PARTIAL_ACTION_ID,
                "value": _button_value(request_id, PARTIAL_ACTION_ID),
            },
            {
                "type": "button",
                "text": {"type": "plain_text", "text": "Deny", "emoji": True},
                "style": "danger",
                "action_id": DENY_ACTION_ID,
                "value": _button_value(request_id, DENY_ACTION_ID),
            },
        ],
    }


def build_request_message(request: CateringRequest) -> Dict[str, Any]:
    """Build the Slack message announcing a new request, with decision buttons."""

    blocks = _detail_blocks(request, "New Catering Event Request")
    blocks.append(
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"Request ID: `{request.id}`"}],
        }
    )
    blocks.append(_decision_buttons(request.id))

    return {
        "text": f"New Catering Request: {request.details.event_name}",
        "blocks": blocks,
    }


def build_decision_update(request: CateringRequest) -> Dict[str, Any]:
    """Return the message payload that replaces the buttons once decided."""

    decision = request.decision
    if decision is None:
        raise ValueError(f"Request {request.id} has no recorded decision.")

    blocks = _detail_blocks(request, "Catering Event Request")
    emoji = _STATUS_EMOJI.get(decision.status, ":information_source:")
    status_lines = [
        f"{emoji} *Status:* {decision.status.label}",
        f"*By:* <@{decision.decided_by}> on {format_timestamp(decision.decided_at)}",
    ]
    if decision.reason:
        label = "Reason" if decision.status is RequestStatus.DENIED else "Note"
        status_lines.append(f"*{label}:* {decision.reason}")
    blocks.append(_mrkdwn_section("\n".join(status_lines)))

    return {
        "text": f"{decision.status.label} - {request.details.event_name}",
        "blocks": blocks,
    }


def build_expired_update(request: CateringRequest) -> Dict[str, Any]:
    """Return the payload shown once a request expired without a decision."""

    blocks = _detail_blocks(request, "Catering Event Request")
    blocks.append(
        _mrkdwn_section(
            f"{_STATUS_EMOJI[RequestStatus.EXPIRED]} *Status:* {RequestStatus.EXPIRED.label}\n"
            f"Submitted {format_timestamp(request.created_at)}; no decision was recorded in time."
        )
    )
    return {
        "text": f"{RequestStatus.EXPIRED.label} - {request.details.event_name}",
        "blocks": blocks,
    }


def build_thread_reply(request: CateringRequest) -> str:
    """Short announcement posted in the thread of the original message."""

    decision = request.decision
    if decision is None:
        raise ValueError(f"Request {request.id} has no recorded decision.")

    verb = _REPLY_VERBS.get(decision.status, decision.status.label.title())
    text = f"{verb} by <@{decision.decided_by}> on {format_timestamp(decision.decided_at)}"
    if decision.status is RequestStatus.PARTIALLY_APPROVED:
        text += (
            f"\nApproved rooms: {_room_list(decision.approved_rooms)}"
            f"\nUnavailable rooms: {_room_list(decision.declined_rooms)}"
        )
    elif decision.reason:
        text += f"\nReason: {decision.reason}"
    return text
