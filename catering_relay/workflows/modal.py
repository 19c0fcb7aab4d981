"""Decision dialogs opened from the request message."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping

from catering_relay.models import CateringRequest, ConversationRef, RequestStatus

PARTIAL_MODAL_CALLBACK_ID = "partial_approval_submit"
DENY_MODAL_CALLBACK_ID = "deny_request_submit"

ROOMS_BLOCK_ID = "approved_rooms"
ROOMS_ACTION_ID = "approved_rooms_select"
EXPLANATION_BLOCK_ID = "partial_explanation"
EXPLANATION_ACTION_ID = "partial_explanation_input"
REASON_BLOCK_ID = "deny_reason"
REASON_ACTION_ID = "deny_reason_input"

MAX_TITLE_LENGTH = 24
MAX_OPTION_LENGTH = 75
# Leaves room for the rest of the status section in the updated message.
MAX_REASON_LENGTH = 1000


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass(frozen=True)
class PendingDecision:
    """Correlation data carried in a dialog's ``private_metadata``."""

    request_id: str
    decision: str
    channel_id: str | None = None
    ts: str | None = None

    @property
    def status(self) -> RequestStatus:
        return RequestStatus(self.decision)

    @property
    def conversation_ref(self) -> ConversationRef | None:
        if self.channel_id and self.ts:
            return ConversationRef(channel_id=self.channel_id, ts=self.ts)
        return None

    def to_metadata(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))


def parse_pending_decision(raw: str | None) -> PendingDecision:
    """Decode dialog metadata, raising ``ValueError`` when it is unusable."""

    try:
        payload = json.loads(raw or "")
    except json.JSONDecodeError as exc:
        raise ValueError("Decision metadata is invalid.") from exc

    if not isinstance(payload, dict):
        raise ValueError("Decision metadata is invalid.")

    request_id = payload.get("request_id")
    decision = payload.get("decision")
    if not isinstance(request_id, str) or not request_id:
        raise ValueError("Decision metadata is incomplete.")
    if decision not in (RequestStatus.PARTIALLY_APPROVED.value, RequestStatus.DENIED.value):
        raise ValueError("Decision metadata is incomplete.")

    channel_id = payload.get("channel_id")
    ts = payload.get("ts")
    return PendingDecision(
        request_id=request_id,
        decision=decision,
        channel_id=channel_id if isinstance(channel_id, str) else None,
        ts=ts if isinstance(ts, str) else None,
    )


def _plain(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _modal_shell(*, callback_id: str, title: str, submit: str, metadata: PendingDecision) -> Dict[str, Any]:
    return {
        "type": "modal",
        "callback_id": callback_id,
        "private_metadata": metadata.to_metadata(),
        "notify_on_close": True,
        "title": _plain(_truncate(title, MAX_TITLE_LENGTH)),
        "submit": _plain(submit),
        "close": _plain("Cancel"),
    }


def build_partial_approval_modal(request: CateringRequest, metadata: PendingDecision) -> Dict[str, Any]:
    """Dialog asking which of the requested rooms are approved."""

    options = [
        {"text": _plain(_truncate(room, MAX_OPTION_LENGTH)), "value": str(index)}
        for index, room in enumerate(request.rooms)
    ]
    view = _modal_shell(
        callback_id=PARTIAL_MODAL_CALLBACK_ID,
        title="Partial Approval",
        submit="Approve Selected",
        metadata=metadata,
    )
    view["blocks"] = [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*{request.details.event_name}*\nSelect the rooms that are approved."},
        },
        {
            "type": "input",
            "block_id": ROOMS_BLOCK_ID,
            "label": _plain("Approved rooms"),
            "element": {"type": "checkboxes", "action_id": ROOMS_ACTION_ID, "options": options},
        },
        {
            "type": "input",
            "block_id": EXPLANATION_BLOCK_ID,
            "optional": True,
            "label": _plain("Note for the planner"),
            "element": {
                "type": "plain_text_input",
                "action_id": EXPLANATION_ACTION_ID,
                "multiline": True,
                "max_length": MAX_REASON_LENGTH,
            },
        },
    ]
    return view


def build_deny_modal(request: CateringRequest, metadata: PendingDecision) -> Dict[str, Any]:
    """Dialog collecting the reason a request is denied."""

    view = _modal_shell(
        callback_id=DENY_MODAL_CALLBACK_ID,
        title="Deny Request",
        submit="Deny",
        metadata=metadata,
    )
    view["blocks"] = [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*{request.details.event_name}*\nThe planner will receive this reason."},
        },
        {
            "type": "input",
            "block_id": REASON_BLOCK_ID,
            "label": _plain("Reason for denial"),
            "element": {
                "type": "plain_text_input",
                "action_id": REASON_ACTION_ID,
                "multiline": True,
                "max_length": MAX_REASON_LENGTH,
            },
        },
    ]
    return view


def _state_value(values: Mapping[str, Any], block_id: str, action_id: str) -> Mapping[str, Any]:
    block = values.get(block_id)
    if not isinstance(block, dict):
        return {}
    control = block.get(action_id)
    return control if isinstance(control, dict) else {}


def extract_text(values: Mapping[str, Any], block_id: str, action_id: str) -> str | None:
    value = _state_value(values, block_id, action_id).get("value")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_selected_rooms(values: Mapping[str, Any], request: CateringRequest) -> List[str]:
    """Map the checked option indices back to room names, ignoring unknown ones."""

    selected = _state_value(values, ROOMS_BLOCK_ID, ROOMS_ACTION_ID).get("selected_options") or []
    rooms: List[str] = []
    for option in selected:
        raw_index = option.get("value") if isinstance(option, dict) else None
        if not isinstance(raw_index, str) or not raw_index.isdigit():
            continue
        index = int(raw_index)
        if index < len(request.rooms) and request.rooms[index] not in rooms:
            rooms.append(request.rooms[index])
    return rooms
