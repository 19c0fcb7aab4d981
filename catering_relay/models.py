"""Runtime records for catering requests and their approval lifecycle."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from catering_relay.workflows.models import CateringSubmission


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    AWAITING_PARTIAL_DETAIL = "AWAITING_PARTIAL_DETAIL"
    AWAITING_DENY_REASON = "AWAITING_DENY_REASON"
    APPROVED = "APPROVED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    DENIED = "DENIED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


TERMINAL_STATUSES = frozenset(
    {
        RequestStatus.APPROVED,
        RequestStatus.PARTIALLY_APPROVED,
        RequestStatus.DENIED,
        RequestStatus.EXPIRED,
    }
)

DECISION_STATUSES = frozenset(
    {RequestStatus.APPROVED, RequestStatus.PARTIALLY_APPROVED, RequestStatus.DENIED}
)

# Terminal states map to an empty set and can never be left.
_ALLOWED_TRANSITIONS = {
    RequestStatus.PENDING: {
        RequestStatus.APPROVED,
        RequestStatus.AWAITING_PARTIAL_DETAIL,
        RequestStatus.AWAITING_DENY_REASON,
        RequestStatus.EXPIRED,
    },
    RequestStatus.AWAITING_PARTIAL_DETAIL: {
        RequestStatus.PARTIALLY_APPROVED,
        RequestStatus.PENDING,
        RequestStatus.EXPIRED,
    },
    RequestStatus.AWAITING_DENY_REASON: {
        RequestStatus.DENIED,
        RequestStatus.PENDING,
        RequestStatus.EXPIRED,
    },
    RequestStatus.APPROVED: set(),
    RequestStatus.PARTIALLY_APPROVED: set(),
    RequestStatus.DENIED: set(),
    RequestStatus.EXPIRED: set(),
}


class StatusTransitionError(Exception):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, current: RequestStatus, requested: RequestStatus) -> None:
        super().__init__(f"Cannot transition from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


class RequestNotFoundError(LookupError):
    """Raised when a request id is unknown or its entry has expired."""


def can_transition(current: RequestStatus, new_status: RequestStatus) -> bool:
    return new_status in _ALLOWED_TRANSITIONS.get(current, set())


def new_request_id() -> str:
    """Return an unguessable identifier safe to embed in Slack buttons."""

    return f"req_{secrets.token_urlsafe(16)}"


@dataclass(frozen=True)
class ConversationRef:
    """Slack channel and message timestamp of the posted request."""

    channel_id: str
    ts: str


@dataclass(frozen=True)
class Decision:
    status: RequestStatus
    decided_by: str
    decided_at: datetime
    approved_rooms: Tuple[str, ...] = ()
    declined_rooms: Tuple[str, ...] = ()
    reason: str | None = None


@dataclass(frozen=True)
class CateringRequest:
    """A submitted catering request as held by the request store."""

    id: str
    details: CateringSubmission
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    conversation_ref: ConversationRef | None = None
    decision: Decision | None = None

    @property
    def rooms(self) -> Tuple[str, ...]:
        return self.details.rooms

    def split_rooms(self, selected) -> tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Partition the requested rooms into (approved, declined), keeping order."""

        chosen = set(selected)
        approved = tuple(room for room in self.rooms if room in chosen)
        declined = tuple(room for room in self.rooms if room not in chosen)
        return approved, declined
