"""In-memory request store with lazy expiry."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Callable, Dict, List

import structlog

from catering_relay.config import get_settings
from catering_relay.models import (
    CateringRequest,
    ConversationRef,
    Decision,
    RequestNotFoundError,
    RequestStatus,
    StatusTransitionError,
    can_transition,
)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RequestStore:
    """Thread-safe mapping of request id to :class:`CateringRequest`.

    Entries older than *ttl* are invisible to :meth:`get` and removed on
    access. Nothing survives a process restart.
    """

    def __init__(self, *, ttl: timedelta, clock: Clock = _utcnow) -> None:
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: Dict[str, CateringRequest] = {}
        self._expired: List[CateringRequest] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def __contains__(self, request_id: str) -> bool:
        with self._lock:
            return self._live(request_id) is not None

    def put(self, request: CateringRequest) -> None:
        with self._lock:
            if request.id in self._requests:
                raise ValueError(f"Request {request.id} already exists.")
            self._requests[request.id] = request

    def get(self, request_id: str) -> CateringRequest:
        with self._lock:
            request = self._live(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    def delete(self, request_id: str) -> None:
        with self._lock:
            self._requests.pop(request_id, None)

    def attach_conversation(self, request_id: str, ref: ConversationRef) -> CateringRequest:
        with self._lock:
            request = self._live(request_id)
            if request is None:
                raise RequestNotFoundError(request_id)
            updated = replace(request, conversation_ref=ref)
            self._requests[request_id] = updated
            return updated

    def advance_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        *,
        decision: Decision | None = None,
    ) -> CateringRequest:
        """Atomically move a request to *new_status* and return the new record.

        Concurrent callers racing on the same transition see exactly one
        success; the others get :class:`StatusTransitionError`.
        """

        with self._lock:
            request = self._live(request_id)
            if request is None:
                raise RequestNotFoundError(request_id)
            if not can_transition(request.status, new_status):
                raise StatusTransitionError(request.status, new_status)

            changes: dict = {"status": new_status}
            if decision is not None:
                changes["decision"] = decision
            updated = replace(request, **changes)
            self._requests[request_id] = updated
            return updated

    def purge_expired(self) -> List[CateringRequest]:
        """Drop every expired entry and return the undecided ones, marked EXPIRED.

        Requests that were lazily removed by :meth:`get` since the previous
        purge are included as well.
        """

        with self._lock:
            for request_id in list(self._requests):
                self._live(request_id)
            expired, self._expired = self._expired, []
        return expired

    def _live(self, request_id: str) -> CateringRequest | None:
        # callers hold self._lock
        request = self._requests.get(request_id)
        if request is None:
            return None
        if self._clock() - request.created_at < self._ttl:
            return request

        del self._requests[request_id]
        if not request.status.is_terminal:
            expired = replace(request, status=RequestStatus.EXPIRED)
            self._expired.append(expired)
            structlog.get_logger().info(
                "request_expired",
                request_id=request_id,
                previous_status=request.status.value,
            )
        return None


@lru_cache()
def get_request_store() -> RequestStore:
    """Return the process-wide request store."""

    settings = get_settings()
    return RequestStore(ttl=timedelta(seconds=settings.request_ttl_seconds))
