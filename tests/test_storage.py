"""Tests for the in-memory request store."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from structlog.testing import capture_logs

from catering_relay.models import (
    ConversationRef,
    Decision,
    RequestNotFoundError,
    RequestStatus,
    StatusTransitionError,
    new_request_id,
)
from catering_relay.workflows.storage import RequestStore, get_request_store

from conftest import make_request

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return RequestStore(ttl=timedelta(hours=24), clock=clock)


def _stored(store: RequestStore, **overrides):
    request = replace(make_request(**overrides), created_at=T0)
    store.put(request)
    return request


def _decision(status=RequestStatus.APPROVED, **kwargs):
    return Decision(status=status, decided_by="UAPPROVER", decided_at=T0, **kwargs)


def test_put_and_get_round_trip(store):
    request = _stored(store)

    assert store.get(request.id) is request
    assert request.id in store
    assert len(store) == 1


def test_duplicate_ids_are_rejected(store):
    request = _stored(store)

    with pytest.raises(ValueError):
        store.put(request)


def test_unknown_id_raises_not_found(store):
    with pytest.raises(RequestNotFoundError):
        store.get("req_missing")


def test_request_ids_are_unique():
    ids = {new_request_id() for _ in range(1000)}

    assert len(ids) == 1000
    assert all(request_id.startswith("req_") for request_id in ids)


def test_attach_conversation_records_message_reference(store):
    request = _stored(store, conversation_ref=None)
    ref = ConversationRef(channel_id="C1", ts="1.2")

    updated = store.attach_conversation(request.id, ref)

    assert updated.conversation_ref == ref
    assert store.get(request.id).conversation_ref == ref


def test_advance_status_applies_decision(store):
    request = _stored(store)
    decision = _decision(approved_rooms=request.rooms)

    updated = store.advance_status(request.id, RequestStatus.APPROVED, decision=decision)

    assert updated.status is RequestStatus.APPROVED
    assert updated.decision == decision
    assert store.get(request.id).status is RequestStatus.APPROVED


def test_terminal_status_cannot_be_left(store):
    request = _stored(store)
    store.advance_status(request.id, RequestStatus.APPROVED, decision=_decision())

    with pytest.raises(StatusTransitionError) as err:
        store.advance_status(request.id, RequestStatus.AWAITING_DENY_REASON)

    assert err.value.current is RequestStatus.APPROVED
    assert err.value.requested is RequestStatus.AWAITING_DENY_REASON


def test_awaiting_status_can_return_to_pending(store):
    request = _stored(store)
    store.advance_status(request.id, RequestStatus.AWAITING_PARTIAL_DETAIL)

    reverted = store.advance_status(request.id, RequestStatus.PENDING)

    assert reverted.status is RequestStatus.PENDING


def test_awaiting_status_only_accepts_its_own_decision(store):
    request = _stored(store)
    store.advance_status(request.id, RequestStatus.AWAITING_DENY_REASON)

    with pytest.raises(StatusTransitionError):
        store.advance_status(request.id, RequestStatus.PARTIALLY_APPROVED)
    with pytest.raises(StatusTransitionError):
        store.advance_status(request.id, RequestStatus.APPROVED)


def test_concurrent_decisions_have_exactly_one_winner(store):
    request = _stored(store)
    barrier = threading.Barrier(16)
    outcomes: list[str] = []
    lock = threading.Lock()

    def _click():
        barrier.wait()
        try:
            store.advance_status(request.id, RequestStatus.APPROVED, decision=_decision())
        except StatusTransitionError:
            result = "rejected"
        else:
            result = "won"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_click) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert outcomes.count("won") == 1
    assert outcomes.count("rejected") == 15


def test_entries_expire_after_ttl(store, clock):
    request = _stored(store)
    clock.advance(hours=23, minutes=59)
    assert store.get(request.id) is not None

    clock.advance(minutes=1)
    with capture_logs() as logs:
        with pytest.raises(RequestNotFoundError):
            store.get(request.id)

    assert len(store) == 0
    assert logs[0]["event"] == "request_expired"
    assert logs[0]["previous_status"] == "PENDING"


def test_expired_requests_cannot_be_decided(store, clock):
    request = _stored(store)
    clock.advance(hours=25)

    with pytest.raises(RequestNotFoundError):
        store.advance_status(request.id, RequestStatus.APPROVED, decision=_decision())


def test_purge_expired_returns_undecided_requests(store, clock):
    pending = _stored(store)
    decided = _stored(store)
    store.advance_status(decided.id, RequestStatus.APPROVED, decision=_decision())
    clock.advance(hours=25)
    fresh = replace(make_request(), created_at=clock.now)
    store.put(fresh)

    expired = store.purge_expired()

    assert [item.id for item in expired] == [pending.id]
    assert expired[0].status is RequestStatus.EXPIRED
    assert fresh.id in store
    assert len(store) == 1
    assert store.purge_expired() == []


def test_purge_includes_lazily_removed_requests(store, clock):
    request = _stored(store)
    clock.advance(hours=25)
    with pytest.raises(RequestNotFoundError):
        store.get(request.id)

    expired = store.purge_expired()

    assert [item.id for item in expired] == [request.id]


def test_get_request_store_uses_configured_ttl(seeded_env, monkeypatch):
    monkeypatch.setenv("REQUEST_TTL_SECONDS", "60")
    from catering_relay import config

    config.get_settings.cache_clear()
    get_request_store.cache_clear()

    store = get_request_store()

    assert store is get_request_store()
    assert store._ttl == timedelta(seconds=60)
