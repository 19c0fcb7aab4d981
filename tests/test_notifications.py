"""Tests for publishing requests and delivering decisions."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from slack_sdk.errors import SlackApiError
import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars
from structlog.testing import capture_logs

from catering_relay.gateway import OutboundGateway, SendError
from catering_relay.models import ConversationRef, Decision, RequestStatus
from catering_relay.slack_client import SlackClient
from catering_relay.workflows import notifications
from catering_relay.workflows.storage import RequestStore
from catering_relay.workflows.submission import submit_request

from conftest import DummyMailer, DummySlackWebClient, make_request, make_submission

DECIDED_AT = datetime(2025, 3, 20, 22, 0, tzinfo=UTC)


class DummyResponse(dict):
    """Minimal Slack response stub for error handling tests."""

    def __init__(self, error: str = "invalid_arguments", status_code: int = 400) -> None:
        super().__init__({"error": error})
        self.status_code = status_code

    @property
    def data(self) -> dict[str, str]:
        return dict(self)


class RecordingWebClient(DummySlackWebClient):
    def __init__(self, timeline, *, fail_post=False):
        super().__init__()
        self.timeline = timeline
        self.fail_post = fail_post

    def chat_postMessage(self, **kwargs):
        if self.fail_post:
            raise SlackApiError("post error", DummyResponse())
        self.timeline.append("thread_reply" if "thread_ts" in kwargs else "post")
        return super().chat_postMessage(**kwargs)

    def chat_update(self, **kwargs):
        self.timeline.append("update")
        return super().chat_update(**kwargs)


class RecordingMailer(DummyMailer):
    def __init__(self, timeline, error=None):
        super().__init__(error=error)
        self.timeline = timeline

    def send(self, **kwargs):
        self.timeline.append("email")
        return super().send(**kwargs)


@pytest.fixture
def store():
    return RequestStore(ttl=timedelta(hours=24))


def _approved(**overrides):
    request = make_request(**overrides)
    decision = Decision(
        status=RequestStatus.APPROVED,
        decided_by="UAPPROVER",
        decided_at=DECIDED_AT,
        approved_rooms=request.rooms,
    )
    return replace(request, status=RequestStatus.APPROVED, decision=decision)


def test_publish_request_message_attaches_conversation(store):
    web_client = DummySlackWebClient()
    gateway = OutboundGateway(slack=SlackClient(client=web_client), mailer=DummyMailer())
    request = make_request(conversation_ref=None)
    store.put(request)

    updated = notifications.publish_request_message(
        gateway=gateway, store=store, request=request, channel="CCATERING"
    )

    assert updated.conversation_ref == ConversationRef(channel_id="CCATERING", ts="1700000000.000001")
    assert store.get(request.id).conversation_ref == updated.conversation_ref
    assert web_client.post_calls[0]["text"] == "New Catering Request: Spring Gala"


def test_publish_request_message_logs_webhook_failure(store):
    clear_contextvars()
    bind_contextvars(trace_id="trace-xyz")
    gateway = OutboundGateway(slack=SlackClient(client=RecordingWebClient([], fail_post=True)), mailer=DummyMailer())
    request = make_request(conversation_ref=None)
    store.put(request)

    with capture_logs(processors=[structlog.contextvars.merge_contextvars]) as logs:
        with pytest.raises(SendError):
            notifications.publish_request_message(gateway=gateway, store=store, request=request, channel="C123")

    clear_contextvars()

    events = [entry for entry in logs if entry.get("event") == "webhook_failed"]
    assert events, "webhook_failed log was not emitted"
    event = events[0]
    assert event.get("trace_id") == "trace-xyz"
    assert event.get("operation") == "post_new"
    assert event.get("channel") == "C123"
    assert event.get("error") == "invalid_arguments"


def test_submit_request_discards_request_when_slack_fails(store):
    gateway = OutboundGateway(slack=SlackClient(client=RecordingWebClient([], fail_post=True)), mailer=DummyMailer())

    with pytest.raises(SendError):
        submit_request(submission=make_submission(), store=store, gateway=gateway, channel="CCATERING")

    assert len(store) == 0


def test_submit_request_stores_pending_request(store):
    gateway = OutboundGateway(slack=SlackClient(client=DummySlackWebClient()), mailer=DummyMailer())

    created = submit_request(submission=make_submission(), store=store, gateway=gateway, channel="CCATERING")

    stored = store.get(created.id)
    assert stored.status is RequestStatus.PENDING
    assert stored.conversation_ref is not None


def test_deliver_decision_sends_email_before_updating_slack():
    timeline: list[str] = []
    mailer = RecordingMailer(timeline)
    web_client = RecordingWebClient(timeline)
    gateway = OutboundGateway(slack=SlackClient(client=web_client), mailer=mailer)

    notifications.deliver_decision(gateway=gateway, request=_approved(), caterer_email="caterer@example.com")

    assert timeline == ["email", "update", "thread_reply"]
    assert mailer.sent[0]["to"] == ["jordan@example.com"]
    assert mailer.sent[0]["cc"] == ["caterer@example.com"]
    assert mailer.sent[0]["subject"] == "Catering Request Approved: Spring Gala"
    assert web_client.update_calls[0]["ts"] == "1700000000.000001"


def test_deliver_decision_still_updates_slack_when_email_fails():
    timeline: list[str] = []
    mailer = RecordingMailer(timeline, error=ConnectionRefusedError("smtp down"))
    gateway = OutboundGateway(slack=SlackClient(client=RecordingWebClient(timeline)), mailer=mailer)

    with capture_logs() as logs:
        notifications.deliver_decision(gateway=gateway, request=_approved(), caterer_email="caterer@example.com")

    assert timeline == ["email", "update", "thread_reply"]
    assert mailer.sent == []
    assert "decision_email_not_sent" in [entry["event"] for entry in logs]


def test_deliver_decision_uses_fallback_reference():
    web_client = DummySlackWebClient()
    gateway = OutboundGateway(slack=SlackClient(client=web_client), mailer=DummyMailer())
    fallback = ConversationRef(channel_id="COTHER", ts="1.5")

    notifications.deliver_decision(
        gateway=gateway,
        request=_approved(conversation_ref=None),
        caterer_email="caterer@example.com",
        fallback_ref=fallback,
    )

    assert web_client.update_calls[0]["channel"] == "COTHER"
    assert web_client.post_calls[0]["thread_ts"] == "1.5"


def test_announce_expiry_replaces_buttons():
    web_client = DummySlackWebClient()
    gateway = OutboundGateway(slack=SlackClient(client=web_client), mailer=DummyMailer())
    expired = replace(make_request(), status=RequestStatus.EXPIRED)

    notifications.announce_expiry(gateway=gateway, request=expired)

    assert web_client.update_calls[0]["text"] == "EXPIRED - Spring Gala"
