"""Shared fixtures: environment, fake Slack/SMTP collaborators, sample requests."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover - import-time guard
    sys.path.insert(0, str(ROOT))

from catering_relay import config  # noqa: E402
from catering_relay.mailer import get_mailer  # noqa: E402
from catering_relay.models import CateringRequest, ConversationRef, new_request_id  # noqa: E402
from catering_relay.workflows.models import CateringSubmission  # noqa: E402
from catering_relay.workflows.storage import get_request_store  # noqa: E402

APPROVER_ID = "UAPPROVER"
OUTSIDER_ID = "UOUTSIDER"


def _clear_caches() -> None:
    config.get_settings.cache_clear()
    get_request_store.cache_clear()
    get_mailer.cache_clear()


@pytest.fixture
def seeded_env(monkeypatch):
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-token")
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "secret")
    monkeypatch.setenv("SLACK_CHANNEL_ID", "CCATERING")
    monkeypatch.setenv("APPROVER_USER_IDS", f"{APPROVER_ID},UBACKUP")
    monkeypatch.setenv("CATERER_EMAIL", "caterer@example.com")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_FROM_ADDRESS", "events@example.com")
    _clear_caches()
    yield
    _clear_caches()


class DummySlackWebClient:
    """Records every WebClient call the relay makes."""

    def __init__(self):
        self.post_calls = []
        self.update_calls = []
        self.ephemeral_calls = []
        self.view_calls = []

    def chat_postMessage(self, **kwargs):
        self.post_calls.append(kwargs)
        return {"ok": True, "channel": kwargs["channel"], "ts": f"1700000000.{len(self.post_calls):06d}"}

    def chat_update(self, **kwargs):
        self.update_calls.append(kwargs)
        return {"ok": True}

    def chat_postEphemeral(self, **kwargs):
        self.ephemeral_calls.append(kwargs)
        return {"ok": True}

    def views_open(self, **kwargs):
        self.view_calls.append(kwargs)
        return {"ok": True}


class DummyMailer:
    def __init__(self, error: Exception | None = None):
        self.sent = []
        self.error = error

    def send(self, *, to, cc, subject, body):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": list(to), "cc": list(cc), "subject": subject, "body": body})
        return f"<message-{len(self.sent)}@example.com>"


@pytest.fixture
def slack_web_client():
    return DummySlackWebClient()


@pytest.fixture
def mailer():
    return DummyMailer()


def make_submission(**overrides) -> CateringSubmission:
    payload = {
        "eventName": "Spring Gala",
        "clientName": "Acme Corp",
        "eventDate": "2026-03-20",
        "guestCount": 120,
        "rooms": ["Hall A", "Hall B", "Hall C"],
        "plannerName": "Jordan Lee",
        "plannerEmail": "jordan@example.com",
        "plannerPhone": "555-0100",
        "setupTime": "16:00",
        "startTime": "18:00",
        "endTime": "22:30",
        "teardownTime": "23:30",
    }
    payload.update(overrides)
    return CateringSubmission.model_validate(payload)


def make_request(**overrides) -> CateringRequest:
    ref = overrides.pop("conversation_ref", ConversationRef(channel_id="CCATERING", ts="1700000000.000001"))
    return CateringRequest(
        id=overrides.pop("id", new_request_id()),
        details=make_submission(**overrides),
        conversation_ref=ref,
    )
