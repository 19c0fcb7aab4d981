"""Authentication of Slack interaction callbacks (button clicks and dialogs).

Slack signs every callback with the app's signing secret. Approvals change
request state, so a callback is only handed to Bolt once its signature and
timestamp have been checked here.
"""

from __future__ import annotations

import hmac
import time
from hashlib import sha256
from typing import Mapping

SIGNATURE_HEADER = "X-Slack-Signature"
TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SIGNATURE_VERSION = "v0"
REPLAY_WINDOW_SECONDS = 300


def sign_interaction(signing_secret: str, timestamp: str, body: str) -> str:
    message = f"{SIGNATURE_VERSION}:{timestamp}:{body}".encode("utf-8")
    digest = hmac.new(signing_secret.encode("utf-8"), message, sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def _within_replay_window(timestamp: str, window: int) -> bool:
    if not timestamp.isdigit():
        return False
    return abs(time.time() - int(timestamp)) <= window


def verify_interaction(
    *,
    signing_secret: str,
    headers: Mapping[str, str],
    body: str,
    window: int = REPLAY_WINDOW_SECONDS,
) -> bool:
    """Return True when *headers* carry a valid, fresh signature for *body*."""

    timestamp = headers.get(TIMESTAMP_HEADER) or ""
    signature = headers.get(SIGNATURE_HEADER) or ""
    if not signing_secret or not signature or not _within_replay_window(timestamp, window):
        return False
    return hmac.compare_digest(sign_interaction(signing_secret, timestamp, body), signature)
