"""Outbound delivery to Slack and email, with uniform failure reporting."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Protocol, Sequence

import aiosmtplib
from slack_sdk.errors import SlackApiError, SlackClientError
import structlog

from catering_relay.models import ConversationRef
from catering_relay.slack_client import SlackClient


class SendError(Exception):
    """Raised when Slack or the mail server could not be reached or refused a call."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class Mailer(Protocol):
    def send(self, *, to: Sequence[str], cc: Sequence[str], subject: str, body: str) -> str: ...


def _slack_error_code(exc: Exception) -> str:
    if isinstance(exc, SlackApiError) and getattr(exc, "response", None) is not None:
        return str(exc.response.get("error") or exc)
    return str(exc) or exc.__class__.__name__


# urllib surfaces socket timeouts as TimeoutError, an OSError subclass.
_SLACK_FAILURES = (SlackClientError, OSError)
_SMTP_FAILURES = (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError)


class OutboundGateway:
    """Send notifications through Slack and SMTP.

    ``post_new`` and ``send_email`` raise :class:`SendError`; the in-place
    edits are best-effort because they only ever follow a committed decision.
    """

    def __init__(self, *, slack: SlackClient, mailer: Mailer) -> None:
        self._slack = slack
        self._mailer = mailer

    def post_new(self, notification: Mapping[str, Any], *, channel: str) -> ConversationRef:
        log = structlog.get_logger().bind(operation="post_new", channel=channel)
        try:
            response = self._slack.post_message(
                channel=channel,
                text=notification["text"],
                blocks=notification["blocks"],
            )
        except _SLACK_FAILURES as exc:
            error_code = _slack_error_code(exc)
            log.error("webhook_failed", error=error_code)
            raise SendError("post_new", error_code) from exc

        channel_id = response.get("channel")
        ts = response.get("ts")
        if not channel_id or not ts:
            log.error("webhook_failed", error="missing_message_reference")
            raise SendError("post_new", "Slack response did not include channel and ts")
        return ConversationRef(channel_id=channel_id, ts=ts)

    def update_in_place(self, ref: ConversationRef, notification: Mapping[str, Any]) -> bool:
        try:
            self._slack.update_message(
                channel=ref.channel_id,
                ts=ref.ts,
                text=notification["text"],
                blocks=notification["blocks"],
            )
        except _SLACK_FAILURES as exc:
            structlog.get_logger().error(
                "webhook_failed",
                operation="update_in_place",
                channel=ref.channel_id,
                ts=ref.ts,
                error=_slack_error_code(exc),
            )
            return False
        return True

    def post_thread_reply(self, ref: ConversationRef, text: str) -> bool:
        try:
            self._slack.post_message(channel=ref.channel_id, text=text, thread_ts=ref.ts)
        except _SLACK_FAILURES as exc:
            structlog.get_logger().error(
                "webhook_failed",
                operation="post_thread_reply",
                channel=ref.channel_id,
                ts=ref.ts,
                error=_slack_error_code(exc),
            )
            return False
        return True

    def send_email(self, *, to: Sequence[str], cc: Sequence[str], subject: str, body: str) -> str:
        try:
            return self._mailer.send(to=list(to), cc=list(cc), subject=subject, body=body)
        except _SMTP_FAILURES as exc:
            detail = str(exc) or exc.__class__.__name__
            structlog.get_logger().error("email_failed", to=list(to), subject=subject, error=detail)
            raise SendError("send_email", detail) from exc
