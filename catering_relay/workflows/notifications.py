"""Publishing new requests and relaying decisions back out."""

from __future__ import annotations

import structlog

from catering_relay.gateway import OutboundGateway, SendError
from catering_relay.models import CateringRequest, ConversationRef

from .emails import build_decision_email
from .messages import (
    build_decision_update,
    build_expired_update,
    build_request_message,
    build_thread_reply,
)
from .storage import RequestStore


def publish_request_message(
    *,
    gateway: OutboundGateway,
    store: RequestStore,
    request: CateringRequest,
    channel: str,
) -> CateringRequest:
    """Post the request to Slack and record where it landed.

    Raises :class:`SendError` when Slack rejects the post; the caller decides
    what happens to the stored request.
    """

    log = structlog.get_logger().bind(request_id=request.id, channel=channel)
    ref = gateway.post_new(build_request_message(request), channel=channel)
    updated = store.attach_conversation(request.id, ref)
    log.info("request_message_posted", message_channel=ref.channel_id, ts=ref.ts)
    return updated


def deliver_decision(
    *,
    gateway: OutboundGateway,
    request: CateringRequest,
    caterer_email: str,
    fallback_ref: ConversationRef | None = None,
) -> None:
    """Send the decision email, then edit the Slack message, then reply in thread.

    Runs after the interaction was acknowledged, so every failure ends here
    in the log.
    """

    log = structlog.get_logger().bind(request_id=request.id)
    decision = request.decision
    if decision is None:
        log.error("decision_missing")
        return
    log = log.bind(decision=decision.status.value)

    subject, body = build_decision_email(request)
    try:
        message_id = gateway.send_email(
            to=[request.details.planner_email],
            cc=[caterer_email],
            subject=subject,
            body=body,
        )
    except SendError as exc:
        log.warning("decision_email_not_sent", error=exc.detail)
    else:
        log.info("decision_email_sent", message_id=message_id)

    ref = request.conversation_ref or fallback_ref
    if ref is None:
        log.warning("message_reference_missing")
        return

    if gateway.update_in_place(ref, build_decision_update(request)):
        log.info("request_message_updated", message_channel=ref.channel_id)
    gateway.post_thread_reply(ref, build_thread_reply(request))


def announce_expiry(*, gateway: OutboundGateway, request: CateringRequest) -> None:
    """Replace the buttons of an expired request with an expiry notice."""

    ref = request.conversation_ref
    if ref is None:
        return
    if gateway.update_in_place(ref, build_expired_update(request)):
        structlog.get_logger().info("expired_message_updated", request_id=request.id)
