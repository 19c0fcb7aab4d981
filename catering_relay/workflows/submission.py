"""Accepting catering requests from the web form."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from catering_relay.gateway import OutboundGateway, SendError
from catering_relay.models import CateringRequest, new_request_id

from .models import CateringSubmission
from .notifications import publish_request_message
from .storage import RequestStore


def parse_submission(payload: Mapping[str, Any] | None) -> CateringSubmission:
    """Validate the form payload; raises ``pydantic.ValidationError``."""

    return CateringSubmission.model_validate(payload or {})


def submit_request(
    *,
    submission: CateringSubmission,
    store: RequestStore,
    gateway: OutboundGateway,
    channel: str,
) -> CateringRequest:
    """Store a new PENDING request and announce it in Slack.

    If Slack cannot be reached the request is discarded again and
    :class:`SendError` propagates, so the form sees the failure.
    """

    request = CateringRequest(id=new_request_id(), details=submission)
    store.put(request)
    log = structlog.get_logger().bind(request_id=request.id)
    log.info("request_submitted", event_name=submission.event_name, rooms=list(submission.rooms))

    try:
        return publish_request_message(gateway=gateway, store=store, request=request, channel=channel)
    except SendError:
        store.delete(request.id)
        log.warning("request_discarded", reason="slack_post_failed")
        raise
