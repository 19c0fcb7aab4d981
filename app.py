"""Application entry point for the catering request relay."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Callable, Mapping
from uuid import uuid4

from flask import Flask, jsonify, request
from pydantic import ValidationError
from slack_bolt import App as SlackApp
from slack_bolt.adapter.flask import SlackRequestHandler
from slack_sdk import WebClient
from slack_sdk.errors import SlackClientError
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from catering_relay.actions import is_user_authorized, parse_action_context
from catering_relay.background import run_async
from catering_relay.config import AppSettings, get_settings
from catering_relay.gateway import OutboundGateway, SendError
from catering_relay.logging_config import configure_logging
from catering_relay.mailer import get_mailer
from catering_relay.models import (
    CateringRequest,
    ConversationRef,
    Decision,
    RequestNotFoundError,
    RequestStatus,
    StatusTransitionError,
)
from catering_relay.security import TIMESTAMP_HEADER, verify_interaction
from catering_relay.slack_client import SlackClient
from catering_relay.workflows import (
    APPROVE_ACTION_ID,
    DENY_ACTION_ID,
    DENY_MODAL_CALLBACK_ID,
    PARTIAL_ACTION_ID,
    PARTIAL_MODAL_CALLBACK_ID,
    build_deny_modal,
    build_partial_approval_modal,
    get_request_store,
)
from catering_relay.workflows.modal import (
    EXPLANATION_ACTION_ID,
    EXPLANATION_BLOCK_ID,
    REASON_ACTION_ID,
    REASON_BLOCK_ID,
    ROOMS_BLOCK_ID,
    PendingDecision,
    extract_selected_rooms,
    extract_text,
    parse_pending_decision,
)
from catering_relay.workflows.models import describe_validation_error
from catering_relay.workflows.notifications import announce_expiry, deliver_decision
from catering_relay.workflows.submission import parse_submission, submit_request

_AWAITING_STATUS = {
    RequestStatus.PARTIALLY_APPROVED: RequestStatus.AWAITING_PARTIAL_DETAIL,
    RequestStatus.DENIED: RequestStatus.AWAITING_DENY_REASON,
}

_EXPIRED_TEXT = "This request has expired or could not be found. Please ask the planner to resubmit it."


def _build_gateway(client) -> OutboundGateway:
    return OutboundGateway(slack=SlackClient(client=client), mailer=get_mailer())


def _create_bolt_app(settings: AppSettings) -> SlackApp:
    """Initialise the Slack Bolt application using validated settings.

    Signatures are checked by the Flask route before Bolt sees the request.
    """

    return SlackApp(
        client=WebClient(token=settings.bot_token, timeout=settings.outbound_timeout_seconds),
        signing_secret=settings.signing_secret,
        token_verification_enabled=False,
        request_verification_enabled=False,
    )


def _register_error_handlers(flask_app: Flask) -> None:
    """Register a JSON error handler that attaches a trace identifier."""

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        trace_id = str(uuid4())
        flask_app.logger.exception(
            "Unhandled application error", extra={"trace_id": trace_id}, exc_info=error
        )
        response = jsonify({"success": False, "error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _sweep_expired(client) -> None:
    expired = get_request_store().purge_expired()
    if not expired:
        return
    gateway = _build_gateway(client)
    for stale in expired:
        run_async(announce_expiry, gateway=gateway, request=stale)


def _notify_actor(client, *, channel_id: str | None, user_id: str | None, text: str, log) -> None:
    """Post an ephemeral message only the acting user can see."""

    if not channel_id or not user_id:
        return
    try:
        SlackClient(client=client).post_ephemeral(channel=channel_id, user=user_id, text=text)
    except SlackClientError as exc:
        error_code = exc.response.get("error") if getattr(exc, "response", None) else str(exc)
        log.warning("ephemeral_failed", error=error_code)


def _already_handled_text(status: RequestStatus) -> str:
    if status in (RequestStatus.AWAITING_PARTIAL_DETAIL, RequestStatus.AWAITING_DENY_REASON):
        return "A decision for this request is already in progress."
    if status is RequestStatus.EXPIRED:
        return _EXPIRED_TEXT
    if status is RequestStatus.PENDING:
        return "This dialog is no longer active. Please use the buttons on the request again."
    return "This request has already been decided."


def _message_ref(body: Mapping[str, Any]) -> ConversationRef | None:
    channel_id = (body.get("channel") or {}).get("id")
    ts = (body.get("message") or {}).get("ts")
    if channel_id and ts:
        return ConversationRef(channel_id=channel_id, ts=ts)
    return None


def _resolve_decision_click(ack, body, client, log, *, action_id: str, verb: str):
    """Parse and authorise a button click; returns None after acking a rejection."""

    actions = body.get("actions") or []
    if not actions:
        ack({"response_type": "ephemeral", "text": "Unable to process this action payload."})
        log.warning("action_missing_payload")
        return None

    try:
        context = parse_action_context(actions[0].get("value", ""), expected_action=action_id)
    except ValueError:
        ack({"response_type": "ephemeral", "text": "This action payload is invalid. Please retry from Slack."})
        log.warning("invalid_action_payload", action=action_id)
        return None

    user_id = (body.get("user") or {}).get("id")
    channel_id = (body.get("channel") or {}).get("id")
    settings = get_settings()
    if not is_user_authorized(user_id, settings.approver_user_ids):
        ack()
        _notify_actor(
            client,
            channel_id=channel_id,
            user_id=user_id,
            text=f"You are not authorized to {verb} this request.",
            log=log,
        )
        log.warning("unauthorized_attempt", user_id=user_id, action=action_id, request_id=context.request_id)
        return None

    return context, user_id, channel_id


def _handle_approve_all_action(ack, body, client, logger):
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    log = structlog.get_logger().bind(trace_id=trace_id)
    try:
        resolved = _resolve_decision_click(ack, body, client, log, action_id=APPROVE_ACTION_ID, verb="approve")
        if resolved is None:
            return
        context, user_id, channel_id = resolved
        log = log.bind(request_id=context.request_id, user_id=user_id)

        store = get_request_store()
        try:
            pending = store.get(context.request_id)
            decided = store.advance_status(
                pending.id,
                RequestStatus.APPROVED,
                decision=Decision(
                    status=RequestStatus.APPROVED,
                    decided_by=user_id,
                    decided_at=datetime.now(UTC),
                    approved_rooms=pending.rooms,
                ),
            )
        except RequestNotFoundError:
            ack()
            _notify_actor(client, channel_id=channel_id, user_id=user_id, text=_EXPIRED_TEXT, log=log)
            log.warning("request_missing")
            return
        except StatusTransitionError as exc:
            ack()
            _notify_actor(
                client, channel_id=channel_id, user_id=user_id, text=_already_handled_text(exc.current), log=log
            )
            log.info("decision_already_recorded", status=exc.current.value)
            return

        ack()
        log.info("request_approved")

        run_async(
            deliver_decision,
            gateway=_build_gateway(client),
            request=decided,
            caterer_email=get_settings().caterer_email,
            fallback_ref=_message_ref(body),
            trace_id=trace_id,
        )
    finally:
        unbind_contextvars("trace_id")


def _handle_dialog_action(
    ack,
    body,
    client,
    logger,
    *,
    action_id: str,
    verb: str,
    decision_status: RequestStatus,
    build_view: Callable[[CateringRequest, PendingDecision], dict],
):
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    log = structlog.get_logger().bind(trace_id=trace_id)
    try:
        resolved = _resolve_decision_click(ack, body, client, log, action_id=action_id, verb=verb)
        if resolved is None:
            return
        context, user_id, channel_id = resolved
        log = log.bind(request_id=context.request_id, user_id=user_id, decision=decision_status.value)

        trigger_id = body.get("trigger_id")
        if not trigger_id:
            ack({"response_type": "ephemeral", "text": "We could not open the decision dialog. Please try again."})
            log.warning("action_missing_trigger")
            return

        awaiting = _AWAITING_STATUS[decision_status]
        store = get_request_store()
        try:
            claimed = store.advance_status(context.request_id, awaiting)
        except RequestNotFoundError:
            ack()
            _notify_actor(client, channel_id=channel_id, user_id=user_id, text=_EXPIRED_TEXT, log=log)
            log.warning("request_missing")
            return
        except StatusTransitionError as exc:
            ack()
            _notify_actor(
                client, channel_id=channel_id, user_id=user_id, text=_already_handled_text(exc.current), log=log
            )
            log.info("decision_already_recorded", status=exc.current.value)
            return

        ref = claimed.conversation_ref or _message_ref(body)
        metadata = PendingDecision(
            request_id=claimed.id,
            decision=decision_status.value,
            channel_id=ref.channel_id if ref else None,
            ts=ref.ts if ref else None,
        )
        view = build_view(claimed, metadata)

        ack()
        try:
            SlackClient(client=client).open_view(trigger_id=trigger_id, view=view)
        except (SlackClientError, OSError) as exc:
            error_code = exc.response.get("error") if getattr(exc, "response", None) else str(exc)
            log.error("decision_modal_open_failed", error=error_code)
            try:
                store.advance_status(claimed.id, RequestStatus.PENDING)
            except (RequestNotFoundError, StatusTransitionError):
                logger.exception("Could not release request after failed modal open")
            _notify_actor(
                client,
                channel_id=channel_id,
                user_id=user_id,
                text="We could not open the decision dialog. Please try again.",
                log=log,
            )
            return

        log.info("decision_modal_opened")
    finally:
        unbind_contextvars("trace_id")


def _handle_partial_action(ack, body, client, logger):
    _handle_dialog_action(
        ack,
        body,
        client,
        logger,
        action_id=PARTIAL_ACTION_ID,
        verb="approve",
        decision_status=RequestStatus.PARTIALLY_APPROVED,
        build_view=build_partial_approval_modal,
    )


def _handle_deny_action(ack, body, client, logger):
    _handle_dialog_action(
        ack,
        body,
        client,
        logger,
        action_id=DENY_ACTION_ID,
        verb="deny",
        decision_status=RequestStatus.DENIED,
        build_view=build_deny_modal,
    )


def _ack_view_error(ack, block_id: str, message: str) -> None:
    ack({"response_action": "errors", "errors": {block_id: message}})


def _load_dialog_submission(ack, body, log, *, expected: RequestStatus, error_block: str):
    """Resolve metadata, actor and request for a submitted decision dialog."""

    view = body.get("view") or {}
    try:
        pending = parse_pending_decision(view.get("private_metadata"))
    except ValueError as exc:
        _ack_view_error(ack, error_block, str(exc))
        log.warning("decision_invalid_metadata")
        return None

    if pending.status is not expected:
        _ack_view_error(ack, error_block, "Decision metadata does not match this dialog.")
        log.warning("decision_metadata_mismatch", decision=pending.decision)
        return None

    user_id = (body.get("user") or {}).get("id")
    if not is_user_authorized(user_id, get_settings().approver_user_ids):
        _ack_view_error(ack, error_block, "You are not authorized to decide on this request.")
        log.warning("unauthorized_submission", user_id=user_id, request_id=pending.request_id)
        return None

    try:
        current = get_request_store().get(pending.request_id)
    except RequestNotFoundError:
        _ack_view_error(ack, error_block, _EXPIRED_TEXT)
        log.warning("request_missing", request_id=pending.request_id)
        return None

    values = (view.get("state") or {}).get("values") or {}
    return pending, user_id, current, values


def _commit_dialog_decision(
    ack,
    client,
    log,
    *,
    pending: PendingDecision,
    decision: Decision,
    error_block: str,
    trace_id: str,
):
    try:
        decided = get_request_store().advance_status(pending.request_id, decision.status, decision=decision)
    except RequestNotFoundError:
        _ack_view_error(ack, error_block, _EXPIRED_TEXT)
        log.warning("request_missing")
        return
    except StatusTransitionError as exc:
        _ack_view_error(ack, error_block, _already_handled_text(exc.current))
        log.info("decision_already_recorded", status=exc.current.value)
        return

    ack({"response_action": "clear"})
    log.info(
        "decision_recorded",
        approved_rooms=list(decision.approved_rooms),
        declined_rooms=list(decision.declined_rooms),
    )

    run_async(
        deliver_decision,
        gateway=_build_gateway(client),
        request=decided,
        caterer_email=get_settings().caterer_email,
        fallback_ref=pending.conversation_ref,
        trace_id=trace_id,
    )


def _handle_partial_submission(ack, body, client, logger):
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    log = structlog.get_logger().bind(trace_id=trace_id, decision=RequestStatus.PARTIALLY_APPROVED.value)
    try:
        loaded = _load_dialog_submission(
            ack, body, log, expected=RequestStatus.PARTIALLY_APPROVED, error_block=ROOMS_BLOCK_ID
        )
        if loaded is None:
            return
        pending, user_id, current, values = loaded
        log = log.bind(request_id=current.id, user_id=user_id)

        selected = extract_selected_rooms(values, current)
        if not selected:
            _ack_view_error(ack, ROOMS_BLOCK_ID, "Select at least one room to approve.")
            log.info("partial_missing_rooms")
            return

        approved, declined = current.split_rooms(selected)
        decision = Decision(
            status=RequestStatus.PARTIALLY_APPROVED,
            decided_by=user_id,
            decided_at=datetime.now(UTC),
            approved_rooms=approved,
            declined_rooms=declined,
            reason=extract_text(values, EXPLANATION_BLOCK_ID, EXPLANATION_ACTION_ID),
        )
        _commit_dialog_decision(
            ack, client, log, pending=pending, decision=decision, error_block=ROOMS_BLOCK_ID, trace_id=trace_id
        )
    finally:
        unbind_contextvars("trace_id")


def _handle_deny_submission(ack, body, client, logger):
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    log = structlog.get_logger().bind(trace_id=trace_id, decision=RequestStatus.DENIED.value)
    try:
        loaded = _load_dialog_submission(ack, body, log, expected=RequestStatus.DENIED, error_block=REASON_BLOCK_ID)
        if loaded is None:
            return
        pending, user_id, current, values = loaded
        log = log.bind(request_id=current.id, user_id=user_id)

        reason = extract_text(values, REASON_BLOCK_ID, REASON_ACTION_ID)
        if not reason:
            _ack_view_error(ack, REASON_BLOCK_ID, "Please provide a reason for denying this request.")
            log.info("deny_missing_reason")
            return

        decision = Decision(
            status=RequestStatus.DENIED,
            decided_by=user_id,
            decided_at=datetime.now(UTC),
            declined_rooms=current.rooms,
            reason=reason,
        )
        _commit_dialog_decision(
            ack, client, log, pending=pending, decision=decision, error_block=REASON_BLOCK_ID, trace_id=trace_id
        )
    finally:
        unbind_contextvars("trace_id")


def _handle_decision_modal_closed(ack, body, client, logger):
    """Release a request whose decision dialog was dismissed without submitting."""

    ack()
    log = structlog.get_logger()
    try:
        pending = parse_pending_decision((body.get("view") or {}).get("private_metadata"))
    except ValueError:
        log.warning("decision_closed_invalid_metadata")
        return

    log = log.bind(request_id=pending.request_id, decision=pending.decision)
    user_id = (body.get("user") or {}).get("id")
    if not is_user_authorized(user_id, get_settings().approver_user_ids):
        log.warning("unauthorized_dialog_close", user_id=user_id)
        return

    store = get_request_store()
    try:
        current = store.get(pending.request_id)
        if current.status is _AWAITING_STATUS[pending.status]:
            store.advance_status(current.id, RequestStatus.PENDING)
            log.info("decision_dialog_dismissed")
    except (RequestNotFoundError, StatusTransitionError):
        log.info("decision_dialog_closed_after_resolution")


def _register_action_handlers(bolt_app: SlackApp) -> None:
    @bolt_app.action(APPROVE_ACTION_ID)
    def handle_approve_all(ack, body, client, logger):
        _handle_approve_all_action(ack=ack, body=body, client=client, logger=logger)

    @bolt_app.action(PARTIAL_ACTION_ID)
    def handle_partial(ack, body, client, logger):
        _handle_partial_action(ack=ack, body=body, client=client, logger=logger)

    @bolt_app.action(DENY_ACTION_ID)
    def handle_deny(ack, body, client, logger):
        _handle_deny_action(ack=ack, body=body, client=client, logger=logger)


def _register_view_handlers(bolt_app: SlackApp) -> None:
    @bolt_app.view(PARTIAL_MODAL_CALLBACK_ID)
    def handle_partial_submission(ack, body, client, logger):
        _handle_partial_submission(ack=ack, body=body, client=client, logger=logger)

    @bolt_app.view(DENY_MODAL_CALLBACK_ID)
    def handle_deny_submission(ack, body, client, logger):
        _handle_deny_submission(ack=ack, body=body, client=client, logger=logger)

    @bolt_app.view_closed(PARTIAL_MODAL_CALLBACK_ID)
    def handle_partial_closed(ack, body, client, logger):
        _handle_decision_modal_closed(ack=ack, body=body, client=client, logger=logger)

    @bolt_app.view_closed(DENY_MODAL_CALLBACK_ID)
    def handle_deny_closed(ack, body, client, logger):
        _handle_decision_modal_closed(ack=ack, body=body, client=client, logger=logger)


_LOGGING_CONFIGURED = False


def create_app() -> Flask:
    """Create and configure the Flask application."""

    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        configure_logging()
        _LOGGING_CONFIGURED = True

    settings = get_settings()
    bolt_app = _create_bolt_app(settings)
    handler = SlackRequestHandler(bolt_app)

    flask_app = Flask(__name__)
    flask_app.logger.setLevel("INFO")

    _register_error_handlers(flask_app)
    _register_action_handlers(bolt_app)
    _register_view_handlers(bolt_app)

    @flask_app.route("/api/submit-request", methods=["POST"])
    def submit_catering_request():
        trace_id = str(uuid4())
        bind_contextvars(trace_id=trace_id)
        log = structlog.get_logger().bind(trace_id=trace_id)
        try:
            _sweep_expired(bolt_app.client)

            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                return jsonify({"success": False, "error": "Request body must be a JSON object."}), 400

            try:
                submission = parse_submission(payload)
            except ValidationError as exc:
                message = describe_validation_error(exc)
                log.info("submission_rejected", error=message)
                return jsonify({"success": False, "error": message}), 400

            try:
                created = submit_request(
                    submission=submission,
                    store=get_request_store(),
                    gateway=_build_gateway(bolt_app.client),
                    channel=settings.channel_id,
                )
            except SendError as exc:
                log.error("submission_failed", error=exc.detail)
                return jsonify({"success": False, "error": "Failed to post the request to Slack."}), 500

            return jsonify({"success": True, "requestId": created.id})
        finally:
            unbind_contextvars("trace_id")

    @flask_app.route("/api/slack/interactions", methods=["POST"])
    def slack_interactions():
        raw_body = request.get_data(as_text=True)

        if not verify_interaction(signing_secret=settings.signing_secret, headers=request.headers, body=raw_body):
            structlog.get_logger().warning("invalid_signature", timestamp=request.headers.get(TIMESTAMP_HEADER))
            response = jsonify({"error": "invalid_signature"})
            response.status_code = 401
            return response

        _sweep_expired(bolt_app.client)
        return handler.handle(request)

    @flask_app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=3000, debug=True)
