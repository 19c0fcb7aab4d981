"""Plain-text decision emails sent to the party planner."""

from __future__ import annotations

from typing import List, Tuple

from catering_relay.models import CateringRequest, RequestStatus

from .formatting import format_date, format_date_time, format_time, format_timestamp

_SUBJECTS = {
    RequestStatus.APPROVED: "Catering Request Approved",
    RequestStatus.PARTIALLY_APPROVED: "Catering Request Partially Approved",
    RequestStatus.DENIED: "Catering Request Denied",
}

_OPENINGS = {
    RequestStatus.APPROVED: "Good news! Your catering request has been approved for all requested rooms.",
    RequestStatus.PARTIALLY_APPROVED: (
        "Your catering request has been partially approved. Some of the requested rooms are not available."
    ),
    RequestStatus.DENIED: "Unfortunately, your catering request could not be approved.",
}


def _event_details(request: CateringRequest) -> List[str]:
    details = request.details
    lines = [
        "Event Details",
        "-------------",
        f"Event: {details.event_name}",
        f"Client: {details.client_name}",
        f"Date: {format_date(details.event_date)}",
        f"Guests: {details.guest_count}",
        f"Setup: {format_date_time(details.setup_date or details.event_date, details.setup_time)}",
        f"Event Time: {format_time(details.start_time)} - {format_time(details.end_time)}",
        f"Teardown: {format_date_time(details.teardown_date or details.event_date, details.teardown_time)}",
    ]
    if details.officiant:
        lines.append(f"Officiant: {details.officiant}")
    lines.append(f"Parking Needed: {'Yes' if details.parking_needed else 'No'}")
    lines.append(f"Music Needed: {'Yes' if details.music_needed else 'No'}")
    if details.notes:
        lines.append(f"Notes: {details.notes}")
    return lines


def _room_lines(request: CateringRequest) -> List[str]:
    decision = request.decision
    if decision is not None and decision.status is RequestStatus.PARTIALLY_APPROVED:
        lines = ["Approved Rooms:"]
        lines.extend(f"  - {room}" for room in decision.approved_rooms)
        lines.append("Declined Rooms:")
        lines.extend(f"  - {room}" for room in decision.declined_rooms or ("None",))
        return lines

    lines = ["Rooms Requested:"]
    lines.extend(f"  - {room}" for room in request.rooms)
    return lines


def build_decision_email(request: CateringRequest) -> Tuple[str, str]:
    """Return ``(subject, body)`` for the request's recorded decision."""

    decision = request.decision
    if decision is None or decision.status not in _SUBJECTS:
        raise ValueError(f"Request {request.id} has no emailable decision.")

    details = request.details
    subject = f"{_SUBJECTS[decision.status]}: {details.event_name}"

    lines = [
        f"Hello {details.planner_name},",
        "",
        _OPENINGS[decision.status],
        "",
        f"Status: {decision.status.label}",
        f"Decided: {format_timestamp(decision.decided_at)}",
    ]
    if decision.reason:
        label = "Reason" if decision.status is RequestStatus.DENIED else "Note"
        lines.append(f"{label}: {decision.reason}")
    lines.append("")
    lines.extend(_room_lines(request))
    lines.append("")
    lines.extend(_event_details(request))
    lines.extend(["", f"Reference: {request.id}", "", "Thank you,", "Catering Team"])

    return subject, "\n".join(lines) + "\n"
