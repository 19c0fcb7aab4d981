"""Validation of web form payloads."""

import pytest
from pydantic import ValidationError

from catering_relay.workflows.models import CateringSubmission, describe_validation_error
from catering_relay.workflows.submission import parse_submission

from conftest import make_submission


def _legacy_payload():
    return {
        "eventName": "Retirement Party",
        "clientName": "Smith Family",
        "eventDate": "2026-06-05",
        "expectedGuests": "45",
        "roomsRequested": "Garden Room, Terrace ,Garden Room",
        "partyPlannerName": "Sam Rivera",
        "partyPlannerEmail": "sam@example.com",
        "partyPlannerPhone": "555-0199",
        "setupStartTime": "15:30",
        "eventStartTime": "17:00",
        "eventEndTime": "21:00",
        "teardownCompleteTime": "22:00",
        "officiantName": "  ",
        "additionalNotes": "Vegetarian options please",
        "parking": True,
    }


def test_camel_case_payload_is_accepted():
    submission = make_submission()

    assert submission.event_name == "Spring Gala"
    assert submission.guest_count == 120
    assert submission.rooms == ("Hall A", "Hall B", "Hall C")
    assert submission.start_time == "18:00"
    assert submission.officiant is None
    assert submission.parking_needed is False


def test_legacy_field_names_are_accepted():
    submission = parse_submission(_legacy_payload())

    assert submission.guest_count == 45
    assert submission.rooms == ("Garden Room", "Terrace")
    assert submission.planner_name == "Sam Rivera"
    assert submission.setup_time == "15:30"
    assert submission.teardown_time == "22:00"
    assert submission.officiant is None
    assert submission.notes == "Vegetarian options please"
    assert submission.parking_needed is True


def test_submission_is_immutable():
    submission = make_submission()

    with pytest.raises(ValidationError):
        submission.event_name = "Other"


@pytest.mark.parametrize(
    "overrides",
    [
        {"rooms": []},
        {"rooms": " , "},
        {"guestCount": 0},
        {"plannerEmail": "not-an-email"},
        {"plannerEmail": "not an email@x.y"},
        {"plannerEmail": "a@."},
        {"plannerEmail": "a@b@c.d"},
        {"eventDate": "2026-02-30"},
        {"setupDate": "2026-13-01"},
        {"rooms": [f"Room {number}" for number in range(11)]},
        {"rooms": ["R" * 76]},
        {"notes": "x" * 2001},
        {"eventName": "x" * 151},
        {"officiant": "x" * 151},
        {"eventDate": "03/20/2026"},
        {"eventDate": ""},
        {"startTime": "6pm"},
        {"endTime": ""},
        {"eventName": "   "},
    ],
)
def test_invalid_payloads_are_rejected(overrides):
    with pytest.raises(ValidationError):
        make_submission(**overrides)


def test_missing_payload_reports_required_fields():
    with pytest.raises(ValidationError) as err:
        parse_submission(None)

    message = describe_validation_error(err.value)
    assert "eventName" in message
    assert "plannerEmail" in message


def test_describe_validation_error_joins_locations():
    with pytest.raises(ValidationError) as err:
        CateringSubmission.model_validate({**_legacy_payload(), "eventDate": "June 5"})

    assert describe_validation_error(err.value).startswith("eventDate: ")


def test_room_and_text_limits_are_inclusive():
    submission = make_submission(
        rooms=[f"Room {number}" for number in range(10)],
        notes="x" * 2000,
        eventName="x" * 150,
    )

    assert len(submission.rooms) == 10
    assert len(submission.notes) == 2000


def test_leap_day_is_a_valid_date():
    assert make_submission(eventDate="2028-02-29").event_date == "2028-02-29"
