"""Pydantic models describing a catering request submitted from the web form."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

# Slack rejects checkbox groups with more than 10 options and option labels
# longer than 75 characters; the partial-approval dialog lists every room.
MAX_ROOMS = 10
MAX_ROOM_NAME_LENGTH = 75

# Keeps every message section under Slack's 3000 character limit.
MAX_NAME_LENGTH = 150
MAX_PHONE_LENGTH = 50
MAX_NOTES_LENGTH = 2000


class CateringSubmission(BaseModel):
    """Validated event details; immutable once accepted."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, populate_by_name=True)

    event_name: str = Field(
        ..., min_length=1, max_length=MAX_NAME_LENGTH, validation_alias=AliasChoices("eventName", "event_name")
    )
    client_name: str = Field(
        ..., min_length=1, max_length=MAX_NAME_LENGTH, validation_alias=AliasChoices("clientName", "client_name")
    )
    event_date: str = Field(..., validation_alias=AliasChoices("eventDate", "event_date"))
    guest_count: int = Field(
        ..., gt=0, validation_alias=AliasChoices("guestCount", "expectedGuests", "guest_count")
    )
    rooms: Tuple[str, ...] = Field(..., validation_alias=AliasChoices("rooms", "roomsRequested"))
    planner_name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_NAME_LENGTH,
        validation_alias=AliasChoices("plannerName", "partyPlannerName", "planner_name"),
    )
    planner_email: EmailStr = Field(
        ..., validation_alias=AliasChoices("plannerEmail", "partyPlannerEmail", "planner_email")
    )
    planner_phone: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PHONE_LENGTH,
        validation_alias=AliasChoices("plannerPhone", "partyPlannerPhone", "planner_phone"),
    )
    setup_date: str | None = Field(None, validation_alias=AliasChoices("setupDate", "setup_date"))
    setup_time: str | None = Field(None, validation_alias=AliasChoices("setupTime", "setupStartTime", "setup_time"))
    start_time: str = Field(..., validation_alias=AliasChoices("startTime", "eventStartTime", "start_time"))
    end_time: str = Field(..., validation_alias=AliasChoices("endTime", "eventEndTime", "end_time"))
    teardown_date: str | None = Field(None, validation_alias=AliasChoices("teardownDate", "teardown_date"))
    teardown_time: str | None = Field(
        None, validation_alias=AliasChoices("teardownTime", "teardownCompleteTime", "teardown_time")
    )
    officiant: str | None = Field(
        None, max_length=MAX_NAME_LENGTH, validation_alias=AliasChoices("officiant", "officiantName")
    )
    notes: str | None = Field(
        None, max_length=MAX_NOTES_LENGTH, validation_alias=AliasChoices("notes", "additionalNotes")
    )
    parking_needed: bool = Field(False, validation_alias=AliasChoices("parkingNeeded", "parking", "parking_needed"))
    music_needed: bool = Field(False, validation_alias=AliasChoices("musicNeeded", "music", "music_needed"))

    @field_validator("rooms", mode="before")
    @classmethod
    def _clean_rooms(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("rooms must be a list of room names")

        cleaned: list[str] = []
        for room in value:
            name = str(room or "").strip()
            if name and name not in cleaned:
                cleaned.append(name)
        if not cleaned:
            raise ValueError("at least one room must be requested")
        if len(cleaned) > MAX_ROOMS:
            raise ValueError(f"at most {MAX_ROOMS} rooms can be requested")
        if any(len(name) > MAX_ROOM_NAME_LENGTH for name in cleaned):
            raise ValueError(f"room names must be at most {MAX_ROOM_NAME_LENGTH} characters")
        return tuple(cleaned)

    @field_validator("event_date", "setup_date", "teardown_date")
    @classmethod
    def _validate_date(cls, value: str | None) -> str | None:
        if value in (None, ""):
            return None
        if not _DATE_PATTERN.match(value):
            raise ValueError("dates must use the YYYY-MM-DD format")
        try:
            datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            raise ValueError(f"{value} is not a valid calendar date") from None
        return value

    @field_validator("setup_time", "start_time", "end_time", "teardown_time")
    @classmethod
    def _validate_time(cls, value: str | None) -> str | None:
        if value in (None, ""):
            return None
        if not _TIME_PATTERN.match(value):
            raise ValueError("times must use the 24-hour HH:MM format")
        return value

    @field_validator("officiant", "notes", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _require_event_window(self):
        if self.event_date is None:
            raise ValueError("eventDate is required")
        if self.start_time is None or self.end_time is None:
            raise ValueError("eventStartTime and eventEndTime are required")
        return self


def describe_validation_error(exc) -> str:
    """Collapse a pydantic ValidationError into one readable sentence."""

    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "__root__")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request payload."
