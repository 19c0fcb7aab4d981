"""Pydantic-based configuration helpers for the catering request relay."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator


class AppSettings(BaseModel):
    """Settings required to initialise the Slack bot, mailer and request store."""

    bot_token: str = Field(..., alias="SLACK_BOT_TOKEN")
    signing_secret: str = Field(..., alias="SLACK_SIGNING_SECRET")
    channel_id: str = Field(..., alias="SLACK_CHANNEL_ID")
    approver_user_ids: List[str] = Field(..., alias="APPROVER_USER_IDS")
    caterer_email: EmailStr = Field(..., alias="CATERER_EMAIL")
    smtp_host: str = Field(..., alias="SMTP_HOST")
    smtp_from_address: str = Field(..., alias="SMTP_FROM_ADDRESS")
    smtp_port: int = Field(587, alias="SMTP_PORT")
    smtp_username: str | None = Field(None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(None, alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(True, alias="SMTP_USE_TLS")
    request_ttl_seconds: int = Field(24 * 60 * 60, alias="REQUEST_TTL_SECONDS")
    outbound_timeout_seconds: int = Field(10, alias="OUTBOUND_TIMEOUT_SECONDS")

    @field_validator("approver_user_ids", mode="before")
    @classmethod
    def _split_ids(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, list):
            return [item.strip() for item in value if item.strip()]
        return [item.strip() for item in value.split(",") if item.strip()]

    @field_validator("approver_user_ids")
    @classmethod
    def _ensure_approvers(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("At least one approver user id is required")
        return value

    @field_validator("smtp_username", "smtp_password", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("smtp_port", "request_ttl_seconds", "outbound_timeout_seconds")
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Numeric settings must be greater than zero")
        return value


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        missing = [str(error["loc"][0]) for error in exc.errors()]
        message = (
            "Missing or invalid environment variables: "
            f"{_format_missing(missing)}"
        )
        raise RuntimeError(message) from exc
