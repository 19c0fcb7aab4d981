"""SMTP delivery of decision emails."""

from __future__ import annotations

import asyncio
import uuid
from email.mime.text import MIMEText
from email.utils import formatdate
from functools import lru_cache
from typing import Sequence

import aiosmtplib

from catering_relay.config import get_settings


class SmtpMailer:
    """Send plain-text mail through a single SMTP account.

    ``aiosmtplib`` is driven with :func:`asyncio.run`, so :meth:`send` must be
    called from a thread without a running event loop (the background pool).
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, *, to: Sequence[str], cc: Sequence[str], subject: str, body: str) -> MIMEText:
        message = MIMEText(body, "plain", "utf-8")
        message["From"] = self.sender
        message["To"] = ", ".join(to)
        if cc:
            message["Cc"] = ", ".join(cc)
        message["Subject"] = subject
        message["Date"] = formatdate(localtime=True)
        message["Message-ID"] = f"<{uuid.uuid4()}@{self.host}>"
        return message

    def send(self, *, to: Sequence[str], cc: Sequence[str], subject: str, body: str) -> str:
        """Deliver the message and return its Message-ID."""

        message = self.build_message(to=to, cc=cc, subject=subject, body=body)
        asyncio.run(
            aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        )
        return message["Message-ID"]


@lru_cache()
def get_mailer() -> SmtpMailer:
    settings = get_settings()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.smtp_from_address,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout=settings.outbound_timeout_seconds,
    )
