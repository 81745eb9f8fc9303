from __future__ import annotations

import logging
from email.message import EmailMessage
from functools import lru_cache
from typing import Protocol

import aiosmtplib
import httpx

from .config import Settings, get_settings
from .sms import EmailNotification

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """An email transport failed; the message carries its diagnostic."""


class EmailDispatcher(Protocol):
    name: str

    async def send(self, notification: EmailNotification) -> None: ...


class SendGridDispatcher:
    """Bulk email API transport (SendGrid v3 mail/send)."""

    name = "sendgrid"

    def __init__(
        self,
        api_key: str | None,
        mail_from: str,
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._mail_from = mail_from
        self._api_url = api_url
        self._timeout = timeout
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def _payload(self, notification: EmailNotification) -> dict[str, object]:
        return {
            "personalizations": [{"to": [{"email": notification.to}]}],
            "from": {"email": self._mail_from},
            "subject": notification.subject,
            "content": [{"type": "text/plain", "value": notification.body}],
        }

    async def send(self, notification: EmailNotification) -> None:
        if not self._api_key:
            raise DispatchError("SENDGRID_API_KEY is not configured")

        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._api_url, json=self._payload(notification), headers=headers
                )
        except httpx.HTTPError as e:
            raise DispatchError(f"SendGrid request failed: {e}") from e

        if resp.status_code >= 400:
            raise DispatchError(f"SendGrid responded {resp.status_code}: {resp.text}")


class SmtpDispatcher:
    """
    Direct mail submission transport.

    Opens one connection per send. SMTP_SECURE=true means implicit TLS
    (usually port 465); otherwise STARTTLS is used when the server offers it.
    """

    name = "smtp"

    def __init__(
        self,
        host: str,
        mail_from: str,
        port: int = 587,
        secure: bool = False,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._secure = secure
        self._username = username
        self._password = password
        self._mail_from = mail_from
        self._timeout = timeout

    def build_message(self, notification: EmailNotification) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._mail_from
        message["To"] = notification.to
        message["Subject"] = notification.subject
        message.set_content(notification.body)
        return message

    async def send(self, notification: EmailNotification) -> None:
        try:
            message = self.build_message(notification)
            await aiosmtplib.send(
                message,
                hostname=self._host,
                port=self._port,
                username=self._username,
                password=self._password,
                use_tls=self._secure,
                start_tls=False if self._secure else None,
                timeout=self._timeout,
            )
        except (aiosmtplib.SMTPException, OSError, ValueError) as e:
            # ValueError: header values the email package refuses (e.g. newlines)
            raise DispatchError(f"SMTP send failed: {e}") from e


def select_dispatcher(settings: Settings) -> EmailDispatcher:
    """
    Pick the email transport from available credentials.

    SendGrid wins when its key is present, SMTP is the fallback. With
    neither configured we keep SendGrid, whose sends then fail fast.
    """
    if settings.sendgrid_api_key:
        return SendGridDispatcher(
            api_key=settings.sendgrid_api_key,
            mail_from=settings.mail_from,
            api_url=settings.sendgrid_api_url,
            timeout=settings.email_timeout_seconds,
        )

    if settings.smtp_host:
        return SmtpDispatcher(
            host=settings.smtp_host,
            port=settings.smtp_port,
            secure=settings.smtp_secure,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            mail_from=settings.mail_from,
            timeout=settings.email_timeout_seconds,
        )

    logger.warning("No email transport configured (SENDGRID_API_KEY / SMTP_HOST); sends will fail")
    return SendGridDispatcher(
        api_key=None,
        mail_from=settings.mail_from,
        api_url=settings.sendgrid_api_url,
        timeout=settings.email_timeout_seconds,
    )


@lru_cache
def get_email_dispatcher() -> EmailDispatcher:
    """Selected once per process; never re-evaluated per message."""
    dispatcher = select_dispatcher(get_settings())
    logger.info("Email transport: %s", dispatcher.name)
    return dispatcher
