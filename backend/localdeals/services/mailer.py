"""Transactional email delivery for login codes."""

from typing import Optional, Protocol

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)


# Retry transient HTTP failures against the email provider
email_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(
        (
            httpx.HTTPStatusError,
            httpx.ConnectError,
            httpx.TimeoutException,
        )
    ),
    before_sleep=before_sleep_log(logger, "warning"),
    reraise=True,
)


class EmailSender(Protocol):
    async def send_verification_code(self, email: str, code: str) -> None:
        ...


def render_code_email(code: str) -> tuple[str, str]:
    """Return (subject, html body) for a login code email."""
    subject = "Your LocalDeals verification code"
    html = (
        "<p>Your verification code is:</p>"
        f"<p style=\"font-size:28px;font-weight:bold;letter-spacing:4px\">{code}</p>"
        "<p>The code expires in 10 minutes. If you didn't request it, ignore this email.</p>"
    )
    return subject, html


class HttpEmailSender:
    """Sends email through a JSON HTTP API (Resend-compatible)."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self._client = client
        self.logger = logger.bind(service="mailer")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    @email_retry
    async def _post(self, payload: dict) -> None:
        client = await self._get_client()
        response = await client.post(
            self.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()

    async def send_verification_code(self, email: str, code: str) -> None:
        subject, html = render_code_email(code)
        await self._post({
            "from": self.sender,
            "to": [email],
            "subject": subject,
            "html": html,
        })
        self.logger.info("verification_email_sent", email=email)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class LogEmailSender:
    """Stand-in used when no email API key is configured.

    The code itself is only logged when codes are echoed to clients anyway.
    """

    def __init__(self, echo_code: bool = False):
        self.echo_code = echo_code

    async def send_verification_code(self, email: str, code: str) -> None:
        if self.echo_code:
            logger.warning("email_delivery_disabled", email=email, code=code)
        else:
            logger.warning("email_delivery_disabled", email=email)
