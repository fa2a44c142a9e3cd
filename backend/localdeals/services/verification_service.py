"""Email login codes: issuing, storing and checking 6-digit codes.

Codes live in a TTL store keyed by lowercased email. How a submitted code
is checked is decided once, at startup, by the injected ``CodeCheck``.
"""

import re
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import structlog

from localdeals.core.exceptions import ValidationError
from localdeals.services.mailer import EmailSender
from localdeals.services.ttl_store import TTLStore

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CODE_PATTERN = re.compile(r"^\d{6}$")

DEFAULT_CODE_TTL_SECONDS = 600
# Entries outlive their code so a late attempt gets "expired", not "not found"
EXPIRED_GRACE_SECONDS = 60


def code_key(email: str) -> str:
    return f"otp:{email}"


def normalize_email(email: Optional[str]) -> str:
    """Lowercase and validate an email address.

    Raises:
        ValidationError: if the email is missing or malformed
    """
    if not email or not email.strip():
        raise ValidationError("Email is required")
    normalized = email.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email format")
    return normalized


def generate_code() -> str:
    """Uniformly random 6-digit code in 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class IssuedCode:
    email: str
    code: str
    expires_at: float
    delivered: bool


class CodeCheck(Protocol):
    """Decides whether a submitted code proves ownership of an email."""

    async def check(self, store: TTLStore, email: str, code: str, now: float) -> None:
        ...


class StoredCodeCheck:
    """Compares against the stored code; single use."""

    async def check(self, store: TTLStore, email: str, code: str, now: float) -> None:
        key = code_key(email)
        entry = await store.get(key)
        if entry is None:
            raise ValidationError("Verification code not found or expired")

        if now >= entry["expires_at"]:
            await store.delete(key)
            raise ValidationError("Verification code has expired")

        if not secrets.compare_digest(str(entry["code"]), code):
            raise ValidationError("Invalid verification code")

        await store.delete(key)


class AcceptAnyCodeCheck:
    """Accepts any well-formed 6-digit code without a lookup.

    Local development only; settings refuse this mode in production.
    """

    async def check(self, store: TTLStore, email: str, code: str, now: float) -> None:
        if not CODE_PATTERN.match(code):
            raise ValidationError("Invalid verification code")
        logger.warning("verification_code_check_bypassed", email=email)


def build_code_check(mode: str) -> CodeCheck:
    if mode == "strict":
        return StoredCodeCheck()
    if mode == "accept_any":
        return AcceptAnyCodeCheck()
    raise ValueError(f"Unknown verification mode: {mode}")


class VerificationCodeService:
    """Issues login codes and verifies submitted ones."""

    def __init__(
        self,
        store: TTLStore,
        mailer: EmailSender,
        code_check: CodeCheck,
        ttl_seconds: int = DEFAULT_CODE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.mailer = mailer
        self.code_check = code_check
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.logger = logger.bind(service="verification_service")

    async def send_code(self, email: Optional[str]) -> IssuedCode:
        """Generate, store and email a fresh code for ``email``.

        Any earlier code for the same email is replaced. Email delivery
        failures are logged and swallowed: the stored code stays valid.
        """
        normalized = normalize_email(email)

        swept = await self.store.sweep_expired()
        if swept:
            self.logger.debug("verification_codes_swept", count=swept)

        code = generate_code()
        expires_at = self.clock() + self.ttl_seconds
        await self.store.set(
            code_key(normalized),
            {"code": code, "expires_at": expires_at},
            ttl=self.ttl_seconds + EXPIRED_GRACE_SECONDS,
        )
        self.logger.info("verification_code_issued", email=normalized)

        delivered = True
        try:
            await self.mailer.send_verification_code(normalized, code)
        except Exception as e:
            delivered = False
            self.logger.error(
                "verification_email_failed",
                email=normalized,
                error=str(e),
                exc_info=True,
            )

        return IssuedCode(email=normalized, code=code, expires_at=expires_at, delivered=delivered)

    async def verify_code(self, email: Optional[str], code: Optional[str]) -> str:
        """Check ``code`` for ``email`` and return the normalized email.

        Raises:
            ValidationError: missing input, or a code that is absent, expired or wrong
        """
        if not email or not code:
            raise ValidationError("Email and code are required")
        normalized = normalize_email(email)
        await self.code_check.check(self.store, normalized, code.strip(), self.clock())
        self.logger.info("verification_code_accepted", email=normalized)
        return normalized
