from __future__ import annotations

import logging
import smtplib
import ssl
from datetime import date
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .models import PeriodKind, ReportArtifact

logger = logging.getLogger(__name__)


class MailConfigError(RuntimeError):
    """SMTP configuration is missing or invalid."""


class MailDeliveryError(RuntimeError):
    """The SMTP server refused or failed to deliver a message."""


class MailSettings(BaseSettings):
    """SMTP transport settings, read from the environment on every send."""

    host: str = Field(..., alias="SMTP_HOST")
    port: int = Field(..., alias="SMTP_PORT")
    user: str = Field(..., alias="SMTP_USER")
    password: str = Field(..., alias="SMTP_PASS")
    from_addr: str = Field(..., alias="SMTP_FROM")
    starttls: bool = Field(True, alias="SMTP_STARTTLS")
    timeout: float = Field(30.0, alias="SMTP_TIMEOUT")

    @field_validator("host", "user", "password", "from_addr")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @field_validator("port")
    @classmethod
    def _valid_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("SMTP_PORT must be between 1 and 65535")
        return v

    @field_validator("timeout")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("SMTP_TIMEOUT must be greater than 0")
        return v


def load_mail_settings() -> MailSettings:
    """Read and validate SMTP settings, failing on the first bad variable."""
    try:
        return MailSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        err = exc.errors()[0]
        name = str(err["loc"][0]) if err.get("loc") else "SMTP"
        if err["type"] == "missing" or err.get("input") in ("", None):
            raise MailConfigError(f"Missing env: {name}") from exc
        raise MailConfigError(f"Invalid env: {name} ({err['msg']})") from exc


def build_message(
    to_addr: str,
    kind: PeriodKind,
    artifact: ReportArtifact,
    from_addr: str,
    sent_on: Optional[date] = None,
) -> EmailMessage:
    period = PeriodKind(kind).value
    sent_on = sent_on or date.today()

    msg = EmailMessage()
    msg["Subject"] = f"Food Wastage {period} Report ({sent_on:%Y-%m-%d})"
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg["Message-ID"] = make_msgid(domain=from_addr.partition("@")[2] or None)
    msg.set_content(f"Please find attached the {period} report.")
    msg.add_attachment(
        artifact.content.encode("utf-8"),
        maintype="text",
        subtype="csv",
        filename=artifact.filename,
    )
    return msg


def send_report_email(
    to_addr: str,
    kind: PeriodKind,
    artifact: ReportArtifact,
    *,
    settings: Optional[MailSettings] = None,
    sent_on: Optional[date] = None,
) -> str:
    """Mail *artifact* to ``to_addr`` and return the message id.

    SMTP settings are validated before anything is sent; set
    ``SMTP_STARTTLS=false`` for servers that expect implicit TLS (port 465).
    ``SMTP_TIMEOUT`` bounds every socket operation.
    """
    settings = settings or load_mail_settings()
    msg = build_message(to_addr, kind, artifact, settings.from_addr, sent_on)

    ctx = ssl.create_default_context()
    try:
        if settings.starttls:
            with smtplib.SMTP(
                settings.host, settings.port, timeout=settings.timeout
            ) as smtp:
                smtp.starttls(context=ctx)
                smtp.login(settings.user, settings.password)
                smtp.send_message(msg)
        else:
            with smtplib.SMTP_SSL(
                settings.host,
                settings.port,
                timeout=settings.timeout,
                context=ctx,
            ) as smtp:
                smtp.login(settings.user, settings.password)
                smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailDeliveryError(
            f"sending {artifact.filename} to {to_addr} failed: {exc}"
        ) from exc

    message_id = str(msg["Message-ID"])
    logger.info("Sent %s to %s (%s)", artifact.filename, to_addr, message_id)
    return message_id


__all__ = [
    "MailConfigError",
    "MailDeliveryError",
    "MailSettings",
    "load_mail_settings",
    "build_message",
    "send_report_email",
]
