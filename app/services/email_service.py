from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Any

from app.core.config import settings


class EmailDeliveryError(Exception):
    pass


logger = logging.getLogger("app.email")


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


def _first_name(name: str | None) -> str:
    parts = str(name or "").strip().split()
    return parts[0] if parts else "there"


def _mock_send(*, email: str, subject: str, body: str) -> dict[str, Any]:
    logger.warning("[EMAIL MOCK] to=%s subject=%s\n%s", email, subject, body)
    return {
        "provider": "mock_email",
        "status": "accepted",
        "sent": False,
        "mocked": True,
    }


def _send_smtp(*, email: str, subject: str, body: str) -> dict[str, Any]:
    host = str(settings.SMTP_HOST or "").strip()
    port = int(settings.SMTP_PORT or 0)
    username = str(settings.SMTP_USER or "").strip()
    password = str(settings.SMTP_PASSWORD or "").strip()
    sender = str(settings.EMAIL_FROM or "").strip()
    use_tls = bool(settings.SMTP_USE_TLS)
    use_ssl = bool(settings.SMTP_USE_SSL)

    if not host or not port or not sender:
        raise EmailDeliveryError("SMTP_HOST/SMTP_PORT/EMAIL_FROM are not configured")
    if use_tls and use_ssl:
        raise EmailDeliveryError("SMTP_USE_TLS and SMTP_USE_SSL cannot both be enabled")

    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        if use_ssl:
            smtp = smtplib.SMTP_SSL(host=host, port=port, timeout=15)
        else:
            smtp = smtplib.SMTP(host=host, port=port, timeout=15)
        with smtp as client:
            client.ehlo()
            if use_tls:
                client.starttls()
                client.ehlo()
            if username:
                client.login(username, password)
            client.send_message(msg)
    except Exception as exc:
        raise EmailDeliveryError(f"SMTP delivery failed: {exc}") from exc

    return {"provider": "smtp", "status": "accepted", "sent": True}


def send_email(*, email: str, subject: str, body: str) -> dict[str, Any]:
    normalized_email = _normalize_email(email)
    if not normalized_email:
        raise EmailDeliveryError("Invalid email address")

    provider = str(settings.EMAIL_PROVIDER or "dummy").strip().lower()
    if provider in {"", "dummy", "mock", "console"}:
        return _mock_send(email=normalized_email, subject=subject, body=body)
    if provider == "smtp":
        return _send_smtp(email=normalized_email, subject=subject, body=body)
    raise EmailDeliveryError(f"Unknown EMAIL_PROVIDER: {provider}")


def send_welcome_email(*, email: str, name: str | None, url: str) -> dict[str, Any]:
    return send_email(
        email=email,
        subject="Welcome to the Tour Booking family!",
        body=f"Hi {_first_name(name)},\n\nWelcome aboard! Upload a photo and complete your profile: {url}\n",
    )


def send_password_reset_email(*, email: str, name: str | None, url: str) -> dict[str, Any]:
    minutes = int(settings.PASSWORD_RESET_TTL_MINUTES)
    return send_email(
        email=email,
        subject=f"Your password reset token (valid for only {minutes} minutes)",
        body=(
            f"Hi {_first_name(name)},\n\n"
            f"Forgot your password? Submit a PATCH request with your new password and passwordConfirm to: {url}\n"
            "If you didn't forget your password, please ignore this email.\n"
        ),
    )
