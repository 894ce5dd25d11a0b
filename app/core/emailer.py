# FILE: app/core/emailer.py
from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from app.core.config import settings


def _get_from_email() -> str:
    """
    Prefer settings.SMTP_FROM, fall back to settings.SMTP_USER.
    """
    from_email = getattr(settings, "SMTP_FROM", None) or getattr(
        settings, "SMTP_USER", None)
    if not from_email:
        raise RuntimeError(
            "No FROM email configured. Set SMTP_FROM or SMTP_USER in settings."
        )
    return from_email


def _build_message(
    to_email: str,
    subject: str,
    body: str,
    html: Optional[str] = None,
) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = _get_from_email()
    msg["To"] = to_email
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid(domain=_get_from_email().split("@")[-1])
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


def send_email(
    to_email: str,
    subject: str,
    body: str,
    *,
    html: Optional[str] = None,
) -> str:
    """
    Send one message over SMTP and return its Message-ID.
    Raises on any SMTP / configuration failure.
    """
    if not to_email:
        raise ValueError("send_email: recipient is required")

    host = settings.SMTP_HOST
    port = int(settings.SMTP_PORT)
    user = settings.SMTP_USER
    password = settings.SMTP_PASSWORD

    if not host:
        raise RuntimeError("SMTP_HOST is not configured")

    msg = _build_message(to_email, subject, body, html=html)

    with smtplib.SMTP(host, port) as server:
        if settings.SMTP_TLS:
            server.starttls(context=ssl.create_default_context())
        if user and password:
            server.login(user, password)
        server.send_message(msg)

    return str(msg["Message-ID"])
