# Overview: Outgoing mail; verification links and staff credentials, best-effort.

"""
Mail delivery behind a small sender interface.

MAIL_BACKEND selects the sender:
- smtp:   smtplib with optional STARTTLS and login
- log:    writes the message to the app logger (development default)
- memory: keeps messages in app.extensions["kora_mail_outbox"] (tests)

send_* helpers never raise: a failed delivery is logged and reported as
False so the caller's already-committed work stands.
"""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app
from markupsafe import escape

OUTBOX_KEY = "kora_mail_outbox"


@dataclass
class OutgoingMessage:
    to: str
    subject: str
    text: str
    html: str | None = None


class SmtpSender:
    def __init__(self, config):
        self.server = config.get("MAIL_SERVER")
        self.port = config.get("MAIL_PORT", 587)
        self.username = config.get("MAIL_USERNAME")
        self.password = config.get("MAIL_PASSWORD")
        self.use_tls = config.get("MAIL_USE_TLS", True)
        self.sender = config.get("MAIL_FROM")

    def send(self, message: OutgoingMessage) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.sender
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain"))
        if message.html:
            msg.attach(MIMEText(message.html, "html"))

        with smtplib.SMTP(self.server, self.port, timeout=15) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.sender, [message.to], msg.as_string())


class LogSender:
    def send(self, message: OutgoingMessage) -> None:
        current_app.logger.info("Mail to %s: %s\n%s", message.to, message.subject, message.text)


class MemorySender:
    def __init__(self, outbox: list):
        self.outbox = outbox

    def send(self, message: OutgoingMessage) -> None:
        self.outbox.append(message)


def init_mail(app) -> None:
    backend = app.config.get("MAIL_BACKEND", "log")
    app.extensions[OUTBOX_KEY] = []
    if backend == "smtp":
        sender = SmtpSender(app.config)
    elif backend == "memory":
        sender = MemorySender(app.extensions[OUTBOX_KEY])
    elif backend == "log":
        sender = LogSender()
    else:
        raise RuntimeError(f"Unknown MAIL_BACKEND: {backend}")
    app.extensions["kora_mail"] = sender


def outbox() -> list[OutgoingMessage]:
    return current_app.extensions[OUTBOX_KEY]


def _deliver(message: OutgoingMessage) -> bool:
    try:
        current_app.extensions["kora_mail"].send(message)
        return True
    except Exception:
        current_app.logger.exception("Failed to send mail to %s (%s)", message.to, message.subject)
        return False


def send_verification(*, email: str, name: str, link: str) -> bool:
    text = (
        f"Hi {name},\n\n"
        "Confirm your email address to activate your account:\n"
        f"{link}\n\n"
        "The link expires in 24 hours. If you did not sign up, ignore this email."
    )
    html = (
        f"<p>Hi {escape(name)},</p>"
        f'<p>Confirm your email address to activate your account: <a href="{escape(link)}">verify email</a></p>'
        "<p>The link expires in 24 hours.</p>"
    )
    return _deliver(OutgoingMessage(to=email, subject="Verify your email", text=text, html=html))


def send_credentials(*, email: str, name: str, company_name: str, password: str, login_link: str) -> bool:
    text = (
        f"Hi {name},\n\n"
        f"You have been added to {company_name}.\n\n"
        f"Email: {email}\n"
        f"Temporary password: {password}\n\n"
        f"Verify your email using the separate message we sent, then sign in at {login_link}"
    )
    return _deliver(
        OutgoingMessage(to=email, subject=f"Your {company_name} account", text=text)
    )
