"""Mailers — SMTP delivery and a logging stand-in for development.

Invariants:
    - send() raises on delivery failure; callers decide whether it is fatal
    - SMTP work runs in a worker thread with a bounded socket timeout
"""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Implements core.boundary_protocols.Mailer over smtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout_seconds: int = 30,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout_seconds = timeout_seconds

    async def send(self, to: str, subject: str, html_body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html_body, subtype="html")
        await asyncio.to_thread(self._deliver, message)
        logger.info(f"Mail sent: {subject}")

    def _deliver(self, message: EmailMessage) -> None:
        if self.port == 465:
            server = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout_seconds,
                context=ssl.create_default_context(),
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
        with server:
            if self.use_tls and self.port != 465:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)


class LogMailer:
    """Writes mail to the log instead of sending it (mail_provider='log').

    Keeps the last `history` messages in outbox for inspection.
    """

    def __init__(self, history: int = 100):
        self.history = history
        self.outbox: list[dict] = []

    async def send(self, to: str, subject: str, html_body: str) -> None:
        self.outbox.append({"to": to, "subject": subject, "html_body": html_body})
        del self.outbox[:-self.history]
        logger.info(f"Mail (not sent) to {to}: {subject}")
