# file: clients/mailer.py
from __future__ import annotations
import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Optional

log = logging.getLogger("mailer")


class MailTransportError(RuntimeError):
    """The SMTP server refused or could not deliver the message."""


@dataclass
class OutboundEmail:
    to: str
    subject: str
    text: str
    html: str
    attachment: Optional[Path] = None
    attachment_name: Optional[str] = None


class SmtpMailer:
    """Gmail-style SMTP transport (STARTTLS + login), one connection per message"""

    def __init__(self, host: str, port: int, user: str, password: str, sender_name: str = ""):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender_name = sender_name

    def build_message(self, mail: OutboundEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = mail.subject
        msg["From"] = formataddr((self.sender_name, self.user)) if self.sender_name else self.user
        msg["To"] = mail.to
        msg.set_content(mail.text)
        msg.add_alternative(mail.html, subtype="html")

        if mail.attachment is not None:
            try:
                data = Path(mail.attachment).read_bytes()
            except OSError as e:
                raise MailTransportError(f"cannot read attachment {mail.attachment}: {e}") from e
            msg.add_attachment(
                data,
                maintype="application",
                subtype="pdf",
                filename=mail.attachment_name or Path(mail.attachment).name,
            )
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=60) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailTransportError(str(e)) from e

    async def send(self, mail: OutboundEmail) -> None:
        msg = self.build_message(mail)
        # smtplib blocks; keep the event loop free for other requests
        await asyncio.to_thread(self._send_sync, msg)
        log.info("mail sent to %s", mail.to)
