"""
SMTP mail transport
Builds MIME messages and delivers them with aiosmtplib.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import List, Optional

import aiosmtplib
from sqlalchemy import select

from outreach.config import get_settings
from outreach.models import SmtpConfig
from outreach.services.key_manager import SessionFactory
from outreach.utils.database import get_db_context
from outreach.utils.security import decrypt_api_key

logger = logging.getLogger(__name__)


class MailTransportError(Exception):
    """Delivery failed; the message is the raw transport error"""
    pass


@dataclass
class SmtpSettings:
    """Resolved credentials and endpoint for one sender"""
    email: str
    password: str
    host: str
    port: int = 587
    sender_name: Optional[str] = None
    use_ssl: bool = False

    @classmethod
    def from_model(cls, row: SmtpConfig) -> "SmtpSettings":
        return cls(
            email=row.email,
            password=decrypt_api_key(row.encrypted_password),
            host=row.smtp_host,
            port=row.smtp_port,
            sender_name=row.sender_name,
            use_ssl=row.use_ssl,
        )


@dataclass
class OutgoingAttachment:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    text_body: str
    html_body: Optional[str] = None
    attachments: List[OutgoingAttachment] = field(default_factory=list)


def text_to_html(text: str) -> str:
    """Plain text email body as minimal HTML, newlines become <br>"""
    html = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return html.replace("\n", "<br>")


async def load_smtp_settings(user_id: str, session_factory: SessionFactory = get_db_context) -> Optional[SmtpSettings]:
    """The user's stored SMTP configuration, if any"""
    async with session_factory() as db:
        result = await db.execute(select(SmtpConfig).where(SmtpConfig.user_id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return SmtpSettings.from_model(row)


class SmtpMailTransport:
    """One SMTP connection per message; never retries"""

    def __init__(self, smtp: SmtpSettings, timeout: Optional[int] = None):
        self.smtp = smtp
        self.timeout = timeout or get_settings().SMTP_TIMEOUT

    def build_message(self, email: OutgoingEmail) -> MIMEMultipart:
        alternative = MIMEMultipart("alternative")
        alternative.attach(MIMEText(email.text_body, "plain", "utf-8"))
        alternative.attach(MIMEText(email.html_body or text_to_html(email.text_body), "html", "utf-8"))

        if email.attachments:
            msg = MIMEMultipart("mixed")
            msg.attach(alternative)
            for attachment in email.attachments:
                maintype, _, subtype = attachment.mime_type.partition("/")
                part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
                if maintype and maintype != "application":
                    part.replace_header("Content-Type", f"{attachment.mime_type}")
                part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
                msg.attach(part)
        else:
            msg = alternative

        sender_name = self.smtp.sender_name or get_settings().DEFAULT_SENDER_NAME
        domain = self.smtp.email.split("@")[1] if "@" in self.smtp.email else None
        msg["Message-ID"] = make_msgid(domain=domain)
        msg["Subject"] = email.subject
        msg["From"] = formataddr((sender_name, self.smtp.email))
        msg["To"] = email.to
        return msg

    async def send(self, email: OutgoingEmail) -> str:
        """
        Deliver one email and return its Message-ID.

        Raises:
            MailTransportError: on any SMTP, connection or timeout failure
        """
        msg = self.build_message(email)

        smtp = aiosmtplib.SMTP(
            hostname=self.smtp.host,
            port=self.smtp.port,
            timeout=self.timeout,
            use_tls=self.smtp.use_ssl,
            start_tls=not self.smtp.use_ssl,
        )

        try:
            await smtp.connect()
            await smtp.login(self.smtp.email, self.smtp.password)
            await smtp.sendmail(self.smtp.email, [email.to], msg.as_string())
            await smtp.quit()
        except aiosmtplib.SMTPException as e:
            logger.error("SMTP error sending to %s: %s", email.to, str(e)[:200])
            raise MailTransportError(str(e)) from e
        except (asyncio.TimeoutError, OSError) as e:
            logger.error("Connection error sending to %s: %s", email.to, e)
            raise MailTransportError(f"Connection error: {e}") from e

        logger.info("Email sent to %s from %s", email.to, self.smtp.email)
        return msg["Message-ID"]
