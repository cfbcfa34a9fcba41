from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Protocol, Sequence

import httpx
from fastapi.concurrency import run_in_threadpool

from repair_desk.config import Settings
from repair_desk.schemas import safe

logger = logging.getLogger(__name__)


class SendError(RuntimeError):
    pass


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class MailOutcome:
    """Result of a best-effort send. Never raised, always returned."""

    sent: bool
    recipient: str | None = None
    receipt: str | None = None
    stage: str | None = None
    error: str | None = None

    def response_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"mail_sent": self.sent}
        if not self.sent:
            fields["stage"] = self.stage
            fields["mail_error"] = safe(self.error)
        return fields


class Mailer(Protocol):
    stage: str

    async def send(
        self,
        sender: str,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> str: ...


class MailgunMailer:
    stage = "send_mailgun"

    def __init__(
        self,
        api_key: str,
        domain: str,
        region: str = "us",
        timeout: float = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.domain = domain
        self.region = region
        self.timeout = timeout
        self.transport = transport

    @property
    def base_url(self) -> str:
        return "https://api.eu.mailgun.net" if self.region == "eu" else "https://api.mailgun.net"

    async def send(
        self,
        sender: str,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> str:
        url = f"{self.base_url}/v3/{self.domain}/messages"
        data = {"from": sender, "to": to, "subject": subject, "html": html}
        files = [("attachment", (a.filename, a.content, a.content_type)) for a in attachments]
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    url,
                    auth=("api", self.api_key),
                    data=data,
                    files=files or None,
                )
        except httpx.HTTPError as exc:
            raise SendError(f"Mailgun unreachable: {exc}") from exc
        if resp.status_code >= 400:
            raise SendError(f"Mailgun error {resp.status_code}: {resp.text.strip()}")
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        return str(body.get("id") or body.get("message") or resp.text)


class SmtpMailer:
    stage = "send_smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        secure: bool = False,
        timeout: float = 20,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.secure = secure
        self.timeout = timeout

    def build_message(
        self,
        sender: str,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        msg.set_content("Deze e-mail bevat HTML. Open hem in een mailprogramma dat HTML ondersteunt.")
        msg.add_alternative(html, subtype="html")
        for attachment in attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            msg.add_attachment(
                attachment.content,
                maintype=maintype or "application",
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return msg

    def _deliver(self, msg: EmailMessage) -> str:
        # One timeout covers connect, greeting and every socket operation.
        if self.secure:
            conn: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            conn = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with conn:
            if not self.secure:
                conn.ehlo()
                if conn.has_extn("starttls"):
                    conn.starttls()
                    conn.ehlo()
            if self.user:
                conn.login(self.user, self.password)
            conn.send_message(msg)
        return str(msg["Message-ID"])

    async def send(
        self,
        sender: str,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> str:
        msg = self.build_message(sender, to, subject, html, attachments)
        try:
            return await run_in_threadpool(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise SendError(f"SMTP error: {exc}") from exc


def build_mailer(settings: Settings) -> Mailer:
    settings.require_mail()
    if settings.mail_transport == "smtp":
        return SmtpMailer(
            settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            secure=settings.smtp_secure,
            timeout=settings.smtp_timeout,
        )
    return MailgunMailer(
        settings.mailgun_api_key,
        settings.mailgun_domain,
        region=settings.mailgun_region,
    )


class Notifier:
    """Sends one message and reports the outcome instead of raising.

    When ``debug_to`` is set every message goes there instead of to the real
    recipient, with ``[DEBUG]`` in front of the subject. Stored data is untouched.
    """

    def __init__(self, mailer: Mailer, sender: str, debug_to: str = "") -> None:
        self.mailer = mailer
        self.sender = sender
        self.debug_to = debug_to

    @classmethod
    def from_settings(cls, settings: Settings) -> "Notifier":
        return cls(build_mailer(settings), settings.sender(), settings.mail_debug_to)

    def route(self, to: str, subject: str) -> tuple[str, str]:
        if self.debug_to:
            return self.debug_to, f"[DEBUG] {subject}"
        return to, subject

    async def deliver(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Sequence[Attachment] = (),
    ) -> MailOutcome:
        recipient, subject = self.route(to, subject)
        try:
            receipt = await self.mailer.send(self.sender, recipient, subject, html, attachments)
        except Exception as exc:
            logger.warning("Mail to %s failed at %s", recipient, self.mailer.stage, exc_info=True)
            return MailOutcome(
                sent=False,
                recipient=recipient,
                stage=self.mailer.stage,
                error=str(exc) or exc.__class__.__name__,
            )
        logger.info("Mail sent to %s (%s)", recipient, receipt)
        return MailOutcome(sent=True, recipient=recipient, receipt=receipt)
