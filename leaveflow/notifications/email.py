"""Templated email: an outbox queued on the DB session and drained after commit.

Emails describe committed state, so nothing is sent until the surrounding
transaction commits. ``deliver_outbox`` is called by ``commit_session``;
``discard_outbox`` on rollback. Delivery failures are logged and never raised.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.config import settings

logger = logging.getLogger(__name__)

OUTBOX_KEY = "email_outbox"


@dataclass(frozen=True)
class QueuedEmail:
    to: str
    template_id: str
    data: dict[str, Any] = field(default_factory=dict)


# ── Templates ───────────────────────────────────────────────────────

def _leave_approved(data: dict[str, Any]) -> tuple[str, str]:
    subject = f"Your {data['leave_type']} leave has been approved"
    body = (
        f"Hi {data['employee_name']},\n\n"
        f"Your {data['leave_type']} leave from {data['start_date']} to "
        f"{data['end_date']} ({data['total_days']} day(s)) has been approved."
    )
    if data.get("cover_name"):
        body += f"\n{data['cover_name']} will cover your duties."
    if data.get("admin_response"):
        body += f"\n\nAdmin note: {data['admin_response']}"
    return subject, body


def _leave_approved_cover(data: dict[str, Any]) -> tuple[str, str]:
    subject = f"Cover duty confirmed for {data['employee_name']}"
    body = (
        f"Hi {data['cover_name']},\n\n"
        f"The {data['leave_type']} leave of {data['employee_name']} from "
        f"{data['start_date']} to {data['end_date']} has been approved. "
        "Please cover their duties during this period."
    )
    return subject, body


def _leave_declined(data: dict[str, Any]) -> tuple[str, str]:
    subject = f"Your {data['leave_type']} leave has been declined"
    body = (
        f"Hi {data['employee_name']},\n\n"
        f"Your {data['leave_type']} leave from {data['start_date']} to "
        f"{data['end_date']} has been declined."
    )
    if data.get("admin_response"):
        body += f"\n\nReason: {data['admin_response']}"
    return subject, body


def _leave_declined_cover(data: dict[str, Any]) -> tuple[str, str]:
    subject = f"No cover needed for {data['employee_name']}"
    body = (
        f"Hi {data['cover_name']},\n\n"
        f"The {data['leave_type']} leave of {data['employee_name']} from "
        f"{data['start_date']} to {data['end_date']} has been declined. "
        "No cover action is needed."
    )
    return subject, body


TEMPLATES: dict[str, Callable[[dict[str, Any]], tuple[str, str]]] = {
    "leave_approved": _leave_approved,
    "leave_approved_cover": _leave_approved_cover,
    "leave_declined": _leave_declined,
    "leave_declined_cover": _leave_declined_cover,
}


def render_template(template_id: str, data: dict[str, Any]) -> tuple[str, str]:
    """Return ``(subject, body)``; raises KeyError for an unknown template."""
    return TEMPLATES[template_id](data)


# ── Gateways ────────────────────────────────────────────────────────

class EmailGateway(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None: ...


class LoggingEmailGateway:
    """Used when SMTP is not configured: records the email in the log."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email not sent (SMTP not configured): to=%s subject=%r", to, subject)


class SmtpEmailGateway:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        user: str = "",
        password: str = "",
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.use_tls = use_tls

    def _send_sync(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=15) as smtp_client:
            if self.use_tls:
                smtp_client.starttls()
            if self.user:
                smtp_client.login(self.user, self.password)
            smtp_client.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> None:
        await asyncio.to_thread(self._send_sync, to, subject, body)


_gateway: Optional[EmailGateway] = None


def get_email_gateway() -> EmailGateway:
    global _gateway
    if _gateway is None:
        if settings.smtp_configured:
            _gateway = SmtpEmailGateway(
                settings.SMTP_HOST,
                settings.SMTP_PORT,
                settings.SMTP_FROM,
                user=settings.SMTP_USER,
                password=settings.SMTP_PASSWORD,
                use_tls=settings.SMTP_USE_TLS,
            )
        else:
            _gateway = LoggingEmailGateway()
    return _gateway


def set_email_gateway(gateway: Optional[EmailGateway]) -> None:
    """Swap the process-wide gateway (None restores the settings-based one)."""
    global _gateway
    _gateway = gateway


# ── Outbox ──────────────────────────────────────────────────────────

def queue_email(
    session: AsyncSession,
    *,
    to: Optional[str],
    template_id: str,
    data: dict[str, Any],
) -> None:
    """Queue a templated email for delivery once *session* commits."""
    if not to:
        logger.warning("Skipping %s email: recipient has no address", template_id)
        return
    session.info.setdefault(OUTBOX_KEY, []).append(
        QueuedEmail(to=to, template_id=template_id, data=dict(data)),
    )


def discard_outbox(session: AsyncSession) -> None:
    dropped = session.info.pop(OUTBOX_KEY, [])
    if dropped:
        logger.info("Discarded %d queued email(s) after rollback", len(dropped))


async def deliver_outbox(session: AsyncSession) -> int:
    """Send every queued email; returns the number delivered."""
    queued: list[QueuedEmail] = session.info.pop(OUTBOX_KEY, [])
    if not queued:
        return 0

    gateway = get_email_gateway()
    delivered = 0
    for email in queued:
        try:
            subject, body = render_template(email.template_id, email.data)
            await gateway.send(email.to, subject, body)
            delivered += 1
        except Exception:
            logger.exception(
                "Email delivery failed: template=%s to=%s",
                email.template_id,
                email.to,
            )
    return delivered
