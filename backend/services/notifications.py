# backend/services/notifications.py
from __future__ import annotations

from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict

import aiosmtplib

from backend.core.config import Settings
from backend.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)

TIER_LABELS = {
    "tier1": "Tier 1: Security Assessment",
    "tier2": "Tier 2: Full Penetration Test",
}


class EmailNotifier:
    """Sends new-lead notifications to the team inbox.

    Without SMTP credentials the message is only logged. Delivery is best
    effort: errors are logged and never raised to the caller.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_contact_message(self, contact: Dict[str, Any]) -> EmailMessage:
        tier = TIER_LABELS.get(contact.get("service_tier") or "", "Not specified")
        name = f"{contact.get('first_name', '')} {contact.get('last_name', '')}".strip()

        msg = EmailMessage()
        msg["Subject"] = f"New contact submission from {name}"
        msg["From"] = self.settings.notification_from or self.settings.smtp_username or self.settings.notification_email
        msg["To"] = self.settings.notification_email
        msg["Reply-To"] = contact.get("email", "")
        msg["Message-ID"] = make_msgid(domain="securepent.com")
        msg.set_content(
            "\n".join([
                f"Name: {name}",
                f"Email: {contact.get('email', '')}",
                f"Company: {contact.get('company') or '-'}",
                f"Job title: {contact.get('job_title') or '-'}",
                f"Service tier: {tier}",
                f"Priority: {contact.get('priority', 'normal')}",
                f"Reference: {contact.get('uuid', '')}",
                "",
                contact.get("message", ""),
            ])
        )
        return msg

    async def send_contact_notification(self, contact: Dict[str, Any]) -> bool:
        msg = self.build_contact_message(contact)

        if not self.settings.smtp_configured:
            logger.info(
                "notification.simulated",
                to=msg["To"],
                subject=msg["Subject"],
                contact_id=contact.get("uuid"),
            )
            return False

        port = self.settings.smtp_port
        try:
            await aiosmtplib.send(
                msg,
                hostname=self.settings.smtp_host,
                port=port,
                username=self.settings.smtp_username,
                password=self.settings.smtp_password,
                use_tls=port == 465,  # Implicit TLS for port 465
                start_tls=port == 587,
                timeout=self.settings.smtp_timeout,
            )
        except aiosmtplib.SMTPResponseException as e:
            logger.error(
                "notification.smtp_rejected",
                code=e.code,
                error=e.message,
                contact_id=contact.get("uuid"),
            )
            return False
        except Exception as e:
            logger.error("notification.failed", error=str(e), contact_id=contact.get("uuid"))
            return False

        logger.info("notification.sent", to=msg["To"], contact_id=contact.get("uuid"))
        return True
