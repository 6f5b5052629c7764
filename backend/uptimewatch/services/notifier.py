"""Notifier service - sends down, recovery, and test alerts by email and webhook."""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..utils.time_utils import isoformat_utc, utcnow
from .email_sender import email_sender_service, EmailConfig, EmailSenderService

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Every configured recipient failed (or none was configured for a test)."""


def _format_duration(seconds: Optional[int]) -> str:
    seconds = seconds or 0
    return f"{seconds // 60}m {seconds % 60}s"


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC") if value else "N/A"


class Notifier:
    """Delivers alerts to the configured addresses, the on-call contact, and a webhook.

    Each recipient is attempted independently. A failure is logged and only
    raised (as ``NotificationError``) when every recipient failed.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        email_sender: Optional[EmailSenderService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or default_settings
        self.email_sender = email_sender or email_sender_service
        self._transport = transport

    @property
    def email_config(self) -> EmailConfig:
        return EmailConfig(
            host=self.config.smtp_host,
            port=self.config.smtp_port,
            username=self.config.smtp_username,
            password=self.config.smtp_password,
            use_tls=self.config.smtp_use_tls,
            from_address=self.config.alert_email_from,
        )

    def _recipients(self, contact=None) -> List[str]:
        recipients = self.config.alert_recipients()
        if contact is not None and self.config.notify_on_call and contact.email not in recipients:
            recipients.append(contact.email)
        return recipients

    def _build_body(self, title: str, target, lines: List[str], contact=None) -> str:
        body = [
            f"uptimewatch {title}",
            "=" * 40,
            "",
            f"Target: {target.name}",
            f"URL: {target.url}",
        ]
        body.extend(lines)
        if contact is not None:
            phone = f", {contact.phone}" if contact.phone else ""
            body.append(f"On call: {contact.name} <{contact.email}>{phone}")
        body.extend(["", "--", "uptimewatch monitoring"])
        return "\n".join(body)

    async def send_down(self, target, incident, contact=None) -> None:
        """Alert that a target went down."""
        lines = ["Status: DOWN", f"Time: {_format_time(incident.started_at)}"]
        if incident.error_message:
            lines.append(f"Error: {incident.error_message}")
        await self._deliver(
            event="down",
            subject=f"DOWN - {target.name}",
            body=self._build_body("Service Down", target, lines, contact),
            payload={
                "target": target.name,
                "url": target.url,
                "event": "down",
                "details": incident.error_message,
                "started_at": isoformat_utc(incident.started_at),
                "on_call": contact.email if contact is not None else None,
            },
            contact=contact,
        )

    async def send_recovered(self, target, incident, contact=None) -> None:
        """Alert that a target is back."""
        lines = [
            "Status: OPERATIONAL",
            f"Recovered at: {_format_time(incident.resolved_at)}",
            f"Downtime: {_format_duration(incident.duration)}",
        ]
        await self._deliver(
            event="recovered",
            subject=f"RECOVERED - {target.name}",
            body=self._build_body("Service Recovered", target, lines, contact),
            payload={
                "target": target.name,
                "url": target.url,
                "event": "recovered",
                "resolved_at": isoformat_utc(incident.resolved_at),
                "duration": incident.duration,
                "on_call": contact.email if contact is not None else None,
            },
            contact=contact,
        )

    async def send_test(self) -> None:
        """Send a test alert to every configured channel."""
        now = utcnow()
        delivered = await self._deliver(
            event="test",
            subject="TEST - uptimewatch alert",
            body="\n".join([
                "uptimewatch Test Alert",
                "=" * 40,
                "",
                "Alert delivery is configured correctly.",
                f"Time: {_format_time(now)}",
            ]),
            payload={"event": "test", "timestamp": isoformat_utc(now)},
        )
        if not delivered:
            raise NotificationError("No notification channels configured")

    async def test_connection(self) -> bool:
        """Whether the SMTP configuration works."""
        return await self.email_sender.verify(self.email_config)

    async def _deliver(self, event: str, subject: str, body: str, payload: dict, contact=None) -> bool:
        """Fan out to every recipient. Returns False when nothing is configured."""
        attempts = []
        email_config = self.email_config
        if email_config.configured:
            for recipient in self._recipients(contact):
                attempts.append((recipient, self.email_sender.send_email(email_config, recipient, subject, body)))
        if self.config.webhook_url:
            attempts.append(("webhook", self._send_webhook(self.config.webhook_url, payload)))

        if not attempts:
            logger.info(f"No notification channels configured, skipping {event} alert")
            return False

        results = await asyncio.gather(*(coro for _, coro in attempts))
        failed = [name for (name, _), ok in zip(attempts, results) if not ok]
        if len(failed) == len(attempts):
            raise NotificationError(f"All {len(attempts)} recipient(s) failed for {event} alert")
        if failed:
            logger.warning(f"{event} alert not delivered to: {', '.join(failed)}")
        return True

    async def _send_webhook(self, url: str, payload: dict) -> bool:
        """Send a webhook POST request."""
        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                if response.status_code < 400:
                    logger.info(f"Webhook sent: {payload['event']}")
                    return True
                logger.warning(f"Webhook returned {response.status_code}")
                return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook: {e}")
            return False
