"""Email sender service - delivers alert mail via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    from_address: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.host)

    @property
    def sender(self) -> str:
        return self.from_address or self.username


class EmailSenderService:
    """Sends one message per call so each recipient succeeds or fails on its own."""

    def _open(self, config: EmailConfig) -> smtplib.SMTP:
        server = smtplib.SMTP(config.host, config.port, timeout=30)
        try:
            if config.use_tls:
                server.starttls(context=ssl.create_default_context())
            if config.username and config.password:
                server.login(config.username, config.password)
        except Exception:
            server.close()
            raise
        return server

    def _send_sync(self, config: EmailConfig, recipient: str, subject: str, body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.sender
        msg["To"] = recipient
        msg.attach(MIMEText(body, "plain"))

        with self._open(config) as server:
            server.sendmail(config.sender, [recipient], msg.as_string())

    async def send_email(self, config: EmailConfig, recipient: str, subject: str, body: str) -> bool:
        """Send a plain-text email to one recipient.

        Returns True on success, False on failure.
        """
        if not config.configured or not recipient:
            logger.warning("Email not configured - missing host or recipient")
            return False

        try:
            await asyncio.to_thread(self._send_sync, config, recipient, subject, body)
            logger.info(f"Email sent to {recipient}: {subject}")
            return True
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipient {recipient} refused by server: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error sending to {recipient}: {type(e).__name__}: {e}")
            return False
        except OSError as e:
            logger.error(f"Could not reach SMTP server {config.host}:{config.port}: {e}")
            return False

    async def verify(self, config: EmailConfig) -> bool:
        """Check that the SMTP server accepts a connection and login."""
        if not config.configured:
            return False

        def _noop():
            with self._open(config) as server:
                server.noop()

        try:
            await asyncio.to_thread(_noop)
            logger.info("Email configuration is valid")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email configuration is invalid: {type(e).__name__}: {e}")
            return False


email_sender_service = EmailSenderService()
