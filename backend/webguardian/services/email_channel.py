"""Email channel - sends notifications via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from ..config import parse_recipients
from ..models import MonitoredSite
from .checker import CheckResult
from .messages import build_body, build_subject
from .notifier import NotificationChannel

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str = ""
    password: str = ""
    use_tls: bool = True
    from_address: str = ""
    to_address: str = ""  # Comma-separated list of email addresses
    timeout: float = 30


class EmailChannel(NotificationChannel):
    """Sends alerts, recoveries and reports by email."""

    name = "email"

    def __init__(self, config: EmailConfig):
        self.config = config

    async def send_alert(self, site: MonitoredSite, result: CheckResult) -> bool:
        subject = build_subject("alert", site)
        body = build_body("ALERT", site, result)
        return await self.send_email(subject, body)

    async def send_recovery_notification(self, site: MonitoredSite, result: CheckResult) -> bool:
        subject = build_subject("recovered", site)
        body = build_body("RECOVERY", site, result)
        return await self.send_email(subject, body)

    async def send_report(self, content: str, report_type: str) -> bool:
        return await self.send_email(f"WebGuardian {report_type} report", content)

    async def send_email(self, subject: str, body: str) -> bool:
        """Send an email using SMTP.

        Supports comma-separated list of recipients in to_address.
        Returns True on success, False on failure.
        """
        config = self.config
        if not config.host or not config.to_address:
            logger.warning("Email not configured - missing host or to_address")
            return False

        recipients = parse_recipients(config.to_address)
        if not recipients:
            logger.warning("No valid recipients found in to_address")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.from_address or config.username
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(body, "plain"))

        # smtplib is blocking, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._deliver, msg, recipients, subject)

    def _deliver(self, msg: MIMEMultipart, recipients: list, subject: str) -> bool:
        config = self.config
        from_addr = config.from_address or config.username
        try:
            logger.debug(f"Connecting to {config.host}:{config.port} (tls={config.use_tls})")
            with smtplib.SMTP(config.host, config.port, timeout=config.timeout) as server:
                if config.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if config.username and config.password:
                    server.login(config.username, config.password)
                server.sendmail(from_addr, recipients, msg.as_string())

            logger.info(f"Email sent successfully to {len(recipients)} recipient(s): {subject}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            return False
        except smtplib.SMTPConnectError as e:
            logger.error(f"Failed to connect to SMTP server {config.host}:{config.port}: {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused by server: {e}")
            return False
        except smtplib.SMTPSenderRefused as e:
            logger.error(f"Sender address refused: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False
        except OSError as e:
            # Connection refused, DNS failure, timeout
            logger.error(f"Cannot reach {config.host}:{config.port}: {type(e).__name__}: {e}")
            return False
