"""
Email Service

Sends alert notification emails over SMTP. Delivery is optional: without
an SMTP host every send is a silent no-op, and a failed send is logged
without affecting the in-app notification.
"""

import logging
import smtplib
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Optional

from snowpeak.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailNotifier:
    """SMTP sender for snow alert emails."""

    def __init__(
        self,
        host: str = "",
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        from_email: str = "SnowPeak Alerts <alerts@snowpeak.local>",
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self._smtp_factory = smtp_factory

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EmailNotifier":
        settings = settings or get_settings()
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_email=settings.alert_from_email,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def send_alert(
        self,
        to_email: str,
        resort_name: str,
        title: str,
        message: str,
        forecast_date: date,
    ) -> bool:
        """
        Send a snow alert email.

        Args:
            to_email (str): Recipient address
            resort_name (str): Resort the alert is for
            title (str): Notification title, used as the subject
            message (str): Notification message
            forecast_date (date): Forecast date that triggered the alert

        Returns:
            bool: True if the email was sent, False if disabled or failed
        """
        if not self.enabled:
            logger.debug("SMTP host not configured, skipping alert email")
            return False

        body = f"""{message}

Resort: {resort_name}
Forecast date: {forecast_date.strftime('%B %d, %Y')}

---
You are receiving this because you subscribed to snow alerts for {resort_name}.
This is an automated notification. Please do not reply to this email.
"""

        email = MIMEMultipart()
        email["From"] = self.from_email
        email["To"] = to_email
        email["Subject"] = title
        email.attach(MIMEText(body, "plain"))

        try:
            with self._smtp_factory(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(email)

            logger.info(f"Alert email sent to {to_email} for {resort_name}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending alert email to {to_email}: {e}")
            return False
