"""Tests for alert email delivery."""

import smtplib
from datetime import date

from snowpeak.alerts.email import EmailNotifier
from snowpeak.config import Settings


class FakeSMTP:
    """Context-manager SMTP stand-in recording calls."""

    instances = []

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username))

    def send_message(self, message):
        self.messages.append(message)


class FailingSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPRecipientsRefused({"x@example.com": (550, b"no such user")})


def _send(notifier):
    return notifier.send_alert(
        to_email="skier@example.com",
        resort_name="Vail",
        title="Good Snow Alert: Vail",
        message='10" of snow predicted for Thu, Jan 15!',
        forecast_date=date(2026, 1, 15),
    )


class TestEmailNotifier:
    def test_disabled_without_host(self):
        notifier = EmailNotifier(smtp_factory=FakeSMTP)
        assert not notifier.enabled
        assert _send(notifier) is False

    def test_sends_message(self):
        FakeSMTP.instances.clear()
        notifier = EmailNotifier(
            host="smtp.example.com",
            username="alerts",
            password="secret",
            smtp_factory=FakeSMTP,
        )

        assert _send(notifier) is True

        smtp = FakeSMTP.instances[-1]
        assert (smtp.host, smtp.port) == ("smtp.example.com", 587)
        assert smtp.calls == ["starttls", ("login", "alerts")]
        message = smtp.messages[0]
        assert message["To"] == "skier@example.com"
        assert message["Subject"] == "Good Snow Alert: Vail"
        body = message.get_payload()[0].get_payload()
        assert "January 15, 2026" in body

    def test_no_tls_no_login(self):
        FakeSMTP.instances.clear()
        notifier = EmailNotifier(host="localhost", port=25, use_tls=False, smtp_factory=FakeSMTP)
        assert _send(notifier) is True
        assert FakeSMTP.instances[-1].calls == []

    def test_failure_is_logged_not_raised(self):
        notifier = EmailNotifier(host="smtp.example.com", smtp_factory=FailingSMTP)
        assert _send(notifier) is False

    def test_from_settings(self):
        settings = Settings(_env_file=None, smtp_host="smtp.example.com", smtp_port=2525)
        notifier = EmailNotifier.from_settings(settings)
        assert notifier.enabled
        assert notifier.port == 2525
