import os
import unittest
from unittest.mock import MagicMock, patch

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from app.core.config import settings
from app.services.email_service import EmailDeliveryError, send_email, send_password_reset_email


class EmailServiceTests(unittest.TestCase):
    def setUp(self):
        self._backup = {
            "EMAIL_PROVIDER": settings.EMAIL_PROVIDER,
            "SMTP_HOST": settings.SMTP_HOST,
            "SMTP_USE_TLS": settings.SMTP_USE_TLS,
        }

    def tearDown(self):
        for key, value in self._backup.items():
            setattr(settings, key, value)

    def test_dummy_provider_only_logs(self):
        settings.EMAIL_PROVIDER = "dummy"
        with self.assertLogs("app.email", level="WARNING"):
            payload = send_password_reset_email(email="User@Example.com", name="Jonas Schmedtmann", url="http://x/reset/abc")
        self.assertEqual(payload.get("provider"), "mock_email")
        self.assertTrue(payload.get("mocked"))

    def test_unknown_provider_raises(self):
        settings.EMAIL_PROVIDER = "pigeon"
        with self.assertRaises(EmailDeliveryError):
            send_email(email="user@example.com", subject="s", body="b")

    def test_empty_address_raises(self):
        with self.assertRaises(EmailDeliveryError):
            send_email(email="  ", subject="s", body="b")

    def test_smtp_requires_host(self):
        settings.EMAIL_PROVIDER = "smtp"
        settings.SMTP_HOST = ""
        with self.assertRaises(EmailDeliveryError):
            send_email(email="user@example.com", subject="s", body="b")

    def test_smtp_sends_message(self):
        settings.EMAIL_PROVIDER = "smtp"
        settings.SMTP_HOST = "smtp.example.com"
        settings.SMTP_USE_TLS = False
        client = MagicMock()
        smtp = MagicMock()
        smtp.__enter__.return_value = client
        with patch("app.services.email_service.smtplib.SMTP", return_value=smtp) as factory:
            payload = send_email(email="user@example.com", subject="Hello", body="Body")
        factory.assert_called_once()
        client.send_message.assert_called_once()
        message = client.send_message.call_args.args[0]
        self.assertEqual(message["To"], "user@example.com")
        self.assertEqual(payload, {"provider": "smtp", "status": "accepted", "sent": True})
