import smtplib
from unittest.mock import patch

import pytest

from smart_notify_agent.config import EmailConfig, TwilioConfig
from smart_notify_agent.email_notifier import EmailAlertSurface, send_email
from smart_notify_agent.twilio_notifier import TwilioAlertSurface, send_sms

TWILIO = TwilioConfig(account_sid="AC123", auth_token="token", from_number="+15550001", to_number="+15550002")
EMAIL = EmailConfig(host="smtp.example.com", port=587, username="me@example.com", password="pw",
                    use_ssl=True, to_email="you@example.com")


@patch("smart_notify_agent.twilio_notifier.Client")
def test_send_sms_uses_configured_numbers(client_cls):
    send_sms("hello", TWILIO)

    client_cls.assert_called_once_with("AC123", "token")
    client_cls.return_value.messages.create.assert_called_once_with(
        body="hello", from_="+15550001", to="+15550002"
    )


@patch("smart_notify_agent.twilio_notifier.Client")
def test_send_sms_skips_empty_message(client_cls):
    send_sms("   ", TWILIO)

    client_cls.assert_not_called()


@patch("smart_notify_agent.twilio_notifier.Client")
def test_send_sms_reraises_failures(client_cls):
    client_cls.return_value.messages.create.side_effect = RuntimeError("HTTP 401 Authenticate")

    with pytest.raises(RuntimeError):
        send_sms("hello", TWILIO)


@patch("smart_notify_agent.twilio_notifier.Client")
def test_sms_surface_does_not_repeat_identical_summary(client_cls):
    surface = TwilioAlertSurface(TWILIO)

    surface.post_summary("1 important notification", "Bank: due", 1, True)
    surface.post_summary("1 important notification", "Bank: due", 1, True)
    surface.cancel_summary()
    surface.post_summary("1 important notification", "Bank: due", 1, True)

    assert client_cls.return_value.messages.create.call_count == 2


@patch("smart_notify_agent.email_notifier.smtplib.SMTP")
def test_send_email_uses_starttls(smtp_cls):
    server = smtp_cls.return_value

    send_email("body text", "Subject", EMAIL)

    smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("me@example.com", "pw")
    sent = server.send_message.call_args[0][0]
    assert sent["To"] == "you@example.com"
    assert sent["Subject"] == "Subject"
    server.quit.assert_called_once()


@patch("smart_notify_agent.email_notifier.smtplib.SMTP_SSL")
def test_send_email_port_465_uses_ssl(smtp_ssl_cls):
    config = EmailConfig(host="smtp.example.com", port=465, username="me@example.com", password="pw",
                         use_ssl=True, to_email="you@example.com")

    send_email("body", "Subject", config)

    smtp_ssl_cls.assert_called_once_with("smtp.example.com", 465, timeout=30)


@patch("smart_notify_agent.email_notifier.smtplib.SMTP")
def test_send_email_auth_failure_is_reraised(smtp_cls):
    smtp_cls.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    with pytest.raises(smtplib.SMTPAuthenticationError):
        send_email("body", "Subject", EMAIL)
    smtp_cls.return_value.quit.assert_called_once()


@patch("smart_notify_agent.email_notifier.send_email")
def test_email_surface_sends_title_as_subject(send):
    EmailAlertSurface(EMAIL).post_summary("2 important notifications", "Chat: ping", 2, False)

    message, subject, config = send.call_args[0]
    assert subject == "2 important notifications"
    assert message.startswith("Chat: ping")
    assert config is EMAIL
