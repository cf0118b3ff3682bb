"""Email delivery of re-alert summaries."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .config import EmailConfig
from .host import AlertSurface

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


def send_email(message: str, subject: str, config: EmailConfig) -> None:
    """
    Send an email notification.

    Args:
        message: The message text to send.
        subject: Email subject line.
        config: SMTP configuration, including the recipient.

    Raises:
        Exception: If email sending fails.
    """
    if not message or not message.strip():
        logger.info("Message is empty; not sending email.")
        return

    msg = MIMEMultipart()
    msg['From'] = config.username
    msg['To'] = config.to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(message, 'plain'))

    try:
        logger.debug(f"Connecting to SMTP server: {config.host}:{config.port}")
        if config.port == 465:
            server = smtplib.SMTP_SSL(config.host, config.port, timeout=SMTP_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(config.host, config.port, timeout=SMTP_TIMEOUT_SECONDS)
            if config.use_ssl:
                server.starttls()
        try:
            server.login(config.username, config.password)
            server.send_message(msg)
        finally:
            server.quit()
        logger.info(f"Email sent successfully to {config.to_email}")
    except smtplib.SMTPAuthenticationError as e:
        logger.error(
            f"SMTP authentication failed for {config.username}. "
            f"For Gmail use an App Password, not your regular password. "
            f"Error details: {e}"
        )
        raise
    except (smtplib.SMTPException, ConnectionError, TimeoutError) as e:
        logger.error(f"Failed to send email: {e}")
        raise


class EmailAlertSurface(AlertSurface):
    """Emails each summary. Emails cannot be withdrawn once sent."""

    def __init__(self, config: EmailConfig):
        self.config = config

    def post_summary(self, title: str, body: str, count: int, silent: bool) -> None:
        send_email(f"{body}\n\n{count} unread important notification(s).", title, self.config)

    def cancel_summary(self) -> None:
        logger.debug("Email summaries cannot be withdrawn")
