"""Twilio SMS delivery of re-alert summaries."""

import logging

from twilio.rest import Client

from .config import TwilioConfig
from .host import AlertSurface

logger = logging.getLogger(__name__)


def send_sms(message: str, config: TwilioConfig) -> None:
    """
    Send an SMS via Twilio.

    Args:
        message: The message text to send.
        config: Twilio configuration.

    Raises:
        Exception: If SMS sending fails.
    """
    if not message or not message.strip():
        logger.info("Message is empty; not sending SMS.")
        return

    try:
        client = Client(config.account_sid, config.auth_token)
        message_obj = client.messages.create(
            body=message,
            from_=config.from_number,
            to=config.to_number
        )
        logger.info(f"SMS sent successfully. SID: {message_obj.sid}")
        logger.debug(f"Message preview: {message[:50]}...")
    except Exception as e:
        error_str = str(e)
        if "20003" in error_str or "Authenticate" in error_str or "401" in error_str:
            logger.error(
                "Twilio authentication failed (Error 20003). "
                "Check TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN. "
                f"Current Account SID (first 10 chars): {config.account_sid[:10]}..."
            )
        else:
            logger.error(f"Failed to send SMS: {e}")
        raise


class TwilioAlertSurface(AlertSurface):
    """
    Sends each summary as an SMS.

    An SMS cannot be withdrawn, so cancel_summary only forgets the last
    message. Silent summaries are still sent; SMS has no silent mode.
    """

    def __init__(self, config: TwilioConfig):
        self.config = config
        self.last_message = None

    def post_summary(self, title: str, body: str, count: int, silent: bool) -> None:
        message = f"{title}\n{body}"
        if message == self.last_message:
            logger.debug("Summary unchanged; not sending SMS.")
            return
        send_sms(message, self.config)
        self.last_message = message

    def cancel_summary(self) -> None:
        self.last_message = None
