"""Email delivery through the Resend HTTP API."""

import os
from typing import Optional

import requests
import structlog

logger = structlog.get_logger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"
DEFAULT_SENDER = "Career Discovery <noreply@resend.dev>"


class ResendEmailSender:
    """
    Sends one HTML + text email per call.

    send() returns False instead of raising: a failed send is retryable
    and never changes the session.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender: str = DEFAULT_SENDER,
        timeout: float = 30,
    ):
        self._api_key = api_key or os.environ.get("RESEND_API_KEY")
        self._sender = sender or DEFAULT_SENDER
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def send(self, to: str, subject: str, html: str, text: str) -> bool:
        """
        Send the email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            text: Plain-text body

        Returns:
            True if Resend accepted the message
        """
        if not self._api_key:
            logger.warning("email_not_configured", hint="set RESEND_API_KEY")
            return False

        try:
            response = requests.post(
                RESEND_EMAILS_URL,
                json={
                    "from": self._sender,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                    "text": text,
                },
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error("email_send_failed", error=str(e))
            return False

        if not response.ok:
            logger.error("email_rejected", status=response.status_code, body=response.text[:200])
            return False

        logger.info("email_sent", subject=subject)
        return True
