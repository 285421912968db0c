"""Resend e-mail client.

Wraps the Resend SDK's single-message send, used for the weekly report.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
import resend
from resend import exceptions as resend_exceptions

logger = logging.getLogger(__name__)


class ResendError(Exception):
    """Raised when Resend rejects a message or cannot be reached."""

    pass


@dataclass
class Attachment:
    """A file attached to an outgoing e-mail."""

    filename: str
    content: bytes

    def to_params(self) -> dict:
        return {"filename": self.filename, "content": list(self.content)}


class ResendClient:
    """Sends e-mail through the Resend API."""

    def __init__(self, api_key: str):
        """Initialize client.

        Args:
            api_key: Resend API key
        """
        if not api_key:
            raise ResendError("RESEND_API_KEY not set")
        self.api_key = api_key

    def send_email(
        self,
        sender: str,
        to: list[str],
        subject: str,
        text: str,
        attachments: Optional[list[Attachment]] = None,
    ) -> Optional[str]:
        """Send one plain-text e-mail.

        Returns:
            The message id assigned by Resend

        Raises:
            ResendError: On network failure or a rejected message
        """
        params = {
            "from": sender,
            "to": to,
            "subject": subject,
            "text": text,
        }
        if attachments:
            params["attachments"] = [a.to_params() for a in attachments]

        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(params)
        except resend_exceptions.ResendError as e:
            raise ResendError(f"Resend API error: {e}")
        except requests.exceptions.RequestException as e:
            raise ResendError(f"Request failed: {e}")

        logger.debug("Resend accepted message to %s: %s", to, response)
        return response.get("id") if response else None
