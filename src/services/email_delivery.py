import logging
from typing import Any, Dict, List, Optional

import httpx

from src.core.logging_config import mask_email

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailDeliveryError(Exception):
    """The email API did not accept the message."""
    pass


class EmailDeliveryClient:
    """
    Sends a rendered report through the Resend HTTP API.
    One attempt per call; retries are left to the caller.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = RESEND_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: List[str], subject: str, html: str) -> str:
        """
        Posts one message to the email API.

        Returns:
            The provider's message id ("" when the response carries none).

        Raises:
            EmailDeliveryError: missing API key, transport failure or non-2xx response.
        """
        if not self.api_key:
            raise EmailDeliveryError("Email API key is not configured")

        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        recipients = [mask_email(address) for address in to]

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                logger.debug(f"Sending email '{subject}' to {recipients}")
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Email API rejected message: {e.response.status_code} - {e.response.text}")
                raise EmailDeliveryError(f"Email API returned status {e.response.status_code}") from e
            except httpx.RequestError as e:
                logger.error(f"Request error while sending email: {e}")
                raise EmailDeliveryError(f"Could not reach email API: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        message_id = str(body.get("id", "")) if isinstance(body, dict) else ""
        logger.info(f"Assessment email sent successfully to {recipients} (id: {message_id or 'n/a'})")
        return message_id
