"""
Twilio SMS Service
Last-resort channel for order notifications when WhatsApp delivery fails
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER
from ..domain.orders.exceptions import NotificationError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

# Twilio rejects bodies over 1600 characters
MAX_SMS_LENGTH = 1600


class TwilioSMSChannel:
    name = "twilio_sms"

    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        from_number: Optional[str] = TWILIO_FROM_NUMBER,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.transport = transport
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def accepts(self, message) -> bool:
        return self.configured

    async def send(self, phone: str, message) -> dict:
        """
        Send SMS via Twilio

        Args:
            phone: Recipient phone number in E.164 format
            message: OutgoingMessage; attachments are dropped, only the text goes out

        Returns:
            Twilio message resource (dict)
        """
        if not phone.startswith("+"):
            raise NotificationError(f"Phone number not in E.164 format: {phone}")

        body = message.text
        if len(body) > MAX_SMS_LENGTH:
            body = body[: MAX_SMS_LENGTH - 3] + "..."

        logger.info(f"🚀 Sending SMS to Twilio API for {phone}")
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json",
                    auth=(self.account_sid, self.auth_token),
                    data={"To": phone, "From": self.from_number, "Body": body},
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise NotificationError(f"Twilio API request failed: {e}") from e

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in [200, 201]:
            try:
                result = response.json()
            except ValueError:
                result = {}
            logger.info(f"✅ SMS sent successfully to {phone} (SID: {result.get('sid')})")
            return result

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}
        error_message = error_data.get("message", "Unknown error")
        error_code = error_data.get("code")
        raise NotificationError(
            f"Twilio API error [{error_code}]: {error_message}" if error_code else error_message
        )
