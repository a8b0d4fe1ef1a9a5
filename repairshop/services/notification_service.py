"""
Unified Notification Service
Delivers order messages over an ordered list of channels, falling back on failure
Delivery is best-effort: notify() reports the outcome and never raises
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..config import (
    DEFAULT_COUNTRY_CODE,
    MESSAGES_ENABLED,
    NOTIFICATION_TIMEOUT_SECONDS,
)
from ..domain.orders.exceptions import NotificationError
from ..shared.validators import normalize_phone
from .twilio_service import TwilioSMSChannel
from .whatsapp_service import EvolutionClient, WhatsAppMediaChannel, WhatsAppTextChannel

logger = logging.getLogger(__name__)


@dataclass
class Recipient:
    phone: str
    role: str = "client"  # operator, client, technician
    name: Optional[str] = None


@dataclass
class Attachment:
    kind: str  # "document" or "image"
    content: str  # base64, with or without a data: URL prefix
    mimetype: str = "application/pdf"
    file_name: Optional[str] = None


@dataclass
class OutgoingMessage:
    text: str
    attachment: Optional[Attachment] = None


@dataclass
class DispatchResult:
    ok: bool
    channel: Optional[str] = None
    reason: Optional[str] = None
    skipped: bool = False


class NotificationDispatcher:
    """
    Tries each channel in order until one delivers.

    A channel is any object with a `name`, `accepts(message)` and an async
    `send(phone, message)` that raises NotificationError on failure. Any other
    exception from a channel is logged and treated as a failure too.
    """

    def __init__(
        self,
        channels: list,
        enabled: bool = True,
        timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
        country_code: str = DEFAULT_COUNTRY_CODE,
    ):
        self.channels = list(channels)
        self.enabled = enabled
        self.timeout = timeout
        self.country_code = country_code

    async def notify(self, recipient: Recipient, message: OutgoingMessage) -> DispatchResult:
        if not self.enabled:
            logger.debug(f"📴 Messages disabled, skipping {recipient.role} notification")
            return DispatchResult(ok=True, skipped=True, reason="Messages disabled")

        try:
            phone = normalize_phone(recipient.phone, self.country_code)
        except ValueError as e:
            logger.warning(f"⚠️ Invalid {recipient.role} phone number {recipient.phone!r}: {e}")
            return DispatchResult(ok=False, reason=str(e))
        if not phone:
            logger.debug(f"⚠️ No phone number for {recipient.role} notification")
            return DispatchResult(ok=False, reason="No phone number")

        reasons = []
        for channel in self.channels:
            if not channel.accepts(message):
                continue
            try:
                await asyncio.wait_for(channel.send(phone, message), timeout=self.timeout)
            except asyncio.TimeoutError:
                reason = f"{channel.name}: timed out after {self.timeout}s"
                logger.warning(f"⏱️ {reason} ({recipient.role} {phone})")
                reasons.append(reason)
                continue
            except NotificationError as e:
                reason = f"{channel.name}: {e.message}"
                logger.warning(f"⚠️ {reason} ({recipient.role} {phone})")
                reasons.append(reason)
                continue
            except Exception as e:
                reason = f"{channel.name}: {type(e).__name__}: {e}"
                logger.error(f"❌ Unexpected error from {reason} ({recipient.role} {phone})")
                reasons.append(reason)
                continue

            logger.info(f"✅ {recipient.role.capitalize()} notified via {channel.name} ({phone})")
            return DispatchResult(ok=True, channel=channel.name)

        reason = "; ".join(reasons) or "No channel accepted the message"
        logger.error(f"❌ Could not notify {recipient.role} {phone}: {reason}")
        return DispatchResult(ok=False, reason=reason)


def build_default_dispatcher() -> NotificationDispatcher:
    """WhatsApp document, image, text, then Twilio SMS when configured"""
    evolution = EvolutionClient(timeout=NOTIFICATION_TIMEOUT_SECONDS)
    channels = [
        WhatsAppMediaChannel(evolution, "document"),
        WhatsAppMediaChannel(evolution, "image"),
        WhatsAppTextChannel(evolution),
    ]
    sms = TwilioSMSChannel(timeout=NOTIFICATION_TIMEOUT_SECONDS)
    if sms.configured:
        channels.append(sms)
    return NotificationDispatcher(channels, enabled=MESSAGES_ENABLED)
