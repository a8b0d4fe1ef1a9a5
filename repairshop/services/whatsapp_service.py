"""
WhatsApp Service
Sends text and media messages through an Evolution API instance

Order notifications from the engine are text only. The document and image
channels only accept an OutgoingMessage whose caller attached a PDF or picture
and decline everything else.
"""

import logging
import re
import time
from typing import Optional

import httpx

from ..config import EVOLUTION_API_KEY, EVOLUTION_API_URL, EVOLUTION_INSTANCE
from ..domain.orders.exceptions import NotificationError
from ..shared.validators import phone_digits

logger = logging.getLogger(__name__)

# Typing delay the gateway shows before delivering, in ms
SEND_DELAY_MS = 450

_DATA_URL_PREFIX = re.compile(r"^data:[\w/+.-]+;base64,")


def strip_data_url(payload: str) -> str:
    """Evolution API wants bare base64 - drop any data: URL prefix"""
    return _DATA_URL_PREFIX.sub("", payload)


class EvolutionClient:
    """Thin client over the Evolution API message endpoints"""

    def __init__(
        self,
        base_url: Optional[str] = EVOLUTION_API_URL,
        api_key: Optional[str] = EVOLUTION_API_KEY,
        instance: str = EVOLUTION_INSTANCE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.instance = instance
        self.transport = transport
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def post(self, endpoint: str, payload: dict) -> dict:
        """POST to /message/<endpoint>/<instance>; any failure raises NotificationError"""
        if not self.configured:
            raise NotificationError("Missing Evolution API configuration")

        url = f"{self.base_url}/message/{endpoint}/{self.instance}"
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    url,
                    headers={"apikey": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise NotificationError(f"Evolution API request failed: {e}") from e

        logger.debug(f"📡 Evolution API response status: {response.status_code}")

        if response.status_code not in (200, 201):
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get("message", response.text) if isinstance(body, dict) else response.text
            raise NotificationError(f"Evolution API error [{response.status_code}]: {message}")

        try:
            return response.json()
        except ValueError:
            return {}


class WhatsAppTextChannel:
    name = "whatsapp_text"

    def __init__(self, client: EvolutionClient):
        self.client = client

    def accepts(self, message) -> bool:
        return True

    async def send(self, phone: str, message) -> dict:
        number = phone_digits(phone)
        logger.info(f"📱 Sending WhatsApp text to {number}")
        return await self.client.post(
            "sendText",
            {
                "number": number,
                "text": message.text,
                "delay": SEND_DELAY_MS,
                "linkPreview": True,
            },
        )


class WhatsAppMediaChannel:
    """
    Sends the message text as the caption of an attachment.

    One instance per media type: "document" (PDF) or "image".
    """

    def __init__(self, client: EvolutionClient, mediatype: str):
        if mediatype not in ("document", "image"):
            raise ValueError(f"Unsupported media type: {mediatype}")
        self.client = client
        self.mediatype = mediatype
        self.name = f"whatsapp_{mediatype}"

    def accepts(self, message) -> bool:
        attachment = message.attachment
        return attachment is not None and attachment.kind == self.mediatype

    async def send(self, phone: str, message) -> dict:
        attachment = message.attachment
        number = phone_digits(phone)
        default_ext = "pdf" if self.mediatype == "document" else "png"
        file_name = attachment.file_name or f"{self.mediatype}-{int(time.time() * 1000)}.{default_ext}"

        logger.info(f"📎 Sending WhatsApp {self.mediatype} {file_name} to {number}")
        return await self.client.post(
            "sendMedia",
            {
                "number": number,
                "mediatype": self.mediatype,
                "mimetype": attachment.mimetype,
                "media": strip_data_url(attachment.content),
                "caption": message.text,
                "fileName": file_name,
                "delay": SEND_DELAY_MS,
            },
        )
