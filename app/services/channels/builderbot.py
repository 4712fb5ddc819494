from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.services.channels.base import ChannelAdapter
from app.services.result import Result

logger = get_logger("channels.builderbot")


class BuilderbotAdapter(ChannelAdapter):
    """WhatsApp delivery through the Builderbot cloud API."""

    name = "builderbot"

    def __init__(
        self,
        base_url: Optional[str] = None,
        bot_id: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.builderbot_base_url).rstrip("/")
        self.bot_id = bot_id if bot_id is not None else settings.builderbot_bot_id
        self.api_key = api_key if api_key is not None else settings.builderbot_api_key
        self.timeout_seconds = timeout_seconds or settings.outbound_timeout_seconds

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/api/v2/{self.bot_id}/messages"

    def send_text(
        self,
        phone: str,
        text: str,
        media_url: Optional[str] = None,
        buttons: Optional[list[dict]] = None,
    ) -> Result[Optional[str]]:
        if not self.bot_id or not self.api_key:
            logger.warning("Builderbot not configured (BUILDERBOT_BOT_ID/BUILDERBOT_API_KEY)")
            return Result.failure("Builderbot credentials missing", "not_configured")

        if not phone or not text:
            return Result.failure("phone and text are required", "invalid_request")

        content: dict = {"content": text}
        if media_url:
            content["mediaUrl"] = media_url
        if buttons:
            content["buttons"] = buttons

        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    self.messages_url,
                    headers={"Content-Type": "application/json", "x-api-builderbot": self.api_key},
                    json={"messages": content, "number": phone, "checkIfExists": False},
                )
        except Exception as e:
            logger.warning("Builderbot send failed", extra={"context": {"phone": phone, "error": str(e)}})
            return Result.failure(str(e), "network_error")

        if response.status_code >= 400:
            logger.warning(
                "Builderbot rejected message",
                extra={"context": {"phone": phone, "status": response.status_code, "body": response.text[:200]}},
            )
            return Result.failure(f"HTTP {response.status_code}: {response.text[:200]}", "provider_error")

        try:
            data = response.json()
        except ValueError:
            data = {}
        message_id = (data.get("messageId") or data.get("id")) if isinstance(data, dict) else None
        logger.info("Builderbot message sent", extra={"context": {"phone": phone, "message_id": message_id}})
        return Result.success(message_id)
