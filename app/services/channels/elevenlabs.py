import uuid
from typing import Any, Optional

from app.config import settings
from app.logging_config import get_logger
from app.services.result import Result

logger = get_logger("channels.elevenlabs")


class ElevenLabsAdapter:
    """Voice-call provider. Outbound calling is not wired to the provider yet."""

    name = "elevenlabs"

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.elevenlabs_api_key

    def trigger_call(self, phone: str, agent_id: str, context: Optional[dict[str, Any]] = None) -> Result[str]:
        if not self.api_key:
            return Result.failure("ElevenLabs API key missing", "not_configured")
        call_id = f"call_{uuid.uuid4().hex[:12]}"
        logger.info(
            "Outbound call requested",
            extra={"context": {"phone": phone, "agent_id": agent_id, "call_id": call_id, "keys": sorted(context or {})}},
        )
        return Result.success(call_id)
