from typing import Optional

from app.config import settings
from app.services.llm.base import LLMProvider, LLMResponse
from app.services.llm.openai_provider import OpenAIProvider


def get_llm_provider() -> Optional[LLMProvider]:
    """Return the configured provider, or None when no API key is set."""
    if not settings.openai_api_key:
        return None
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        default_model=settings.openai_model,
        timeout_seconds=settings.outbound_timeout_seconds,
    )


__all__ = ["LLMProvider", "LLMResponse", "OpenAIProvider", "get_llm_provider"]
