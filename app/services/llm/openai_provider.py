from typing import List, Optional

import httpx

from app.logging_config import get_logger
from app.services.llm.base import LLMProvider, LLMResponse

logger = get_logger("llm.openai")

DEFAULT_TIMEOUT_SECONDS = 10.0


class OpenAIProvider(LLMProvider):
    """OpenAI API provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-3.5-turbo",
        embedding_model: str = "text-embedding-ada-002",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.embedding_model = embedding_model
        self.timeout_seconds = timeout_seconds
        self.base_url = "https://api.openai.com/v1/chat/completions"
        self.embeddings_url = "https://api.openai.com/v1/embeddings"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate response from OpenAI."""

        model = model or self.default_model

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        with httpx.Client(timeout=timeout) as client:
            payload = {
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
            logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

            response = client.post(self.base_url, headers=self._headers(), json=payload)

            logger.debug(f"OpenAI response status: {response.status_code}")

            if response.status_code != 200:
                logger.error(f"OpenAI error: {response.text}")
                raise Exception(f"OpenAI API error: {response.status_code} - {response.text}")

            data = response.json()

            content = ""
            if data.get("choices"):
                message = data["choices"][0].get("message", {})
                content = message.get("content") or ""
            logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}")

            return LLMResponse(
                content=content,
                model=data.get("model", model),
                usage=data.get("usage"),
            )

    def embed(self, text: str, model: Optional[str] = None, timeout_seconds: Optional[float] = None) -> List[float]:
        """Embed text with the OpenAI embeddings endpoint."""
        if not text:
            raise ValueError("text is empty")

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                self.embeddings_url,
                headers=self._headers(),
                json={"model": model or self.embedding_model, "input": text},
            )

        if response.status_code != 200:
            logger.error(f"OpenAI embeddings error: {response.text}")
            raise Exception(f"OpenAI embeddings error: {response.status_code} - {response.text}")

        data = response.json().get("data") or []
        if not data:
            raise Exception("OpenAI embeddings returned no data")
        return data[0]["embedding"]
