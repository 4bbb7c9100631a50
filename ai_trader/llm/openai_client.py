"""
OpenAI Client Implementation
============================

OpenAI chat-completions API; also the base for OpenAI-compatible providers.
"""

from typing import Dict, Any, List

import httpx

from .base import BaseLLMClient, ChatMessage, LLMResponse
from ai_trader.utils.logger import log


class OpenAIClient(BaseLLMClient):
    """OpenAI Client (Bearer token, /chat/completions)"""

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4-turbo"
    PROVIDER = "openai"
    DISPLAY_NAME = "OpenAI"
    DESCRIPTION = "Most reliable general-purpose models, strong reasoning"
    DEFAULT_TEMPERATURE = 0.7
    COST_PER_TOKEN = 0.00003
    RATE_LIMIT_PER_MINUTE = 500
    SUPPORTED_MODELS = ["gpt-4-turbo", "gpt-4", "gpt-4o", "gpt-3.5-turbo"]
    FEATURES = ["High reliability", "Strong reasoning", "Large context window"]

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json"
        }

    def _build_request_body(self, messages: List[ChatMessage], **kwargs) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": self._messages_to_list(messages),
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "stream": False
        }

    def _parse_response(self, response: Dict[str, Any]) -> LLMResponse:
        choices = response.get("choices") or []
        if not choices:
            raise ValueError("response contains no choices")
        content = choices[0]["message"].get("content") or ""

        return LLMResponse(
            content=content,
            model=response.get("model", self.model),
            provider=self.PROVIDER,
            usage=response.get("usage", {}),
            request_id=response.get("id"),
            raw_response=response
        )

    def validate_connection(self) -> bool:
        """List models: authenticated and free"""
        try:
            response = self.client.get(f"{self.base_url}/models", headers=self._build_headers())
            return response.status_code == 200
        except httpx.HTTPError as e:
            log.error(f"[{self.name}] Connection validation failed: {e}")
            return False
