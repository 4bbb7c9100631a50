"""
Claude Client
=============

Anthropic Messages API adapter. System text travels outside the message
list and the reply arrives as a list of typed content blocks.
"""

from typing import Dict, Any, List
from .base import BaseLLMClient, ChatMessage, LLMResponse


class ClaudeClient(BaseLLMClient):
    """Claude (Anthropic) provider"""

    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    PROVIDER = "claude"
    DISPLAY_NAME = "Claude"
    DESCRIPTION = "Careful long-form market analysis with strong risk awareness"
    DEFAULT_TEMPERATURE = 0.7
    COST_PER_TOKEN = 0.000015
    RATE_LIMIT_PER_MINUTE = 60
    SUPPORTED_MODELS = ["claude-3-5-sonnet-20241022", "claude-3-opus-20240229", "claude-3-haiku-20240307"]
    FEATURES = ["Deep analysis", "Long context", "Conservative reasoning"]

    API_VERSION = "2023-06-01"
    MIN_TEMPERATURE = 0.1

    def _build_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }

    def _build_url(self) -> str:
        return f"{self.base_url}/messages"

    def _build_request_body(self, messages: List[ChatMessage], **kwargs) -> Dict[str, Any]:
        system_parts = [m.content for m in messages if m.role == "system"]
        conversation = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]

        body: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "messages": conversation,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)

        # zero means provider default; anything else is clamped to the API floor
        temperature = kwargs.get("temperature", self.temperature)
        if temperature:
            body["temperature"] = max(self.MIN_TEMPERATURE, temperature)
        return body

    def _parse_response(self, response: Dict[str, Any]) -> LLMResponse:
        # Decision blocks may be split over several text blocks
        text = "".join(
            block.get("text", "") for block in response.get("content", []) if block.get("type") == "text"
        )
        return LLMResponse(
            content=text,
            model=response.get("model", self.model),
            provider=self.PROVIDER,
            usage=response.get("usage") or {},
            request_id=response.get("id"),
            raw_response=response,
        )
