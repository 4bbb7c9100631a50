"""
LLM Module
==========

Unified model-provider interface for the trading loop.

Supported providers:
- OpenAI (GPT-4 family)
- DeepSeek (deepseek-chat)
- Claude (Anthropic)

Usage example:

    from ai_trader.llm import create_client, LLMConfig

    config = LLMConfig(api_key="sk-xxx")
    client = create_client("deepseek", config)
    response = client.invoke("TRADE_DECISION prompt ...")
    print(response.content)
"""

from .base import LLMConfig, BaseLLMClient, ChatMessage, LLMResponse, LLMProviderError, ProviderInfo
from .factory import (
    ProviderType,
    API_KEY_ENV,
    create_client,
    get_supported_providers,
    get_provider_info,
    parse_provider,
    recommend_provider,
)

from .openai_client import OpenAIClient
from .deepseek_client import DeepSeekClient
from .claude_client import ClaudeClient

__all__ = [
    # Core interfaces
    "LLMConfig",
    "BaseLLMClient",
    "ChatMessage",
    "LLMResponse",
    "LLMProviderError",
    "ProviderInfo",
    "ProviderType",
    "API_KEY_ENV",
    "create_client",
    "get_supported_providers",
    "get_provider_info",
    "parse_provider",
    "recommend_provider",
    # Concrete clients
    "OpenAIClient",
    "DeepSeekClient",
    "ClaudeClient",
]
