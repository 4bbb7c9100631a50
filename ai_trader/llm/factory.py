"""
LLM Client Factory
==================

Creates the provider client for a closed set of provider types.
"""

from enum import Enum
from typing import Dict, List, Optional, Type

from .base import BaseLLMClient, LLMConfig, ProviderInfo
from .openai_client import OpenAIClient
from .deepseek_client import DeepSeekClient
from .claude_client import ClaudeClient


class ProviderType(str, Enum):
    OPENAI = "openai"
    CLAUDE = "claude"
    DEEPSEEK = "deepseek"


PROVIDERS: Dict[ProviderType, Type[BaseLLMClient]] = {
    ProviderType.OPENAI: OpenAIClient,
    ProviderType.DEEPSEEK: DeepSeekClient,
    ProviderType.CLAUDE: ClaudeClient,
}

# Environment variable holding each provider's API key
API_KEY_ENV = {
    ProviderType.OPENAI: "OPENAI_API_KEY",
    ProviderType.DEEPSEEK: "DEEPSEEK_API_KEY",
    ProviderType.CLAUDE: "ANTHROPIC_API_KEY",
}

SCENARIO_RECOMMENDATIONS = {
    'high-frequency': ProviderType.DEEPSEEK,
    'cost-effective': ProviderType.DEEPSEEK,
    'analysis': ProviderType.CLAUDE,
    'reliable': ProviderType.OPENAI,
}


def parse_provider(provider) -> ProviderType:
    """
    Resolve a provider name

    Raises:
        ValueError: Unsupported provider
    """
    if isinstance(provider, ProviderType):
        return provider
    try:
        return ProviderType(str(provider).lower())
    except ValueError:
        supported = ", ".join(get_supported_providers())
        raise ValueError(
            f"Unsupported provider: '{provider}'. "
            f"Supported providers: {supported}"
        ) from None


def create_client(provider, config: LLMConfig) -> BaseLLMClient:
    """
    Factory method: create the client for a provider

    Example:
        >>> config = LLMConfig(api_key="sk-xxx")
        >>> client = create_client("deepseek", config)
        >>> response = client.invoke("Analyse BTCUSDT")
        >>> print(response.content)
    """
    return PROVIDERS[parse_provider(provider)](config)


def get_supported_providers() -> List[str]:
    """Get list of all supported providers"""
    return [p.value for p in PROVIDERS]


def get_provider_info(provider) -> ProviderInfo:
    return PROVIDERS[parse_provider(provider)].info()


def recommend_provider(scenario: Optional[str] = None) -> ProviderType:
    """high-frequency/cost-effective -> deepseek, analysis -> claude, otherwise openai"""
    return SCENARIO_RECOMMENDATIONS.get((scenario or '').lower(), ProviderType.OPENAI)
