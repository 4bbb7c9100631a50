"""
DeepSeek Client Implementation
==============================

DeepSeek uses an OpenAI-compatible API, only the defaults differ.
"""

from .base import BaseLLMClient
from .openai_client import OpenAIClient


class DeepSeekClient(OpenAIClient):
    """
    DeepSeek Client

    Inherits from OpenAI client. Cheapest per token, suited to
    high-frequency cycles; slightly higher default temperature.
    """

    DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
    DEFAULT_MODEL = "deepseek-chat"
    PROVIDER = "deepseek"
    DISPLAY_NAME = "DeepSeek"
    DESCRIPTION = "Cost-effective model with strong reasoning, good for frequent trading cycles"
    DEFAULT_TEMPERATURE = 0.8
    COST_PER_TOKEN = 0.000001
    RATE_LIMIT_PER_MINUTE = 120
    SUPPORTED_MODELS = ["deepseek-chat", "deepseek-coder", "deepseek-reasoner"]
    FEATURES = ["Very low cost", "Fast responses", "OpenAI-compatible API"]

    # Probe with a tiny completion instead of /models
    validate_connection = BaseLLMClient.validate_connection
