"""
LLM Abstract Base Class and Configuration
==========================================

Provides the unified model-provider interface used by the trading loop:
invoke(prompt), name, estimate_cost(tokens), validate_connection().
"""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional, List
import httpx

from ai_trader.utils.logger import log


MAX_PROMPT_LENGTH = 50000
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class LLMProviderError(Exception):
    """Model call failed (network, auth, rate limit, server error)"""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


@dataclass
class LLMConfig:
    """LLM Configuration Data Class"""
    api_key: str
    base_url: Optional[str] = None
    model: Optional[str] = None
    timeout: int = 120
    max_retries: int = 3
    temperature: Optional[float] = None
    max_tokens: int = 2000
    rate_limit_per_minute: Optional[int] = None
    cost_per_token: Optional[float] = None

    def __post_init__(self):
        if not self.api_key:
            raise ValueError("api_key is required")


@dataclass
class ChatMessage:
    """Chat Message"""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMResponse:
    """LLM Response"""
    content: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    request_id: Optional[str] = None
    raw_response: Optional[Dict] = None

    @property
    def total_tokens(self) -> int:
        if 'total_tokens' in self.usage:
            return self.usage['total_tokens']
        return self.usage.get('input_tokens', 0) + self.usage.get('output_tokens', 0)


@dataclass
class ProviderInfo:
    """Static description of a provider"""
    name: str
    display_name: str
    description: str
    cost_per_token: float
    rate_limit_per_minute: int
    supported_models: List[str]
    features: List[str]


def clean_prompt(prompt: str) -> str:
    """Trim, collapse runs of spaces/tabs and blank lines, cap the length"""
    prompt = re.sub(r'[ \t]+', ' ', prompt.strip())
    prompt = re.sub(r'\n\s*\n+', '\n\n', prompt)
    return prompt[:MAX_PROMPT_LENGTH]


class BaseLLMClient(ABC):
    """
    LLM Client Abstract Base Class

    All provider clients inherit from this class and implement the
    request/response format hooks; transport, retries, rate limiting and
    error mapping live here. The request timeout is the only timeout on a
    model call.
    """

    # Defaults that subclasses override
    DEFAULT_BASE_URL: str = ""
    DEFAULT_MODEL: str = ""
    PROVIDER: str = "base"
    DISPLAY_NAME: str = "Base"
    DESCRIPTION: str = ""
    DEFAULT_TEMPERATURE: float = 0.7
    COST_PER_TOKEN: float = 0.00002
    RATE_LIMIT_PER_MINUTE: int = 60
    SUPPORTED_MODELS: List[str] = []
    FEATURES: List[str] = []

    def __init__(self, config: LLMConfig, http_client: Optional[httpx.Client] = None):
        """
        Initialize LLM client

        Args:
            config: LLM configuration
            http_client: Pre-built httpx client (tests inject a mock transport)
        """
        self.config = config
        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip('/')
        self.model = config.model or self.DEFAULT_MODEL
        self.temperature = config.temperature if config.temperature is not None else self.DEFAULT_TEMPERATURE
        self.rate_limit_per_minute = config.rate_limit_per_minute or self.RATE_LIMIT_PER_MINUTE
        self.cost_per_token = config.cost_per_token if config.cost_per_token is not None else self.COST_PER_TOKEN
        self.client = http_client or httpx.Client(timeout=config.timeout)

        self._request_count = 0
        self._window_start = time.monotonic()

    @property
    def name(self) -> str:
        return self.DISPLAY_NAME

    @property
    def supported_models(self) -> List[str]:
        return list(self.SUPPORTED_MODELS)

    @classmethod
    def info(cls) -> ProviderInfo:
        return ProviderInfo(
            name=cls.PROVIDER,
            display_name=cls.DISPLAY_NAME,
            description=cls.DESCRIPTION,
            cost_per_token=cls.COST_PER_TOKEN,
            rate_limit_per_minute=cls.RATE_LIMIT_PER_MINUTE,
            supported_models=list(cls.SUPPORTED_MODELS),
            features=list(cls.FEATURES),
        )

    @abstractmethod
    def _build_headers(self) -> Dict[str, str]:
        """Build request headers (subclasses implement different authentication methods)"""
        pass

    @abstractmethod
    def _build_request_body(self, messages: List[ChatMessage], **kwargs) -> Dict[str, Any]:
        """Build request body"""
        pass

    @abstractmethod
    def _parse_response(self, response: Dict[str, Any]) -> LLMResponse:
        """Parse response body into LLMResponse"""
        pass

    def _build_url(self) -> str:
        """Build request URL"""
        return f"{self.base_url}/chat/completions"

    def _messages_to_list(self, messages: List[ChatMessage]) -> List[Dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    def estimate_cost(self, token_count: int) -> float:
        """Estimated USD cost of token_count tokens"""
        return token_count * self.cost_per_token

    def get_rate_limit_info(self) -> Dict[str, Any]:
        self._roll_window()
        return {
            'requests_this_minute': self._request_count,
            'limit_per_minute': self.rate_limit_per_minute,
            'reset_in_seconds': max(0.0, 60 - (time.monotonic() - self._window_start)),
        }

    def _roll_window(self):
        if time.monotonic() - self._window_start >= 60:
            self._request_count = 0
            self._window_start = time.monotonic()

    def _check_rate_limit(self):
        self._roll_window()
        if self._request_count >= self.rate_limit_per_minute:
            raise LLMProviderError(
                self.PROVIDER,
                "Rate limit exceeded. Please wait before making another request.",
                status_code=429,
            )
        self._request_count += 1

    def invoke(self, prompt: str) -> LLMResponse:
        """
        Send one prompt and return the model's answer

        Raises:
            LLMProviderError: after retries are exhausted or on a non-retryable error
        """
        cleaned = clean_prompt(prompt)
        log.debug(f"[{self.name}] Requesting trading decision ({len(cleaned)} chars)")
        response = self.chat_messages([ChatMessage(role="user", content=cleaned)])
        self._log_usage(response)
        return response

    def chat(self, system_prompt: str, user_prompt: str, **kwargs) -> LLMResponse:
        """System + user prompt call"""
        messages = [
            ChatMessage(role="system", content=clean_prompt(system_prompt)),
            ChatMessage(role="user", content=clean_prompt(user_prompt)),
        ]
        return self.chat_messages(messages, **kwargs)

    def chat_messages(self, messages: List[ChatMessage], **kwargs) -> LLMResponse:
        """
        Multi-turn conversation call with retries

        Args:
            messages: Message list
            **kwargs: temperature, max_tokens overrides
        """
        self._check_rate_limit()

        url = self._build_url()
        headers = self._build_headers()
        body = self._build_request_body(messages, **kwargs)

        last_error: Optional[Exception] = None
        for attempt in range(self.config.max_retries):
            try:
                response = self.client.post(url, json=body, headers=headers)
                response.raise_for_status()
                return self._parse_response(response.json())
            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status in RETRYABLE_STATUS and attempt < self.config.max_retries - 1:
                    wait_time = 2 ** attempt
                    log.warning(f"[{self.name}] HTTP {status}, retrying in {wait_time}s "
                                f"(attempt {attempt + 1}/{self.config.max_retries})")
                    self._sleep(wait_time)
                    continue
                raise self._map_http_error(e) from e
            except httpx.TransportError as e:
                # Connection/timeout errors are retried
                last_error = e
                if attempt < self.config.max_retries - 1:
                    wait_time = 2 ** attempt
                    log.warning(f"[{self.name}] Connection error {type(e).__name__}, retrying in {wait_time}s "
                                f"(attempt {attempt + 1}/{self.config.max_retries})")
                    self._sleep(wait_time)
                    continue
                if isinstance(e, httpx.TimeoutException):
                    raise LLMProviderError(self.PROVIDER, "Request timeout - provider may be overloaded") from e
                raise LLMProviderError(self.PROVIDER, f"Connection error: {e}") from e
            except (ValueError, KeyError, TypeError) as e:
                raise LLMProviderError(self.PROVIDER, f"Malformed response: {e}") from e

        raise LLMProviderError(self.PROVIDER, f"Max retries exceeded: {last_error}")

    def _map_http_error(self, error: httpx.HTTPStatusError) -> LLMProviderError:
        status = error.response.status_code
        try:
            detail = error.response.json().get('error', {})
            message = detail.get('message') if isinstance(detail, dict) else str(detail)
        except (ValueError, AttributeError):
            message = None
        message = message or error.response.text or str(error)

        if status == 401:
            text = f"Authentication failed: {message}"
        elif status == 429:
            text = f"Rate limit exceeded: {message}"
        elif status >= 500:
            text = f"Provider server error: {message}"
        else:
            text = f"API error ({status}): {message}"
        return LLMProviderError(self.PROVIDER, text, status_code=status)

    def _log_usage(self, response: LLMResponse):
        tokens = response.total_tokens
        log.info(f"[{self.name}] Used {tokens} tokens, estimated cost: ${self.estimate_cost(tokens):.4f}")

    def validate_connection(self) -> bool:
        """Cheap authenticated request; False on any failure"""
        body = self._build_request_body([ChatMessage(role="user", content="Hello")], max_tokens=10)
        try:
            response = self.client.post(self._build_url(), json=body, headers=self._build_headers())
            return response.status_code == 200
        except httpx.HTTPError as e:
            log.error(f"[{self.name}] Connection validation failed: {e}")
            return False

    @staticmethod
    def _sleep(seconds: float):
        time.sleep(seconds)

    def close(self):
        """Close HTTP client"""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
