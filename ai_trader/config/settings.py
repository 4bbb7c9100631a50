"""
Trading Settings

Operating modes of the trading loop, merged from config.yaml and CLI
overrides and validated at startup. Any violation is fatal: the service
must not start.
"""

from dataclasses import dataclass, field, fields
from typing import Any, List

from ai_trader.llm import API_KEY_ENV, LLMConfig, ProviderType, get_supported_providers
from ai_trader.strategy.decision_validator import SUPPORTED_SYMBOLS
from ai_trader.strategy.templates import TRADING_TEMPLATES
from ai_trader.utils.logger import log


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails"""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Config validation error for '{field}': {message}")


@dataclass
class TradingSettings:
    """Trading loop configuration container"""
    provider: str = ProviderType.DEEPSEEK.value
    template: str = "nof1-aggressive"
    trading_pairs: List[str] = field(default_factory=lambda: ["BTCUSDT", "ETHUSDT"])
    interval_seconds: float = 300
    dry_run: bool = False
    max_daily_trades: int = 10
    max_positions: int = 5
    max_portfolio_exposure: float = 50.0
    max_position_size: float = 1000.0
    max_leverage: float = 20.0
    min_confidence_threshold: float = 70.0
    technical_indicators_enabled: bool = True
    telegram_enabled: bool = False
    consensus: bool = False

    def __post_init__(self):
        self.provider = str(getattr(self.provider, 'value', self.provider)).lower()
        self.trading_pairs = [p.strip().upper() for p in self.trading_pairs if p and p.strip()]
        self.validate()

    def validate(self):
        """
        Raises:
            ConfigValidationError: first violated rule
        """
        if self.provider not in get_supported_providers():
            raise ConfigValidationError(
                'provider',
                f"Unsupported provider '{self.provider}'. Supported: {', '.join(get_supported_providers())}"
            )
        if self.template not in TRADING_TEMPLATES:
            raise ConfigValidationError(
                'template',
                f"Template '{self.template}' not found. Available: {', '.join(TRADING_TEMPLATES)}"
            )
        if not self.trading_pairs:
            raise ConfigValidationError('trading_pairs', "At least one trading pair must be specified")
        if not (0 < self.max_portfolio_exposure <= 100):
            raise ConfigValidationError('max_portfolio_exposure', "Max exposure must be between 0 and 100")
        if not (0 <= self.min_confidence_threshold <= 100):
            raise ConfigValidationError('min_confidence_threshold', "Confidence threshold must be between 0 and 100")
        if self.interval_seconds <= 0:
            raise ConfigValidationError('interval_seconds', "Interval must be positive")
        if self.max_daily_trades < 0:
            raise ConfigValidationError('max_daily_trades', "Max daily trades cannot be negative")
        if self.max_position_size <= 0:
            raise ConfigValidationError('max_position_size', "Max position size must be positive")
        if not (1 <= self.max_leverage <= 50):
            raise ConfigValidationError('max_leverage', "Max leverage must be between 1 and 50")

        unsupported = [p for p in self.trading_pairs if p not in SUPPORTED_SYMBOLS]
        if unsupported:
            log.warning(f"Trading pairs outside the supported list will never pass validation: {unsupported}")

    @classmethod
    def from_config(cls, config, **overrides: Any) -> 'TradingSettings':
        """
        Build settings from the Config singleton; non-None overrides win

        Args:
            config: ai_trader.config.Config
            **overrides: Field values (typically from the CLI)
        """
        trading = config.trading or {}
        risk = config.risk or {}
        values = {
            'provider': config.llm.get('provider'),
            'template': trading.get('template'),
            'trading_pairs': trading.get('trading_pairs'),
            'interval_seconds': trading.get('interval_seconds'),
            'dry_run': trading.get('dry_run'),
            'min_confidence_threshold': trading.get('min_confidence_threshold'),
            'technical_indicators_enabled': trading.get('technical_indicators_enabled'),
            'max_daily_trades': risk.get('max_daily_trades'),
            'max_positions': risk.get('max_positions'),
            'max_portfolio_exposure': risk.get('max_portfolio_exposure'),
            'max_position_size': risk.get('max_position_size'),
            'max_leverage': risk.get('max_leverage'),
            'telegram_enabled': (config.telegram or {}).get('enabled'),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if v is not None and k in known})


def load_provider_config(provider: str, config) -> LLMConfig:
    """
    LLMConfig for a provider from the Config singleton

    Raises:
        ConfigValidationError: API key missing
    """
    provider_type = ProviderType(provider)
    llm = config.llm or {}
    api_key = (llm.get('api_keys') or {}).get(provider_type.value)
    if not api_key:
        raise ConfigValidationError(
            'api_key',
            f"{API_KEY_ENV[provider_type]} environment variable is required for provider '{provider_type.value}'"
        )

    return LLMConfig(
        api_key=api_key,
        base_url=(llm.get('base_urls') or {}).get(provider_type.value),
        model=(llm.get('models') or {}).get(provider_type.value),
        timeout=llm.get('timeout', 120),
        max_retries=llm.get('max_retries', 3),
        max_tokens=llm.get('max_tokens', 2000),
    )
