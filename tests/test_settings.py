"""
Test trading settings validation and provider configuration loading
"""
import pytest

from ai_trader.config import Config
from ai_trader.config.settings import ConfigValidationError, TradingSettings, load_provider_config


class StubConfig:
    """Stands in for the Config singleton"""

    def __init__(self, llm=None, trading=None, risk=None, telegram=None):
        self.llm = llm or {}
        self.trading = trading or {}
        self.risk = risk or {}
        self.telegram = telegram or {}


class TestTradingSettings:

    def test_defaults(self):
        settings = TradingSettings()
        assert settings.provider == 'deepseek'
        assert settings.template == 'nof1-aggressive'
        assert settings.trading_pairs == ['BTCUSDT', 'ETHUSDT']
        assert settings.interval_seconds == 300
        assert settings.max_daily_trades == 10
        assert settings.max_portfolio_exposure == 50
        assert settings.min_confidence_threshold == 70
        assert settings.dry_run is False

    def test_pairs_normalized(self):
        settings = TradingSettings(trading_pairs=[' btcusdt', 'ETHUSDT ', ''])
        assert settings.trading_pairs == ['BTCUSDT', 'ETHUSDT']

    def test_provider_case_insensitive(self):
        assert TradingSettings(provider='Claude').provider == 'claude'

    @pytest.mark.parametrize("field,value", [
        ('provider', 'gemini'),
        ('template', 'yolo'),
        ('trading_pairs', []),
        ('max_portfolio_exposure', 0),
        ('max_portfolio_exposure', 150),
        ('min_confidence_threshold', 101),
        ('interval_seconds', 0),
        ('max_daily_trades', -1),
        ('max_position_size', 0),
        ('max_leverage', 60),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ConfigValidationError) as exc:
            TradingSettings(**{field: value})
        assert exc.value.field == field

    def test_unsupported_pair_only_warns(self):
        assert TradingSettings(trading_pairs=['PEPEUSDT']).trading_pairs == ['PEPEUSDT']

    def test_from_config_with_overrides(self):
        config = StubConfig(
            llm={'provider': 'openai'},
            trading={'template': 'conservative', 'trading_pairs': ['SOLUSDT'], 'interval_seconds': 60},
            risk={'max_daily_trades': 3, 'max_portfolio_exposure': 30},
            telegram={'enabled': True},
        )
        settings = TradingSettings.from_config(config, interval_seconds=120, dry_run=None, provider=None)
        assert settings.provider == 'openai'
        assert settings.template == 'conservative'
        assert settings.trading_pairs == ['SOLUSDT']
        assert settings.interval_seconds == 120
        assert settings.max_daily_trades == 3
        assert settings.max_portfolio_exposure == 30
        assert settings.telegram_enabled is True

    def test_from_empty_config(self):
        assert TradingSettings.from_config(StubConfig()) == TradingSettings()


class TestProviderConfig:

    def test_missing_api_key(self):
        with pytest.raises(ConfigValidationError, match="DEEPSEEK_API_KEY environment variable is required"):
            load_provider_config('deepseek', StubConfig())

    def test_claude_key_message(self):
        with pytest.raises(ConfigValidationError, match="ANTHROPIC_API_KEY"):
            load_provider_config('claude', StubConfig())

    def test_loads_key_model_and_limits(self):
        config = StubConfig(llm={
            'api_keys': {'deepseek': 'sk-test'},
            'models': {'deepseek': 'deepseek-reasoner'},
            'base_urls': {'deepseek': 'https://proxy.local/v1'},
            'timeout': 30,
        })
        llm_config = load_provider_config('deepseek', config)
        assert llm_config.api_key == 'sk-test'
        assert llm_config.model == 'deepseek-reasoner'
        assert llm_config.base_url == 'https://proxy.local/v1'
        assert llm_config.timeout == 30
        assert llm_config.max_retries == 3


class TestConfigEnvironment:

    @pytest.fixture
    def fresh_config(self, monkeypatch):
        for name in ('OPENAI_API_KEY', 'DEEPSEEK_API_KEY', 'ANTHROPIC_API_KEY', 'CLAUDE_API_KEY',
                     'DEEPSEEK_MODEL', 'TELEGRAM_BOT_TOKEN', 'BINANCE_TESTNET', 'LOG_LEVEL'):
            monkeypatch.delenv(name, raising=False)
        config = Config()
        yield config, monkeypatch
        monkeypatch.undo()
        config.reload()

    def test_claude_alias(self, fresh_config):
        config, monkeypatch = fresh_config
        monkeypatch.setenv('CLAUDE_API_KEY', 'alias-key')
        config.reload()
        assert config.llm['api_keys'] == {'claude': 'alias-key'}

        monkeypatch.setenv('ANTHROPIC_API_KEY', 'primary-key')
        config.reload()
        assert config.llm['api_keys']['claude'] == 'primary-key'

    def test_env_overrides(self, fresh_config):
        config, monkeypatch = fresh_config
        monkeypatch.setenv('DEEPSEEK_MODEL', 'deepseek-reasoner')
        monkeypatch.setenv('BINANCE_TESTNET', 'false')
        monkeypatch.setenv('TELEGRAM_BOT_TOKEN', '123:abc')
        monkeypatch.setenv('LOG_LEVEL', 'debug')
        config.reload()

        assert config.get('llm.models.deepseek') == 'deepseek-reasoner'
        assert config.get('binance.testnet') is False
        assert config.telegram['bot_token'] == '123:abc'
        assert config.get('logging.level') == 'DEBUG'

    def test_get_missing_path(self, fresh_config):
        config, _ = fresh_config
        assert config.get('no.such.key', 'fallback') == 'fallback'


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
