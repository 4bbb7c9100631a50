"""
AI Trader - Configuration Management Module
"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any
from dotenv import load_dotenv

# Load environment variables (override=True so .env wins over the inherited process environment)
load_dotenv(override=True)

PROJECT_ROOT = Path(__file__).parent.parent.parent


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration Management Class"""

    _instance = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _load_config(self):
        """Load config.yaml, falling back to config.example.yaml"""
        config_path = PROJECT_ROOT / "config.yaml"

        if not config_path.exists():
            config_path = PROJECT_ROOT / "config.example.yaml"

        if config_path.exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}
        else:
            self._config = {}

        # Override sensitive information from environment variables
        self._override_from_env()

    def reload(self):
        """Re-read configuration files and environment"""
        self._load_config()

    def _override_from_env(self):
        """Override configuration from environment variables"""
        for section in ('binance', 'llm', 'trading', 'risk', 'telegram', 'logging'):
            if not isinstance(self._config.get(section), dict):
                self._config[section] = {}

        # Binance
        if os.getenv('BINANCE_API_KEY'):
            self._config['binance']['api_key'] = os.getenv('BINANCE_API_KEY')
        if os.getenv('BINANCE_API_SECRET'):
            self._config['binance']['api_secret'] = os.getenv('BINANCE_API_SECRET')
        if os.getenv('BINANCE_TESTNET'):
            self._config['binance']['testnet'] = _env_flag(os.getenv('BINANCE_TESTNET'))

        # API keys for each provider
        # ANTHROPIC_API_KEY takes priority over the CLAUDE_API_KEY alias
        claude_api_key = os.getenv('ANTHROPIC_API_KEY') or os.getenv('CLAUDE_API_KEY')

        llm_api_keys = {
            'openai': os.getenv('OPENAI_API_KEY'),
            'deepseek': os.getenv('DEEPSEEK_API_KEY'),
            'claude': claude_api_key,
        }
        self._config['llm']['api_keys'] = {k: v for k, v in llm_api_keys.items() if v}

        models = self._config['llm'].setdefault('models', {}) or {}
        self._config['llm']['models'] = models
        for provider, env_name in (('openai', 'OPENAI_MODEL'),
                                   ('deepseek', 'DEEPSEEK_MODEL'),
                                   ('claude', 'CLAUDE_MODEL')):
            if os.getenv(env_name):
                models[provider] = os.getenv(env_name)

        if os.getenv('DEEPSEEK_BASE_URL'):
            self._config['llm'].setdefault('base_urls', {})['deepseek'] = os.getenv('DEEPSEEK_BASE_URL')

        # Telegram
        if os.getenv('TELEGRAM_BOT_TOKEN'):
            self._config['telegram']['bot_token'] = os.getenv('TELEGRAM_BOT_TOKEN')
        if os.getenv('TELEGRAM_CHAT_ID'):
            self._config['telegram']['chat_id'] = os.getenv('TELEGRAM_CHAT_ID')
        if os.getenv('TELEGRAM_ENABLED'):
            self._config['telegram']['enabled'] = _env_flag(os.getenv('TELEGRAM_ENABLED'))

        if os.getenv('LOG_LEVEL'):
            self._config['logging']['level'] = os.getenv('LOG_LEVEL').upper()

    def get(self, key_path: str, default=None):
        """
        Get configuration value
        key_path: Dot-separated path, e.g. 'binance.api_key'
        """
        keys = key_path.split('.')
        value = self._config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    @property
    def binance(self):
        return self._config.get('binance', {})

    @property
    def llm(self):
        return self._config.get('llm', {})

    @property
    def trading(self):
        return self._config.get('trading', {})

    @property
    def risk(self):
        return self._config.get('risk', {})

    @property
    def telegram(self):
        return self._config.get('telegram', {})

    @property
    def logging(self):
        return self._config.get('logging', {})

    @property
    def recording(self):
        return self._config.get('recording', {})


# Global configuration instance
config = Config()
