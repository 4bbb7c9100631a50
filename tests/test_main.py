"""
Test the command line entry point
"""
from datetime import datetime
from types import SimpleNamespace

import pytest
from binance.exceptions import BinanceRequestException

import main
from ai_trader.config import config


def test_no_command_prints_help(capsys):
    assert main.main([]) == 1
    assert "trade" in capsys.readouterr().out


def test_providers(capsys):
    assert main.main(['providers']) == 0
    out = capsys.readouterr().out
    assert "DeepSeek (deepseek)" in out
    assert "Claude (claude)" in out


def test_templates(capsys):
    assert main.main(['templates']) == 0
    assert "nof1-aggressive" in capsys.readouterr().out


def test_consensus_not_implemented():
    assert main.main(['trade', '--consensus']) == 1


def test_invalid_settings_exit_nonzero():
    assert main.main(['trade', '--max-exposure', '150', '--once']) == 1


def test_test_provider_without_key(monkeypatch):
    monkeypatch.setitem(config.llm, 'api_keys', {})
    assert main.main(['test-provider', 'deepseek']) == 1


def test_unknown_provider_rejected():
    with pytest.raises(SystemExit):
        main.main(['trade', '--provider', 'gemini'])


@pytest.mark.parametrize("error", [
    ConnectionError("Max retries exceeded with url: /api/v3/ping"),
    BinanceRequestException("Invalid Response: <html>"),
])
def test_exchange_unreachable_exits_nonzero(monkeypatch, error):
    def unreachable(*args, **kwargs):
        raise error

    monkeypatch.setattr(main, 'load_provider_config', lambda provider, cfg: None)
    monkeypatch.setattr(main, 'create_client', lambda provider, cfg: SimpleNamespace(name="FakeAI"))
    monkeypatch.setattr(main, 'BinanceClient', unreachable)

    assert main.main(['trade', '--once', '--dry-run']) == 1


def test_single_cycle(monkeypatch, capsys):
    built = {}

    class OneShot:
        def run_cycle(self):
            return SimpleNamespace(cycle_id='cycle_1_abc', success=True, instructions=[], execution_results=[],
                                   error=None, timestamp=datetime.now())

    def fake_build(settings):
        built['settings'] = settings
        return OneShot()

    monkeypatch.setattr(main, 'build_service', fake_build)
    code = main.main(['trade', '--once', '--dry-run', '--pairs', 'btcusdt,SOLUSDT', '--interval', '60'])

    assert code == 0
    settings = built['settings']
    assert settings.dry_run is True
    assert settings.trading_pairs == ['BTCUSDT', 'SOLUSDT']
    assert settings.interval_seconds == 60
    assert "Cycle cycle_1_abc: success=True" in capsys.readouterr().out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
