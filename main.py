"""
AI Trader - LLM-driven Binance futures trading
===============================================

Commands:
    trade           Run the trading loop (or a single cycle with --once)
    providers       List model providers
    templates       List prompt templates
    test-provider   Send a test prompt to a provider

Examples:
    python main.py trade --provider deepseek --dry-run --pairs BTCUSDT,ETHUSDT
    python main.py test-provider claude
"""

import argparse
import signal
import sys
from typing import List, Optional

from binance.exceptions import BinanceAPIException, BinanceRequestException

from ai_trader.agents.data_sync_agent import DataSyncAgent
from ai_trader.agents.risk_audit_agent import RiskAuditAgent
from ai_trader.api.binance_client import BinanceClient
from ai_trader.config import config
from ai_trader.config.settings import ConfigValidationError, TradingSettings, load_provider_config
from ai_trader.core.trading_service import AITradingService, ServiceStateError, StartupError
from ai_trader.execution.engine import ExecutionEngine
from ai_trader.llm import LLMProviderError, create_client, get_provider_info, get_supported_providers
from ai_trader.notifications.telegram import TelegramNotifier
from ai_trader.strategy.instruction_parser import InstructionParser
from ai_trader.strategy.templates import get_template, list_templates
from ai_trader.utils.cycle_recorder import CycleRecorder
from ai_trader.utils.logger import log


TEST_PROMPT = (
    "You are a crypto trading assistant. Reply with exactly one block:\n"
    "TRADE_DECISION:\nAction: HOLD\nSymbol: BTCUSDT\nConfidence: 50\n"
    "Reason: connectivity test\n---"
)


def build_service(settings: TradingSettings) -> AITradingService:
    """Wire the orchestrator with live collaborators"""
    provider = create_client(settings.provider, load_provider_config(settings.provider, config))
    client = BinanceClient()

    telegram = config.telegram
    notifier = TelegramNotifier(
        bot_token=telegram.get('bot_token'),
        chat_id=telegram.get('chat_id'),
        enabled=settings.telegram_enabled,
    )
    recorder = None
    if config.recording.get('enabled', True):
        recorder = CycleRecorder(config.recording.get('directory', 'data/cycles'))

    return AITradingService(
        settings=settings,
        provider=provider,
        template=get_template(settings.template),
        market_data=DataSyncAgent(client, settings.trading_pairs, settings.technical_indicators_enabled),
        risk_manager=RiskAuditAgent(
            max_portfolio_exposure=settings.max_portfolio_exposure,
            max_position_size=settings.max_position_size,
            max_leverage=settings.max_leverage,
        ),
        executor=ExecutionEngine(client),
        notifier=notifier,
        recorder=recorder,
    )


def cmd_trade(args) -> int:
    if args.consensus:
        log.error(f"Consensus trading mode is not yet implemented (providers: {args.providers}, "
                  f"threshold: {args.threshold})")
        return 1

    pairs = args.pairs.split(',') if args.pairs else None
    try:
        settings = TradingSettings.from_config(
            config,
            provider=args.provider,
            template=args.template,
            interval_seconds=args.interval,
            dry_run=True if args.dry_run else None,
            max_daily_trades=args.max_trades,
            max_portfolio_exposure=args.max_exposure,
            min_confidence_threshold=args.confidence,
            trading_pairs=pairs,
        )
        service = build_service(settings)
    except ConfigValidationError as e:
        log.error(f"❌ {e}")
        return 1
    except (BinanceAPIException, BinanceRequestException, OSError) as e:
        # python-binance pings the exchange on construction; requests errors are OSErrors
        log.error(f"❌ Could not connect to Binance: {e}")
        return 1

    if args.once:
        result = service.run_cycle()
        print(f"Cycle {result.cycle_id}: success={result.success} "
              f"instructions={len(result.instructions)} executed="
              f"{sum(1 for r in result.execution_results if r.success)}"
              + (f" error={result.error}" if result.error else ""))
        return 0 if result.success else 1

    def handle_signal(signum, frame):
        log.info(f"Received signal {signum}, shutting down gracefully...")
        service.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        service.start()
    except (StartupError, ServiceStateError) as e:
        log.error(f"❌ Failed to start AI trading service: {e}")
        return 1

    log.info("✅ AI trading service running. Press Ctrl+C to stop.")
    service.run_forever()
    return 0


def cmd_providers(args) -> int:
    print("\n🤖 Available AI Providers:\n")
    for name in get_supported_providers():
        info = get_provider_info(name)
        print(f"  {info.display_name} ({info.name})")
        print(f"    {info.description}")
        print(f"    Cost per token: ${info.cost_per_token}")
        print(f"    Rate limit: {info.rate_limit_per_minute} requests/minute")
        print(f"    Models: {', '.join(info.supported_models)}")
        print(f"    Features: {', '.join(info.features)}\n")
    return 0


def cmd_templates(args) -> int:
    print("\n📝 Available Trading Templates:\n")
    for template in list_templates():
        print(f"  {template['key']} - {template['name']} v{template['version']}")
        print(f"    {template['description']}\n")
    return 0


def cmd_test_provider(args) -> int:
    try:
        provider = create_client(args.provider, load_provider_config(args.provider, config))
    except (ConfigValidationError, ValueError) as e:
        log.error(f"❌ {e}")
        return 1

    try:
        response = provider.invoke(TEST_PROMPT)
    except LLMProviderError as e:
        log.error(f"❌ {provider.name} test failed: {e}")
        return 1

    parsed = InstructionParser().decode(response.content)
    print(f"\n✅ {provider.name} responded ({response.model})")
    print(f"Tokens: {response.total_tokens}, estimated cost: ${provider.estimate_cost(response.total_tokens):.6f}")
    print(f"Decoded instructions: {len(parsed.instructions)}, parse errors: {len(parsed.parse_errors)}")
    print("\nResponse:\n" + response.content)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='AI Trader - LLM-driven Binance futures trading')
    sub = parser.add_subparsers(dest='command')

    trade = sub.add_parser('trade', help='Run the AI trading loop')
    trade.add_argument('--provider', choices=get_supported_providers(), default=None,
                       help='Model provider (default from config: deepseek)')
    trade.add_argument('--template', default=None, help='Prompt template (default: nof1-aggressive)')
    trade.add_argument('--interval', type=float, default=None, help='Seconds between cycles (default: 300)')
    trade.add_argument('--dry-run', action='store_true', help='Decode and log, never place orders')
    trade.add_argument('--max-trades', type=int, default=None, help='Max executed trades per day (default: 10)')
    trade.add_argument('--max-exposure', type=float, default=None, help='Max portfolio exposure %% (default: 50)')
    trade.add_argument('--confidence', type=float, default=None, help='Min confidence to execute (default: 70)')
    trade.add_argument('--pairs', default=None, help='Comma-separated trading pairs (default: BTCUSDT,ETHUSDT)')
    trade.add_argument('--consensus', action='store_true', help='Multi-provider consensus (not implemented)')
    trade.add_argument('--providers', default='deepseek,claude', help='Providers for consensus mode')
    trade.add_argument('--threshold', type=float, default=0.6, help='Consensus agreement threshold')
    trade.add_argument('--once', action='store_true', help='Run a single cycle and exit')
    trade.set_defaults(func=cmd_trade)

    providers = sub.add_parser('providers', help='List model providers')
    providers.set_defaults(func=cmd_providers)

    templates = sub.add_parser('templates', help='List prompt templates')
    templates.set_defaults(func=cmd_templates)

    test = sub.add_parser('test-provider', help='Send a test prompt to a provider')
    test.add_argument('provider', choices=get_supported_providers())
    test.set_defaults(func=cmd_test_provider)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, 'func', None):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
