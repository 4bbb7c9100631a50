"""
Prompt Builder
Renders a prompt template with live market and account data
"""

import re
from typing import Dict, List, Optional

from ai_trader.agents.data_sync_agent import MarketData, PositionSnapshot, SymbolData
from ai_trader.strategy.templates import PromptTemplate


_PLACEHOLDER = re.compile(r'\{([a-z_]+)\}')


def _fmt(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return 'N/A'
    return f"{value:,.{digits}f}"


def format_positions(positions: List[PositionSnapshot]) -> str:
    if not positions:
        return "None"
    return "; ".join(
        f"{p.symbol} {p.side} {p.quantity:g} @ {_fmt(p.entry_price)} "
        f"(mark {_fmt(p.mark_price)}, PnL {_fmt(p.unrealized_pnl)} USDT, {p.leverage}x)"
        for p in positions
    )


def format_symbol(data: SymbolData) -> str:
    return (
        f"{data.symbol}: price {_fmt(data.price, 4)} | 24h {data.change_24h_pct:+.2f}% | "
        f"high {_fmt(data.high_24h, 4)} | low {_fmt(data.low_24h, 4)} | volume {_fmt(data.volume_24h, 0)} USDT"
    )


def format_technical(data: SymbolData) -> str:
    ind = data.indicators
    return (
        f"{data.symbol}: RSI {ind.rsi:.1f} ({ind.rsi_status}) | MACD {ind.macd:.4f} | "
        f"EMA20 {_fmt(ind.ema_20)} | EMA50 {_fmt(ind.ema_50)}"
    )


def format_key_levels(data: SymbolData) -> str:
    ind = data.indicators
    return f"{data.symbol}: support {_fmt(ind.support, 4)} | resistance {_fmt(ind.resistance, 4)}"


class PromptBuilder:
    """
    Fills template placeholders with literal values. Placeholders
    without data (sentiment feeds) render as Neutral / N/A.
    """

    def build(self, template: PromptTemplate, market_data: MarketData, settings, trades_today: int) -> str:
        """
        Args:
            template: Prompt template
            market_data: Snapshot from the market data provider
            settings: TradingSettings (limits shown to the model)
            trades_today: Successful executions so far today
        """
        values = self.placeholder_values(market_data, settings, trades_today)
        sections = [
            template.system_prompt,
            template.market_data_prompt,
            template.risk_constraints,
            template.output_format,
        ]
        return "\n".join(self.render(section, values).strip() for section in sections if section)

    @staticmethod
    def render(text: str, values: Dict[str, str]) -> str:
        # Single pass: inserted values are never re-scanned for placeholders
        return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), 'N/A'), text)

    @staticmethod
    def placeholder_values(market_data: MarketData, settings, trades_today: int) -> Dict[str, str]:
        account = market_data.account
        symbols = market_data.symbols
        return {
            'timestamp': market_data.timestamp.isoformat(timespec='seconds'),
            'available_balance': _fmt(account.available_balance),
            'current_positions': format_positions(market_data.positions),
            'total_portfolio_value': _fmt(account.total_margin_balance),
            'used_margin': _fmt(account.used_margin),
            'market_symbols': "\n".join(format_symbol(s) for s in symbols) or "No market data",
            'technical_summary': "\n".join(format_technical(s) for s in symbols) or "N/A",
            'key_levels': "\n".join(format_key_levels(s) for s in symbols) or "N/A",
            'market_sentiment': 'Neutral',
            'fear_greed_index': 'N/A',
            'trading_pairs': ", ".join(settings.trading_pairs),
            'max_position_size': _fmt(settings.max_position_size),
            'max_leverage': f"{settings.max_leverage:g}",
            'stop_loss_required': 'Yes',
            'max_daily_trades': str(settings.max_daily_trades),
            'max_exposure': f"{settings.max_portfolio_exposure:g}",
            'min_confidence': f"{settings.min_confidence_threshold:g}",
            'current_exposure': f"{market_data.exposure_pct:.1f}",
            'trades_today': str(trades_today),
        }
