"""
Data Oracle Agent (The Oracle)

Responsibilities:
1. Concurrent reads of account, positions and per-symbol tickers
2. Per-symbol indicator snapshot (neutral placeholders plus key levels)
3. Portfolio exposure summary for the prompt and the risk check

A failed account/position/ticker read fails the whole gather; a failed
indicator read only degrades that symbol to neutral values.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from ai_trader.api.binance_client import BinanceClient
from ai_trader.utils.logger import log


@dataclass
class TechnicalIndicators:
    """Indicator snapshot; rsi/macd/ema are neutral placeholders"""
    rsi: float = 50.0
    macd: float = 0.0
    ema_20: float = 0.0
    ema_50: float = 0.0
    support: Optional[float] = None
    resistance: Optional[float] = None

    @property
    def rsi_status(self) -> str:
        if self.rsi >= 70:
            return "Overbought"
        if self.rsi <= 30:
            return "Oversold"
        return "Neutral"


@dataclass
class SymbolData:
    symbol: str
    price: float
    change_24h_pct: float
    volume_24h: float
    high_24h: float
    low_24h: float
    indicators: TechnicalIndicators = field(default_factory=TechnicalIndicators)


@dataclass
class PositionSnapshot:
    symbol: str
    side: str  # 'LONG' or 'SHORT'
    quantity: float
    entry_price: float
    mark_price: float
    unrealized_pnl: float
    leverage: int

    @property
    def notional(self) -> float:
        price = self.mark_price or self.entry_price
        return abs(self.quantity) * price


@dataclass
class AccountSummary:
    total_wallet_balance: float
    available_balance: float
    total_unrealized_profit: float
    total_margin_balance: float
    used_margin: float


@dataclass
class MarketData:
    """Everything the prompt and the risk check need for one cycle"""
    timestamp: datetime
    symbols: List[SymbolData]
    account: AccountSummary
    positions: List[PositionSnapshot]
    fetch_duration: float = 0.0

    def get_symbol(self, symbol: str) -> Optional[SymbolData]:
        for data in self.symbols:
            if data.symbol == symbol:
                return data
        return None

    def get_position(self, symbol: str) -> Optional[PositionSnapshot]:
        for position in self.positions:
            if position.symbol == symbol:
                return position
        return None

    def price_of(self, symbol: str) -> Optional[float]:
        data = self.get_symbol(symbol)
        if data is not None:
            return data.price
        position = self.get_position(symbol)
        if position is not None:
            return position.mark_price or position.entry_price
        return None

    @property
    def open_notional(self) -> float:
        return sum(p.notional for p in self.positions)

    @property
    def exposure_pct(self) -> float:
        """Open notional as a percentage of wallet balance"""
        balance = self.account.total_wallet_balance
        if balance <= 0:
            return 0.0
        return self.open_notional / balance * 100


class DataSyncAgent:
    """
    Data Oracle (The Oracle)

    gather() issues all independent reads concurrently (asyncio.gather over
    worker threads) and joins on them before returning.
    """

    KLINE_INTERVAL = '1h'
    KLINE_LIMIT = 100

    def __init__(self, client: BinanceClient, trading_pairs: List[str],
                 technical_indicators_enabled: bool = True):
        self.client = client
        self.trading_pairs = list(trading_pairs)
        self.technical_indicators_enabled = technical_indicators_enabled

    async def gather(self) -> MarketData:
        """
        Fetch account, positions, tickers and indicators

        Raises:
            Any read error other than a per-symbol indicator failure
        """
        start = time.time()
        log.oracle(f"Gathering market data for {', '.join(self.trading_pairs)}")

        account_task = asyncio.to_thread(self.client.get_futures_account)
        positions_task = asyncio.to_thread(self.client.get_open_positions)
        ticker_tasks = [asyncio.to_thread(self.client.get_futures_ticker, s) for s in self.trading_pairs]

        account, positions, *tickers = await asyncio.gather(account_task, positions_task, *ticker_tasks)

        if self.technical_indicators_enabled:
            indicators = await asyncio.gather(*[self._fetch_indicators(s) for s in self.trading_pairs])
        else:
            indicators = [TechnicalIndicators() for _ in self.trading_pairs]

        symbols = [
            SymbolData(
                symbol=t['symbol'],
                price=t['price'],
                change_24h_pct=t['price_change_percent'],
                volume_24h=t['volume'],
                high_24h=t['high'],
                low_24h=t['low'],
                indicators=ind,
            )
            for t, ind in zip(tickers, indicators)
        ]

        market_data = MarketData(
            timestamp=datetime.now(),
            symbols=symbols,
            account=AccountSummary(
                total_wallet_balance=account['total_wallet_balance'],
                available_balance=account['available_balance'],
                total_unrealized_profit=account['total_unrealized_profit'],
                total_margin_balance=account['total_margin_balance'],
                used_margin=account.get('total_position_initial_margin', 0.0),
            ),
            positions=[self._to_snapshot(p) for p in positions],
            fetch_duration=time.time() - start,
        )

        log.oracle(
            f"Market data ready in {market_data.fetch_duration:.2f}s: "
            f"{len(symbols)} symbols, {len(market_data.positions)} positions, "
            f"exposure {market_data.exposure_pct:.1f}%"
        )
        return market_data

    async def _fetch_indicators(self, symbol: str) -> TechnicalIndicators:
        try:
            klines = await asyncio.to_thread(
                self.client.get_futures_klines, symbol, self.KLINE_INTERVAL, self.KLINE_LIMIT
            )
            return self.compute_indicators(klines)
        except Exception as e:
            log.warning(f"Indicator fetch failed for {symbol}, using neutral values: {e}")
            return TechnicalIndicators()

    @staticmethod
    def compute_indicators(klines: List[Dict]) -> TechnicalIndicators:
        """Key levels from candles; oscillators stay neutral"""
        if not klines:
            return TechnicalIndicators()
        df = pd.DataFrame(klines)
        return TechnicalIndicators(
            support=float(df['low'].min()),
            resistance=float(df['high'].max()),
        )

    @staticmethod
    def _to_snapshot(position: Dict) -> PositionSnapshot:
        amount = position['position_amt']
        return PositionSnapshot(
            symbol=position['symbol'],
            side='LONG' if amount > 0 else 'SHORT',
            quantity=abs(amount),
            entry_price=position['entry_price'],
            mark_price=position.get('mark_price', 0.0),
            unrealized_pnl=position.get('unrealized_profit', 0.0),
            leverage=position.get('leverage', 1),
        )

    async def validate_connection(self) -> bool:
        """Startup check: the futures account is readable"""
        try:
            await asyncio.to_thread(self.client.get_futures_account)
            return True
        except Exception as e:
            log.error(f"Exchange connection check failed: {e}")
            return False
