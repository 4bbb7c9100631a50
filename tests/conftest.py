"""
Shared fixtures and fakes for the trading loop tests
"""
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

import pytest

from ai_trader.agents.data_sync_agent import (
    AccountSummary,
    MarketData,
    PositionSnapshot,
    SymbolData,
)
from ai_trader.agents.risk_audit_agent import RiskAssessment
from ai_trader.config.settings import TradingSettings
from ai_trader.core.scheduler import ScheduledTask, Scheduler
from ai_trader.execution.engine import ExecutionResult
from ai_trader.llm.base import LLMResponse


# =============================================================================
# Fakes
# =============================================================================

class FakeProvider:
    """Returns canned responses and records every prompt"""

    def __init__(self, responses=None, error: Optional[Exception] = None, connected: bool = True):
        self.name = "FakeAI"
        self.responses = list(responses or [])
        self.error = error
        self.connected = connected
        self.prompts: List[str] = []

    def invoke(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        content = self.responses.pop(0) if len(self.responses) > 1 else (self.responses[0] if self.responses else "")
        return LLMResponse(content=content, model="fake-1", provider="fake",
                           usage={'total_tokens': 42})

    def validate_connection(self) -> bool:
        return self.connected

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FakeMarketData:
    """Async market data provider over a fixed snapshot"""

    def __init__(self, snapshot: MarketData, connected: bool = True, error: Optional[Exception] = None):
        self.snapshot = snapshot
        self.connected = connected
        self.error = error
        self.gather_calls = 0

    async def gather(self) -> MarketData:
        self.gather_calls += 1
        if self.error is not None:
            raise self.error
        return self.snapshot

    async def validate_connection(self) -> bool:
        return self.connected


class FakeRiskManager:
    """Approves everything except the symbols listed in reject"""

    def __init__(self, reject=()):
        self.reject = set(reject)
        self.cycles = 0
        self.assessed = []

    def begin_cycle(self, market_data):
        self.cycles += 1

    def assess_risk(self, candidate) -> RiskAssessment:
        self.assessed.append(candidate)
        if candidate.symbol in self.reject:
            return RiskAssessment(can_execute=False, reasons=["Exposure limit"])
        return RiskAssessment(can_execute=True)


class FakeExecutor:
    """Records executed instructions; optional per-symbol failures"""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.executed = []

    def execute_instruction(self, instruction) -> ExecutionResult:
        if instruction.symbol in self.fail:
            raise RuntimeError(f"Order rejected for {instruction.symbol}")
        self.executed.append(instruction)
        return ExecutionResult(success=True, instruction=instruction, binance_order_id=str(len(self.executed)),
                               executed_quantity=instruction.quantity)


class FakeNotifier:
    def __init__(self):
        self.messages: List[str] = []

    def send_message(self, text: str) -> bool:
        self.messages.append(text)
        return True


class FakeRecorder:
    def __init__(self, error: Optional[Exception] = None):
        self.records = []
        self.error = error

    def record(self, cycle):
        if self.error is not None:
            raise self.error
        self.records.append(cycle)


class ManualScheduler(Scheduler):
    """Holds scheduled tasks until the test runs them"""

    def __init__(self):
        self.pending: List[Tuple[float, Callable[[], None], ScheduledTask]] = []
        self.delays: List[float] = []
        self.shut_down = False

    def schedule(self, delay_seconds, func, name="task") -> ScheduledTask:
        task = ScheduledTask(name)
        entry = (delay_seconds, func, task)
        self.pending.append(entry)
        self.delays.append(delay_seconds)
        task.bind(lambda: self.pending.remove(entry) if entry in self.pending else None)
        return task

    def run_next(self):
        delay, func, task = self.pending.pop(0)
        if not task.cancelled:
            func()

    def shutdown(self):
        self.shut_down = True


class FakeClock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


# =============================================================================
# Response fixtures
# =============================================================================

BUY_BTC = """TRADE_DECISION:
Action: BUY
Symbol: BTCUSDT
Quantity: 0.01
Leverage: 5
Entry Price: MARKET
Stop Loss: 60000
Take Profit: 70000
Confidence: 85
Reason: Breakout
---"""

SELL_ETH = """TRADE_DECISION:
Action: SELL
Symbol: ETHUSDT
Quantity: 0.5
Leverage: 3
Stop Loss: 3600
Take Profit: 3000
Confidence: 80
Reason: Rejection at resistance
---"""


def make_market_data(balance: float = 10000.0, positions=None) -> MarketData:
    return MarketData(
        timestamp=datetime(2024, 5, 1, 12, 0, 0),
        symbols=[
            SymbolData('BTCUSDT', 65000.0, 1.5, 1_000_000.0, 66000.0, 64000.0),
            SymbolData('ETHUSDT', 3300.0, -0.8, 500_000.0, 3400.0, 3200.0),
        ],
        account=AccountSummary(
            total_wallet_balance=balance,
            available_balance=balance * 0.8,
            total_unrealized_profit=0.0,
            total_margin_balance=balance,
            used_margin=balance * 0.2,
        ),
        positions=positions or [],
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def market_snapshot():
    return make_market_data()


@pytest.fixture
def eth_long_position():
    return PositionSnapshot(
        symbol='ETHUSDT', side='LONG', quantity=1.0, entry_price=3000.0,
        mark_price=3300.0, unrealized_pnl=300.0, leverage=5,
    )


@pytest.fixture
def settings():
    return TradingSettings(
        provider='deepseek',
        template='nof1-aggressive',
        trading_pairs=['BTCUSDT', 'ETHUSDT'],
        interval_seconds=300,
        max_daily_trades=10,
        min_confidence_threshold=70,
    )
