"""
👮 Risk Guardian (The Guardian) Agent
===========================================

Responsibilities:
1. Leverage cap - Block instructions above the configured leverage
2. Position size cap - Block single trades whose notional exceeds the limit
3. Portfolio exposure cap - Open notional plus everything approved earlier
   in the same cycle plus the candidate must stay within the exposure limit
4. Audit logging - Record every check and block

Instructions of one cycle are assessed sequentially; an approved BUY/SELL
reserves its notional so the next assessment sees it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ai_trader.agents.data_sync_agent import MarketData
from ai_trader.strategy.instruction import TradeAction, TradingInstruction
from ai_trader.utils.logger import log


@dataclass
class TradeCandidate:
    """Trade proposed for execution"""
    symbol: str
    action: TradeAction
    quantity: Optional[float] = None
    price: Optional[float] = None
    leverage: Optional[float] = None

    @classmethod
    def from_instruction(cls, instruction: TradingInstruction) -> 'TradeCandidate':
        return cls(
            symbol=instruction.symbol,
            action=instruction.action,
            quantity=instruction.quantity,
            price=instruction.price,
            leverage=instruction.leverage,
        )

    @property
    def opens_exposure(self) -> bool:
        return self.action in (TradeAction.BUY, TradeAction.SELL)


@dataclass
class RiskAssessment:
    """Risk check result"""
    can_execute: bool
    reasons: List[str] = field(default_factory=list)
    notional: float = 0.0
    exposure_pct: Optional[float] = None  # projected exposure if executed


class RiskAuditAgent:
    """
    Risk Guardian (The Guardian)

    Call begin_cycle() with the cycle's market data, then assess_risk()
    once per candidate, in execution order.
    """

    def __init__(
        self,
        max_portfolio_exposure: float = 50.0,
        max_position_size: float = 1000.0,
        max_leverage: float = 20.0,
    ):
        """
        Args:
            max_portfolio_exposure: Max open notional as % of wallet balance
            max_position_size: Max notional (USDT) of a single trade
            max_leverage: Maximum leverage multiplier
        """
        self.max_portfolio_exposure = max_portfolio_exposure
        self.max_position_size = max_position_size
        self.max_leverage = max_leverage

        self._market_data: Optional[MarketData] = None
        self._reserved_notional = 0.0

        self.audit_log: List[Dict] = []
        self.block_stats = {
            'total_checks': 0,
            'total_blocks': 0,
            'over_leverage_blocks': 0,
            'position_size_blocks': 0,
            'exposure_blocks': 0,
            'missing_data_blocks': 0,
        }
        log.info("👮 The Guardian initialized")

    def begin_cycle(self, market_data: MarketData):
        """Capture equity, open notional and prices; clear in-cycle reservations"""
        self._market_data = market_data
        self._reserved_notional = 0.0

    @property
    def reserved_notional(self) -> float:
        return self._reserved_notional

    def assess_risk(self, candidate: TradeCandidate) -> RiskAssessment:
        """
        Decide whether a candidate trade may be executed

        Returns:
            RiskAssessment (can_execute, reasons)
        """
        self.block_stats['total_checks'] += 1
        reasons: List[str] = []

        if candidate.leverage is not None and not (1 <= candidate.leverage <= self.max_leverage):
            reasons.append(f"Leverage {candidate.leverage:g}x exceeds allowed range [1, {self.max_leverage:g}]")
            self.block_stats['over_leverage_blocks'] += 1

        if not candidate.opens_exposure:
            return self._finish(candidate, RiskAssessment(can_execute=not reasons, reasons=reasons))

        if self._market_data is None:
            return self._block(candidate, reasons + ["No market data available for risk check"], 'missing_data_blocks')

        equity = self._market_data.account.total_wallet_balance
        price = candidate.price or self._market_data.price_of(candidate.symbol)
        if equity <= 0:
            return self._block(candidate, reasons + [f"Non-positive account equity: {equity}"], 'missing_data_blocks')
        if not price:
            return self._block(candidate, reasons + [f"No reference price for {candidate.symbol}"], 'missing_data_blocks')
        if not candidate.quantity:
            return self._block(candidate, reasons + ["Quantity required to size exposure"], 'missing_data_blocks')

        notional = abs(candidate.quantity) * price
        if notional > self.max_position_size:
            reasons.append(f"Position size {notional:.2f} USDT exceeds limit {self.max_position_size:.2f} USDT")
            self.block_stats['position_size_blocks'] += 1

        projected = self._market_data.open_notional + self._reserved_notional + notional
        exposure_pct = projected / equity * 100
        if exposure_pct > self.max_portfolio_exposure:
            reasons.append(
                f"Portfolio exposure {exposure_pct:.1f}% would exceed limit {self.max_portfolio_exposure:.1f}%"
            )
            self.block_stats['exposure_blocks'] += 1

        assessment = RiskAssessment(
            can_execute=not reasons,
            reasons=reasons,
            notional=notional,
            exposure_pct=exposure_pct,
        )
        if assessment.can_execute:
            self._reserved_notional += notional
        return self._finish(candidate, assessment)

    def _block(self, candidate: TradeCandidate, reasons: List[str], stat: str) -> RiskAssessment:
        self.block_stats[stat] += 1
        return self._finish(candidate, RiskAssessment(can_execute=False, reasons=reasons))

    def _finish(self, candidate: TradeCandidate, assessment: RiskAssessment) -> RiskAssessment:
        if not assessment.can_execute:
            self.block_stats['total_blocks'] += 1
            log.guardian(f"Blocked {candidate.action.value} {candidate.symbol}: {'; '.join(assessment.reasons)}",
                         blocked=True)
        else:
            log.guardian(f"Approved {candidate.action.value} {candidate.symbol}")

        self.audit_log.append({
            'timestamp': datetime.now().isoformat(),
            'symbol': candidate.symbol,
            'action': candidate.action.value,
            'approved': assessment.can_execute,
            'reasons': list(assessment.reasons),
            'exposure_pct': assessment.exposure_pct,
        })
        return assessment

    def get_audit_report(self) -> Dict:
        """Block statistics and the most recent audit entries"""
        total = self.block_stats['total_checks']
        return {
            'stats': dict(self.block_stats),
            'block_rate': (self.block_stats['total_blocks'] / total * 100) if total else 0.0,
            'recent': self.audit_log[-10:],
        }
