"""
Trading Instruction Data Model

Typed commands decoded from model output, plus the per-response parse result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class TradeAction(str, Enum):
    """Instruction action"""
    BUY = "BUY"
    SELL = "SELL"
    CLOSE = "CLOSE"
    HOLD = "HOLD"
    SET_STOP_LOSS = "SET_STOP_LOSS"
    SET_TAKE_PROFIT = "SET_TAKE_PROFIT"


class Priority(str, Enum):
    """Instruction priority"""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class TradingInstruction:
    """
    One trading command decoded from a TRADE_DECISION block

    Optional numeric fields are None when the model omitted them;
    price None means "use current market price".
    """
    action: TradeAction
    symbol: str
    quantity: Optional[float] = None
    price: Optional[float] = None
    leverage: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    reason: str = ""
    confidence: float = 0
    priority: Priority = Priority.LOW
    risk_reward: Optional[str] = None
    max_hold_time: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_hold(self) -> bool:
        return self.action == TradeAction.HOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action.value,
            'symbol': self.symbol,
            'quantity': self.quantity,
            'price': self.price,
            'leverage': self.leverage,
            'stop_loss': self.stop_loss,
            'take_profit': self.take_profit,
            'reason': self.reason,
            'confidence': self.confidence,
            'priority': self.priority.value,
            'risk_reward': self.risk_reward,
            'max_hold_time': self.max_hold_time,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class ValidationResult:
    """Outcome of validating one instruction: errors block execution, warnings are advisory"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class InvalidInstruction:
    """An instruction rejected by validation, with the reasons"""
    instruction: TradingInstruction
    errors: List[str]


@dataclass
class ParseResult:
    """Everything decoded from a single model response"""
    instructions: List[TradingInstruction] = field(default_factory=list)
    valid_instructions: List[TradingInstruction] = field(default_factory=list)
    invalid_instructions: List[InvalidInstruction] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)
    raw_response: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'instructions': [i.to_dict() for i in self.instructions],
            'valid_instructions': [i.to_dict() for i in self.valid_instructions],
            'invalid_instructions': [
                {'instruction': inv.instruction.to_dict(), 'errors': list(inv.errors)}
                for inv in self.invalid_instructions
            ],
            'parse_errors': list(self.parse_errors),
        }
