"""
Instruction Validator
Validates legality and safety of decoded trading instructions
"""

import re
from typing import Dict, Iterable, Optional

from ai_trader.strategy.instruction import TradeAction, TradingInstruction, ValidationResult


# Pairs the decoder will accept; anything else is a validation error
SUPPORTED_SYMBOLS = (
    'BTCUSDT', 'ETHUSDT', 'ADAUSDT', 'DOGEUSDT', 'BNBUSDT',
    'XRPUSDT', 'SOLUSDT', 'MATICUSDT', 'DOTUSDT', 'AVAXUSDT',
    'LTCUSDT', 'LINKUSDT', 'UNIUSDT', 'ATOMUSDT', 'FILUSDT',
    'TRXUSDT', 'ETCUSDT', 'XLMUSDT', 'VETUSDT', 'ICPUSDT',
)

_RISK_REWARD_PATTERN = re.compile(r'1:(\d+\.?\d*)')


class InstructionValidator:
    """
    Instruction Validator

    Errors (block execution):
    1. Missing action or symbol
    2. Trading action without quantity or price
    3. Leverage outside [min_leverage, max_leverage]
    4. Confidence outside [0, 100]
    5. Symbol outside the supported pairs

    Warnings (advisory):
    - Missing reason, missing stop loss / take profit on BUY and SELL,
      low confidence, risk-reward below the minimum ratio
    """

    def __init__(self, config: Optional[Dict] = None, supported_symbols: Optional[Iterable[str]] = None):
        self.config = config or {}

        self.min_leverage = self.config.get('min_leverage', 1)
        self.max_leverage = self.config.get('max_leverage', 50)
        self.low_confidence = self.config.get('low_confidence', 50)
        self.min_risk_reward_ratio = self.config.get('min_risk_reward_ratio', 1.5)
        self.supported_symbols = frozenset(s.upper() for s in (supported_symbols or SUPPORTED_SYMBOLS))

    def validate(self, instruction: TradingInstruction) -> ValidationResult:
        """
        Validate instruction (never mutates it)

        Returns:
            ValidationResult with ordered errors and warnings
        """
        errors = []
        warnings = []

        if not instruction.action:
            errors.append("Action is required")
        if not instruction.symbol:
            errors.append("Symbol is required")

        if not instruction.reason:
            warnings.append("No reason provided for trading decision")

        if instruction.action not in (TradeAction.HOLD, TradeAction.CLOSE):
            if not instruction.quantity and not instruction.price:
                errors.append("Either quantity or price must be specified for trading actions")

            if instruction.action in (TradeAction.BUY, TradeAction.SELL):
                if not instruction.stop_loss:
                    warnings.append("No stop loss specified - high risk")
                if not instruction.take_profit:
                    warnings.append("No take profit specified - consider setting exit strategy")

        if instruction.leverage is not None and not (
                self.min_leverage <= instruction.leverage <= self.max_leverage):
            errors.append(f"Leverage must be between {self.min_leverage} and {self.max_leverage}")

        if not (0 <= instruction.confidence <= 100):
            errors.append("Confidence must be between 0 and 100")
        if instruction.confidence < self.low_confidence:
            warnings.append("Low confidence level - consider skipping this trade")

        if instruction.symbol and not self.is_supported_symbol(instruction.symbol):
            errors.append(f"Invalid trading symbol: {instruction.symbol}")

        if instruction.risk_reward:
            ratio = self.parse_risk_reward(instruction.risk_reward)
            if ratio is not None and ratio < self.min_risk_reward_ratio:
                warnings.append(
                    f"Risk/reward ratio is less than 1:{self.min_risk_reward_ratio} - consider better opportunities"
                )

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def is_supported_symbol(self, symbol: str) -> bool:
        return symbol.upper() in self.supported_symbols

    @staticmethod
    def parse_risk_reward(value: str) -> Optional[float]:
        """Reward multiple from a '1:2.5' style ratio, None when absent"""
        match = _RISK_REWARD_PATTERN.search(value)
        if not match:
            return None
        return float(match.group(1))
