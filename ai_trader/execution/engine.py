"""
Execution Commander (The Executor) Module

Turns validated, risk-approved instructions into Binance futures orders.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ai_trader.api.binance_client import BinanceClient
from ai_trader.strategy.instruction import TradeAction, TradingInstruction
from ai_trader.utils.logger import log


class ExecutionError(Exception):
    """Instruction cannot be executed (missing quantity, no open position, ...)"""


@dataclass
class ExecutionResult:
    """Outcome of one attempted instruction"""
    success: bool
    instruction: TradingInstruction
    binance_order_id: Optional[str] = None
    executed_price: Optional[float] = None
    executed_quantity: Optional[float] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    protective_orders: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'instruction': self.instruction.to_dict(),
            'binance_order_id': self.binance_order_id,
            'executed_price': self.executed_price,
            'executed_quantity': self.executed_quantity,
            'error': self.error,
            'timestamp': self.timestamp.isoformat(),
            'protective_orders': list(self.protective_orders),
        }


def _order_price(order: Dict) -> Optional[float]:
    for key in ('avgPrice', 'price'):
        value = order.get(key)
        if value is not None and float(value) > 0:
            return float(value)
    return None


def _order_quantity(order: Dict, fallback: Optional[float]) -> Optional[float]:
    for key in ('executedQty', 'origQty'):
        value = order.get(key)
        if value is not None and float(value) > 0:
            return float(value)
    return fallback


class ExecutionEngine:
    """
    Execution Commander (The Executor)

    BUY/SELL     leverage, then LIMIT (price given) or MARKET order, then
                 close-position STOP_MARKET / TAKE_PROFIT_MARKET orders
    CLOSE        reduce-only market order against the open position
    SET_*        protective order on the open position
    HOLD         no-op
    """

    def __init__(self, client: BinanceClient):
        self.client = client
        log.info("🚀 The Executor (Execution Engine) initialized")

    def execute_instruction(self, instruction: TradingInstruction) -> ExecutionResult:
        """
        Execute one instruction

        Raises:
            ExecutionError: instruction cannot be executed as stated
            BinanceAPIException: exchange rejected an order
        """
        action = instruction.action

        if action == TradeAction.HOLD:
            log.info("Executing hold, no operation")
            return ExecutionResult(success=True, instruction=instruction)

        if action in (TradeAction.BUY, TradeAction.SELL):
            return self._open(instruction)
        if action == TradeAction.CLOSE:
            return self._close(instruction)
        if action == TradeAction.SET_STOP_LOSS:
            return self._protect(instruction, 'STOP_MARKET', instruction.stop_loss or instruction.price)
        if action == TradeAction.SET_TAKE_PROFIT:
            return self._protect(instruction, 'TAKE_PROFIT_MARKET', instruction.take_profit or instruction.price)

        raise ExecutionError(f"Unknown action: {action}")

    def _open(self, instruction: TradingInstruction) -> ExecutionResult:
        symbol = instruction.symbol
        side = instruction.action.value
        if not instruction.quantity:
            raise ExecutionError(f"Quantity required to {side} {symbol}")

        if instruction.leverage:
            self.client.set_leverage(symbol, int(instruction.leverage))

        if instruction.price:
            order = self.client.place_limit_order(symbol, side, instruction.quantity, instruction.price)
        else:
            order = self.client.place_market_order(symbol, side, instruction.quantity)

        result = ExecutionResult(
            success=True,
            instruction=instruction,
            binance_order_id=str(order.get('orderId')) if order.get('orderId') is not None else None,
            executed_price=_order_price(order) or instruction.price,
            executed_quantity=_order_quantity(order, instruction.quantity),
        )

        # Protective orders close whatever the entry opened
        exit_side = 'SELL' if instruction.action == TradeAction.BUY else 'BUY'
        if instruction.stop_loss:
            sl = self.client.place_protective_order(symbol, exit_side, 'STOP_MARKET', instruction.stop_loss)
            result.protective_orders.append(str(sl.get('orderId')))
        if instruction.take_profit:
            tp = self.client.place_protective_order(symbol, exit_side, 'TAKE_PROFIT_MARKET', instruction.take_profit)
            result.protective_orders.append(str(tp.get('orderId')))

        log.executor(f"{side} {result.executed_quantity} {symbol} @ {result.executed_price or 'MARKET'}")
        return result

    def _close(self, instruction: TradingInstruction) -> ExecutionResult:
        symbol = instruction.symbol
        position = self.client.get_futures_position(symbol)
        if not position or position['position_amt'] == 0:
            raise ExecutionError(f"No open position to close for {symbol}")

        amount = abs(position['position_amt'])
        quantity = min(instruction.quantity, amount) if instruction.quantity else amount
        side = 'SELL' if position['position_amt'] > 0 else 'BUY'

        order = self.client.place_market_order(symbol, side, quantity, reduce_only=True)
        log.executor(f"Closed {quantity} {symbol}")
        return ExecutionResult(
            success=True,
            instruction=instruction,
            binance_order_id=str(order.get('orderId')) if order.get('orderId') is not None else None,
            executed_price=_order_price(order),
            executed_quantity=_order_quantity(order, quantity),
        )

    def _protect(self, instruction: TradingInstruction, order_type: str, trigger: Optional[float]) -> ExecutionResult:
        symbol = instruction.symbol
        if not trigger:
            raise ExecutionError(f"{order_type} for {symbol} needs a trigger price")

        position = self.client.get_futures_position(symbol)
        if not position or position['position_amt'] == 0:
            raise ExecutionError(f"No open position to protect for {symbol}")

        side = 'SELL' if position['position_amt'] > 0 else 'BUY'
        order = self.client.place_protective_order(symbol, side, order_type, trigger)
        log.executor(f"{order_type} {symbol} @ {trigger}")
        return ExecutionResult(
            success=True,
            instruction=instruction,
            binance_order_id=str(order.get('orderId')) if order.get('orderId') is not None else None,
            executed_price=trigger,
        )
