"""
Instruction Parser
==================

Decodes free-text model output into typed trading instructions.

Expected wire format (any field may be omitted, several blocks allowed):

    TRADE_DECISION:
    Action: BUY
    Symbol: BTCUSDT
    Quantity: 0.25
    Leverage: 10
    Entry Price: MARKET
    Stop Loss: 67500
    Take Profit: 72000
    Confidence: 85
    Priority: HIGH
    Reason: Breakout above resistance
    Risk Reward: 1:2.8
    Max Hold Time: 4h
    ---

A block ends at a standalone ``---`` line, the next ``TRADE_DECISION:``
marker or the end of the text. Decoding never raises: malformed input
degrades to an empty or partial ParseResult.

Code fences: only the fence lines themselves are removed, the fenced text stays.
Models often wrap the decision blocks themselves in a fence, so dropping
fenced blocks wholesale (as simpler cleaners do) would lose them.
"""

import re
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ai_trader.strategy.decision_validator import InstructionValidator
from ai_trader.strategy.instruction import (
    InvalidInstruction,
    ParseResult,
    Priority,
    TradeAction,
    TradingInstruction,
    ValidationResult,
)
from ai_trader.utils.logger import log


MARKER = "TRADE_DECISION:"
NO_BLOCKS_ERROR = "No TRADE_DECISION blocks found in AI response"

DEFAULT_HOLD_REASON = "AI recommends holding current positions"
FALLBACK_HOLD_REASON = "AI recommends holding based on current market conditions"
FALLBACK_DIRECTIONAL_REASON = "Parsed from unstructured AI response"
FALLBACK_CONFIDENCE = 30
HOLD_CONFIDENCE = 50

ACTION_SYNONYMS = {
    'BUY': TradeAction.BUY,
    'LONG': TradeAction.BUY,
    'SELL': TradeAction.SELL,
    'SHORT': TradeAction.SELL,
    'CLOSE': TradeAction.CLOSE,
    'EXIT': TradeAction.CLOSE,
    'HOLD': TradeAction.HOLD,
    'WAIT': TradeAction.HOLD,
    'SET_STOP_LOSS': TradeAction.SET_STOP_LOSS,
    'SET_TAKE_PROFIT': TradeAction.SET_TAKE_PROFIT,
}

PRIORITY_SYNONYMS = {
    'HIGH': Priority.HIGH,
    'URGENT': Priority.HIGH,
    'CRITICAL': Priority.HIGH,
    'MEDIUM': Priority.MEDIUM,
    'NORMAL': Priority.MEDIUM,
    'MODERATE': Priority.MEDIUM,
}

# Accepted (lowercased, single-spaced) keys -> canonical field
FIELD_KEYS = {
    'action': 'action',
    'symbol': 'symbol',
    'quantity': 'quantity',
    'leverage': 'leverage',
    'entry price': 'price',
    'price': 'price',
    'stop loss': 'stop_loss',
    'stoploss': 'stop_loss',
    'take profit': 'take_profit',
    'takeprofit': 'take_profit',
    'confidence': 'confidence',
    'priority': 'priority',
    'reason': 'reason',
    'risk reward': 'risk_reward',
    'riskreward': 'risk_reward',
    'max hold time': 'max_hold_time',
    'maxholdtime': 'max_hold_time',
}

QUOTE_SUFFIXES = ('USDT', 'BUSD')
DEFAULT_QUOTE = 'USDT'

HOLD_KEYWORDS = ('hold', 'wait', 'no trade')
BUY_KEYWORDS = ('buy', 'long')
SELL_KEYWORDS = ('sell', 'short')

_MARKER_RE = re.compile(re.escape(MARKER), re.IGNORECASE)
_TERMINATOR_RE = re.compile(r'^-{3,}$')
_FENCE_LINE_RE = re.compile(r'^[^\S\n]*```[^\n]*(?:\n|$)', re.MULTILINE)
_HEADING_RE = re.compile(r'^[^\S\n]*(?:#{1,6}[^\S\n]+)+', re.MULTILINE)
_SYMBOL_PREFIX_RE = re.compile(r'^(?:FUTURES?|SPOT)_?')
_NON_NUMERIC_RE = re.compile(r'[^0-9.\-]')
_LEADING_NUMBER_RE = re.compile(r'-?(?:[0-9]+\.?[0-9]*|\.[0-9]+)')
_FALLBACK_SYMBOL_RE = re.compile(r'[A-Z]{2,10}(?:USDT|BUSD)')


def normalize_response(text: str) -> str:
    """
    Discard markdown noise: bold/italic asterisks, heading markers and
    code-fence lines (fenced content is kept). One-way and idempotent.
    """
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = text.replace('*', '')
    text = _HEADING_RE.sub('', text)
    text = _FENCE_LINE_RE.sub('', text)
    return text.strip()


def extract_blocks(text: str) -> List[List[str]]:
    """
    Split normalized text into TRADE_DECISION blocks (lists of lines)

    Line-oriented: the marker may appear anywhere in a line and the rest of
    that line opens the block.
    """
    blocks: List[List[str]] = []
    current: Optional[List[str]] = None

    for line in text.split('\n'):
        parts = _MARKER_RE.split(line)
        if len(parts) == 1:
            if current is None:
                continue
            if _TERMINATOR_RE.match(line.strip()):
                blocks.append(current)
                current = None
            else:
                current.append(line)
            continue

        if current is not None:
            if parts[0].strip():
                current.append(parts[0])
            blocks.append(current)
        for remainder in parts[1:-1]:
            blocks.append([remainder])
        current = [parts[-1]]

    if current is not None:
        blocks.append(current)
    return blocks


def parse_number(value: str) -> Optional[float]:
    """Keep digits, '.' and '-', then read the leading number; None when there is none"""
    cleaned = _NON_NUMERIC_RE.sub('', value)
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def parse_price(value: str) -> Optional[float]:
    """MARKET (any case) means no limit price"""
    if 'MARKET' in value.upper():
        return None
    return parse_number(value)


def parse_action(value: str) -> Optional[TradeAction]:
    return ACTION_SYNONYMS.get(value.strip().upper())


def parse_symbol(value: str) -> Optional[str]:
    """'btc' -> 'BTCUSDT', 'FUTURES_ETHUSDT' -> 'ETHUSDT'"""
    symbol = _SYMBOL_PREFIX_RE.sub('', value.strip().upper())
    if not symbol:
        return None
    if not symbol.endswith(QUOTE_SUFFIXES):
        symbol += DEFAULT_QUOTE
    return symbol


def parse_priority(value: str) -> Priority:
    return PRIORITY_SYNONYMS.get(value.strip().upper(), Priority.LOW)


class InstructionParser:
    """
    Instruction Parser

    decode():   raw model text -> ParseResult (instructions split into valid/invalid)
    validate(): instruction -> ValidationResult
    """

    def __init__(self,
                 validator: Optional[InstructionValidator] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.validator = validator or InstructionValidator()
        self.clock = clock

    def decode(self, raw_response: str) -> ParseResult:
        """
        Decode a model response

        Args:
            raw_response: Model output text

        Returns:
            ParseResult (never raises)
        """
        raw_response = raw_response if isinstance(raw_response, str) else ""
        result = ParseResult(raw_response=raw_response)
        timestamp = self.clock()

        try:
            text = normalize_response(raw_response)
            blocks = extract_blocks(text)

            if not blocks:
                result.parse_errors.append(NO_BLOCKS_ERROR)
                fallback = self._parse_fallback(text, timestamp)
                if fallback is not None:
                    result.instructions.append(fallback)
            else:
                for index, block in enumerate(blocks, start=1):
                    try:
                        instruction = self._parse_block(block, timestamp)
                    except (ValueError, TypeError, OverflowError) as e:
                        result.parse_errors.append(f"Error parsing trade block {index}: {e}")
                        continue
                    if instruction is not None:
                        result.instructions.append(instruction)

            for instruction in result.instructions:
                validation = self.validate(instruction)
                if validation.is_valid:
                    result.valid_instructions.append(instruction)
                else:
                    result.invalid_instructions.append(InvalidInstruction(instruction, validation.errors))
                    log.warning(f"Invalid instruction for {instruction.symbol}: {', '.join(validation.errors)}")
        except Exception as e:  # decoding must degrade, never propagate
            log.error(f"Critical parsing error: {e}")
            return ParseResult(parse_errors=result.parse_errors + [f"Critical parsing error: {e}"],
                               raw_response=raw_response)

        return result

    def validate(self, instruction: TradingInstruction) -> ValidationResult:
        return self.validator.validate(instruction)

    def _parse_block(self, lines: List[str], timestamp: datetime) -> Optional[TradingInstruction]:
        """One block -> instruction, or None when action or symbol is missing"""
        fields: Dict[str, str] = {}
        for line in lines:
            key, sep, value = line.strip().partition(':')
            if not sep:
                continue
            key = ' '.join(key.strip().lstrip('-•').lower().split())
            canonical = FIELD_KEYS.get(key)
            if canonical:
                # Later duplicates overwrite earlier ones
                fields[canonical] = value.strip()

        action = parse_action(fields['action']) if 'action' in fields else None
        symbol = parse_symbol(fields['symbol']) if 'symbol' in fields else None
        if action is None or symbol is None:
            return None

        confidence = parse_number(fields['confidence']) if 'confidence' in fields else None
        priority = parse_priority(fields['priority']) if 'priority' in fields else Priority.LOW
        reason = fields.get('reason', '')

        if action == TradeAction.HOLD:
            return TradingInstruction(
                action=TradeAction.HOLD,
                symbol=symbol,
                reason=reason or DEFAULT_HOLD_REASON,
                confidence=confidence or HOLD_CONFIDENCE,
                priority=priority,
                timestamp=timestamp,
            )

        return TradingInstruction(
            action=action,
            symbol=symbol,
            quantity=parse_number(fields['quantity']) if 'quantity' in fields else None,
            price=parse_price(fields['price']) if 'price' in fields else None,
            leverage=parse_number(fields['leverage']) if 'leverage' in fields else None,
            stop_loss=parse_number(fields['stop_loss']) if 'stop_loss' in fields else None,
            take_profit=parse_number(fields['take_profit']) if 'take_profit' in fields else None,
            reason=reason,
            confidence=confidence or 0,
            priority=priority,
            risk_reward=fields.get('risk_reward'),
            max_hold_time=fields.get('max_hold_time'),
            timestamp=timestamp,
        )

    def _parse_fallback(self, text: str, timestamp: datetime) -> Optional[TradingInstruction]:
        """
        Keyword scan used only when no blocks were found

        Substring matching: prose that merely mentions "buy" or "sell" can
        still produce a directional instruction.
        """
        lowered = text.lower()

        if any(keyword in lowered for keyword in HOLD_KEYWORDS):
            return TradingInstruction(
                action=TradeAction.HOLD,
                symbol='ALL',
                reason=FALLBACK_HOLD_REASON,
                confidence=HOLD_CONFIDENCE,
                priority=Priority.LOW,
                timestamp=timestamp,
            )

        if any(keyword in lowered for keyword in BUY_KEYWORDS):
            action = TradeAction.BUY
        elif any(keyword in lowered for keyword in SELL_KEYWORDS):
            action = TradeAction.SELL
        else:
            return None

        match = _FALLBACK_SYMBOL_RE.search(text)
        if not match:
            return None

        return TradingInstruction(
            action=action,
            symbol=match.group(0),
            reason=FALLBACK_DIRECTIONAL_REASON,
            confidence=FALLBACK_CONFIDENCE,
            priority=Priority.LOW,
            timestamp=timestamp,
        )

    @staticmethod
    def get_parsing_stats(result: ParseResult) -> Dict[str, float]:
        """Counts and success rate (%) for one ParseResult"""
        total = len(result.instructions)
        valid = len(result.valid_instructions)
        return {
            'total_instructions': total,
            'valid_instructions': valid,
            'invalid_instructions': len(result.invalid_instructions),
            'parse_errors': len(result.parse_errors),
            'success_rate': (valid / total) * 100 if total > 0 else 0,
        }


_default_parser = InstructionParser()


def decode(raw_response: str) -> ParseResult:
    """Decode with the default parser"""
    return _default_parser.decode(raw_response)


def validate(instruction: TradingInstruction) -> ValidationResult:
    """Validate with the default rules"""
    return _default_parser.validate(instruction)
