"""
Tests for the instruction parser
Includes property-based tests and unit tests
"""
from datetime import datetime

import pytest
from hypothesis import given, settings, strategies as st

from ai_trader.strategy.instruction import Priority, TradeAction
from ai_trader.strategy.instruction_parser import (
    DEFAULT_HOLD_REASON,
    FALLBACK_CONFIDENCE,
    FALLBACK_DIRECTIONAL_REASON,
    FALLBACK_HOLD_REASON,
    NO_BLOCKS_ERROR,
    InstructionParser,
    decode,
    extract_blocks,
    normalize_response,
    parse_number,
    parse_price,
    parse_symbol,
)

from conftest import BUY_BTC, SELL_ETH


FIXED_TIME = datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture
def parser():
    return InstructionParser(clock=lambda: FIXED_TIME)


def block(action="BUY", symbol="BTCUSDT", **fields):
    lines = ["TRADE_DECISION:", f"Action: {action}", f"Symbol: {symbol}"]
    names = {
        'quantity': 'Quantity', 'leverage': 'Leverage', 'price': 'Entry Price',
        'stop_loss': 'Stop Loss', 'take_profit': 'Take Profit', 'confidence': 'Confidence',
        'priority': 'Priority', 'reason': 'Reason', 'risk_reward': 'Risk Reward',
    }
    for key, value in fields.items():
        lines.append(f"{names[key]}: {value}")
    lines.append("---")
    return "\n".join(lines)


# =============================================================================
# Property-Based Tests
# =============================================================================

markdown_text = st.text(alphabet='ab #*`:-\n\t', max_size=80)

decision_lines = st.sampled_from([
    "TRADE_DECISION:", "**TRADE_DECISION:**", "## Decision", "```", "```text", "---",
    "**Action:** BUY", "Action: sell", "Action: HOLD", "Action: CLOSE",
    "Symbol: btc", "**Symbol:** ETHUSDT", "Symbol: FUTURES_SOL",
    "Quantity: 0.1", "Quantity: abc", "Leverage: 5x", "Entry Price: MARKET",
    "Confidence: 80%", "Priority: high", "Reason: *momentum*", "I would buy here", "",
])
decision_text = st.lists(
    st.tuples(st.sampled_from(['', '  ', '\t', '* ', '- ']), decision_lines).map(''.join),
    max_size=20,
).map('\n'.join)


class TestNormalizationProperty:
    """Normalization is one-way and idempotent"""

    @given(markdown_text)
    @settings(max_examples=200)
    def test_normalize_is_idempotent(self, text):
        once = normalize_response(text)
        assert normalize_response(once) == once

    @given(markdown_text)
    @settings(max_examples=100)
    def test_normalized_text_has_no_asterisks(self, text):
        assert '*' not in normalize_response(text)

    @given(decision_text)
    @settings(max_examples=200)
    def test_decoding_normalized_text_gives_the_same_result(self, text):
        parser = InstructionParser(clock=lambda: FIXED_TIME)
        assert parser.decode(normalize_response(text)).to_dict() == parser.decode(text).to_dict()


class TestConfidenceProperty:
    """Confidence outside [0, 100] always invalidates a block"""

    @given(st.integers(min_value=0, max_value=100))
    @settings(max_examples=50)
    def test_confidence_in_range_is_valid(self, confidence):
        result = InstructionParser().decode(block(quantity=0.01, confidence=confidence, reason="test"))
        assert len(result.instructions) == 1
        assert result.instructions[0].confidence == confidence
        assert len(result.valid_instructions) == 1

    @given(st.integers(min_value=101, max_value=10_000))
    @settings(max_examples=50)
    def test_confidence_above_range_is_invalid(self, confidence):
        result = InstructionParser().decode(block(quantity=0.01, confidence=confidence))
        assert result.valid_instructions == []
        assert "Confidence must be between 0 and 100" in result.invalid_instructions[0].errors


class TestLeverageProperty:
    """Leverage outside [1, 50] always invalidates a block"""

    @given(st.integers(min_value=1, max_value=50))
    @settings(max_examples=50)
    def test_leverage_in_range_is_valid(self, leverage):
        result = InstructionParser().decode(block(quantity=0.01, leverage=leverage, confidence=80))
        assert len(result.valid_instructions) == 1
        assert result.valid_instructions[0].leverage == leverage

    @given(st.integers(min_value=51, max_value=500))
    @settings(max_examples=50)
    def test_leverage_above_range_is_invalid(self, leverage):
        result = InstructionParser().decode(block(quantity=0.01, leverage=leverage, confidence=80))
        assert result.valid_instructions == []
        assert "Leverage must be between 1 and 50" in result.invalid_instructions[0].errors


class TestBlockSplitProperty:
    """N well-formed blocks decode to N instructions, in order"""

    @given(st.lists(st.sampled_from(['BTC', 'ETH', 'SOL', 'BNB', 'XRP', 'ADA']), min_size=1, max_size=6))
    @settings(max_examples=50)
    def test_blocks_decode_in_order(self, bases):
        text = "\n\n".join(block(symbol=base, quantity=1, confidence=75) for base in bases)
        result = InstructionParser().decode(text)
        assert [i.symbol for i in result.instructions] == [f"{b}USDT" for b in bases]
        assert result.parse_errors == []


class TestSymbolProperty:
    """Bare base assets gain the USDT quote, case-insensitively"""

    @given(st.sampled_from(['btc', 'Eth', 'SOL', 'doge', 'aVaX']))
    def test_base_asset_gets_usdt_suffix(self, base):
        assert parse_symbol(base) == base.upper() + 'USDT'


# =============================================================================
# Unit Tests
# =============================================================================

class TestDecode:

    def test_full_block(self, parser):
        result = parser.decode(BUY_BTC)
        assert len(result.instructions) == 1
        instruction = result.instructions[0]
        assert instruction.action == TradeAction.BUY
        assert instruction.symbol == 'BTCUSDT'
        assert instruction.quantity == 0.01
        assert instruction.leverage == 5
        assert instruction.price is None  # MARKET
        assert instruction.stop_loss == 60000
        assert instruction.take_profit == 70000
        assert instruction.confidence == 85
        assert instruction.reason == 'Breakout'
        assert instruction.priority == Priority.LOW
        assert instruction.timestamp == FIXED_TIME
        assert result.valid_instructions == [instruction]
        assert result.raw_response == BUY_BTC

    def test_two_blocks(self, parser):
        result = parser.decode(BUY_BTC + "\n\nSome commentary\n\n" + SELL_ETH)
        assert [i.action for i in result.instructions] == [TradeAction.BUY, TradeAction.SELL]
        assert [i.symbol for i in result.instructions] == ['BTCUSDT', 'ETHUSDT']

    def test_marker_ends_previous_block(self, parser):
        text = ("TRADE_DECISION:\nAction: BUY\nSymbol: BTC\nQuantity: 1\n"
                "TRADE_DECISION:\nAction: SELL\nSymbol: ETH\nQuantity: 2")
        result = parser.decode(text)
        assert [(i.action, i.symbol, i.quantity) for i in result.instructions] == [
            (TradeAction.BUY, 'BTCUSDT', 1.0),
            (TradeAction.SELL, 'ETHUSDT', 2.0),
        ]

    def test_text_after_terminator_is_ignored(self, parser):
        result = parser.decode(BUY_BTC + "\nConfidence: 10\nAction: SELL")
        assert len(result.instructions) == 1
        assert result.instructions[0].confidence == 85
        assert result.instructions[0].action == TradeAction.BUY

    def test_markdown_is_stripped(self, parser):
        text = ("## Analysis\nBTC looks strong.\n\n"
                "**TRADE_DECISION:**\n**Action:** BUY\n**Symbol:** BTCUSDT\n"
                "**Quantity:** 0.02\n**Confidence:** 90\n---")
        result = parser.decode(text)
        assert len(result.instructions) == 1
        assert result.instructions[0].quantity == 0.02
        assert result.instructions[0].confidence == 90

    def test_code_fence_content_is_kept(self, parser):
        text = "```\n" + SELL_ETH + "\n```"
        result = parser.decode(text)
        assert len(result.instructions) == 1
        assert result.instructions[0].symbol == 'ETHUSDT'

    def test_marker_is_case_insensitive_and_mid_line(self, parser):
        text = "My call: trade_decision: \nAction: SELL\nSymbol: ETHUSDT\nQuantity: 1\n---"
        result = parser.decode(text)
        assert len(result.instructions) == 1
        assert result.instructions[0].action == TradeAction.SELL

    def test_bulleted_keys(self, parser):
        text = "TRADE_DECISION:\n- Action: BUY\n- Symbol: BTCUSDT\n• Quantity: 0.5\n- Take  Profit: 70000\n---"
        instruction = parser.decode(text).instructions[0]
        assert instruction.quantity == 0.5
        assert instruction.take_profit == 70000

    def test_later_duplicate_key_wins(self, parser):
        text = "TRADE_DECISION:\nAction: BUY\nSymbol: BTCUSDT\nQuantity: 1\nQuantity: 2\n---"
        assert parser.decode(text).instructions[0].quantity == 2

    def test_hold_defaults(self, parser):
        result = parser.decode("TRADE_DECISION:\nAction: HOLD\nSymbol: BTC\n---")
        instruction = result.instructions[0]
        assert instruction.action == TradeAction.HOLD
        assert instruction.symbol == 'BTCUSDT'
        assert instruction.reason == DEFAULT_HOLD_REASON
        assert instruction.confidence == 50
        assert instruction.priority == Priority.LOW
        assert instruction.quantity is None
        assert result.valid_instructions == [instruction]

    def test_action_and_priority_synonyms(self, parser):
        text = "\n".join([
            block('LONG', 'BTC', quantity=1, priority='URGENT'),
            block('short', 'ETH', quantity=1, priority='normal'),
            block('EXIT', 'SOL'),
            block('WAIT', 'BNB'),
        ])
        result = parser.decode(text)
        assert [i.action for i in result.instructions] == [
            TradeAction.BUY, TradeAction.SELL, TradeAction.CLOSE, TradeAction.HOLD
        ]
        assert result.instructions[0].priority == Priority.HIGH
        assert result.instructions[1].priority == Priority.MEDIUM

    def test_block_without_symbol_is_dropped(self, parser):
        result = parser.decode("TRADE_DECISION:\nAction: BUY\nQuantity: 1\n---")
        assert result.instructions == []
        assert result.parse_errors == []

    def test_block_with_unknown_action_is_dropped(self, parser):
        result = parser.decode(block('YOLO', 'BTC', quantity=1) + "\n" + block('SELL', 'ETH', quantity=1))
        assert [i.symbol for i in result.instructions] == ['ETHUSDT']

    def test_numbers_with_currency_formatting(self, parser):
        text = block(quantity='0.25 BTC', price='$65,000.50', stop_loss='~64,000', confidence='85%')
        instruction = parser.decode(text).instructions[0]
        assert instruction.quantity == 0.25
        assert instruction.price == 65000.5
        assert instruction.stop_loss == 64000
        assert instruction.confidence == 85

    def test_missing_confidence_is_zero(self, parser):
        result = parser.decode(block(quantity=1))
        assert result.instructions[0].confidence == 0
        assert result.valid_instructions  # low confidence only warns

    def test_invalid_symbol(self, parser):
        result = parser.decode(block(symbol='PEPE', quantity=1, confidence=80))
        assert result.valid_instructions == []
        assert result.invalid_instructions[0].errors == ["Invalid trading symbol: PEPEUSDT"]

    def test_trading_action_needs_quantity_or_price(self, parser):
        result = parser.decode(block(confidence=80))
        assert "Either quantity or price must be specified for trading actions" in \
            result.invalid_instructions[0].errors


class TestFallback:

    def test_hold_keyword(self, parser):
        result = parser.decode("Markets are choppy. I would wait for a clearer setup.")
        assert result.parse_errors == [NO_BLOCKS_ERROR]
        assert len(result.instructions) == 1
        instruction = result.instructions[0]
        assert instruction.action == TradeAction.HOLD
        assert instruction.symbol == 'ALL'
        assert instruction.reason == FALLBACK_HOLD_REASON
        # 'ALL' is not a tradable pair
        assert result.valid_instructions == []

    def test_no_trade_phrase(self, parser):
        result = parser.decode("No trade today.")
        assert result.instructions[0].action == TradeAction.HOLD

    def test_directional_keyword_with_symbol(self, parser):
        result = parser.decode("Momentum is strong, buy ETHUSDT on this breakout.")
        instruction = result.instructions[0]
        assert instruction.action == TradeAction.BUY
        assert instruction.symbol == 'ETHUSDT'
        assert instruction.confidence == FALLBACK_CONFIDENCE
        assert instruction.reason == FALLBACK_DIRECTIONAL_REASON

    def test_sell_keyword(self, parser):
        result = parser.decode("I'd short BTCUSDT here.")
        assert result.instructions[0].action == TradeAction.SELL

    def test_directional_keyword_without_symbol(self, parser):
        result = parser.decode("Consider to buy something.")
        assert result.instructions == []
        assert result.parse_errors == [NO_BLOCKS_ERROR]

    def test_unrelated_text(self, parser):
        result = parser.decode("Interesting market.")
        assert result.instructions == []
        assert result.parse_errors == [NO_BLOCKS_ERROR]

    @pytest.mark.parametrize("raw", ["", "   \n  ", None])
    def test_empty_input(self, parser, raw):
        result = parser.decode(raw)
        assert result.instructions == []
        assert result.parse_errors == [NO_BLOCKS_ERROR]


class TestHelpers:

    def test_extract_blocks_without_marker(self):
        assert extract_blocks("Action: BUY\nSymbol: BTC") == []

    def test_extract_blocks_terminator(self):
        blocks = extract_blocks("TRADE_DECISION:\nAction: BUY\n---\nAction: SELL")
        assert blocks == [['', 'Action: BUY']]

    def test_parse_number(self):
        assert parse_number("10x") == 10
        assert parse_number("-2.5%") == -2.5
        assert parse_number("N/A") is None
        assert parse_number("1.2.3") == 1.2

    def test_parse_price_market(self):
        assert parse_price("market") is None
        assert parse_price("At MARKET price") is None
        assert parse_price("3,250") == 3250

    def test_parse_symbol(self):
        assert parse_symbol("FUTURES_ETHUSDT") == "ETHUSDT"
        assert parse_symbol("spot_btc") == "BTCUSDT"
        assert parse_symbol("ethbusd") == "ETHBUSD"
        assert parse_symbol("  ") is None

    def test_module_level_decode(self):
        assert decode(BUY_BTC).instructions[0].symbol == 'BTCUSDT'


class TestParsingStats:

    def test_stats(self, parser):
        result = parser.decode(BUY_BTC + "\n" + block(symbol='PEPE', quantity=1, confidence=80))
        stats = parser.get_parsing_stats(result)
        assert stats == {
            'total_instructions': 2,
            'valid_instructions': 1,
            'invalid_instructions': 1,
            'parse_errors': 0,
            'success_rate': 50.0,
        }

    def test_stats_empty(self, parser):
        stats = parser.get_parsing_stats(parser.decode(""))
        assert stats['success_rate'] == 0
        assert stats['parse_errors'] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
