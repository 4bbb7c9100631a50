"""
Binance USDT-M Futures Integration Layer
"""
from typing import Dict, List, Optional
from datetime import datetime
from binance.client import Client
from binance.exceptions import BinanceAPIException
from ai_trader.config import config
from ai_trader.utils.logger import log


class BinanceClient:
    """Binance futures API client wrapper"""

    def __init__(self,
                 api_key: Optional[str] = None,
                 api_secret: Optional[str] = None,
                 testnet: Optional[bool] = None,
                 client: Optional[Client] = None):
        self.api_key = api_key if api_key is not None else config.binance.get('api_key')
        self.api_secret = api_secret if api_secret is not None else config.binance.get('api_secret')
        self.testnet = testnet if testnet is not None else config.binance.get('testnet', True)

        if client is not None:
            self.client = client
        elif self.testnet:
            self.client = Client(self.api_key, self.api_secret, testnet=True)
        else:
            self.client = Client(self.api_key, self.api_secret)

        log.info(f"Binance client initialized (testnet: {self.testnet})")

    def get_futures_account(self) -> Dict:
        """Get futures account information"""
        try:
            account = self.client.futures_account()

            return {
                'timestamp': account.get('updateTime'),
                'total_wallet_balance': float(account['totalWalletBalance']),
                'total_unrealized_profit': float(account['totalUnrealizedProfit']),
                'total_margin_balance': float(account['totalMarginBalance']),
                'available_balance': float(account['availableBalance']),
                'total_position_initial_margin': float(account.get('totalPositionInitialMargin', 0)),
            }
        except BinanceAPIException as e:
            log.error(f"Failed to get futures account: {e}")
            raise

    def get_open_positions(self) -> List[Dict]:
        """All futures positions with a non-zero amount"""
        try:
            positions = self.client.futures_position_information()
            return [self._format_position(p) for p in positions if float(p['positionAmt']) != 0]
        except BinanceAPIException as e:
            log.error(f"Failed to get positions: {e}")
            raise

    def get_futures_position(self, symbol: str) -> Optional[Dict]:
        """Position for one contract, None when flat"""
        try:
            positions = self.client.futures_position_information(symbol=symbol)
            for pos in positions:
                if float(pos['positionAmt']) != 0:
                    return self._format_position(pos)
            return None
        except BinanceAPIException as e:
            log.error(f"Failed to get position for {symbol}: {e}")
            raise

    @staticmethod
    def _format_position(pos: Dict) -> Dict:
        return {
            'symbol': pos['symbol'],
            'position_amt': float(pos['positionAmt']),
            'entry_price': float(pos['entryPrice']),
            'mark_price': float(pos.get('markPrice', 0)),
            'unrealized_profit': float(pos.get('unRealizedProfit', 0)),
            'leverage': int(float(pos.get('leverage', 1))),
            'position_side': pos.get('positionSide', 'BOTH'),
        }

    def get_futures_ticker(self, symbol: str) -> Dict:
        """24h statistics for one contract"""
        try:
            ticker = self.client.futures_ticker(symbol=symbol)
            return {
                'symbol': ticker['symbol'],
                'price': float(ticker['lastPrice']),
                'price_change_percent': float(ticker['priceChangePercent']),
                'volume': float(ticker['quoteVolume']),
                'high': float(ticker['highPrice']),
                'low': float(ticker['lowPrice']),
                'timestamp': datetime.now().timestamp() * 1000,
            }
        except BinanceAPIException as e:
            log.error(f"Failed to get ticker for {symbol}: {e}")
            raise

    def get_futures_klines(self, symbol: str, interval: str = '1h', limit: int = 100) -> List[Dict]:
        """
        Get futures K-line (candlestick) data

        Args:
            symbol: Trading pair, e.g., 'BTCUSDT'
            interval: Time interval, e.g., '5m', '1h'
            limit: Quantity limit
        """
        try:
            klines = self.client.futures_klines(symbol=symbol, interval=interval, limit=limit)
            return [
                {
                    'timestamp': k[0],
                    'open': float(k[1]),
                    'high': float(k[2]),
                    'low': float(k[3]),
                    'close': float(k[4]),
                    'volume': float(k[5]),
                }
                for k in klines
            ]
        except BinanceAPIException as e:
            log.error(f"Failed to get klines for {symbol}: {e}")
            raise

    def set_leverage(self, symbol: str, leverage: int) -> Dict:
        try:
            result = self.client.futures_change_leverage(symbol=symbol, leverage=leverage)
            log.info(f"Leverage set: {symbol} {leverage}x")
            return result
        except BinanceAPIException as e:
            log.error(f"Failed to set leverage: {e}")
            raise

    def place_market_order(self, symbol: str, side: str, quantity: float, reduce_only: bool = False) -> Dict:
        """
        Place market order

        Args:
            symbol: Trading pair
            side: BUY or SELL
            quantity: Quantity
            reduce_only: Only reduce an existing position
        """
        try:
            order_params = {
                'symbol': symbol,
                'side': side,
                'type': 'MARKET',
                'quantity': quantity,
            }
            if reduce_only:
                order_params['reduceOnly'] = True

            order = self.client.futures_create_order(**order_params)

            log.info(f"Market order placed: {side} {quantity} {symbol}")
            return order

        except BinanceAPIException as e:
            log.error(f"Order failed: {e}")
            raise

    def place_limit_order(self, symbol: str, side: str, quantity: float, price: float,
                          time_in_force: str = 'GTC') -> Dict:
        """Place limit order"""
        try:
            order = self.client.futures_create_order(
                symbol=symbol,
                side=side,
                type='LIMIT',
                quantity=quantity,
                price=price,
                timeInForce=time_in_force
            )

            log.info(f"Limit order placed: {side} {quantity} {symbol} @ {price}")
            return order

        except BinanceAPIException as e:
            log.error(f"Order failed: {e}")
            raise

    def place_protective_order(self, symbol: str, side: str, order_type: str, stop_price: float) -> Dict:
        """
        Close-position trigger order

        Args:
            side: Side that closes the position (SELL for a long)
            order_type: STOP_MARKET or TAKE_PROFIT_MARKET
            stop_price: Trigger price
        """
        try:
            order = self.client.futures_create_order(
                symbol=symbol,
                side=side,
                type=order_type,
                stopPrice=stop_price,
                closePosition=True
            )
            log.info(f"{order_type} set: {symbol} @ {stop_price}")
            return order
        except BinanceAPIException as e:
            log.error(f"Failed to place {order_type}: {e}")
            raise
