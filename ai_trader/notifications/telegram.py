"""
Telegram Notifier

Fire-and-forget trade notifications. Delivery failures are logged and
never reach the caller.
"""

from typing import Optional

import httpx

from ai_trader.utils.logger import log


class TelegramNotifier:
    """Sends plain-text messages through the Telegram Bot API"""

    API_URL = "https://api.telegram.org/bot{token}/sendMessage"

    def __init__(self, bot_token: Optional[str], chat_id: Optional[str], enabled: bool = True,
                 timeout: float = 10.0, http_client: Optional[httpx.Client] = None):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = bool(enabled and bot_token and chat_id)
        self.client = http_client or httpx.Client(timeout=timeout)

        if enabled and not self.enabled:
            log.warning("Telegram enabled but bot token or chat id missing; notifications disabled")

    def send_message(self, text: str) -> bool:
        """Returns True when Telegram accepted the message"""
        if not self.enabled:
            return False
        try:
            response = self.client.post(
                self.API_URL.format(token=self.bot_token),
                json={'chat_id': self.chat_id, 'text': text, 'disable_web_page_preview': True},
            )
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            log.warning(f"Telegram notification failed: {e}")
            return False

    def close(self):
        self.client.close()
