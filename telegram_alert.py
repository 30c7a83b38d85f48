# Filename: telegram_alert.py

import os
import requests
import logging

from models import DeliveryStatus

logger = logging.getLogger("TelegramNotifier")

# Descriptions Telegram returns with HTTP 400 when the chat cannot be reached
UNREACHABLE_DESCRIPTIONS = ("chat not found", "user not found", "peer_id_invalid")


class TelegramNotifier:
    """
    Sends alert messages to users through a Telegram bot.
    The user id of an alert is the Telegram chat id of its owner.
    """

    def __init__(self, bot_token: str = None, timeout: float = 10):
        self.bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.timeout = timeout

        if not self.bot_token:
            logger.error("[Telegram] Missing bot token!")

    def _post(self, chat_id: str, text: str, parse_mode: str = None) -> requests.Response:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": False,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return requests.post(url, data=payload, timeout=self.timeout)

    @staticmethod
    def _description(response: requests.Response) -> str:
        try:
            return str(response.json().get("description", "")).lower()
        except ValueError:
            return response.text.lower()

    def notify(self, user_id: str, message: str) -> DeliveryStatus:
        """
        Send a Markdown message to a user.

        403 (bot blocked, user deactivated) and "chat not found" mean the user is unreachable.
        A Markdown parse error is retried once as plain text.
        """
        if not self.bot_token:
            return DeliveryStatus.ERROR

        try:
            response = self._post(user_id, message, parse_mode="Markdown")

            if response.status_code == 400 and "can't parse entities" in self._description(response):
                logger.warning(f"[Telegram] Markdown rejected for {user_id}, resending as plain text")
                response = self._post(user_id, message)

            if response.status_code == 200:
                logger.info(f"[Telegram] ✅ Message sent to {user_id}.")
                return DeliveryStatus.SUCCESS

            description = self._description(response)
            if response.status_code == 403 or (
                response.status_code == 400 and any(d in description for d in UNREACHABLE_DESCRIPTIONS)
            ):
                logger.warning(f"[Telegram] Cannot reach {user_id}: {response.status_code} - {description}")
                return DeliveryStatus.UNREACHABLE

            logger.error(f"[Telegram] Failed: {response.status_code} - {response.text}")
            return DeliveryStatus.ERROR
        except requests.RequestException as e:
            logger.error(f"[Telegram] Request exception: {e}")
            return DeliveryStatus.ERROR
