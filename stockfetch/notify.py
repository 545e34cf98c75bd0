"""Operator notifications via the Telegram Bot API."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

import requests

LOGGER = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"
TELEGRAM_MESSAGE_LIMIT = 4096

PREFIX_ERROR = "⚠️ "
PREFIX_INFO = "ℹ️ "


class MessageType(str, Enum):
    FETCH_ERROR = "fetchError"
    STOCK_UPDATE = "stockUpdate"

    @property
    def prefix(self) -> str:
        return PREFIX_ERROR if self == MessageType.FETCH_ERROR else PREFIX_INFO


class Notifier(Protocol):
    def send(self, message: str, message_type: MessageType = MessageType.FETCH_ERROR) -> None:
        ...


class TelegramNotifier:
    """Best-effort message delivery; failures are logged, never raised."""

    def __init__(
        self,
        token: Optional[str],
        chat_id: Optional[str],
        error_chat_id: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.token = token
        self.chat_id = chat_id
        self.error_chat_id = error_chat_id or chat_id
        self.timeout = timeout

    def send(self, message: str, message_type: MessageType = MessageType.FETCH_ERROR) -> None:
        text = (message_type.prefix + message)[:TELEGRAM_MESSAGE_LIMIT]
        chat_id = self.error_chat_id if message_type == MessageType.FETCH_ERROR else self.chat_id

        if not self.token or not chat_id:
            LOGGER.warning("Telegram is not configured, message not sent: %s", text)
            return

        try:
            resp = requests.post(
                TELEGRAM_API_URL.format(token=self.token),
                json={"chat_id": chat_id, "text": text, "disable_web_page_preview": True},
                timeout=self.timeout,
            )
            if resp.status_code == 200:
                LOGGER.debug("Telegram %s message sent", message_type.value)
            else:
                LOGGER.error("Telegram API returned %s: %s", resp.status_code, resp.text)
        except requests.RequestException as exc:
            LOGGER.error("Unable to send Telegram message: %s", exc)
