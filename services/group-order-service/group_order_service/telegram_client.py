from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when the messaging platform rejects or cannot take a call."""


class Transport(Protocol):
    def send_message(self, chat_id: int, text: str, reply_markup: dict | None = None) -> None: ...

    def answer_callback_query(self, callback_query_id: str) -> None: ...


class TelegramClient:
    """Minimal Telegram Bot API client."""

    def __init__(self, token: str, base_url: str = "https://api.telegram.org", timeout: float = 5.0):
        self._base_url = f"{base_url.rstrip('/')}/bot{token}"
        self._client = httpx.Client(timeout=timeout)

    def send_message(self, chat_id: int, text: str, reply_markup: dict | None = None) -> None:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        self._call("sendMessage", payload)

    def answer_callback_query(self, callback_query_id: str) -> None:
        self._call("answerCallbackQuery", {"callback_query_id": callback_query_id})

    def get_updates(self, offset: int | None = None, timeout: int = 30) -> List[dict]:
        payload: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        # The long poll holds the request open for ``timeout`` seconds.
        result = self._call("getUpdates", payload, read_timeout=timeout + 10)
        return list(result or [])

    def close(self) -> None:
        self._client.close()

    def _call(self, method: str, payload: dict, read_timeout: float | None = None) -> Any:
        url = f"{self._base_url}/{method}"
        timeout = None
        if read_timeout is not None:
            timeout = httpx.Timeout(self._client.timeout.connect, read=read_timeout)
        try:
            if timeout is not None:
                response = self._client.post(url, json=payload, timeout=timeout)
            else:
                response = self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"Telegram not reachable ({method}): {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                f"Telegram rejected {method} ({response.status_code}): {response.text}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"Telegram sent an unreadable {method} reply: {exc}") from exc
        if not isinstance(body, dict):
            raise TransportError(f"Telegram sent an unreadable {method} reply: {body!r}")
        if not body.get("ok", False):
            raise TransportError(f"Telegram rejected {method}: {body.get('description')}")
        return body.get("result")


@dataclass
class SentMessage:
    chat_id: int
    text: str
    reply_markup: Optional[dict] = None


@dataclass
class LoggingTransport:
    """Stand-in transport that logs outbound messages instead of sending them.

    With ``record`` set the messages are also kept for inspection.
    """

    record: bool = True
    sent: List[SentMessage] = field(default_factory=list)
    answered: List[str] = field(default_factory=list)

    def send_message(self, chat_id: int, text: str, reply_markup: dict | None = None) -> None:
        logger.info("Outbound message to %s: %s", chat_id, text.replace("\n", " | "))
        if self.record:
            self.sent.append(SentMessage(chat_id=chat_id, text=text, reply_markup=reply_markup))

    def answer_callback_query(self, callback_query_id: str) -> None:
        if self.record:
            self.answered.append(callback_query_id)

    def messages_to(self, chat_id: int) -> List[SentMessage]:
        return [message for message in self.sent if message.chat_id == chat_id]
