from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

from .telegram_client import Transport, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Action:
    """One selectable option: the label shown and the payload sent back."""

    label: str
    token: str


ActionRows = Sequence[Sequence[Action]]
KeyboardRows = Sequence[Sequence[str]]


def render_markup(actions: ActionRows | None = None, keyboard: KeyboardRows | None = None) -> dict | None:
    if actions:
        return {
            "inline_keyboard": [
                [{"text": action.label, "callback_data": action.token} for action in row]
                for row in actions
            ]
        }
    if keyboard:
        return {"keyboard": [list(row) for row in keyboard], "resize_keyboard": True}
    return None


class Notifier:
    """Sends messages to participants; delivery failures are logged, never raised."""

    def __init__(self, transport: Transport, max_workers: int = 8):
        self._transport = transport
        self._max_workers = max_workers

    def send(
        self,
        recipient_id: int,
        text: str,
        actions: ActionRows | None = None,
        keyboard: KeyboardRows | None = None,
    ) -> bool:
        try:
            self._transport.send_message(recipient_id, text, render_markup(actions, keyboard))
        except TransportError as exc:
            logger.warning("Could not deliver message to %s: %s", recipient_id, exc)
            return False
        return True

    def broadcast(
        self,
        recipient_ids: Iterable[int],
        text: str,
        actions: ActionRows | None = None,
    ) -> Dict[int, bool]:
        """Send the same message to every recipient independently.

        Each delivery runs on its own worker so a slow or failing recipient
        does not hold up the others.
        """
        recipients = list(dict.fromkeys(recipient_ids))
        if not recipients:
            return {}

        results: Dict[int, bool] = {}
        workers = max(1, min(self._max_workers, len(recipients)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") as pool:
            futures = {pool.submit(self.send, recipient, text, actions): recipient for recipient in recipients}
            for future, recipient in futures.items():
                try:
                    results[recipient] = future.result()
                except Exception:
                    logger.exception("Unexpected failure notifying %s", recipient)
                    results[recipient] = False

        delivered = sum(1 for ok in results.values() if ok)
        logger.info("Broadcast delivered to %d of %d recipients", delivered, len(recipients))
        return results

    def acknowledge(self, callback_query_id: Optional[str]) -> None:
        if not callback_query_id:
            return
        try:
            self._transport.answer_callback_query(callback_query_id)
        except TransportError as exc:
            logger.warning("Could not answer callback %s: %s", callback_query_id, exc)
