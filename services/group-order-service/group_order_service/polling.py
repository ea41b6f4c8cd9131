from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from pydantic import ValidationError

from .bot import GroupOrderBot
from .schemas import TelegramUpdate
from .telegram_client import TelegramClient, TransportError

logger = logging.getLogger(__name__)


def poll_forever(
    bot: GroupOrderBot,
    client: TelegramClient,
    max_workers: int = 8,
    stop: threading.Event | None = None,
    retry_delay: float = 5.0,
) -> None:
    """Long-poll ``getUpdates`` and hand every update to a worker thread."""
    stop = stop or threading.Event()
    offset: int | None = None
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="update") as pool:
        while not stop.is_set():
            try:
                updates = client.get_updates(offset=offset)
            except TransportError as exc:
                logger.warning("Polling failed, retrying in %.0fs: %s", retry_delay, exc)
                time.sleep(retry_delay)
                continue

            for raw in updates:
                offset = int(raw["update_id"]) + 1
                try:
                    update = TelegramUpdate.model_validate(raw)
                except ValidationError:
                    logger.warning("Skipping malformed update %s", raw.get("update_id"))
                    continue
                event = update.to_event()
                if event is not None:
                    pool.submit(bot.handle, event)
    logger.info("Polling stopped")
