from __future__ import annotations

import logging
import os

from group_order_service.app import build_bot, create_app
from group_order_service.database import init_db
from group_order_service.polling import poll_forever
from group_order_service.telegram_client import TelegramClient

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("group-order-service")


def main() -> None:
    mode = os.environ.get("BOT_MODE", "webhook").lower()
    if mode == "polling":
        token = os.environ.get("TELEGRAM_BOT_TOKEN")
        if not token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN must be set when BOT_MODE=polling")
        client = TelegramClient(token, os.environ.get("TELEGRAM_API_URL", "https://api.telegram.org"))
        init_db()
        logger.info("Starting group order bot in polling mode")
        try:
            poll_forever(
                build_bot(client),
                client,
                max_workers=int(os.environ.get("NOTIFY_MAX_WORKERS", "8")),
            )
        finally:
            client.close()
        return

    import uvicorn

    logger.info("Starting group order bot in webhook mode")
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.environ.get("PORT", "8080")))


if __name__ == "__main__":
    main()
