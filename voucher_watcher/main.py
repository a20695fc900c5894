from __future__ import annotations

import logging
import signal
import sys

from . import config
from .bot import BotCommands, TelegramTransport, create_bot
from .campaign import CampaignClient
from .db import StateStore, SubscriberRegistry
from .monitor import AvailabilityMonitor
from .notifier import Notifier
from .scheduler import Scheduler


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main() -> None:
    """Validate config, wire the components and run until signalled."""
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config.validate()
    except config.ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)

    registry = SubscriberRegistry.at(config.CHATS_FILE)
    state_store = StateStore.at(config.STATE_FILE)

    bot = create_bot(config.BOT_TOKEN)
    notifier = Notifier(TelegramTransport(bot), registry)
    client = CampaignClient(ga_cid=config.GA_CID, domain=config.DOMAIN)
    monitor = AvailabilityMonitor(client, state_store, notifier, target_url=config.TARGET_URL)
    scheduler = Scheduler(monitor.check_once, config.INTERVAL_MS / 1000.0)
    BotCommands(bot, registry, notifier, monitor, scheduler).register()

    def _shutdown(signum, _frame) -> None:
        logger.info("Received %s, stopping…", signal.Signals(signum).name)
        bot.stop_polling()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    logger.info("Bot running…")
    logger.info("Interval: %d ms", config.INTERVAL_MS)
    logger.info("Campaign %s via %s", config.CAMPAIGN_PUBLIC_CODE, config.API_URL)
    logger.info("Using Bearer? false")

    scheduler.start()
    try:
        bot.infinity_polling(skip_pending=True)
    finally:
        scheduler.stop(timeout=config.HTTP_TIMEOUT_SECONDS)
        logger.info("Stopped.")


if __name__ == "__main__":
    main()
