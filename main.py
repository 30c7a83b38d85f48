# Filename: main.py

import asyncio
import logging
import sys

from config import ConfigError, load_config, validate_config
from data_sources import DexScreenerSource
from filters import LaunchFilter
from launch_poller import LaunchPoller
from launch_store import LaunchStore
from alert_checker import AlertChecker
from notifier import LogNotifier
from telegram_alert import TelegramNotifier

logger = logging.getLogger("Main")


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


async def run(config: dict):
    store = LaunchStore(config["DATABASE_PATH"])
    source = DexScreenerSource(config)

    if config.get("ENABLE_TELEGRAM"):
        notifier = TelegramNotifier(config["TELEGRAM_BOT_TOKEN"])
    else:
        logger.info("📝 Telegram disabled, alerts will only be logged")
        notifier = LogNotifier()

    poller = LaunchPoller(config, source, LaunchFilter(config), store)
    alert_checker = AlertChecker(store, notifier, interval=config["ALERT_CHECK_INTERVAL_SECONDS"])

    try:
        poller.start()
        alert_checker.start()
        logger.info("✅ Tracker is now running!")
        await asyncio.Event().wait()
    finally:
        poller.stop()
        alert_checker.stop()
        await poller.scheduler.wait_stopped()
        await alert_checker.scheduler.wait_stopped()
        await source.close()
        store.close()


def main():
    config = load_config()
    setup_logging(config.get("LOG_LEVEL", "INFO"))

    try:
        validate_config(config)
    except ConfigError as e:
        logger.error(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    logger.info(f"🚀 Starting {config['CHAIN_ID']} launch tracker...")
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("❌ Tracker stopped by user.")


if __name__ == "__main__":
    main()
