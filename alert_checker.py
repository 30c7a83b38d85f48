# Filename: alert_checker.py

import asyncio
import logging
from typing import Optional

from launch_store import LaunchStore
from models import Alert, DeliveryStatus, TokenLaunch
from notifier import format_alert_message
from scheduler import PeriodicTask

logger = logging.getLogger("AlertChecker")

# Relative band for the "=" operator; live prices never hit a threshold exactly
EQUALITY_TOLERANCE = 0.01


def current_value(alert: Alert, launch: TokenLaunch) -> Optional[float]:
    if alert.condition_type == "price":
        return launch.price_usd
    if alert.condition_type == "volume":
        return launch.volume_24h
    if alert.condition_type == "mcap":
        return launch.market_cap
    return None


def evaluate_alert(alert: Alert, launch: TokenLaunch) -> bool:
    value = current_value(alert, launch)
    if value is None:
        return False

    if alert.operator == ">":
        return value > alert.threshold
    if alert.operator == "<":
        return value < alert.threshold
    if alert.operator == "=":
        if alert.threshold == 0:
            return value == 0
        return abs(value - alert.threshold) <= alert.threshold * EQUALITY_TOLERANCE
    return False


class AlertChecker:
    def __init__(self, store: LaunchStore, notifier, interval: float = 60,
                 scheduler: Optional[PeriodicTask] = None):
        self.store = store
        self.notifier = notifier
        self.scheduler = scheduler or PeriodicTask("AlertChecker", self.check_alerts, interval)

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    async def check_alerts(self) -> int:
        """Evaluate every active alert once. Returns how many were triggered."""
        active_alerts = self.store.get_active_alerts()
        if not active_alerts:
            return 0

        logger.info(f"Checking {len(active_alerts)} active alerts...")
        triggered = 0

        for alert in active_alerts:
            try:
                launch = self.store.get_launch_by_token(alert.token_address)
                if launch is None:
                    # Token not observed yet
                    continue

                if evaluate_alert(alert, launch) and await self.trigger_alert(alert, launch):
                    triggered += 1
            except Exception as e:
                logger.error(f"[AlertChecker Error] alert {alert.id}: {e!r}")

        return triggered

    async def trigger_alert(self, alert: Alert, launch: TokenLaunch) -> bool:
        message = format_alert_message(alert, launch)
        # Sinks are blocking (requests); keep the loop free for the poller
        status = await asyncio.to_thread(self.notifier.notify, alert.user_id, message)

        if status == DeliveryStatus.SUCCESS:
            logger.info(f"[ALERT] {alert.id} triggered for user {alert.user_id} ({launch.symbol})")
        elif status == DeliveryStatus.UNREACHABLE:
            logger.warning(f"[ALERT] {alert.id}: user {alert.user_id} unreachable, alert closed")
        else:
            logger.error(f"[ALERT] {alert.id}: delivery failed, will retry next check")
            return False

        self.store.mark_alert_triggered(alert.id)
        return True
