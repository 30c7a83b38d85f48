import logging
import time

from models import Alert, DeliveryStatus, TokenLaunch

logger = logging.getLogger("Notifier")

CONDITION_LABELS = {"price": "Price", "volume": "24h Volume", "mcap": "Market Cap"}


def escape_md(text: str) -> str:
    """Escape Markdown-sensitive characters."""
    return text.replace('_', '\\_').replace('*', '\\*').replace('[', '\\[').replace('`', '\\`')


def format_usd(amount) -> str:
    """USD amount with K/M/B suffix."""
    if amount is None or amount != amount:
        return "$0"

    abs_amount = abs(amount)
    if abs_amount >= 1_000_000_000:
        return f"${amount / 1_000_000_000:.2f}B"
    if abs_amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    if abs_amount >= 1_000:
        return f"${amount / 1_000:.2f}K"
    if abs_amount >= 1:
        return f"${amount:.2f}"
    return f"${amount:.6f}"


def format_price(price) -> str:
    if price is None or price != price:
        return "$0"
    if price >= 1:
        return f"${price:.2f}"
    if price >= 0.0001:
        return f"${price:.6f}"
    return f"${price:.10f}"


def format_percent(value) -> str:
    if value is None or value != value:
        return "0%"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.2f}%"


def format_age(timestamp_ms: int, now_ms: int = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    diff_ms = now_ms - timestamp_ms
    if diff_ms < 0:
        return "just now"

    minutes = diff_ms // 60_000
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h" if hours % 24 else f"{days}d"
    if hours > 0:
        return f"{hours}h {minutes % 60}m" if minutes % 60 else f"{hours}h"
    return f"{minutes}m"


def truncate_address(address: str, start_chars: int = 6, end_chars: int = 4) -> str:
    if not address or len(address) <= start_chars + end_chars:
        return address
    return f"{address[:start_chars]}...{address[-end_chars:]}"


def format_threshold(condition_type: str, value: float) -> str:
    return format_price(value) if condition_type == "price" else format_usd(value)


def format_condition(alert: Alert) -> str:
    label = CONDITION_LABELS.get(alert.condition_type, alert.condition_type)
    return f"{label} {alert.operator} {format_threshold(alert.condition_type, alert.threshold)}"


def format_alert_message(alert: Alert, launch: TokenLaunch) -> str:
    """Markdown body of the message sent when an alert triggers."""
    current = {
        "price": launch.price_usd,
        "volume": launch.volume_24h,
        "mcap": launch.market_cap,
    }.get(alert.condition_type)

    text = "🔔 *Alert Triggered!*\n\n"
    text += f"*Token:* {escape_md(launch.name)} (`{escape_md(launch.symbol)}`)\n"
    text += f"*Condition:* {format_condition(alert)}\n"
    text += f"*Current Value:* {format_threshold(alert.condition_type, current)}\n\n"
    text += f"*Price:* {format_price(launch.price_usd)}\n"
    text += f"*Market Cap:* {format_usd(launch.market_cap)}\n"
    text += f"*24h Volume:* {format_usd(launch.volume_24h)}\n\n"
    text += f"*Contract:* `{truncate_address(launch.token_address)}`\n"
    if launch.dex_url:
        text += f"[📈 DexScreener Chart]({launch.dex_url})"
    return text


class LogNotifier:
    """Fallback sink when Telegram is disabled: the message only goes to the log."""

    def notify(self, user_id: str, message: str) -> DeliveryStatus:
        logger.info(f"[NOTIFY → {user_id}]\n{message}")
        return DeliveryStatus.SUCCESS
