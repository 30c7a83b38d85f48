from models import Alert, DeliveryStatus
from notifier import (
    LogNotifier,
    escape_md,
    format_age,
    format_alert_message,
    format_percent,
    format_price,
    format_usd,
    truncate_address,
)
from conftest import HOUR_MS, MINUTE_MS, make_launch


def test_format_usd():
    assert format_usd(2_500_000_000) == "$2.50B"
    assert format_usd(1_234_567) == "$1.23M"
    assert format_usd(45_600) == "$45.60K"
    assert format_usd(12.5) == "$12.50"
    assert format_usd(0.5) == "$0.500000"
    assert format_usd(None) == "$0"


def test_format_price_and_percent():
    assert format_price(3.14159) == "$3.14"
    assert format_price(0.00123) == "$0.001230"
    assert format_price(0.00000042) == "$0.0000004200"
    assert format_percent(12.345) == "+12.35%"
    assert format_percent(-3) == "-3.00%"


def test_format_age():
    now = 1_700_000_000_000
    assert format_age(now - 5 * MINUTE_MS, now) == "5m"
    assert format_age(now - 2 * HOUR_MS, now) == "2h"
    assert format_age(now - 2 * HOUR_MS - 15 * MINUTE_MS, now) == "2h 15m"
    assert format_age(now - 50 * HOUR_MS, now) == "2d 2h"
    assert format_age(now + 1000, now) == "just now"


def test_truncate_and_escape():
    assert truncate_address("0x" + "a" * 40) == "0xaaaa...aaaa"
    assert truncate_address("0x1234") == "0x1234"
    assert escape_md("my_token*[x]") == "my\\_token\\*\\[x]"


def test_alert_message():
    launch = make_launch(name="Frog_Coin", symbol="FROG", price=0.0025, market_cap=1_200_000)
    alert = Alert(id=7, user_id="u1", token_address=launch.token_address, condition_type="price",
                  operator=">", threshold=0.002)

    message = format_alert_message(alert, launch)

    assert "Alert Triggered" in message
    assert "Frog\\_Coin" in message
    assert "Price > $0.002000" in message
    assert "*Current Value:* $0.002500" in message
    assert "$1.20M" in message
    assert launch.dex_url in message


def test_log_notifier_always_delivers():
    assert LogNotifier().notify("u1", "hello") is DeliveryStatus.SUCCESS
