import time

import pytest

from launch_store import LaunchStore
from models import TokenLaunch

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


class FakeClock:
    """Monotonic clock whose sleep() only advances time."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


def now_ms() -> int:
    return int(time.time() * 1000)


def make_pair(pair_address="0xpool1", token_address="0x" + "a" * 40, name="Moon Frog", symbol="MFROG",
              age_ms=2 * HOUR_MS, liquidity=25_000, volume=80_000, market_cap=1_500_000, fdv=None,
              price="0.00042", change=35.5, chain_id="base", created_at=None):
    pair = {
        "chainId": chain_id,
        "dexId": "uniswap",
        "url": f"https://dexscreener.com/base/{pair_address}",
        "pairAddress": pair_address,
        "baseToken": {"address": token_address, "name": name, "symbol": symbol},
        "quoteToken": {"address": "0x4200000000000000000000000000000000000006", "name": "Wrapped Ether", "symbol": "WETH"},
        "priceUsd": price,
        "volume": {"h24": volume},
        "priceChange": {"h24": change},
        "liquidity": {"usd": liquidity},
        "marketCap": market_cap,
        "fdv": fdv,
        "pairCreatedAt": created_at if created_at is not None else now_ms() - age_ms,
    }
    return pair


def make_launch(pair_address="0xpool1", token_address="0x" + "a" * 40, age_ms=2 * HOUR_MS,
                volume=10_000.0, market_cap=100_000.0, liquidity=5_000.0, change=10.0, price=0.001,
                name="Moon Frog", symbol="MFROG", last_updated=None):
    created = now_ms() - age_ms
    return TokenLaunch(
        pair_address=pair_address,
        token_address=token_address,
        name=name,
        symbol=symbol,
        dex_id="uniswap",
        price_usd=price,
        market_cap=market_cap,
        volume_24h=volume,
        liquidity_usd=liquidity,
        price_change_24h=change,
        pair_created_at=created,
        dex_url=f"https://dexscreener.com/base/{pair_address}",
        last_updated=last_updated if last_updated is not None else now_ms(),
    )


@pytest.fixture
def store(tmp_path):
    s = LaunchStore(str(tmp_path / "data" / "launches.db"))
    yield s
    s.close()


@pytest.fixture
def fake_clock():
    return FakeClock()
