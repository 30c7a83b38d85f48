import asyncio

from filters import LaunchFilter
from launch_poller import LaunchPoller
from conftest import HOUR_MS, make_launch, make_pair

CONFIG = {
    "MIN_LIQUIDITY_USD": 1000,
    "MIN_VOLUME_USD": 500,
    "MIN_PAIR_AGE_MINUTES": 5,
    "MAX_PAIR_AGE_HOURS": 168,
    "MAX_MARKET_CAP_USD": 50_000_000,
    "PRUNE_MAX_AGE_HOURS": 48,
    "POLL_INTERVAL_SECONDS": 30,
}


class FakeSource:
    chain_id = "base"

    def __init__(self, batches):
        self.batches = list(batches)
        self.calls = 0

    async def discover_pairs(self):
        self.calls += 1
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch


def make_poller(store, batches):
    source = FakeSource(batches)
    return LaunchPoller(CONFIG, source, LaunchFilter(CONFIG), store), source


def test_poll_stores_only_filtered_launches(store):
    token = "0x" + "a" * 40
    poller, _ = make_poller(store, [[
        make_pair(pair_address="0xGOOD", token_address=token),
        make_pair(pair_address="0xstable", symbol="USDC"),
        make_pair(pair_address="0xilliquid", liquidity=5),
    ]])

    stats = asyncio.run(poller.poll())

    assert stats["fetched"] == 3
    assert stats["stored"] == 1
    assert stats["rejected"] == {"blocked_symbol": 1, "liquidity": 1}
    assert store.count_launches() == 1
    assert store.get_launch_by_token(token).pair_address == "0xgood"


def test_repeated_polls_merge_market_data(store):
    token = "0x" + "a" * 40
    first = make_pair(pair_address="0xpool", token_address=token, volume=1_000)
    second = dict(first, volume={"h24": 42_000}, baseToken={"address": token, "name": "Renamed", "symbol": "RNM"})
    poller, _ = make_poller(store, [[first], [second]])

    asyncio.run(poller.poll())
    asyncio.run(poller.poll())

    launch = store.get_launch_by_token(token)
    assert store.count_launches() == 1
    assert launch.volume_24h == 42_000
    assert launch.name == "Moon Frog"
    assert launch.pair_created_at == first["pairCreatedAt"]


def test_poll_prunes_old_launches(store):
    store.upsert_launch(make_launch(pair_address="0xancient", age_ms=72 * HOUR_MS))
    poller, _ = make_poller(store, [[]])

    stats = asyncio.run(poller.poll())

    assert stats["pruned"] == 1
    assert store.count_launches() == 0


def test_failed_tick_does_not_stop_schedule(store):
    poller, source = make_poller(store, [RuntimeError("dexscreener down"), [make_pair()]])

    assert asyncio.run(poller.scheduler.tick()) is False
    assert asyncio.run(poller.scheduler.tick()) is True
    assert source.calls == 2
    assert store.count_launches() == 1


def test_start_stop_lifecycle(store):
    poller, source = make_poller(store, [[make_pair()]])

    async def main():
        assert poller.start() is True
        assert poller.is_polling
        assert poller.start() is False
        await asyncio.sleep(0)
        poller.stop()
        await poller.scheduler.wait_stopped()

    asyncio.run(main())
    assert source.calls == 1
    assert poller.is_polling is False
    assert store.count_launches() == 1


def test_manual_refresh_swallows_errors(store):
    store.upsert_launch(make_launch(pair_address="0xknown"))
    poller, _ = make_poller(store, [RuntimeError("boom")])

    assert asyncio.run(poller.manual_refresh()) == 1
