# launch_poller.py

import logging
import time
from typing import Any, Dict, Optional

from data_sources import DexScreenerSource
from filters import LaunchFilter, pair_to_launch
from launch_store import LaunchStore
from scheduler import PeriodicTask

logger = logging.getLogger("LaunchPoller")


class LaunchPoller:
    """Discovery -> filter -> store cycle, run on a fixed schedule."""

    def __init__(self, config: Dict[str, Any], source: DexScreenerSource, launch_filter: LaunchFilter,
                 store: LaunchStore, scheduler: Optional[PeriodicTask] = None):
        self.config = config
        self.source = source
        self.filter = launch_filter
        self.store = store
        self.prune_max_age_hours = config.get("PRUNE_MAX_AGE_HOURS", 48)
        self.scheduler = scheduler or PeriodicTask(
            "LaunchPoller", self.poll, config.get("POLL_INTERVAL_SECONDS", 30)
        )
        self.last_poll_stats: Dict[str, Any] = {}

    @property
    def is_polling(self) -> bool:
        return self.scheduler.is_running

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    async def poll(self) -> Dict[str, Any]:
        """One cycle. Exceptions propagate to the scheduler, which logs them."""
        started = time.time()
        logger.info(f"Fetching {self.source.chain_id} pairs from DexScreener...")

        pairs = await self.source.discover_pairs()
        logger.info(f"Fetched {len(pairs)} {self.source.chain_id} pairs")

        valid_pairs = self.filter.apply_filters(pairs)
        now_ms = int(time.time() * 1000)
        launches = [pair_to_launch(pair, now_ms) for pair in valid_pairs]
        self.store.upsert_launches(launches)

        pruned = self.store.prune_old_launches(self.prune_max_age_hours)
        if pruned > 0:
            logger.info(f"Pruned {pruned} old launches")

        rejected = {k: v for k, v in self.filter.get_filter_statistics().items() if v}
        self.filter.reset_filter_statistics()

        self.last_poll_stats = {
            "fetched": len(pairs),
            "stored": len(launches),
            "pruned": pruned,
            "rejected": rejected,
            "duration": round(time.time() - started, 2),
        }
        logger.info(f"✅ Poll complete. Stored {len(launches)} launches. Rejections: {rejected}")
        return self.last_poll_stats

    async def manual_refresh(self) -> int:
        """Poll now, outside the schedule. Returns the number of launches of the last 24h."""
        try:
            await self.poll()
        except Exception as e:
            logger.error(f"Error during manual refresh: {e!r}")
        return len(self.store.get_launches(24, "volume", 1000))
