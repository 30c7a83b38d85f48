# Filename: launch_store.py

import logging
import os
import sqlite3
import threading
import time
from typing import Callable, List, Optional

from models import Alert, TokenLaunch, WatchlistEntry, CONDITION_TYPES, OPERATORS

logger = logging.getLogger("LaunchStore")

SCHEMA = """
CREATE TABLE IF NOT EXISTS launches (
    pair_address TEXT PRIMARY KEY,
    token_address TEXT NOT NULL,
    name TEXT,
    symbol TEXT,
    dex_id TEXT,
    price_usd REAL,
    market_cap REAL,
    volume_24h REAL,
    liquidity_usd REAL,
    price_change_24h REAL,
    pair_created_at INTEGER,
    dex_url TEXT,
    last_updated INTEGER
);

CREATE INDEX IF NOT EXISTS idx_created_at ON launches(pair_created_at);
CREATE INDEX IF NOT EXISTS idx_volume ON launches(volume_24h);
CREATE INDEX IF NOT EXISTS idx_market_cap ON launches(market_cap);
CREATE INDEX IF NOT EXISTS idx_token_address ON launches(token_address);

CREATE TABLE IF NOT EXISTS watchlist (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    token_address TEXT NOT NULL,
    added_at INTEGER,
    UNIQUE(user_id, token_address)
);

CREATE INDEX IF NOT EXISTS idx_watchlist_user ON watchlist(user_id);

CREATE TABLE IF NOT EXISTS alerts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    token_address TEXT NOT NULL,
    condition_type TEXT NOT NULL,
    operator TEXT NOT NULL,
    threshold REAL NOT NULL,
    triggered INTEGER DEFAULT 0,
    created_at INTEGER
);

CREATE INDEX IF NOT EXISTS idx_alerts_user ON alerts(user_id);
CREATE INDEX IF NOT EXISTS idx_alerts_token ON alerts(token_address);
CREATE INDEX IF NOT EXISTS idx_alerts_triggered ON alerts(triggered);
"""

LAUNCH_COLUMNS = (
    "pair_address, token_address, name, symbol, dex_id, price_usd, market_cap, volume_24h, "
    "liquidity_usd, price_change_24h, pair_created_at, dex_url, last_updated"
)

UPSERT_LAUNCH = f"""
INSERT INTO launches ({LAUNCH_COLUMNS})
VALUES (
    :pair_address, :token_address, :name, :symbol, :dex_id, :price_usd, :market_cap, :volume_24h,
    :liquidity_usd, :price_change_24h, :pair_created_at, :dex_url, :last_updated
)
ON CONFLICT(pair_address) DO UPDATE SET
    price_usd = excluded.price_usd,
    market_cap = excluded.market_cap,
    volume_24h = excluded.volume_24h,
    liquidity_usd = excluded.liquidity_usd,
    price_change_24h = excluded.price_change_24h,
    last_updated = excluded.last_updated
"""

# NULL values sort last whatever the direction
ORDER_CLAUSES = {
    "volume": "volume_24h IS NULL, volume_24h DESC",
    "mcap": "market_cap IS NULL, market_cap DESC",
    "age": "pair_created_at IS NULL, pair_created_at DESC",
}

HOUR_MS = 60 * 60 * 1000


def _row_to_launch(row: sqlite3.Row) -> TokenLaunch:
    return TokenLaunch(**{key: row[key] for key in row.keys()})


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        id=row["id"],
        user_id=row["user_id"],
        token_address=row["token_address"],
        condition_type=row["condition_type"],
        operator=row["operator"],
        threshold=row["threshold"],
        triggered=bool(row["triggered"]),
        created_at=row["created_at"],
    )


class LaunchStore:
    """
    SQLite store for launches, watchlists and alerts.

    A single connection is shared by the pollers and the command layer; every
    statement runs under one lock so readers never observe a half-written row.
    """

    def __init__(self, db_path: str = "./data/launches.db", clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self._clock = clock
        self._lock = threading.RLock()
        self._ensure_db_dir()

        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._create_tables()
        logger.info(f"[STORE] Opened launch database at {db_path}")

    def _ensure_db_dir(self):
        if self.db_path == ":memory:":
            return
        directory = os.path.dirname(os.path.abspath(self.db_path))
        if not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

    def _create_tables(self):
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.commit()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # Launches

    def upsert_launch(self, launch: TokenLaunch):
        self.upsert_launches([launch])

    def upsert_launches(self, launches: List[TokenLaunch]):
        """Insert new pools or refresh the market fields of known ones, as one transaction."""
        if not launches:
            return
        rows = [launch.to_dict() for launch in launches]
        with self._lock, self._conn:
            self._conn.executemany(UPSERT_LAUNCH, rows)

    def get_launches(self, timeframe_hours: float, sort_by: str = "volume", limit: int = 15) -> List[TokenLaunch]:
        if sort_by not in ORDER_CLAUSES:
            raise ValueError(f"Unknown sort option: {sort_by!r}")

        cutoff = self._now_ms() - int(timeframe_hours * HOUR_MS)
        query = (
            f"SELECT {LAUNCH_COLUMNS} FROM launches "
            f"WHERE pair_created_at >= ? ORDER BY {ORDER_CLAUSES[sort_by]} LIMIT ?"
        )
        with self._lock:
            rows = self._conn.execute(query, (cutoff, limit)).fetchall()
        return [_row_to_launch(r) for r in rows]

    def get_launch_by_token(self, token_address: str) -> Optional[TokenLaunch]:
        """Highest-volume pool of a token, or None if the token was never observed."""
        query = (
            f"SELECT {LAUNCH_COLUMNS} FROM launches "
            "WHERE token_address = ? ORDER BY volume_24h DESC LIMIT 1"
        )
        with self._lock:
            row = self._conn.execute(query, (token_address.lower(),)).fetchone()
        return _row_to_launch(row) if row else None

    def get_trending_launches(self, limit: int = 10) -> List[TokenLaunch]:
        # Score = volume * |change + 1|; a -100% change zeroes it
        cutoff = self._now_ms() - 24 * HOUR_MS
        query = (
            f"SELECT {LAUNCH_COLUMNS} FROM launches "
            "WHERE pair_created_at >= ? AND volume_24h > 0 AND liquidity_usd > 0 "
            "ORDER BY (volume_24h * ABS(COALESCE(price_change_24h, 0) + 1)) DESC LIMIT ?"
        )
        with self._lock:
            rows = self._conn.execute(query, (cutoff, limit)).fetchall()
        return [_row_to_launch(r) for r in rows]

    def prune_old_launches(self, max_age_hours: float = 48) -> int:
        cutoff = self._now_ms() - int(max_age_hours * HOUR_MS)
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM launches WHERE pair_created_at < ?", (cutoff,))
        return cursor.rowcount

    def count_launches(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM launches").fetchone()[0]

    # Watchlist

    def add_to_watchlist(self, user_id: str, token_address: str) -> bool:
        """Returns False when the token is already on the user's watchlist."""
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO watchlist (user_id, token_address, added_at) VALUES (?, ?, ?)",
                    (user_id, token_address.lower(), self._now_ms()),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def remove_from_watchlist(self, user_id: str, token_address: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM watchlist WHERE user_id = ? AND token_address = ?",
                (user_id, token_address.lower()),
            )
        return cursor.rowcount > 0

    def get_watchlist(self, user_id: str) -> List[WatchlistEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, user_id, token_address, added_at FROM watchlist "
                "WHERE user_id = ? ORDER BY added_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [WatchlistEntry(**dict(r)) for r in rows]

    # Alerts

    def create_alert(self, user_id: str, token_address: str, condition_type: str,
                     operator: str, threshold: float) -> int:
        if condition_type not in CONDITION_TYPES or operator not in OPERATORS:
            raise ValueError(f"Invalid alert condition: {condition_type} {operator}")

        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO alerts (user_id, token_address, condition_type, operator, threshold, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, token_address.lower(), condition_type, operator, float(threshold), self._now_ms()),
            )
        return cursor.lastrowid

    def delete_alert(self, alert_id: int, user_id: str) -> bool:
        """Only the owner can delete an alert."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM alerts WHERE id = ? AND user_id = ?", (alert_id, user_id)
            )
        return cursor.rowcount > 0

    def get_alert(self, alert_id: int) -> Optional[Alert]:
        with self._lock:
            row = self._conn.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,)).fetchone()
        return _row_to_alert(row) if row else None

    def get_user_alerts(self, user_id: str) -> List[Alert]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM alerts WHERE user_id = ? ORDER BY created_at DESC, id DESC", (user_id,)
            ).fetchall()
        return [_row_to_alert(r) for r in rows]

    def get_active_alerts(self) -> List[Alert]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM alerts WHERE triggered = 0 ORDER BY id").fetchall()
        return [_row_to_alert(r) for r in rows]

    def mark_alert_triggered(self, alert_id: int) -> bool:
        # triggered only ever goes 0 -> 1
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE alerts SET triggered = 1 WHERE id = ? AND triggered = 0", (alert_id,)
            )
        return cursor.rowcount > 0

    def close(self):
        with self._lock:
            self._conn.close()
        logger.info("[STORE] Launch database closed.")
