# Filename: models.py

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

CONDITION_TYPES = ("price", "volume", "mcap")
OPERATORS = (">", "<", "=")
SORT_OPTIONS = ("volume", "mcap", "age")


@dataclass
class TokenLaunch:
    """
    TokenLaunch is the normalized record of a pool believed to be a new token listing.
    Keyed by pair_address; timestamps are epoch milliseconds.
    """
    pair_address: str                # Pool address (lower-cased), primary key
    token_address: str               # Base token address (lower-cased), may have several pools
    name: str
    symbol: str
    dex_id: str
    price_usd: float
    market_cap: float                # Market cap, or FDV when the cap is unknown
    volume_24h: float
    liquidity_usd: float
    price_change_24h: float          # Percent
    pair_created_at: int             # Immutable once stored
    dex_url: str
    last_updated: int                # Refreshed on every observation

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class WatchlistEntry:
    id: int
    user_id: str
    token_address: str
    added_at: int


@dataclass
class Alert:
    id: int
    user_id: str
    token_address: str
    condition_type: str              # One of CONDITION_TYPES
    operator: str                    # One of OPERATORS
    threshold: float
    triggered: bool = False
    created_at: Optional[int] = None


class DeliveryStatus(str, Enum):
    """Outcome of a notification attempt."""
    SUCCESS = "success"
    UNREACHABLE = "unreachable"
    ERROR = "error"
