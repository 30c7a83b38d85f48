# Filename: launch_service.py

import logging
import re
from typing import Any, Dict, List, Optional

from data_sources import DexScreenerSource
from filters import pair_to_launch, pair_volume_24h
from launch_store import LaunchStore
from models import Alert, TokenLaunch, WatchlistEntry, CONDITION_TYPES, OPERATORS

logger = logging.getLogger("LaunchService")

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
CONDITION_RE = re.compile(r"^(price|mcap|marketcap|vol|volume)(>=|<=|>|<|=)(\d+\.?\d*)$")

MAX_TIMEFRAME_HOURS = 48
MAX_LIMIT = 100

SORT_ALIASES = {
    "vol": "volume",
    "volume": "volume",
    "mcap": "mcap",
    "marketcap": "mcap",
    "age": "age",
}

CONDITION_ALIASES = {
    "price": "price",
    "mcap": "mcap",
    "marketcap": "mcap",
    "vol": "volume",
    "volume": "volume",
}

OPERATOR_ALIASES = {">": ">", ">=": ">", "<": "<", "<=": "<", "=": "="}


class ValidationError(ValueError):
    """Malformed user input, rejected before it reaches the store."""


def normalize_address(address: str) -> str:
    address = (address or "").strip()
    if not ADDRESS_RE.match(address):
        raise ValidationError(f"Invalid contract address: {address!r}")
    return address.lower()


def parse_condition(text: str) -> Dict[str, Any]:
    """
    Parse "price>0.001", "mcap < 1000000", "vol>=50000"...
    >= and <= are treated as > and <.
    """
    cleaned = re.sub(r"\s", "", text or "").lower()
    match = CONDITION_RE.match(cleaned)
    if not match:
        raise ValidationError(f"Invalid alert condition: {text!r}")

    return {
        "condition_type": CONDITION_ALIASES[match.group(1)],
        "operator": OPERATOR_ALIASES[match.group(2)],
        "threshold": float(match.group(3)),
    }


class LaunchService:
    """
    Read/write contract offered to the command layer.
    All arguments are validated here; the store only ever sees clean values.
    """

    def __init__(self, store: LaunchStore, source: Optional[DexScreenerSource] = None):
        self.store = store
        self.source = source

    # Launches

    def get_launches(self, timeframe_hours: float, sort_by: str = "volume", limit: int = 15) -> List[TokenLaunch]:
        if not 0 < timeframe_hours <= MAX_TIMEFRAME_HOURS:
            raise ValidationError(f"Timeframe must be between 0 and {MAX_TIMEFRAME_HOURS} hours")
        sort_key = SORT_ALIASES.get((sort_by or "").lower())
        if sort_key is None:
            raise ValidationError(f"Unknown sort option: {sort_by!r}")
        return self.store.get_launches(timeframe_hours, sort_key, self._check_limit(limit))

    def get_launch_by_token(self, token_address: str) -> Optional[TokenLaunch]:
        return self.store.get_launch_by_token(normalize_address(token_address))

    def get_trending_launches(self, limit: int = 10) -> List[TokenLaunch]:
        return self.store.get_trending_launches(self._check_limit(limit))

    async def lookup_token(self, token_address: str) -> Optional[TokenLaunch]:
        """Stored launch first, then a live DexScreener lookup (unfiltered)."""
        address = normalize_address(token_address)
        launch = self.store.get_launch_by_token(address)
        if launch is not None or self.source is None:
            return launch

        try:
            pairs = await self.source.get_token_pairs(address)
        except Exception as e:
            logger.error(f"Error fetching token info for {address}: {e!r}")
            return None

        pairs = [p for p in pairs if p.get("pairAddress")]
        if not pairs:
            return None
        return pair_to_launch(max(pairs, key=pair_volume_24h))

    # Watchlist

    def add_to_watchlist(self, user_id: str, token_address: str) -> bool:
        return self.store.add_to_watchlist(self._check_user(user_id), normalize_address(token_address))

    def remove_from_watchlist(self, user_id: str, token_address: str) -> bool:
        return self.store.remove_from_watchlist(self._check_user(user_id), normalize_address(token_address))

    def get_watchlist(self, user_id: str) -> List[WatchlistEntry]:
        return self.store.get_watchlist(self._check_user(user_id))

    # Alerts

    def create_alert(self, user_id: str, token_address: str, condition_type: str,
                     operator: str, threshold: float) -> int:
        if condition_type not in CONDITION_TYPES:
            raise ValidationError(f"Unknown condition type: {condition_type!r}")
        if operator not in OPERATORS:
            raise ValidationError(f"Unknown operator: {operator!r}")
        try:
            threshold = float(threshold)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid threshold: {threshold!r}")
        if threshold < 0 or threshold != threshold or threshold == float("inf"):
            raise ValidationError(f"Threshold must be a finite number >= 0, got {threshold}")

        alert_id = self.store.create_alert(
            self._check_user(user_id), normalize_address(token_address), condition_type, operator, threshold
        )
        logger.info(f"Alert {alert_id} created for {user_id}: {condition_type} {operator} {threshold}")
        return alert_id

    def create_alert_from_text(self, user_id: str, token_address: str, condition: str) -> int:
        return self.create_alert(user_id, token_address, **parse_condition(condition))

    def delete_alert(self, alert_id, user_id: str) -> bool:
        try:
            alert_id = int(alert_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid alert ID: {alert_id!r}")
        return self.store.delete_alert(alert_id, self._check_user(user_id))

    def get_user_alerts(self, user_id: str) -> List[Alert]:
        return self.store.get_user_alerts(self._check_user(user_id))

    @staticmethod
    def _check_user(user_id) -> str:
        user_id = str(user_id or "").strip()
        if not user_id:
            raise ValidationError("User ID is required")
        return user_id

    @staticmethod
    def _check_limit(limit) -> int:
        if not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
            raise ValidationError(f"Limit must be between 1 and {MAX_LIMIT}")
        return limit
