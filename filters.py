# Filename: filters.py

import re
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from models import TokenLaunch

# Tokens we don't want: wrapped tokens, stablecoins, major tokens
BLOCKED_SYMBOLS = frozenset([
    # Wrapped tokens
    "WETH", "WBTC", "WSOL", "WMATIC", "WAVAX", "WBNB", "WFTM",
    # Coinbase wrapped tokens
    "CBETH", "CBBTC", "CBTC", "CBLTC", "CBXRP", "CBSOL", "CBDOGE",
    # Other wrapped/bridged
    "RETH", "STETH", "WSTETH", "TBTC", "RENBTC", "HBTC",
    # Stablecoins
    "USDC", "USDT", "DAI", "BUSD", "TUSD", "USDP", "GUSD", "FRAX", "LUSD", "SUSD", "USDD", "USDBC", "EURC", "PYUSD",
    # Majors that aren't new launches
    "ETH", "BTC", "SOL", "MATIC", "AVAX", "BNB", "FTM", "OP", "ARB", "LTC", "XRP", "DOGE", "ADA", "DOT",
    "LINK", "UNI", "AAVE", "CRV", "MKR", "SNX", "COMP", "SUSHI", "YFI", "BAL",
    "PEPE", "SHIB", "FLOKI", "BONK", "WIF", "BRETT", "TOSHI", "DEGEN",
])

BLOCKED_NAME_PATTERNS = [
    re.compile(r"^wrapped\s", re.IGNORECASE),
    re.compile(r"^bridged\s", re.IGNORECASE),
    re.compile(r"\bwrapped\b", re.IGNORECASE),
    re.compile(r"\bbridged?\b", re.IGNORECASE),
    re.compile(r"^coinbase\s+wrapped", re.IGNORECASE),
    re.compile(r"^USD\s?Coin", re.IGNORECASE),
    re.compile(r"^Tether", re.IGNORECASE),
    re.compile(r"^cb[A-Z]"),  # cbBTC, cbETH...
]

# Rejection reasons, in the order the rules are applied
FILTER_RULES = (
    "missing_info",
    "blocked_symbol",
    "blocked_name",
    "missing_created_at",
    "too_young",
    "too_old",
    "liquidity",
    "volume",
    "market_cap",
)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def pair_liquidity(pair: Dict[str, Any]) -> float:
    return _to_float((pair.get("liquidity") or {}).get("usd"))


def pair_volume_24h(pair: Dict[str, Any]) -> float:
    return _to_float((pair.get("volume") or {}).get("h24"))


def pair_market_cap(pair: Dict[str, Any]) -> float:
    return _to_float(pair.get("marketCap") or pair.get("fdv"))


def pair_to_launch(pair: Dict[str, Any], now_ms: Optional[int] = None) -> TokenLaunch:
    """Normalize a raw DexScreener pair into a TokenLaunch."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    base_token = pair.get("baseToken") or {}

    return TokenLaunch(
        pair_address=(pair.get("pairAddress") or "").lower(),
        token_address=(base_token.get("address") or "").lower(),
        name=base_token.get("name") or "",
        symbol=base_token.get("symbol") or "",
        dex_id=pair.get("dexId") or "",
        price_usd=_to_float(pair.get("priceUsd")),
        market_cap=pair_market_cap(pair),
        volume_24h=pair_volume_24h(pair),
        liquidity_usd=pair_liquidity(pair),
        price_change_24h=_to_float((pair.get("priceChange") or {}).get("h24")),
        pair_created_at=int(pair.get("pairCreatedAt") or now_ms),
        dex_url=pair.get("url") or "",
        last_updated=now_ms,
    )


class LaunchFilter:
    def __init__(self, config: Dict[str, Any]):
        self.min_pair_age_ms = config.get("MIN_PAIR_AGE_MINUTES", 5) * 60 * 1000
        self.max_pair_age_ms = config.get("MAX_PAIR_AGE_HOURS", 168) * 60 * 60 * 1000
        self.min_liquidity_usd = config.get("MIN_LIQUIDITY_USD", 1000)
        self.min_volume_usd = config.get("MIN_VOLUME_USD", 500)
        self.max_market_cap_usd = config.get("MAX_MARKET_CAP_USD", 50_000_000)
        self.filter_stats = {rule: 0 for rule in FILTER_RULES}

    def rejection_reason(self, pair: Dict[str, Any], now_ms: int) -> Optional[str]:
        """Return the first rule the pair fails, or None when it is a genuine new launch."""
        base_token = pair.get("baseToken") or {}
        name = base_token.get("name")
        symbol = base_token.get("symbol")

        if not name or not symbol:
            return "missing_info"

        if symbol.upper() in BLOCKED_SYMBOLS:
            return "blocked_symbol"

        if any(pattern.search(name) for pattern in BLOCKED_NAME_PATTERNS):
            return "blocked_name"

        created_at = pair.get("pairCreatedAt")
        if not created_at:
            return "missing_created_at"

        age_ms = now_ms - created_at
        # Pools that rug right after creation never reach the minimum age
        if age_ms < self.min_pair_age_ms:
            return "too_young"
        if age_ms > self.max_pair_age_ms:
            return "too_old"

        if pair_liquidity(pair) < self.min_liquidity_usd:
            return "liquidity"

        if pair_volume_24h(pair) < self.min_volume_usd:
            return "volume"

        # Too high means an established token
        if pair_market_cap(pair) > self.max_market_cap_usd:
            return "market_cap"

        return None

    def apply_filters(self, pairs: List[Dict[str, Any]], now_ms: Optional[int] = None) -> List[Dict[str, Any]]:
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        passed = []

        for pair in pairs:
            reason = self.rejection_reason(pair, now_ms)
            if reason is None:
                passed.append(pair)
                continue

            self.filter_stats[reason] += 1
            symbol = (pair.get("baseToken") or {}).get("symbol", "?")
            logger.debug(f"[FILTER ❌] {symbol} ({pair.get('pairAddress')}): {reason}")

        logger.info(f"[FILTER] {len(passed)}/{len(pairs)} pairs pass filters")
        return passed

    def get_filter_statistics(self):
        return dict(self.filter_stats)

    def reset_filter_statistics(self):
        for key in self.filter_stats:
            self.filter_stats[key] = 0
