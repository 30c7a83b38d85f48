"""
Module de sources de données pour Base Launch Tracker
Récupère les nouvelles paires depuis l'API DexScreener via plusieurs stratégies de découverte
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from http_client import RateLimitedClient

logger = logging.getLogger("data_sources")

# Limite imposée par DexScreener pour /tokens/v1
MAX_TOKENS_PER_BATCH = 30

# Termes de recherche courants pour trouver de nouveaux memecoins
SEARCH_TERMS = [
    "ai", "agent", "gpt", "trump", "elon", "musk",
    "dog", "cat", "frog", "pepe", "wojak",
    "moon", "rocket", "lambo", "rich", "based",
    "meme", "degen", "ape", "chad", "gigachad",
    "coin", "token", "inu", "shib", "floki",
]


class DexScreenerSource:
    """
    Source de données DexScreener
    Fournit les opérations de l'API et l'agrégation des stratégies de découverte
    """

    def __init__(self, config: Dict[str, Any], client: Optional[RateLimitedClient] = None,
                 search_terms: Optional[List[str]] = None):
        self.config = config
        self.chain_id = config.get("CHAIN_ID", "base")
        self.search_terms = list(search_terms if search_terms is not None else SEARCH_TERMS)

        self.client = client or RateLimitedClient(
            base_url=config.get("DEXSCREENER_BASE_URL", "https://api.dexscreener.com"),
            api_key=config.get("DEXSCREENER_API_KEY", ""),
            min_interval_ms=config.get("MIN_REQUEST_INTERVAL_MS", 500),
            max_retries=config.get("MAX_RETRIES", 3),
            timeout=config.get("REQUEST_TIMEOUT_SECONDS", 30),
        )

        # Nombre de paires apportées par chaque stratégie lors du dernier scan
        self.last_scan_stats: Dict[str, int] = {}

        logger.info(f"Initialized DexScreenerSource for chain '{self.chain_id}' "
                    f"with {len(self.search_terms)} search terms")

    # ------------------------------------------------------------------
    # Opérations de l'API
    # ------------------------------------------------------------------

    async def search_pairs(self, query: str) -> List[Dict[str, Any]]:
        """
        Recherche des paires par mot-clé

        Args:
            query: Terme de recherche

        Returns:
            Liste des paires (toutes chaînes confondues)
        """
        data = await self.client.get_json("/latest/dex/search", params={"q": query})
        return (data or {}).get("pairs") or []

    async def get_pair(self, pair_address: str) -> Optional[Dict[str, Any]]:
        """
        Récupère une paire par son adresse

        Returns:
            La paire, ou None si elle n'existe pas
        """
        data = await self.client.get_json(
            f"/latest/dex/pairs/{self.chain_id}/{pair_address}",
            allow_not_found=True,
        )
        if not data:
            return None
        pairs = data.get("pairs") or []
        if not pairs and data.get("pair"):
            return data["pair"]
        return pairs[0] if pairs else None

    async def get_token_pairs(self, token_address: str) -> List[Dict[str, Any]]:
        """Récupère toutes les paires d'un token"""
        data = await self.client.get_json(
            f"/token-pairs/v1/{self.chain_id}/{token_address}",
            allow_not_found=True,
        )
        # L'endpoint renvoie une liste, l'ancienne forme un objet {"pairs": [...]}
        if isinstance(data, list):
            return data
        return (data or {}).get("pairs") or []

    async def get_tokens_batch(self, token_addresses: List[str]) -> List[Dict[str, Any]]:
        """
        Récupère les paires de plusieurs tokens en un seul appel

        Args:
            token_addresses: Au plus MAX_TOKENS_PER_BATCH adresses
        """
        if not token_addresses:
            return []
        if len(token_addresses) > MAX_TOKENS_PER_BATCH:
            raise ValueError(f"At most {MAX_TOKENS_PER_BATCH} addresses per batch, got {len(token_addresses)}")

        address_list = ",".join(token_addresses)
        data = await self.client.get_json(f"/tokens/v1/{self.chain_id}/{address_list}")
        return data if isinstance(data, list) else []

    async def get_latest_profiles(self) -> List[Dict[str, Any]]:
        """Derniers profils de tokens publiés"""
        data = await self.client.get_json("/token-profiles/latest/v1")
        return data if isinstance(data, list) else []

    async def get_latest_boosts(self) -> List[Dict[str, Any]]:
        """Derniers tokens boostés"""
        data = await self.client.get_json("/token-boosts/latest/v1")
        return data if isinstance(data, list) else []

    async def get_top_boosts(self) -> List[Dict[str, Any]]:
        """Tokens les plus boostés"""
        data = await self.client.get_json("/token-boosts/top/v1")
        return data if isinstance(data, list) else []

    async def get_pairs_for_tokens(self, token_addresses: List[str]) -> List[Dict[str, Any]]:
        """
        Résout une liste d'adresses en paires, par lots séquentiels de 30

        Un lot en échec est ignoré sans interrompre les suivants

        Returns:
            Concaténation des paires de tous les lots
        """
        unique_addresses = list(dict.fromkeys(a for a in token_addresses if a))
        all_pairs: List[Dict[str, Any]] = []

        for i in range(0, len(unique_addresses), MAX_TOKENS_PER_BATCH):
            batch = unique_addresses[i:i + MAX_TOKENS_PER_BATCH]
            try:
                all_pairs.extend(await self.get_tokens_batch(batch))
            except Exception as e:
                logger.error(f"Error fetching token batch {i // MAX_TOKENS_PER_BATCH + 1}: {e!r}")

        return all_pairs

    # ------------------------------------------------------------------
    # Stratégies de découverte
    # ------------------------------------------------------------------

    def _chain_addresses(self, listings: List[Dict[str, Any]]) -> List[str]:
        return [
            item.get("tokenAddress") for item in listings
            if item.get("chainId") == self.chain_id and item.get("tokenAddress")
        ]

    async def _pairs_from_profiles(self) -> List[Dict[str, Any]]:
        addresses = self._chain_addresses(await self.get_latest_profiles())
        logger.info(f"Found {len(addresses)} {self.chain_id} tokens from profiles")
        return await self.get_pairs_for_tokens(addresses)

    async def _pairs_from_latest_boosts(self) -> List[Dict[str, Any]]:
        addresses = self._chain_addresses(await self.get_latest_boosts())
        logger.info(f"Found {len(addresses)} {self.chain_id} tokens from latest boosts")
        return await self.get_pairs_for_tokens(addresses)

    async def _pairs_from_top_boosts(self) -> List[Dict[str, Any]]:
        addresses = self._chain_addresses(await self.get_top_boosts())
        logger.info(f"Found {len(addresses)} {self.chain_id} tokens from top boosts")
        return await self.get_pairs_for_tokens(addresses)

    async def _pairs_from_search(self) -> List[Dict[str, Any]]:
        logger.info(f"Searching {len(self.search_terms)} terms for new {self.chain_id} pairs...")
        pairs: List[Dict[str, Any]] = []
        for term in self.search_terms:
            try:
                pairs.extend(await self.search_pairs(term))
            except Exception as e:
                # Un terme en échec n'empêche pas les autres
                logger.debug(f"Search '{term}' failed: {e!r}")
        return pairs

    def _strategies(self) -> List[Tuple[str, Callable[[], Awaitable[List[Dict[str, Any]]]]]]:
        return [
            ("profiles", self._pairs_from_profiles),
            ("latest_boosts", self._pairs_from_latest_boosts),
            ("top_boosts", self._pairs_from_top_boosts),
            ("search", self._pairs_from_search),
        ]

    async def discover_pairs(self) -> List[Dict[str, Any]]:
        """
        Exécute toutes les stratégies de découverte et fusionne leurs résultats

        Chaque stratégie est isolée : une erreur est journalisée et ne bloque pas les autres.
        Le dédoublonnage se fait sur l'adresse de la paire en minuscules (première occurrence gardée).

        Returns:
            Paires uniques de la chaîne suivie
        """
        strategies = self._strategies()

        # Exécuter toutes les stratégies ; le client sérialise de toute façon les appels réseau
        results = await asyncio.gather(*(fn() for _, fn in strategies), return_exceptions=True)

        all_pairs: List[Dict[str, Any]] = []
        seen_addresses = set()
        self.last_scan_stats = {}

        for (name, _), result in zip(strategies, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(f"Discovery strategy '{name}' failed: {result!r}")
                self.last_scan_stats[name] = 0
                continue

            added = 0
            for pair in result:
                if not isinstance(pair, dict) or pair.get("chainId") != self.chain_id:
                    continue
                address = (pair.get("pairAddress") or "").lower()
                if not address or address in seen_addresses:
                    continue
                seen_addresses.add(address)
                all_pairs.append(pair)
                added += 1
            self.last_scan_stats[name] = added

        logger.info(f"Total unique {self.chain_id} pairs found: {len(all_pairs)} {self.last_scan_stats}")
        return all_pairs

    async def close(self):
        await self.client.close()
