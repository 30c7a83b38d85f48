"""
Configuration du Base Launch Tracker
"""

import os
import json
import logging
from typing import Dict, Any

from dotenv import load_dotenv

logger = logging.getLogger("config")

# Valeurs par défaut, surchargées par config.json ou l'environnement
DEFAULT_CONFIG = {
    # DexScreener
    "CHAIN_ID": "base",
    "DEXSCREENER_BASE_URL": "https://api.dexscreener.com",
    "DEXSCREENER_API_KEY": "",
    "REQUEST_TIMEOUT_SECONDS": 30,
    "MIN_REQUEST_INTERVAL_MS": 500,
    "MAX_RETRIES": 3,

    # Scan & Timing
    "POLL_INTERVAL_SECONDS": 30,
    "ALERT_CHECK_INTERVAL_SECONDS": 60,
    "PRUNE_MAX_AGE_HOURS": 48,

    # Filtering
    "MIN_LIQUIDITY_USD": 1000,
    "MIN_VOLUME_USD": 500,
    "MIN_PAIR_AGE_MINUTES": 5,
    "MAX_PAIR_AGE_HOURS": 168,
    "MAX_MARKET_CAP_USD": 50_000_000,

    # Storage
    "DATABASE_PATH": "./data/launches.db",

    # Notifier
    "ENABLE_TELEGRAM": False,
    "TELEGRAM_BOT_TOKEN": "",

    # System
    "LOG_LEVEL": "INFO",
}


class ConfigError(ValueError):
    """Configuration invalide, fatale au démarrage"""


def _coerce(key: str, raw: str, default: Any) -> Any:
    """Convertit une valeur d'environnement vers le type de sa valeur par défaut"""
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes")
    try:
        return type(default)(raw)
    except ValueError:
        logger.warning(f"⚠️ Valeur invalide pour {key}={raw!r}, on garde {default!r}")
        return default


def _read_config_file(config_file: str) -> Dict[str, Any]:
    """
    Lit le fichier JSON de configuration.
    Un fichier absent est créé avec les valeurs par défaut ; un fichier illisible est ignoré.
    """
    if not os.path.exists(config_file):
        with open(config_file, "w") as f:
            json.dump(DEFAULT_CONFIG, f, indent=2)
        logger.info(f"📝 {config_file} créé avec la configuration par défaut")
        return {}

    try:
        with open(config_file, "r") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"❌ Lecture de {config_file} impossible ({e}), configuration par défaut utilisée")
        return {}

    logger.info(f"Configuration lue depuis {config_file}")
    return data


def load_config(config_file: str = "config.json") -> Dict[str, Any]:
    """
    Retourne la configuration complète : fichier JSON (ou variables d'environnement
    si USE_ENV_CONFIG=true) complété par DEFAULT_CONFIG pour les clés absentes.
    """
    if os.environ.get("USE_ENV_CONFIG", "").lower() == "true":
        overrides = load_config_from_env()
    else:
        overrides = _read_config_file(config_file)

    return {**DEFAULT_CONFIG, **overrides}


def load_config_from_env() -> Dict[str, Any]:
    """Variables d'environnement (et fichier .env), typées selon DEFAULT_CONFIG"""
    load_dotenv()
    logger.info("Configuration lue depuis l'environnement")

    return {
        key: _coerce(key, os.environ[key], default) if key in os.environ else default
        for key, default in DEFAULT_CONFIG.items()
    }


def validate_config(config: Dict[str, Any]) -> None:
    """
    Vérifie les valeurs obligatoires de la configuration

    Raises:
        ConfigError: si une valeur est invalide
    """
    for key in ("POLL_INTERVAL_SECONDS", "ALERT_CHECK_INTERVAL_SECONDS",
                "REQUEST_TIMEOUT_SECONDS", "PRUNE_MAX_AGE_HOURS", "MAX_PAIR_AGE_HOURS"):
        if config.get(key, 0) <= 0:
            raise ConfigError(f"{key} must be positive (got {config.get(key)!r})")

    if config.get("MIN_REQUEST_INTERVAL_MS", 0) < 0:
        raise ConfigError("MIN_REQUEST_INTERVAL_MS cannot be negative")

    if config.get("MAX_RETRIES", 0) < 1:
        raise ConfigError("MAX_RETRIES must be at least 1")

    if not config.get("CHAIN_ID"):
        raise ConfigError("CHAIN_ID is required")

    if config.get("ENABLE_TELEGRAM") and not config.get("TELEGRAM_BOT_TOKEN"):
        raise ConfigError("ENABLE_TELEGRAM is set but TELEGRAM_BOT_TOKEN is empty")
