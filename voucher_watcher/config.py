"""Configuration loader.

Reads environment variables and `.env` to configure the service.
"""

from __future__ import annotations

import os
from typing import Optional, List
from pathlib import Path

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


class ConfigurationError(RuntimeError):
    """Raised at startup when a required setting is missing."""


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


# ---- Telegram ----------------------------------------------------------------

BOT_TOKEN: Optional[str] = _get_env("BOT_TOKEN")

# ---- Upstream campaign endpoint ----------------------------------------------

# Both values come from the getCampaign request payload in the browser DevTools.
# No bearer token is needed for this endpoint.
GA_CID: Optional[str] = _get_env("GA_CID")
DOMAIN: Optional[str] = _get_env("DOMAIN")

API_URL: str = _get_env(
    "API_URL",
    "https://us-central1-grivy-barcode.cloudfunctions.net/getCampaign",
)
CAMPAIGN_PUBLIC_CODE: str = _get_env("CAMPAIGN_PUBLIC_CODE", "frestea-ramadan-911")

# Storefront page linked in notifications; also used for origin/referer.
TARGET_URL: str = _get_env(
    "TARGET_URL",
    "https://paduannya-nikmat.frestea.co.id/c/frestea-ramadan-911",
)

# ---- Polling -----------------------------------------------------------------

INTERVAL_MS: int = _parse_int(_get_env("INTERVAL_MS"), 90000)

HTTP_TIMEOUT_SECONDS: float = _parse_float(_get_env("HTTP_TIMEOUT_SECONDS"), 30.0)

# Attempts per poll for connection-level failures only (HTTP statuses are never retried).
FETCH_ATTEMPTS: int = max(1, _parse_int(_get_env("FETCH_ATTEMPTS"), 3))

# ---- Notifications -----------------------------------------------------------

NOTIFY_MAX_WORKERS: int = max(1, _parse_int(_get_env("NOTIFY_MAX_WORKERS"), 4))

# How long /status waits for the queued check before replying.
MANUAL_CHECK_TIMEOUT_SECONDS: float = _parse_float(_get_env("MANUAL_CHECK_TIMEOUT_SECONDS"), 120.0)

# ---- Storage -----------------------------------------------------------------

CHATS_FILE: str = _get_env("CHATS_FILE", "chats.json")
STATE_FILE: str = _get_env("STATE_FILE", "state.json")

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# ---- Validation --------------------------------------------------------------

_REQUIRED_HINTS = {
    "BOT_TOKEN": "the Telegram bot token from @BotFather",
    "GA_CID": "take it from the getCampaign payload in DevTools (gaCid)",
    "DOMAIN": "take it from the getCampaign payload in DevTools (domain)",
}


def validate() -> None:
    """Validate required configuration parameters."""
    current = {"BOT_TOKEN": BOT_TOKEN, "GA_CID": GA_CID, "DOMAIN": DOMAIN}
    missing = [name for name, value in current.items() if not value]
    if missing:
        details = "; ".join(f"{name} is not set ({_REQUIRED_HINTS[name]})" for name in missing)
        raise ConfigurationError(f"{details}. See .env.example for details.")


__all__ = [
    "BOT_TOKEN",
    "GA_CID",
    "DOMAIN",
    "API_URL",
    "CAMPAIGN_PUBLIC_CODE",
    "TARGET_URL",
    "INTERVAL_MS",
    "HTTP_TIMEOUT_SECONDS",
    "FETCH_ATTEMPTS",
    "NOTIFY_MAX_WORKERS",
    "MANUAL_CHECK_TIMEOUT_SECONDS",
    "CHATS_FILE",
    "STATE_FILE",
    "LOG_LEVEL",
    "ConfigurationError",
    "validate",
]
