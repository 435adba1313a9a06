# storefront.config
"""
Central configuration for the storefront pipeline.

- Loads the .env file located at the project root (BASE_DIR/.env)
- Exposes gateway timing knobs, the default currency and the optional
  MongoDB connection used by the persistence adapter
"""
from pathlib import Path
import os
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)


def _clean_env(v: str) -> str:
    """Strip whitespace and stray quotes pasted around env values."""
    return (v or "").strip().strip("'").strip('"')


def _float_env(name: str, default: float) -> float:
    raw = _clean_env(os.getenv(name) or "")
    if not raw:
        return default
    return float(raw)


# Persistence collaborator (optional: in-memory store is used when unset)
MONGO_URL = _clean_env(os.getenv("MONGO_URL") or "")
DB_NAME = _clean_env(os.getenv("DB_NAME") or "storefront")

# Single currency per order
DEFAULT_CURRENCY = _clean_env(os.getenv("STOREFRONT_CURRENCY") or "DZD")

# Gateway: the caller-side timeout and the simulated processor latency
PAYMENT_GATEWAY_TIMEOUT_SECONDS = _float_env("PAYMENT_GATEWAY_TIMEOUT_SECONDS", 30.0)
CARD_LATENCY_SECONDS = _float_env("CARD_LATENCY_SECONDS", 0.6)
PAYPAL_LATENCY_SECONDS = _float_env("PAYPAL_LATENCY_SECONDS", 0.4)
MOBILE_LATENCY_SECONDS = _float_env("MOBILE_LATENCY_SECONDS", 0.3)

LOG_LEVEL = _clean_env(os.getenv("LOG_LEVEL") or "INFO").upper()
