"""
Library settings.
Values come from the process environment; a local .env file is loaded first.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [item.strip().upper() for item in value.split(",") if item.strip()]


# Active provider (see infrastructure/providers/registry.py)
EXCHANGE_RATE_PROVIDER = os.getenv("EXCHANGE_RATE_PROVIDER", "mock")

# Provider credentials
FIXER_API_KEY = os.getenv("FIXER_API_KEY", "")
CURRENCY_LAYER_API_KEY = os.getenv("CURRENCY_LAYER_API_KEY", "")
EXCHANGERATE_API_KEY = os.getenv("EXCHANGERATE_API_KEY", "")
CURRENCY_BEACON_API_KEY = os.getenv("CURRENCY_BEACON_API_KEY", "")

# Provider base URL overrides (empty = vendor default)
FIXER_URL = os.getenv("FIXER_URL", "")
CURRENCY_LAYER_URL = os.getenv("CURRENCY_LAYER_URL", "")
EXCHANGERATE_URL = os.getenv("EXCHANGERATE_URL", "")
CURRENCY_BEACON_URL = os.getenv("CURRENCY_BEACON_URL", "")

# HTTP transport
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "5"))
HTTP_RETRIES = int(os.getenv("HTTP_RETRIES", "3"))
HTTP_BACKOFF_FACTOR = float(os.getenv("HTTP_BACKOFF_FACTOR", "1.0"))

# Cache
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RATES_CACHE_TTL = int(os.getenv("RATES_CACHE_TTL", "3600"))
RATES_CACHE_PREFIX = os.getenv("RATES_CACHE_PREFIX", "exchange_rates")
CONVERTER_CACHE_TTL = int(os.getenv("CONVERTER_CACHE_TTL", "86400"))
CONVERTER_CACHE_PREFIX = os.getenv("CONVERTER_CACHE_PREFIX", "currency_rate")

# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
WARM_BASE_CURRENCIES = _csv(os.getenv("WARM_BASE_CURRENCIES", "USD,EUR,GBP"))
WARM_INTERVAL_SECONDS = int(os.getenv("WARM_INTERVAL_SECONDS", "1800"))
