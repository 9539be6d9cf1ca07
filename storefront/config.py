# storefront/config.py

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

# Supported shipping countries, matching the fulfillment provider's shipping zones
DEFAULT_SHIPPING_COUNTRIES = [
    "NL", "DE", "BE", "FR", "ES", "IT", "PT", "AT", "CH", "PL",
    "SE", "DK", "NO", "FI", "GB", "IE", "US", "CA", "AU", "NZ",
    "JP", "KR", "SG", "MX", "BR", "CO", "AR",
]


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(key)
    if v is not None and v.strip() != "":
        return v.strip()
    return default


def _get_bool(key: str, default: bool) -> bool:
    v = _get_env(key)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


def _get_int(key: str, default: int) -> int:
    v = _get_env(key)
    return int(v) if v is not None else default


def _get_list(key: str, default: List[str]) -> List[str]:
    v = _get_env(key)
    if v is None:
        return list(default)
    return [p.strip().upper() for p in v.split(",") if p.strip()]


def _get_overrides(key: str) -> Dict[int, str]:
    # THUMBNAIL_OVERRIDES=420536143=https://...,420536088=https://...
    v = _get_env(key)
    overrides: Dict[int, str] = {}
    if not v:
        return overrides
    for pair in v.split(","):
        product_id, sep, url = pair.partition("=")
        if sep and product_id.strip().isdigit() and url.strip():
            overrides[int(product_id.strip())] = url.strip()
    return overrides


@dataclass(frozen=True)
class Settings:
    printful_api_key: str = ""
    printful_store_id: str = ""
    printful_api_url: str = "https://api.printful.com"
    printful_timeout: int = 10
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    store_url: str = "https://overlaymaps.com"
    require_shipping_selection: bool = True
    default_currency: str = "EUR"
    shipping_countries: List[str] = field(default_factory=lambda: list(DEFAULT_SHIPPING_COUNTRIES))
    cart_storage_path: str = ""
    catalog_ttl_seconds: int = 300
    thumbnail_overrides: Dict[int, str] = field(default_factory=dict)
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        printful_api_key=_get_env("PRINTFUL_API_KEY", "") or "",
        printful_store_id=_get_env("PRINTFUL_STORE_ID", "") or "",
        printful_api_url=(_get_env("PRINTFUL_API_URL", "https://api.printful.com") or "").rstrip("/"),
        printful_timeout=_get_int("PRINTFUL_TIMEOUT", 10),
        stripe_secret_key=_get_env("STRIPE_SECRET_KEY", "") or "",
        stripe_webhook_secret=_get_env("STRIPE_WEBHOOK_SECRET", "") or "",
        store_url=(_get_env("STORE_URL", "https://overlaymaps.com") or "").rstrip("/"),
        require_shipping_selection=_get_bool("REQUIRE_SHIPPING_SELECTION", True),
        default_currency=(_get_env("DEFAULT_CURRENCY", "EUR") or "EUR").upper(),
        shipping_countries=_get_list("SHIPPING_COUNTRIES", DEFAULT_SHIPPING_COUNTRIES),
        cart_storage_path=_get_env("CART_STORAGE_PATH", "") or "",
        catalog_ttl_seconds=_get_int("CATALOG_TTL_SECONDS", 300),
        thumbnail_overrides=_get_overrides("THUMBNAIL_OVERRIDES"),
        log_level=(_get_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
