# storefront/printful.py
"""
Thin client for the Printful REST API.

Covers the calls the storefront needs: catalog sync (paginated listing plus
per-product detail), sync-variant lookup, shipping rates and order creation.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

from .catalog import normalize
from .config import Settings, get_settings
from .errors import PrintfulAPIError
from .models import Product

logger = logging.getLogger(__name__)


class PrintfulClient:
    PAGE_LIMIT = 100
    MAX_WORKERS = 8

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.api_url = self.settings.printful_api_url
        self.timeout = self.settings.printful_timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        if not self.settings.printful_api_key:
            raise RuntimeError("PRINTFUL_API_KEY is not set")
        if not self.settings.printful_store_id:
            raise RuntimeError("PRINTFUL_STORE_ID is not set")
        return {
            "Authorization": f"Bearer {self.settings.printful_api_key}",
            "X-PF-Store-Id": self.settings.printful_store_id,
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.api_url}{path}"
        try:
            resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise PrintfulAPIError(f"Printful request failed: {method} {path}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.ok:
            message = None
            if isinstance(data, dict):
                err = data.get("error")
                if isinstance(err, dict):
                    message = err.get("message")
                if not message and data.get("result") is not None:
                    message = str(data.get("result"))
            raise PrintfulAPIError(
                message or f"Printful error {resp.status_code} on {method} {path}",
                status=resp.status_code,
                body=resp.text,
            )
        return data.get("result") if isinstance(data, dict) else None

    # -------------------------
    # Catalog
    # -------------------------

    def list_store_products(self) -> List[Dict[str, Any]]:
        products: List[Dict[str, Any]] = []
        offset = 0
        while True:
            url = f"{self.api_url}/store/products"
            try:
                resp = self.session.get(
                    url,
                    headers=self._headers(),
                    params={"limit": self.PAGE_LIMIT, "offset": offset},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise PrintfulAPIError(f"Printful list error: {e}") from e
            if not resp.ok:
                raise PrintfulAPIError(f"Printful list error: {resp.status_code}", status=resp.status_code, body=resp.text)

            data = resp.json()
            page = data.get("result") or []
            products.extend(page)
            total = (data.get("paging") or {}).get("total", len(products))
            if len(products) >= total or len(page) < self.PAGE_LIMIT:
                break
            offset += self.PAGE_LIMIT
        return products

    def get_store_product(self, product_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/store/products/{product_id}") or {}

    def fetch_product(self, product_id: int) -> Optional[Product]:
        result = self.get_store_product(product_id)
        return normalize(result.get("sync_product") or {}, result.get("sync_variants") or [])

    def _fetch_product_safe(self, product_id: int) -> Optional[Product]:
        try:
            return self.fetch_product(product_id)
        except PrintfulAPIError as e:
            logger.warning("Skipping product %s: %s", product_id, e)
            return None
        except Exception:
            # one bad record never sinks the whole catalog
            logger.exception("Skipping product %s after unexpected error", product_id)
            return None

    def fetch_catalog(self) -> List[Product]:
        listing = self.list_store_products()
        ids = [p["id"] for p in listing if p.get("id") is not None]
        if not ids:
            return []
        with ThreadPoolExecutor(max_workers=min(self.MAX_WORKERS, len(ids))) as pool:
            results = list(pool.map(self._fetch_product_safe, ids))
        products = [p for p in results if p is not None]
        logger.info("Catalog sync: %d listed, %d normalized", len(ids), len(products))
        return products

    # -------------------------
    # Variants / shipping
    # -------------------------

    def get_catalog_variant_id(self, sync_variant_id: int) -> Optional[int]:
        try:
            result = self._request("GET", f"/store/variants/{sync_variant_id}") or {}
        except PrintfulAPIError as e:
            logger.warning("Could not look up sync variant %s: %s", sync_variant_id, e)
            return None
        sync_variant = result.get("sync_variant") or result
        return sync_variant.get("variant_id") or None

    def shipping_rates(self, country_code: str, items: List[Dict[str, int]], currency: str = "EUR") -> List[Dict[str, Any]]:
        payload = {
            "recipient": {"country_code": country_code},
            "items": items,
            "currency": currency,
            "locale": "en_US",
        }
        return self._request("POST", "/shipping/rates", json=payload) or []

    # -------------------------
    # Orders
    # -------------------------

    def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/orders", json=order) or {}

    def confirm_order(self, order_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/orders/{order_id}/confirm") or {}
