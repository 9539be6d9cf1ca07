# storefront/data.py

import logging
import threading
import time
from typing import Dict, List, Optional

from .errors import PrintfulAPIError
from .models import Product

logger = logging.getLogger(__name__)


class CatalogCache:
    """Normalized catalog, refreshed from the provider once the TTL runs out."""

    def __init__(self, client, ttl_seconds: int = 300, thumbnail_overrides: Optional[Dict[int, str]] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.thumbnail_overrides = thumbnail_overrides or {}
        self._products: List[Product] = []
        self._by_slug: Dict[str, Product] = {}
        self._loaded_at: Optional[float] = None
        self._lock = threading.Lock()

    def _apply_overrides(self, product: Product) -> Product:
        url = self.thumbnail_overrides.get(product.id)
        if not url:
            return product
        return product.model_copy(update={"thumbnail_url": url})

    def _stale(self) -> bool:
        return self._loaded_at is None or time.monotonic() - self._loaded_at >= self.ttl_seconds

    def refresh(self) -> List[Product]:
        products = [self._apply_overrides(p) for p in self.client.fetch_catalog()]
        with self._lock:
            self._products = products
            self._by_slug = {p.slug: p for p in products}
            self._loaded_at = time.monotonic()
        return products

    def products(self) -> List[Product]:
        if self._stale():
            self.refresh()
        return list(self._products)

    def get_by_slug(self, slug: str) -> Optional[Product]:
        if self._stale():
            self.refresh()
        product = self._by_slug.get(slug)
        if product is not None:
            return product

        # slugs start with the provider id; fetch products synced after the last refresh
        product_id, _, _ = slug.partition("-")
        if not product_id.isdigit():
            return None
        try:
            product = self.client.fetch_product(int(product_id))
        except PrintfulAPIError as e:
            logger.warning("Product lookup for %s failed: %s", slug, e)
            return None
        if product is None or product.slug != slug:
            return None
        product = self._apply_overrides(product)
        with self._lock:
            self._by_slug[product.slug] = product
        return product

    def find_variant(self, variant_id: int):
        for product in self.products():
            variant = product.get_variant(variant_id)
            if variant is not None:
                return product, variant
        return None, None
