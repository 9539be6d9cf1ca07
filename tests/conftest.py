from decimal import Decimal

import pytest

from storefront.catalog import normalize
from storefront.models import CartLine
from storefront.errors import PrintfulAPIError


TEE_PRODUCT = {"id": 101, "name": "Overlay Tee Netherlands", "thumbnail_url": "https://img.test/tee-thumb.png"}
TEE_VARIANTS = [
    {
        "id": 501, "name": "Overlay Tee Netherlands - Black / M", "sku": "TEE-BLK-M",
        "retail_price": "25.00", "currency": "EUR", "availability_status": "active",
        "files": [
            {"type": "default", "preview_url": "https://img.test/black-m-print.png"},
            {"type": "preview", "preview_url": "https://img.test/black-m.png"},
        ],
    },
    {
        "id": 502, "name": "Overlay Tee Netherlands - Black / L", "sku": "TEE-BLK-L",
        "retail_price": "25.00", "currency": "EUR", "availability_status": "active", "files": [],
    },
    {
        "id": 503, "name": "Overlay Tee Netherlands - White / M", "sku": "TEE-WHT-M",
        "retail_price": "27.50", "currency": "EUR", "availability_status": "active",
        "files": [{"type": "default", "preview_url": "https://img.test/white-m.png"}],
    },
    {
        "id": 504, "name": "Overlay Tee Netherlands - White / L", "sku": "TEE-WHT-L",
        "retail_price": "27.50", "currency": "EUR", "availability_status": "discontinued", "files": [],
    },
    {
        "id": 505, "name": "Overlay Tee Netherlands - Red / S", "sku": "TEE-RED-S",
        "retail_price": None, "currency": "EUR",
        "files": [{"type": "preview", "preview_url": "https://img.test/red-s.png"}],
    },
]

POSTER_PRODUCT = {"id": 202, "name": "Japan Map Poster", "thumbnail_url": "https://img.test/poster-thumb.png"}
POSTER_VARIANTS = [
    {"id": 601, "name": "Japan Map Poster - 30x40", "retail_price": "19.90", "currency": "EUR", "files": []},
    {"id": 602, "name": "Japan Map Poster - 50x70", "retail_price": "34.90", "currency": "EUR", "files": []},
]

STICKER_PRODUCT = {"id": 303, "name": "World Sticker", "thumbnail_url": None}
STICKER_VARIANTS = [
    {"id": 701, "name": "World Sticker", "retail_price": "3.50", "currency": "EUR", "files": []},
]

CATALOG_IDS = {501: 4011, 502: 4012, 503: 4013, 601: 8801, 602: 8802, 701: 9901}


class FakePrintful:
    """In-memory stand-in for PrintfulClient."""

    def __init__(self):
        self.raw = {
            101: (TEE_PRODUCT, TEE_VARIANTS),
            202: (POSTER_PRODUCT, POSTER_VARIANTS),
            303: (STICKER_PRODUCT, STICKER_VARIANTS),
        }
        self.catalog_ids = dict(CATALOG_IDS)
        self.rates = [
            {"id": "STANDARD", "name": "Flat Rate", "rate": "4.99", "currency": "EUR",
             "minDeliveryDays": 3, "maxDeliveryDays": 5},
            {"id": "EXPRESS", "name": "Express", "rate": "12.49", "currency": "EUR",
             "minDeliveryDays": 1, "maxDeliveryDays": 2},
        ]
        self.rate_calls = []
        self.variant_lookups = []
        self.orders = []
        self.confirmed = []
        self.fail_orders = False

    def fetch_product(self, product_id):
        if product_id not in self.raw:
            raise PrintfulAPIError("Not found", status=404)
        product, variants = self.raw[product_id]
        return normalize(product, variants)

    def fetch_catalog(self):
        products = [normalize(p, v) for p, v in self.raw.values()]
        return [p for p in products if p is not None]

    def get_catalog_variant_id(self, sync_variant_id):
        self.variant_lookups.append(sync_variant_id)
        return self.catalog_ids.get(sync_variant_id)

    def shipping_rates(self, country_code, items, currency="EUR"):
        self.rate_calls.append((country_code, items, currency))
        return list(self.rates)

    def create_order(self, order):
        if self.fail_orders:
            raise PrintfulAPIError("Printful error 400", status=400, body="{}")
        self.orders.append(order)
        return {"id": 9000 + len(self.orders)}

    def confirm_order(self, order_id):
        self.confirmed.append(order_id)
        return {"id": order_id, "status": "pending"}


@pytest.fixture
def fake_printful():
    return FakePrintful()


@pytest.fixture
def tee():
    return normalize(TEE_PRODUCT, TEE_VARIANTS)


@pytest.fixture
def poster():
    return normalize(POSTER_PRODUCT, POSTER_VARIANTS)


@pytest.fixture
def sticker():
    return normalize(STICKER_PRODUCT, STICKER_VARIANTS)


def make_line(variant_id=501, qty=1, price="25.00", **kwargs):
    data = {
        "variant_id": variant_id,
        "product_name": "Overlay Tee Netherlands",
        "variant_label": "Black / M",
        "unit_price": Decimal(price),
        "currency": "EUR",
        "thumbnail_url": "https://img.test/black-m.png",
        "quantity": qty,
    }
    data.update(kwargs)
    return CartLine(**data)
