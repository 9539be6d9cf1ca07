# storefront/models.py

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


# -------------------------
# Catalog
# -------------------------

class VariantOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary: str
    secondary: Optional[str] = None


class Variant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    sku: str = ""
    price: Decimal
    currency: str
    options: VariantOptions
    available: bool = True
    preview_image_url: Optional[str] = None


class ProductImage(BaseModel):
    variant_id: Optional[int] = None
    url: str
    kind: str = "preview"  # "default" for the product thumbnail


class Product(BaseModel):
    id: int
    slug: str
    name: str
    thumbnail_url: Optional[str] = None
    images: List[ProductImage] = []
    category: str
    country: Optional[str] = None
    min_price: Decimal
    max_price: Decimal
    currency: str
    variants: List[Variant]
    variant_groups: Dict[str, List[Variant]]

    def get_variant(self, variant_id: int) -> Optional[Variant]:
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None


# -------------------------
# Cart / shipping / checkout
# -------------------------

class CartLine(BaseModel):
    variant_id: int
    product_name: str
    variant_label: str = ""
    unit_price: Decimal
    currency: str = "EUR"
    thumbnail_url: Optional[str] = None
    quantity: int = 1
    # catalog-level id, when the caller already knows it
    catalog_variant_id: Optional[int] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class ShippingItem(BaseModel):
    variant_id: int
    quantity: int = 1
    catalog_variant_id: Optional[int] = None


class ShippingOption(BaseModel):
    id: str
    name: str
    rate: Decimal
    currency: str = "EUR"
    min_days: Optional[int] = None
    max_days: Optional[int] = None


class CheckoutSession(BaseModel):
    redirect_url: str
    session_ref: str
