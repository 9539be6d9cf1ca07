# storefront/catalog.py
"""
Catalog normalization.

Turns the loosely structured sync product / sync variant records returned by
the fulfillment provider into canonical ``Product`` aggregates. Everything in
here is a pure function of its input; network access lives in ``printful.py``.
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Product, ProductImage, Variant, VariantOptions

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "EUR"
OPTION_SEPARATOR = " / "

# Checked in order, first match wins.
CATEGORY_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("t-shirt", "hoodie", "shirt"), "apparel"),
    (("poster", "print", "framed"), "posters"),
    (("sticker",), "stickers"),
    (("notebook", "stationary", "mug", "tote"), "stationary"),
]
FALLBACK_CATEGORY = "other"

CATEGORIES = tuple(tag for _, tag in CATEGORY_RULES) + (FALLBACK_CATEGORY,)

# Checked in order, first match wins. "Ukraine" must stay ahead of "UK".
KNOWN_COUNTRIES: List[str] = [
    # Americas
    "Argentina", "Bolivia", "Brasil", "Brazil", "Canada", "Chile", "Colombia",
    "Costa Rica", "Cuba", "Ecuador", "Guatemala", "Mexico", "Panama", "Paraguay",
    "Peru", "Uruguay", "Venezuela", "United States", "USA",
    # Europe
    "Albania", "Austria", "Belgium", "Bosnia", "Bulgaria", "Catalunya", "Croatia",
    "Cyprus", "Czechia", "Denmark", "Estonia", "Finland", "France", "Germany",
    "Greece", "Hungary", "Iceland", "Ireland", "Italy", "Kosovo", "Latvia",
    "Lithuania", "Luxembourg", "Malta", "Moldova", "Montenegro", "Netherlands",
    "North Macedonia", "Norway", "Poland", "Portugal", "Romania", "Serbia",
    "Slovakia", "Slovenia", "Spain", "Sweden", "Switzerland", "Ukraine",
    "United Kingdom", "UK",
    # Asia
    "Afghanistan", "China", "India", "Indonesia", "Iran", "Iraq", "Israel",
    "Japan", "Jordan", "Kazakhstan", "South Korea", "Lebanon", "Malaysia",
    "Mongolia", "Myanmar", "Nepal", "Pakistan", "Philippines", "Saudi Arabia",
    "Singapore", "Sri Lanka", "Syria", "Taiwan", "Thailand", "Turkey",
    "Vietnam", "Yemen", "Isfahan",
    # Africa
    "Algeria", "Angola", "Cameroon", "Congo", "Egypt", "Ethiopia", "Ghana",
    "Kenya", "Libya", "Morocco", "Mozambique", "Nigeria", "Senegal",
    "South Africa", "Sudan", "Tanzania", "Tunisia", "Uganda", "Zimbabwe",
    # Oceania
    "Australia", "New Zealand",
    "World",
]


# -------------------------
# Helpers
# -------------------------

def slugify(name: str) -> str:
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip()


def infer_category(name: str) -> str:
    lower = name.lower()
    for keywords, tag in CATEGORY_RULES:
        if any(k in lower for k in keywords):
            return tag
    return FALLBACK_CATEGORY


def infer_country(name: str) -> Optional[str]:
    lower = name.lower()
    for country in KNOWN_COUNTRIES:
        if country.lower() in lower:
            return country
    return None


def parse_variant_name(variant_name: str, product_name: str) -> VariantOptions:
    option_str = variant_name
    if product_name and option_str.startswith(product_name):
        option_str = option_str[len(product_name):]
    option_str = option_str.lstrip(" \t\n-/").strip()
    if not option_str:
        option_str = variant_name

    parts = [p.strip() for p in option_str.split(OPTION_SEPARATOR)]
    parts = [p for p in parts if p]

    # only two option axes are modelled; anything past the second is dropped
    if len(parts) >= 2:
        return VariantOptions(primary=parts[0], secondary=parts[1])
    if len(parts) == 1:
        return VariantOptions(primary=parts[0], secondary=None)
    return VariantOptions(primary=option_str, secondary=None)


def pick_preview_url(raw_variant: Dict[str, Any]) -> Optional[str]:
    files = raw_variant.get("files") or []
    for f in files:
        if f.get("type") == "preview" and f.get("preview_url"):
            return f["preview_url"]
    if files:
        return files[0].get("preview_url") or None
    return None


def group_variants(variants: Iterable[Variant]) -> Dict[str, List[Variant]]:
    groups: Dict[str, List[Variant]] = {}
    for v in variants:
        groups.setdefault(v.options.primary, []).append(v)
    return groups


def extract_images(thumbnail_url: Optional[str], variants: Sequence[Variant]) -> List[ProductImage]:
    seen = set()
    images: List[ProductImage] = []
    if thumbnail_url:
        seen.add(thumbnail_url)
        images.append(ProductImage(variant_id=None, url=thumbnail_url, kind="default"))
    for v in variants:
        url = v.preview_image_url
        if url and url not in seen:
            seen.add(url)
            images.append(ProductImage(variant_id=v.id, url=url, kind="preview"))
    return images


def _parse_variant(raw: Dict[str, Any], product_name: str) -> Optional[Variant]:
    if not isinstance(raw, dict) or raw.get("retail_price") is None:
        return None
    try:
        price = Decimal(str(raw["retail_price"]))
        name = str(raw["name"])
        return Variant(
            id=int(raw["id"]),
            name=name,
            sku=raw.get("sku") or "",
            price=price,
            currency=str(raw.get("currency") or DEFAULT_CURRENCY).upper(),
            options=parse_variant_name(name, product_name),
            available=raw.get("availability_status") != "discontinued",
            preview_image_url=pick_preview_url(raw),
        )
    except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as e:
        logger.warning("Dropping malformed variant %r: %s", raw.get("id"), e)
        return None


# -------------------------
# Normalizer
# -------------------------

def normalize(raw_product: Dict[str, Any], raw_variants: Optional[Sequence[Dict[str, Any]]]) -> Optional[Product]:
    """Build a ``Product`` from one sync product and its sync variants.

    Returns ``None`` when the record is malformed or none of its variants
    carries a retail price; callers drop ``None`` results.
    """
    try:
        product_id = int(raw_product["id"])
        name = str(raw_product["name"])
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Dropping malformed product %r: %s", raw_product.get("id") if isinstance(raw_product, dict) else None, e)
        return None

    variants = []
    for raw in raw_variants or []:
        v = _parse_variant(raw, name)
        if v is not None:
            variants.append(v)

    if not variants:
        return None

    prices = [v.price for v in variants]
    thumbnail = raw_product.get("thumbnail_url") or None

    try:
        return Product(
            id=product_id,
            slug=f"{product_id}-{slugify(name)}",
            name=name,
            thumbnail_url=thumbnail,
            images=extract_images(thumbnail, variants),
            category=infer_category(name),
            country=infer_country(name),
            min_price=min(prices),
            max_price=max(prices),
            currency=variants[0].currency,
            variants=variants,
            variant_groups=group_variants(variants),
        )
    except (ValueError, TypeError) as e:
        logger.warning("Dropping malformed product %r: %s", product_id, e)
        return None


# -------------------------
# Listing filters
# -------------------------

def filter_products(
    products: Iterable[Product],
    category: Optional[str] = None,
    country: Optional[str] = None,
    q: Optional[str] = None,
) -> List[Product]:
    result = list(products)
    if category and category != "all":
        result = [p for p in result if p.category == category]
    if country and country != "all":
        result = [p for p in result if p.country == country]
    if q:
        q_lower = q.lower().strip()
        result = [p for p in result if q_lower in p.name.lower()]
    return result


def list_countries(products: Iterable[Product]) -> List[str]:
    return sorted({p.country for p in products if p.country})
