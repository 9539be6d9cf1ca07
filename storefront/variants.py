# storefront/variants.py

from dataclasses import dataclass, field
from typing import List, Optional

from .errors import InvalidRequestError, NotFoundError, VariantUnavailableError
from .models import CartLine, Product, Variant
from .cart import clamp_quantity


@dataclass(frozen=True)
class PrimarySelection:
    auto_selected_variant: Optional[Variant]
    secondary_options: List[Variant] = field(default_factory=list)


def list_primary_options(product: Product) -> List[str]:
    return list(product.variant_groups.keys())


def _group(product: Product, label: str) -> List[Variant]:
    group = product.variant_groups.get(label)
    if not group:
        raise NotFoundError(f"Unknown option: {label}")
    return group


def select_primary(product: Product, label: str) -> PrimarySelection:
    group = _group(product, label)
    has_secondary = any(v.options.secondary is not None for v in group)
    if not has_secondary:
        return PrimarySelection(auto_selected_variant=group[0], secondary_options=[])
    # unavailable variants stay listed; the UI renders them disabled
    return PrimarySelection(auto_selected_variant=None, secondary_options=list(group))


def select_secondary(product: Product, primary: str, variant_id: int) -> Variant:
    for v in _group(product, primary):
        if v.id == variant_id:
            if not v.available:
                raise VariantUnavailableError()
            return v
    raise NotFoundError(f"Variant {variant_id} is not part of option {primary}")


def resolve_display_image(product: Product, variant: Optional[Variant]) -> str:
    if variant is not None:
        for img in product.images:
            if img.variant_id is not None and img.variant_id == variant.id:
                return img.url

        # same primary option, different secondary
        siblings = {v.id for v in product.variant_groups.get(variant.options.primary, [])}
        for img in product.images:
            if img.variant_id is not None and img.variant_id in siblings:
                return img.url

    return product.thumbnail_url or ""


def variant_label(variant: Variant) -> str:
    parts = [variant.options.primary, variant.options.secondary]
    return " / ".join(p for p in parts if p is not None)


class VariantSelector:
    """Option-picker state for one product detail view."""

    def __init__(self, product: Product):
        self.product = product
        self.selected_primary: Optional[str] = None
        self.selected_variant: Optional[Variant] = None
        self.secondary_options: List[Variant] = []

        if len(product.variants) == 1:
            only = product.variants[0]
            self.selected_primary = only.options.primary
            self.selected_variant = only

    @property
    def can_add_to_cart(self) -> bool:
        return self.selected_variant is not None and self.selected_variant.available

    @property
    def display_image(self) -> str:
        return resolve_display_image(self.product, self.selected_variant)

    def select_primary(self, label: str) -> PrimarySelection:
        selection = select_primary(self.product, label)
        self.selected_primary = label
        self.selected_variant = selection.auto_selected_variant
        self.secondary_options = selection.secondary_options
        return selection

    def select_secondary(self, variant_id: int) -> Variant:
        if self.selected_primary is None:
            raise NotFoundError("Select an option first")
        variant = select_secondary(self.product, self.selected_primary, variant_id)
        self.selected_variant = variant
        return variant

    def to_cart_line(self, quantity: int = 1) -> CartLine:
        if self.selected_variant is None:
            raise InvalidRequestError("Select a variant before adding to cart")
        v = self.selected_variant
        if not v.available:
            raise VariantUnavailableError()
        return CartLine(
            variant_id=v.id,
            product_name=self.product.name,
            variant_label=variant_label(v),
            unit_price=v.price,
            currency=v.currency,
            thumbnail_url=self.display_image or None,
            quantity=clamp_quantity(quantity),
        )
