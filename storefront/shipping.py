# storefront/shipping.py

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Union

from .errors import InvalidRequestError, PrintfulAPIError, ShippingProviderError, UnresolvableVariantError
from .models import CartLine, ShippingItem, ShippingOption

logger = logging.getLogger(__name__)


def _to_option(raw: Dict, default_currency: str) -> ShippingOption:
    min_days = raw.get("minDeliveryDays", raw.get("min_delivery_days"))
    max_days = raw.get("maxDeliveryDays", raw.get("max_delivery_days"))
    return ShippingOption(
        id=str(raw["id"]),
        name=raw.get("name") or str(raw["id"]),
        rate=Decimal(str(raw["rate"])),
        currency=raw.get("currency") or default_currency,
        min_days=int(min_days) if min_days is not None else None,
        max_days=int(max_days) if max_days is not None else None,
    )


class ShippingEstimator:
    def __init__(self, client, currency: str = "EUR"):
        self.client = client
        self.currency = currency
        # store-level (sync) variant id -> catalog-level variant id
        self._catalog_ids: Dict[int, int] = {}

    def resolve_catalog_variant_id(self, line: Union[CartLine, ShippingItem]) -> Optional[int]:
        if line.catalog_variant_id:
            return line.catalog_variant_id
        cached = self._catalog_ids.get(line.variant_id)
        if cached:
            return cached
        catalog_id = self.client.get_catalog_variant_id(line.variant_id)
        if catalog_id:
            self._catalog_ids[line.variant_id] = catalog_id
        return catalog_id

    def estimate(self, country_code: str, lines: Sequence[Union[CartLine, ShippingItem]]) -> List[ShippingOption]:
        if not isinstance(country_code, str) or not country_code.strip():
            raise InvalidRequestError("country_code is required")
        if not lines:
            raise InvalidRequestError("items array is required")

        items = []
        for line in lines:
            catalog_id = self.resolve_catalog_variant_id(line)
            if not catalog_id:
                raise UnresolvableVariantError()
            items.append({"variant_id": catalog_id, "quantity": line.quantity})

        try:
            raw_rates = self.client.shipping_rates(country_code.strip().upper(), items, currency=self.currency)
        except PrintfulAPIError as e:
            logger.error("Shipping rates failed for %s: %s (%s)", country_code, e, e.body)
            raise ShippingProviderError(e.message) from e

        try:
            # provider order is kept as-is
            return [_to_option(r, self.currency) for r in raw_rates]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.error("Unexpected shipping rate payload %r: %s", raw_rates, e)
            raise ShippingProviderError() from e


class ShippingState:
    """Rates currently shown to the shopper and the one they picked."""

    def __init__(self):
        self.country_code: Optional[str] = None
        self.options: List[ShippingOption] = []
        self.selected: Optional[ShippingOption] = None

    def show(self, country_code: str, options: List[ShippingOption]) -> Optional[ShippingOption]:
        self.country_code = country_code
        self.options = list(options)
        # first option is the default
        self.selected = self.options[0] if self.options else None
        return self.selected

    def select(self, option_id: str) -> ShippingOption:
        for option in self.options:
            if option.id == option_id:
                self.selected = option
                return option
        raise InvalidRequestError(f"Unknown shipping option: {option_id}")

    def invalidate(self) -> None:
        self.country_code = None
        self.options = []
        self.selected = None

    def total(self, subtotal: Decimal) -> Decimal:
        if self.selected is None:
            return subtotal
        return subtotal + self.selected.rate
