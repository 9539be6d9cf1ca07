# storefront/checkout.py

import json
import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

import stripe

from .cart import MAX_QUANTITY
from .config import Settings, get_settings
from .errors import CheckoutFailedError, EmptyCartError, InvalidLineError, ShippingRequiredError
from .models import CartLine, CheckoutSession, ShippingOption

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_lines(lines: Sequence[CartLine]) -> None:
    if not lines:
        raise EmptyCartError()
    for line in lines:
        if not line.variant_id or not line.product_name:
            raise InvalidLineError("Invalid cart item structure")
        if isinstance(line.quantity, bool) or not 1 <= line.quantity <= MAX_QUANTITY:
            raise InvalidLineError("Invalid quantity")
        if line.unit_price <= 0:
            raise InvalidLineError("Invalid price")


def build_line_items(lines: Sequence[CartLine]) -> List[Dict[str, Any]]:
    items = []
    for line in lines:
        product_data: Dict[str, Any] = {"name": line.product_name}
        if line.variant_label:
            product_data["description"] = line.variant_label
        if line.thumbnail_url:
            product_data["images"] = [line.thumbnail_url]
        items.append({
            "price_data": {
                "currency": line.currency.lower(),
                "product_data": product_data,
                "unit_amount": to_minor_units(line.unit_price),
            },
            "quantity": line.quantity,
        })
    return items


def build_cart_metadata(lines: Sequence[CartLine]) -> str:
    # prices are re-derived on the fulfillment side, only ids and quantities travel
    return json.dumps([{"variantId": line.variant_id, "quantity": line.quantity} for line in lines])


def build_shipping_options(option: ShippingOption) -> List[Dict[str, Any]]:
    rate_data: Dict[str, Any] = {
        "type": "fixed_amount",
        "fixed_amount": {"amount": to_minor_units(option.rate), "currency": option.currency.lower()},
        "display_name": option.name,
    }
    if option.min_days or option.max_days:
        low = option.min_days or option.max_days
        high = option.max_days or option.min_days
        rate_data["delivery_estimate"] = {
            "minimum": {"unit": "business_day", "value": low},
            "maximum": {"unit": "business_day", "value": high},
        }
    return [{"shipping_rate_data": rate_data}]


class CheckoutOrchestrator:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def create_session(
        self,
        lines: Sequence[CartLine],
        shipping_option: Optional[ShippingOption] = None,
    ) -> CheckoutSession:
        validate_lines(lines)
        if self.settings.require_shipping_selection and shipping_option is None:
            raise ShippingRequiredError()

        if not self.settings.stripe_secret_key:
            raise RuntimeError("STRIPE_SECRET_KEY is missing. Add it to your .env file.")
        stripe.api_key = self.settings.stripe_secret_key

        order_ref = uuid.uuid4().hex
        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": build_line_items(lines),
            "shipping_address_collection": {"allowed_countries": self.settings.shipping_countries},
            "phone_number_collection": {"enabled": True},
            "client_reference_id": order_ref,
            "metadata": {"cart": build_cart_metadata(lines), "order_ref": order_ref},
            "success_url": f"{self.settings.store_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.settings.store_url}/?canceled=1",
        }
        if shipping_option is not None:
            params["shipping_options"] = build_shipping_options(shipping_option)

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error("Stripe checkout error (order_ref=%s): %s", order_ref, e, exc_info=True)
            raise CheckoutFailedError() from e

        url = getattr(session, "url", None)
        if not url:
            logger.error("Stripe session %s returned no redirect url", getattr(session, "id", None))
            raise CheckoutFailedError()

        logger.info("Checkout session %s created (order_ref=%s, lines=%d)", session.id, order_ref, len(lines))
        return CheckoutSession(redirect_url=url, session_ref=session.id)
