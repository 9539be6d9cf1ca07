# storefront/session.py

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from .cart import CartStore
from .checkout import CheckoutOrchestrator
from .formatters import format_price
from .models import CartLine, CheckoutSession, ShippingOption
from .shipping import ShippingEstimator, ShippingState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimateTicket:
    revision: int
    country_code: str
    lines: Tuple[CartLine, ...]


class ShopperSession:
    """
    Cart, shipping selection and checkout for one shopper.

    Every cart mutation bumps ``revision`` and drops the shipping selection;
    an estimate that started against an older revision is discarded.
    """

    def __init__(self, cart: CartStore, estimator: ShippingEstimator, checkout: CheckoutOrchestrator):
        self.cart = cart
        self.estimator = estimator
        self.checkout_orchestrator = checkout
        self.shipping = ShippingState()
        self.revision = 0
        self._lock = threading.RLock()
        cart.subscribe(self._on_cart_changed)

    def _on_cart_changed(self, _cart: CartStore) -> None:
        self.revision += 1
        self.shipping.invalidate()

    # -------------------------
    # Cart
    # -------------------------

    def add(self, line: CartLine) -> List[CartLine]:
        with self._lock:
            return self.cart.add_or_increment(line)

    def remove(self, variant_id: int) -> List[CartLine]:
        with self._lock:
            return self.cart.remove(variant_id)

    def set_quantity(self, variant_id: int, qty: int) -> List[CartLine]:
        with self._lock:
            return self.cart.set_quantity(variant_id, qty)

    def clear(self) -> List[CartLine]:
        with self._lock:
            return self.cart.clear()

    # -------------------------
    # Shipping
    # -------------------------

    def begin_estimate(self, country_code: str) -> EstimateTicket:
        with self._lock:
            return EstimateTicket(self.revision, country_code, tuple(self.cart.lines))

    def apply_estimate(self, ticket: EstimateTicket, options: List[ShippingOption]) -> bool:
        with self._lock:
            if ticket.revision != self.revision:
                logger.info("Discarding stale shipping estimate (rev %d, now %d)", ticket.revision, self.revision)
                return False
            self.shipping.show(ticket.country_code, options)
            return True

    def estimate_shipping(self, country_code: str) -> List[ShippingOption]:
        ticket = self.begin_estimate(country_code)
        # provider call happens outside the lock; the cart may change meanwhile
        options = self.estimator.estimate(country_code, list(ticket.lines))
        if not self.apply_estimate(ticket, options):
            return []
        return options

    def select_shipping(self, option_id: str) -> ShippingOption:
        with self._lock:
            return self.shipping.select(option_id)

    @property
    def selected_shipping(self) -> Optional[ShippingOption]:
        return self.shipping.selected

    @property
    def total(self) -> Decimal:
        return self.shipping.total(self.cart.subtotal)

    # -------------------------
    # Checkout
    # -------------------------

    def checkout(self) -> CheckoutSession:
        with self._lock:
            lines = self.cart.lines
            option = self.shipping.selected
        # cart is kept on failure so the shopper can retry
        return self.checkout_orchestrator.create_session(lines, option)

    def complete_purchase(self) -> None:
        self.clear()

    def snapshot(self) -> dict:
        with self._lock:
            selected = self.shipping.selected
            return {
                "items": [line.model_dump(mode="json") for line in self.cart.lines],
                "count": self.cart.count,
                "subtotal": str(self.cart.subtotal),
                "currency": self.cart.currency,
                "shipping_options": [o.model_dump(mode="json") for o in self.shipping.options],
                "shipping": selected.model_dump(mode="json") if selected else None,
                "total": str(self.total),
                "display": {
                    "subtotal": format_price(self.cart.subtotal, self.cart.currency),
                    "shipping": format_price(selected.rate, selected.currency) if selected else None,
                    "total": format_price(self.total, self.cart.currency),
                },
            }
