# storefront/fulfillment.py
"""
Payment webhook handling.

Once a payment event has been verified, turns the paid checkout session into a
Printful order. Payment success is authoritative: failures here are logged for
follow-up and never propagated back to the payment provider.
"""

import json
import logging
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set

from .errors import FulfillmentError, PrintfulAPIError

logger = logging.getLogger(__name__)

EVENT_COMPLETED = "checkout.session.completed"
EVENT_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
EVENT_ASYNC_FAILED = "checkout.session.async_payment_failed"


def _minor_to_str(amount: Optional[int]) -> str:
    return f"{(Decimal(amount or 0) / 100):.2f}"


def parse_cart_metadata(session: Dict[str, Any]) -> List[Dict[str, int]]:
    raw = (session.get("metadata") or {}).get("cart")
    try:
        items = json.loads(raw)
        parsed = [{"variantId": int(i["variantId"]), "quantity": int(i["quantity"])} for i in items]
    except (TypeError, ValueError, KeyError) as e:
        raise FulfillmentError("Could not parse cart metadata") from e
    if not parsed:
        raise FulfillmentError("Cart metadata is empty")
    return parsed


def _shipping_details(session: Dict[str, Any]) -> Dict[str, Any]:
    details = session.get("shipping_details")
    if not details:
        details = (session.get("collected_information") or {}).get("shipping_details")
    return details or {}


def build_order(session: Dict[str, Any]) -> Dict[str, Any]:
    shipping = _shipping_details(session)
    customer = session.get("customer_details") or {}
    address = shipping.get("address")
    if not address:
        raise FulfillmentError("No shipping address in session")

    metadata = session.get("metadata") or {}
    totals = session.get("total_details") or {}

    return {
        "external_id": metadata.get("order_ref") or session["id"],
        "recipient": {
            "name": shipping.get("name") or customer.get("name") or "",
            "email": customer.get("email") or "",
            "phone": customer.get("phone") or "",
            "address1": address.get("line1") or "",
            "address2": address.get("line2") or "",
            "city": address.get("city") or "",
            "state_code": address.get("state") or "",
            "country_code": address.get("country") or "",
            "zip": address.get("postal_code") or "",
        },
        "items": [
            {"sync_variant_id": item["variantId"], "quantity": item["quantity"]}
            for item in parse_cart_metadata(session)
        ],
        "retail_costs": {
            "currency": (session.get("currency") or "eur").upper(),
            "subtotal": _minor_to_str(session.get("amount_subtotal")),
            "shipping": _minor_to_str(totals.get("amount_shipping")),
            "total": _minor_to_str(session.get("amount_total")),
        },
    }


class FulfillmentService:
    def __init__(self, client, auto_confirm: bool = True):
        self.client = client
        self.auto_confirm = auto_confirm
        self._processed: Set[str] = set()
        self._lock = threading.Lock()

    def handle_event(self, event: Dict[str, Any]) -> str:
        event_type = event.get("type")
        session = (event.get("data") or {}).get("object") or {}
        session_id = session.get("id")

        if event_type == EVENT_COMPLETED:
            if session.get("payment_status") != "paid":
                # delayed payment methods confirm later via async_payment_succeeded
                logger.info("Session %s payment_status is %s, waiting", session_id, session.get("payment_status"))
                return "pending"
            return self._fulfill(session)

        if event_type == EVENT_ASYNC_SUCCEEDED:
            return self._fulfill(session)

        if event_type == EVENT_ASYNC_FAILED:
            logger.warning("Async payment failed for session %s, no order created", session_id)
            return "payment_failed"

        return "ignored"

    def _fulfill(self, session: Dict[str, Any]) -> str:
        session_id = session.get("id")
        with self._lock:
            if session_id in self._processed:
                logger.info("Session %s already fulfilled, skipping duplicate delivery", session_id)
                return "duplicate"
            self._processed.add(session_id)

        try:
            order_id = self.create_order(session)
        except Exception as e:
            # allow a replay of the same session later
            with self._lock:
                self._processed.discard(session_id)
            logger.error("Failed to create Printful order for session %s: %s", session_id, e, exc_info=True)
            return "failed"

        logger.info("Printful order created: %s for Stripe session: %s", order_id, session_id)
        return "created"

    def create_order(self, session: Dict[str, Any]) -> Any:
        order = build_order(session)
        result = self.client.create_order(order)
        order_id = result.get("id") if isinstance(result, dict) else None
        if order_id is None:
            raise FulfillmentError(f"Printful returned no order id for session {session.get('id')}")

        if self.auto_confirm:
            try:
                self.client.confirm_order(order_id)
            except PrintfulAPIError as e:
                logger.warning("Could not auto-confirm order %s: %s", order_id, e)
        return order_id
