# storefront/main.py

import json
import logging
import os
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

import stripe
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from .cart import CART_KEY, CartStore, JsonFileStorage, MemoryStorage
from .catalog import CATEGORIES, filter_products, list_countries
from .checkout import CheckoutOrchestrator
from .config import Settings, get_settings
from .data import CatalogCache
from .errors import StorefrontError
from .fulfillment import FulfillmentService
from .models import CartLine, ShippingItem, ShippingOption
from .printful import PrintfulClient
from .session import ShopperSession
from .shipping import ShippingEstimator
from .variants import VariantSelector, list_primary_options

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Print-on-demand Storefront API", version="1.0.0")


# -------------------------
# Services
# -------------------------

class Services:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.printful = PrintfulClient(settings)
        self.catalog = CatalogCache(
            self.printful,
            ttl_seconds=settings.catalog_ttl_seconds,
            thumbnail_overrides=settings.thumbnail_overrides,
        )
        self.estimator = ShippingEstimator(self.printful, currency=settings.default_currency)
        self.checkout = CheckoutOrchestrator(settings)
        self.fulfillment = FulfillmentService(self.printful)
        if settings.cart_storage_path:
            self.storage = JsonFileStorage(settings.cart_storage_path)
        else:
            self.storage = MemoryStorage()


services = Services(settings)

# Shopper sessions by cart id, rehydrated from storage after a restart
SESSIONS: Dict[str, ShopperSession] = {}


@app.exception_handler(StorefrontError)
def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# -------------------------
# Models
# -------------------------

class SelectRequest(BaseModel):
    primary: Optional[str] = None
    variant_id: Optional[int] = None


class AddItemRequest(BaseModel):
    cart_id: str
    variant_id: int
    qty: int = 1


class RemoveItemRequest(BaseModel):
    cart_id: str
    variant_id: int


class QuantityRequest(BaseModel):
    cart_id: str
    variant_id: int
    qty: int


class ShippingRequest(BaseModel):
    country_code: str = ""


class ShippingSelectRequest(BaseModel):
    option_id: str


class RateItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    variant_id: int = Field(alias="variantId")
    quantity: int = 1
    catalog_variant_id: Optional[int] = Field(default=None, alias="catalogVariantId")


class RatesRequest(BaseModel):
    country_code: str = ""
    items: List[RateItem] = []


class CheckoutItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    variant_id: Optional[int] = Field(default=None, alias="variantId")
    name: Optional[str] = None
    variant_label: Optional[str] = Field(default=None, alias="variantLabel")
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    thumbnail: Optional[str] = None
    quantity: Optional[int] = None

    def to_line(self, default_currency: str) -> CartLine:
        return CartLine(
            variant_id=self.variant_id or 0,
            product_name=self.name or "",
            variant_label=self.variant_label or "",
            unit_price=self.price if self.price is not None else Decimal("0"),
            currency=self.currency or default_currency,
            thumbnail_url=self.thumbnail,
            quantity=self.quantity or 0,
        )


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CheckoutItem] = []
    shipping_option: Optional[ShippingOption] = Field(default=None, alias="shippingOption")


# -------------------------
# Helpers
# -------------------------

def find_product(slug: str):
    product = services.catalog.get_by_slug(slug)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def new_session(cart_id: str) -> ShopperSession:
    cart = CartStore(services.storage, key=f"{CART_KEY}:{cart_id}")
    return ShopperSession(cart, services.estimator, services.checkout)


def get_session(cart_id: str) -> ShopperSession:
    session = SESSIONS.get(cart_id)
    if session:
        return session
    if services.storage.get(f"{CART_KEY}:{cart_id}") is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    session = new_session(cart_id)
    SESSIONS[cart_id] = session
    return session


def selection_payload(selector: VariantSelector) -> Dict[str, Any]:
    selected = selector.selected_variant
    return {
        "selected_primary": selector.selected_primary,
        "secondary_options": [
            {"variant": v.model_dump(mode="json"), "disabled": not v.available}
            for v in selector.secondary_options
        ],
        "selected_variant": selected.model_dump(mode="json") if selected else None,
        "image": selector.display_image,
        "can_add_to_cart": selector.can_add_to_cart,
        "price": str(selected.price) if selected else None,
    }


# -------------------------
# Catalog
# -------------------------

@app.get("/")
def root():
    return {"name": "Print-on-demand Storefront API", "status": "ok"}


@app.get("/products")
def list_products(
    response: Response,
    category: Optional[str] = None,
    country: Optional[str] = None,
    q: Optional[str] = None,
):
    products = services.catalog.products()
    items = filter_products(products, category=category, country=country, q=q)
    response.headers["Cache-Control"] = "s-maxage=300, stale-while-revalidate"
    return {
        "products": [p.model_dump(mode="json") for p in items],
        "categories": list(CATEGORIES),
        "countries": list_countries(products),
    }


@app.get("/products/{slug}")
def get_product(slug: str):
    return find_product(slug).model_dump(mode="json")


@app.get("/products/{slug}/options")
def product_options(slug: str):
    product = find_product(slug)
    selector = VariantSelector(product)
    payload = selection_payload(selector)
    payload["primary_options"] = list_primary_options(product)
    return payload


@app.post("/products/{slug}/select")
def select_variant(slug: str, req: SelectRequest):
    product = find_product(slug)
    selector = VariantSelector(product)
    if req.primary is not None:
        selector.select_primary(req.primary)
        if req.variant_id is not None:
            selector.select_secondary(req.variant_id)
    payload = selection_payload(selector)
    payload["primary_options"] = list_primary_options(product)
    return payload


# -------------------------
# Cart
# -------------------------

@app.post("/cart/create")
def create_cart():
    cart_id = f"c_{uuid.uuid4().hex[:10]}"
    session = new_session(cart_id)
    # an empty payload keeps the id addressable after a restart
    session.cart.save()
    SESSIONS[cart_id] = session
    return {"cart_id": cart_id, **session.snapshot()}


@app.get("/cart/{cart_id}")
def get_cart(cart_id: str):
    return {"cart_id": cart_id, **get_session(cart_id).snapshot()}


@app.post("/cart/items/add")
def add_item(req: AddItemRequest):
    session = get_session(req.cart_id)

    product, variant = services.catalog.find_variant(req.variant_id)
    if not variant:
        raise HTTPException(status_code=404, detail="Product not found")

    # same path as the option picker: primary first, then the concrete variant
    selector = VariantSelector(product)
    selector.select_primary(variant.options.primary)
    if selector.selected_variant is None or selector.selected_variant.id != variant.id:
        selector.select_secondary(variant.id)

    session.add(selector.to_cart_line(req.qty))
    return {"cart_id": req.cart_id, **session.snapshot()}


@app.post("/cart/items/remove")
def remove_item(req: RemoveItemRequest):
    session = get_session(req.cart_id)
    session.remove(req.variant_id)
    return {"cart_id": req.cart_id, **session.snapshot()}


@app.post("/cart/items/quantity")
def update_quantity(req: QuantityRequest):
    session = get_session(req.cart_id)
    session.set_quantity(req.variant_id, req.qty)
    return {"cart_id": req.cart_id, **session.snapshot()}


@app.post("/cart/{cart_id}/clear")
def clear_cart(cart_id: str):
    session = get_session(cart_id)
    session.clear()
    session.cart.save()
    return {"cart_id": cart_id, **session.snapshot()}


# -------------------------
# Shipping
# -------------------------

@app.post("/cart/{cart_id}/shipping")
def estimate_cart_shipping(cart_id: str, req: ShippingRequest):
    session = get_session(cart_id)
    session.estimate_shipping(req.country_code)
    return {"cart_id": cart_id, **session.snapshot()}


@app.post("/cart/{cart_id}/shipping/select")
def select_cart_shipping(cart_id: str, req: ShippingSelectRequest):
    session = get_session(cart_id)
    session.select_shipping(req.option_id)
    return {"cart_id": cart_id, **session.snapshot()}


@app.post("/api/shipping-rates")
def shipping_rates(req: RatesRequest, response: Response):
    items = [ShippingItem(**i.model_dump()) for i in req.items]
    rates = services.estimator.estimate(req.country_code, items)
    response.headers["Cache-Control"] = "s-maxage=300, stale-while-revalidate"
    return {"rates": [r.model_dump(mode="json") for r in rates]}


# -------------------------
# Checkout
# -------------------------

@app.post("/cart/{cart_id}/checkout")
def checkout_cart(cart_id: str):
    session = get_session(cart_id)
    result = session.checkout()
    return {"url": result.redirect_url, "sessionId": result.session_ref}


@app.post("/api/create-checkout")
def create_checkout(req: CheckoutRequest):
    lines = [item.to_line(services.settings.default_currency) for item in req.items]
    result = services.checkout.create_session(lines, req.shipping_option)
    return {"url": result.redirect_url, "sessionId": result.session_ref}


# -------------------------
# Payment webhook
# -------------------------

@app.post("/api/webhook")
async def payment_webhook(request: Request):
    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")
    secret = services.settings.stripe_webhook_secret
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not set, rejecting webhook")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    event = json.loads(payload)
    result = await run_in_threadpool(services.fulfillment.handle_event, event)
    return {"received": True, "result": result}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
