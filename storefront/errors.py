# storefront/errors.py

from typing import Optional


class StorefrontError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


# -------------------------
# Variant resolution
# -------------------------

class NotFoundError(StorefrontError):
    status_code = 404
    default_message = "Not found"


class VariantUnavailableError(StorefrontError):
    status_code = 409
    default_message = "This variant is no longer available"


# -------------------------
# Shipping
# -------------------------

class InvalidRequestError(StorefrontError):
    status_code = 400
    default_message = "Invalid request"


class UnresolvableVariantError(StorefrontError):
    status_code = 422
    default_message = "Could not resolve one or more product variants"


class ShippingProviderError(StorefrontError):
    status_code = 502
    default_message = "Failed to calculate shipping rates"


# -------------------------
# Checkout
# -------------------------

class EmptyCartError(StorefrontError):
    status_code = 400
    default_message = "Cart is empty"


class InvalidLineError(StorefrontError):
    status_code = 400
    default_message = "Invalid cart item"


class ShippingRequiredError(StorefrontError):
    status_code = 400
    default_message = "Select a shipping option before checkout"


class CheckoutFailedError(StorefrontError):
    status_code = 502
    default_message = "Failed to create checkout session"


# -------------------------
# Fulfillment provider
# -------------------------

class PrintfulAPIError(StorefrontError):
    status_code = 502
    default_message = "Fulfillment provider request failed"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class FulfillmentError(StorefrontError):
    status_code = 500
    default_message = "Could not create fulfillment order"
