"""
storefront/core/errors.py - Error taxonomy for the cart/order/payment workflow.

Every remote-operation failure is raised as one of these, carrying a human-readable
`detail` and the HTTP status the routers answer with.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 500
    default_detail = "Unexpected storefront error."

    def __init__(self, detail: Optional[str] = None, *, cause: Optional[BaseException] = None):
        self.detail = detail or self.default_detail
        self.cause = cause
        super().__init__(self.detail)


class RemoteReadFailed(StorefrontError):
    status_code = 502
    default_detail = "Could not read from the data store."


class RemoteWriteFailed(StorefrontError):
    status_code = 502
    default_detail = "Could not write to the data store."


class CartLineConflict(RemoteWriteFailed):
    """The cart line changed since it was read (revision moved)."""
    status_code = 409
    default_detail = "Cart line was modified elsewhere. Please review your cart."


class EmptyCart(StorefrontError):
    status_code = 400
    default_detail = "Your cart is empty."


class GuestCheckoutNotAllowed(StorefrontError):
    status_code = 401
    default_detail = "Please sign in to check out."


class OrderNotFound(StorefrontError):
    status_code = 404
    default_detail = "Order not found."


class OrderCreationFailed(StorefrontError):
    status_code = 502
    default_detail = "Failed to create order."


class OrderItemsFailed(StorefrontError):
    status_code = 502
    default_detail = "Failed to save order items."


class PaymentSessionFailed(StorefrontError):
    status_code = 502
    default_detail = "Failed to create checkout session."


class InvalidPaymentSession(StorefrontError):
    status_code = 400
    default_detail = "Invalid payment session."


class PaymentNotVerified(StorefrontError):
    status_code = 402
    default_detail = "Payment could not be verified with the processor."


class ReconciliationFailed(StorefrontError):
    status_code = 502
    default_detail = "Payment verification failed. Please contact support if payment was processed."


class InvalidWebhookSignature(StorefrontError):
    status_code = 401
    default_detail = "invalid signature"
