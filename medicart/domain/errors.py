# medicart/medicart/domain/errors.py
"""Cart and checkout errors and user-facing message constants."""

from __future__ import annotations

from typing import List, Optional


class errmsg:
    """Message constants for the cart domain."""

    CART_EMPTY = "Cart is empty"
    STOCK_LIMIT = "Only {limit} items available in stock"
    ITEM_OVER_STOCK = "{name}: Only {limit} items available"
    ITEM_UNAVAILABLE = "{name}: No longer available"
    QUANTITY_POSITIVE = "Quantity must be at least 1"
    ADDED = "Added {name} to cart"
    UPDATED = "Updated {name} quantity"
    REMOVED = "Removed {name} from cart"
    CLEARED = "Cart cleared"
    LOGIN_REQUIRED = "Please log in to continue to checkout"
    ORDER_FAILED = "Failed to place order"
    ADDRESS_INCOMPLETE = "Street, city and area are required"
    PAYMENT_UNAVAILABLE = "Payment method {method} is not available yet"


# MutationResult.reason values
STOCK_EXCEEDED = "stock_exceeded"
INVALID_QUANTITY = "invalid_quantity"


class PersistenceCorrupt(ValueError):
    """Stored cart payload could not be decoded."""


class CheckoutError(Exception):
    """Base class for everything that stops the checkout flow."""


class AuthenticationRequired(CheckoutError):
    def __init__(self, message: str = errmsg.LOGIN_REQUIRED) -> None:
        super().__init__(message)


class CartValidationFailed(CheckoutError):
    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class EmptyCartAtSubmission(CheckoutError):
    def __init__(self, message: str = "Your cart is empty") -> None:
        super().__init__(message)


class SubmissionFailed(CheckoutError):
    def __init__(self, message: str = errmsg.ORDER_FAILED, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidTransition(CheckoutError):
    pass


class IncompleteAddress(CheckoutError):
    def __init__(self, message: str = errmsg.ADDRESS_INCOMPLETE) -> None:
        super().__init__(message)


class PaymentMethodUnavailable(CheckoutError):
    pass
