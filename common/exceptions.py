"""
Storefront - Custom Exceptions
===============================
Business-level exceptions that can be caught and converted to HTTP responses.
Every exception carries the HTTP status it maps to.
"""

from fastapi import status


class ShopError(Exception):
    """Base exception for all business logic errors."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Something went wrong."):
        self.message = message
        super().__init__(self.message)


class ValidationError(ShopError):
    """Raised for malformed input (bad quantity, missing field)."""
    pass


class AuthenticationError(ShopError):
    """Raised when an operation needs a logged-in user."""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "login required"):
        super().__init__(message)


class AuthorizationError(ShopError):
    """Raised when user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "forbidden"):
        super().__init__(message)


class NotFoundError(ShopError):
    """Raised when a requested resource doesn't exist."""
    status_code = status.HTTP_404_NOT_FOUND


class BusinessRuleError(ShopError):
    """Raised when a request is well-formed but not allowed right now."""
    status_code = status.HTTP_409_CONFLICT


class CouponRejectedError(ShopError):
    """Raised when an explicitly applied coupon does not validate."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"coupon rejected: {reason}")


class InsufficientInventoryError(ShopError):
    """Raised when product inventory is not enough."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_name: str = ""):
        msg = f"insufficient stock: {product_name}" if product_name else "insufficient stock"
        super().__init__(msg)


class CartConflictError(ShopError):
    """Raised when another request modified the same cart first."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self):
        super().__init__("cart was modified by another request, please retry")


class DuplicateError(ShopError):
    """Raised for unique constraint violations at the business level."""
    status_code = status.HTTP_409_CONFLICT


class CheckoutError(ShopError):
    """Raised when checkout fails for a reason the customer cannot fix."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self):
        super().__init__("checkout failed, please try again later")
