"""Error taxonomy shared by the auth gate, catalog and order engine.

Every error carries the HTTP status the API layer answers with, so
routes can simply let them propagate to the exception handler in main.py.
"""
from typing import Optional


class CommerceError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CommerceError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(CommerceError):
    status_code = 401
    default_message = "Not authorized"


class Forbidden(CommerceError):
    status_code = 403
    default_message = "Access denied. Admin only."


class DuplicateEmail(CommerceError):
    status_code = 400
    default_message = "This email is already in use."


class InvalidCredentials(CommerceError):
    status_code = 401
    default_message = "Invalid credentials."


class AccountDisabled(CommerceError):
    status_code = 403
    default_message = "This account has been disabled."


class ProductNotFound(CommerceError):
    status_code = 404
    default_message = "Product not found."


class SizeNotFound(CommerceError):
    status_code = 404
    default_message = "Size not found."


class UserNotFound(CommerceError):
    status_code = 404
    default_message = "User not found."


class InsufficientStock(CommerceError):
    status_code = 400

    def __init__(self, product_name: str, size: str):
        self.product_name = product_name
        self.size = size
        super().__init__(f"Insufficient stock for {product_name} (Size: {size})")


class StorageFailure(CommerceError):
    """Infrastructure failure. The message is generic; details only go to the log."""
    status_code = 500
    default_message = "Server error"


class OrderCommitFailed(StorageFailure):
    """Stock was reserved but the order record could not be written."""
