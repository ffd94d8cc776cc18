"""Custom exceptions for the storefront API."""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(StorefrontError):
    """Raised when a requested record doesn't exist."""

    status_code = 404

    def __init__(self, what: str = "Resource"):
        self.what = what
        super().__init__(f"{what} not found")


class Unauthenticated(StorefrontError):
    """Raised when a gated route is called without a bearer token."""

    status_code = 401

    def __init__(self):
        super().__init__("Access token required")


class InvalidCredentials(StorefrontError):
    """Raised when an email/password pair doesn't match."""

    status_code = 400

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InvalidToken(InvalidCredentials):
    """Raised when a bearer token is malformed, expired or names no user."""

    status_code = 403

    def __init__(self):
        super().__init__("Invalid token")


class DuplicateUser(StorefrontError):
    status_code = 400

    def __init__(self, email: str):
        self.email = email
        super().__init__("User already exists")


class DuplicateReview(StorefrontError):
    status_code = 400

    def __init__(self):
        super().__init__("You have already reviewed this product")


class InsufficientStock(StorefrontError):
    """Raised when an order line asks for more units than are in stock."""

    status_code = 400

    def __init__(self, product_name: Optional[str] = None):
        self.product_name = product_name or "product"
        super().__init__(f"Insufficient stock for {self.product_name}")


class ValidationFailure(StorefrontError):
    """Raised when a request field is malformed or missing."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: Optional[list] = None):
        self.errors = errors or []
        super().__init__(message)


class InternalFailure(StorefrontError):
    """Raised when the store fails in an unexpected way."""

    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)

    @property
    def error(self) -> str:
        return str(self.cause) if self.cause is not None else self.message
