"""
Error taxonomy for the e-shop services.

Services raise these; the API layer maps them to HTTP responses in
``eshop.main`` (see ``register_exception_handlers``).

    ShopError
    ├── InputValidationError    field-level rejection, before any store call
    ├── StoreOperationError     a read/write against the database failed
    ├── NotFoundError           referenced row does not exist
    └── BusinessRuleError       rule violated after successful reads
        ├── InsufficientStockError
        └── RateLimitExceededError
"""

from typing import Optional


class ShopError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def add_context(self, prefix: str) -> None:
        """Prepend ``prefix`` to the message, keeping the error type."""
        self.message = f"{prefix}{self.message}"
        self.args = (self.message,)


class InputValidationError(ShopError):
    """Exception raised when submitted data fails a format check."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class StoreOperationError(ShopError):
    """Exception raised when a database operation fails."""

    status_code = 503


class NotFoundError(ShopError):
    """Exception raised when a referenced record does not exist."""

    status_code = 404


class BusinessRuleError(ShopError):
    """Exception raised when a request breaks a business rule."""

    status_code = 409


class InsufficientStockError(BusinessRuleError):
    """Exception raised when a product cannot cover the requested quantity."""

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f'Product "{product_name}" is not available in the requested quantity. '
            f"Available: {available} pcs"
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class RateLimitExceededError(BusinessRuleError):
    """Exception raised when a client exceeds its request quota."""

    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after
