class StorefrontError(Exception):
    """Base class for errors raised by the checkout services."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    status_code = 400


class EmptyCartError(ValidationError):
    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class NotFoundError(StorefrontError):
    status_code = 404


class ForbiddenError(StorefrontError):
    status_code = 403


class PersistenceError(StorefrontError):
    status_code = 500


class InvalidCallbackError(StorefrontError):
    """Gateway callback payload could not be decoded or is missing fields."""


class InvalidSignatureError(StorefrontError):
    """Gateway callback signature did not verify."""
