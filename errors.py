"""
Error types raised by the storefront services.

Routes never build HTTP errors themselves: the services raise one of these
and the exception handlers registered in ``main.create_app`` turn them into
plain-text responses.
"""


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(StorefrontError):
    """Malformed or missing input, bad identifier, or order not editable."""
    status_code = 400


class NotFound(StorefrontError):
    status_code = 404


class StorageError(StorefrontError):
    """Database query, decode or write failure (including timeouts)."""
    status_code = 500


class ConfigError(Exception):
    pass
