"""Exception classes for the transactions API."""


class TransactionsAPIError(Exception):
    """Base exception. Carries the HTTP status and the client-facing message."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, detail: str | None = None):
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message if detail is None else f"{self.message}: {detail}")


class ConfigError(TransactionsAPIError):
    """Configuration-related errors."""
    message = "Invalid configuration"


class ValidationError(TransactionsAPIError):
    """Missing or invalid request parameter."""
    status_code = 400
    message = "Invalid request"


class UpstreamFetchError(TransactionsAPIError):
    """Seeding source unreachable, non-2xx, or returned unusable data."""
    message = "Error seeding the database"


class StoreError(TransactionsAPIError):
    """Any database operation failure."""
    message = "Database error"


class StoreTimeoutError(StoreError):
    """A store call exceeded its deadline."""
    status_code = 504
    message = "Request timed out"
