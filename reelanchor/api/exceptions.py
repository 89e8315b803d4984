"""Custom exception classes for the API."""


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TooManyQuotesError(ValidationError):
    """Raised when a request carries more quotes than one batch may align."""

    def __init__(self, quote_count: int, max_quotes: int):
        self.quote_count = quote_count
        self.max_quotes = max_quotes
        super().__init__(
            f"Request contains {quote_count} quotes; at most {max_quotes} are aligned per request"
        )
