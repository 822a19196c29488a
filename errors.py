from typing import Optional


class ValidationError(ValueError):
    def __init__(self, message: str, details: Optional[list[dict]] = None) -> None:
        super().__init__(message)
        self.details = details


class NotFoundError(ValueError):
    pass


class PermissionDenied(ValueError):
    pass


class AuthenticationError(Exception):
    pass


class RateLimitExceeded(Exception):
    def __init__(self, limit: int, remaining: int, reset_at: int, retry_after: int):
        super().__init__("Too many requests. Please wait a moment.")
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.retry_after = retry_after
