"""
Error taxonomy for calls made against the Strava API.
Every failure inside the client is re-raised as one of these kinds so callers can
render a short message without knowing about HTTP details.
"""

from typing import Any, List, Optional


class StravaError(Exception):
    """Base class for all Strava client errors."""


class ConfigurationError(StravaError):
    """Required credentials or settings are missing."""


class AuthError(StravaError):
    """Strava rejected the access token and it could not be refreshed."""

    def __init__(self, context: str, message: str = "Invalid or expired Strava token"):
        self.context = context
        self.message = message
        super().__init__(f"Strava authentication failed in {context}: {message}")


class SubscriptionRequiredError(StravaError):
    def __init__(self, context: str):
        self.context = context
        super().__init__(
            f"SUBSCRIPTION_REQUIRED: Access to this feature requires a Strava subscription. Context: {context}"
        )


class RateLimitError(StravaError):
    def __init__(self, context: str, retry_after: Optional[str] = None):
        self.context = context
        self.retry_after = retry_after
        super().__init__(f"Strava API rate limit exceeded in {context}")


class SchemaError(StravaError):
    """A response body did not match the schema declared for its resource."""

    def __init__(self, context: str, details: List[Any]):
        self.context = context
        self.details = details
        super().__init__(f"Invalid data format received from Strava API in {context}: {details}")


class UpstreamError(StravaError):
    """Any other upstream failure. `status` is None when no response was received."""

    def __init__(self, status: Optional[int], message: str, context: str):
        self.status = status
        self.message = message
        self.context = context
        status_text = status if status is not None else "unknown status"
        super().__init__(f"Strava API Error in {context} ({status_text}): {message}")


class TokenRefreshError(StravaError):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
