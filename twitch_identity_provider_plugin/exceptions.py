"""
Errors raised by the Twitch identity provider.

Every error is an IdentityBrokerError so the host only has to handle a single
type. The original cause is chained with ``raise ... from``.

Exception hierarchy:
- IdentityBrokerError (base)
  - ConfigurationError
  - EncodingError
  - MissingTokenError
  - NetworkError
  - MalformedResponseError
"""

from typing import Optional


class IdentityBrokerError(Exception):
    """Base error surfaced to the identity broker."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(IdentityBrokerError):
    """Raised for malformed or missing required configuration."""

    pass


class EncodingError(IdentityBrokerError):
    """Raised when the claims request cannot be URL-encoded."""

    pass


class MissingTokenError(IdentityBrokerError):
    """Raised when the token response carries no access token."""

    pass


class NetworkError(IdentityBrokerError):
    """Raised when the userinfo request fails (connection, timeout, non-2xx)."""

    pass


class MalformedResponseError(IdentityBrokerError):
    """Raised when a provider response body is not the expected JSON."""

    pass
