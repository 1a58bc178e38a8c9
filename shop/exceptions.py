"""
Base exception classes for the storefront server.

Infrastructure failures (database, provider HTTP) are not wrapped here; they propagate
as-is to the request middleware. These classes cover the domain errors that map to a
specific HTTP status.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ShopError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"detail": self.message, "error": self.code}
        if self.details:
            result["details"] = self.details
        return result


class EmailTakenError(ShopError):
    """Raised when registering an email that already belongs to a user."""

    status_code = 409

    def __init__(self, email: str):
        super().__init__("Email already registered", code="EMAIL_TAKEN", details={"email": email})


class UnknownStrategyError(ShopError):
    """Raised when a login is attempted with a strategy that is not registered."""

    status_code = 404

    def __init__(self, name: str):
        super().__init__(f'Unknown authentication strategy "{name}"', code="UNKNOWN_STRATEGY")


class ProviderNotConfiguredError(ShopError):
    """Raised when an OAuth provider is used without client credentials."""

    def __init__(self, provider: str):
        super().__init__(f"OAuth provider {provider} is not configured", code="PROVIDER_NOT_CONFIGURED")


class OAuthExchangeError(ShopError):
    """Raised when a provider rejects the code exchange or profile fetch."""

    status_code = 502

    def __init__(self, provider: str, message: str):
        super().__init__(message, code="OAUTH_EXCHANGE_FAILED", details={"provider": provider})
