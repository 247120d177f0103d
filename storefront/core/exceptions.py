"""Custom exceptions for the storefront engine."""
from __future__ import annotations

from storefront.core.constants import HTTP_CONFLICT, HTTP_NOT_FOUND


class StorefrontException(Exception):
    """Base exception for all storefront engine errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigurationException(StorefrontException):
    """Configuration errors."""

    pass


class RemoteStoreError(StorefrontException):
    """Remote store rejected a request or was unreachable."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == HTTP_NOT_FOUND

    @property
    def is_conflict(self) -> bool:
        return self.status == HTTP_CONFLICT


class AuthRequired(StorefrontException):
    """Mutation attempted without a signed-in user."""

    def __init__(self, action: str = "this action") -> None:
        super().__init__(f"You must be signed in to perform {action}")
        self.action = action


class MutationFailed(StorefrontException):
    """Remote store rejected a write or could not be reached."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class FetchFailed(StorefrontException):
    """A read failed; the previous snapshot is retained."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PaymentInitFailed(StorefrontException):
    """Payment session or redirect handle could not be obtained."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PaymentConfirmFailed(StorefrontException):
    """Provider reported a failed confirmation. The user may retry."""

    def __init__(self, provider_message: str) -> None:
        super().__init__(provider_message)
        self.provider_message = provider_message
