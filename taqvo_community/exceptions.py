"""
Custom exception classes for Taqvo Community.

This module defines the exception hierarchy used by the community sync layer.
Transport failures are queued or degraded by the model, authorization failures
are surfaced to the caller, and data errors drop the offending rows.
"""

from typing import Optional, Any, Dict


class TaqvoCommunityError(Exception):
    """
    Base exception for all Taqvo Community errors.

    All custom exceptions in this package should inherit from this class.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigurationError(TaqvoCommunityError):
    """
    Raised when there are configuration-related errors.

    Examples:
    - Missing Supabase URL or anon key where one is required
    - Invalid configuration values
    """
    pass


class GatewayError(TaqvoCommunityError):
    """
    Raised when the remote backend cannot complete a request.

    Examples:
    - Network connectivity issues
    - Server-side errors (5xx)
    - Unexpected response status
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class AuthorizationError(TaqvoCommunityError):
    """
    Raised when the caller is not allowed to perform an operation.

    Examples:
    - Backend rejected the access token (401/403)
    - Row level security denied a write
    """
    pass


class SignInRequiredError(AuthorizationError):
    """Raised before any network call when an operation needs a signed-in user."""
    pass


class PermissionDeniedError(AuthorizationError):
    """Raised when a user tries to modify a resource they do not own."""
    pass


class DataValidationError(TaqvoCommunityError):
    """
    Raised when data validation fails.

    Examples:
    - Unparseable remote rows (bad id or date)
    - Invalid input for challenge or club creation
    - Unknown challenge identifiers
    """
    pass


class StorageError(TaqvoCommunityError):
    """
    Raised when local key/value persistence fails.

    Examples:
    - Unreadable or corrupt state file
    - Permission errors writing the state directory
    """
    pass


# Convenience functions for creating common exceptions

def configuration_error(message: str, **details) -> ConfigurationError:
    """Create a configuration error with details."""
    return ConfigurationError(message, details)


def gateway_error(message: str, status_code: Optional[int] = None, **details) -> GatewayError:
    """Create a gateway error with details."""
    return GatewayError(message, details, status_code=status_code)


def authorization_error(message: str, **details) -> AuthorizationError:
    """Create an authorization error with details."""
    return AuthorizationError(message, details)


def sign_in_required(operation: str) -> SignInRequiredError:
    """Create a sign-in required error for an operation."""
    return SignInRequiredError(
        f"Sign in required to {operation}", {"operation": operation}
    )


def permission_denied(message: str, **details) -> PermissionDeniedError:
    """Create a permission denied error with details."""
    return PermissionDeniedError(message, details)


def data_validation_error(message: str, **details) -> DataValidationError:
    """Create a data validation error with details."""
    return DataValidationError(message, details)


def storage_error(message: str, **details) -> StorageError:
    """Create a storage error with details."""
    return StorageError(message, details)
