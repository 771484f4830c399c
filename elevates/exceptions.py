"""Exceptions raised by Elevates services.

Every exception carries the HTTP status the API layer answers with, so
route handlers can map service failures without knowing their origin:

    - ElevatesError: base class, 500
    - ConfigurationError: a required setting is missing or invalid
    - ValidationError / NotFoundError / ConflictError: request problems
    - AuthenticationError: no valid session
    - OAuthError / InvalidStateError: Google authorization flow failures
    - TokensNotFoundError / TokenRefreshError: stored Google tokens unusable
    - EncryptionError: token file could not be encrypted or decrypted
    - SyncTokenExpiredError: Google invalidated the incremental sync token
    - UpstreamServiceError: a third-party API failed
"""


class ElevatesError(Exception):
    """Base exception for Elevates errors."""
    status_code = 500

    def __init__(self, message: str = None, status_code: int = None):
        super().__init__(message or self.__class__.__doc__)
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(ElevatesError):
    """Server configuration is incomplete."""
    status_code = 500


class ValidationError(ElevatesError):
    """Invalid request data."""
    status_code = 400


class NotFoundError(ElevatesError):
    """Resource not found."""
    status_code = 404


class ConflictError(ElevatesError):
    """Resource already exists."""
    status_code = 409


class AuthenticationError(ElevatesError):
    """Unauthorized."""
    status_code = 401


class OAuthError(ElevatesError):
    """OAuth authorization failed."""
    status_code = 400


class InvalidStateError(OAuthError):
    """Invalid state parameter."""
    pass


class TokensNotFoundError(ElevatesError):
    """No tokens found for user."""
    status_code = 401


class TokenRefreshError(ElevatesError):
    """Failed to refresh access token."""
    status_code = 401


class EncryptionError(ElevatesError):
    """Failed to encrypt or decrypt data."""
    status_code = 500


class SyncTokenExpiredError(ElevatesError):
    """Sync token is no longer valid, a full sync is required."""
    status_code = 410


class UpstreamServiceError(ElevatesError):
    """Upstream service request failed."""
    status_code = 502
