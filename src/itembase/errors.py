"""Exception hierarchy for the itembase SDK.

Transport and protocol failures end the current operation and propagate.
Pagination anomalies are not exceptions; see ``models.DrainResult``.
"""

__all__ = [
    "AuthorizationError",
    "DocumentRejected",
    "ItembaseAPIError",
    "ItembaseDecodeError",
    "ItembaseError",
    "ItembaseTransportError",
    "PermissionHandlerNotConfigured",
    "TokenExchangeError",
    "TokenRefreshError",
    "TokenStoreNotConfigured",
]


class ItembaseError(Exception):
    """Base class for all errors raised by the SDK."""


class ItembaseAPIError(ItembaseError):
    """Raised when the API answers with HTTP status >= 400.

    Attributes:
        message: Error message from the response body, or the status line
        code: Numeric code from the response body, or the HTTP status
        status_code: HTTP status of the response
    """

    def __init__(self, message: str, code: int, status_code: int | None = None):
        self.message = message
        self.code = code
        self.status_code = status_code if status_code is not None else code
        super().__init__(message)


class ItembaseTransportError(ItembaseError):
    """Raised when a request fails at the network level after all retries."""


class ItembaseDecodeError(ItembaseError):
    """Raised when a response payload is malformed or has an unexpected shape."""


class AuthorizationError(ItembaseError):
    """Base class for OAuth2 token acquisition failures."""


class TokenStoreNotConfigured(AuthorizationError):
    """No token loader/saver is registered."""

    def __init__(self, message: str = "no token store configured"):
        super().__init__(message)


class PermissionHandlerNotConfigured(AuthorizationError):
    """An authorization code is needed but nothing can ask the user for it."""

    def __init__(self, message: str = "no permission handler configured"):
        super().__init__(message)


class TokenExchangeError(AuthorizationError):
    """The token endpoint rejected an authorization code exchange."""


class TokenRefreshError(AuthorizationError):
    """The token endpoint rejected a refresh token."""


class DocumentRejected(ValueError):
    """Raised by an accumulator to refuse a single document.

    The pagination driver logs and counts rejected documents and carries on.
    """
