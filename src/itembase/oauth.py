"""OAuth2 authorization-code flow against the itembase accounts service.

``AuthorizationFlow.authorize`` builds the authorization URL (with a random
state bound to the request), obtains the code from a permission handler and
exchanges it at the token endpoint. It never persists tokens; that is the
TokenLifecycleManager's job.

A permission handler is any callable ``handler(authorization_url) -> str``. It
may return the bare code or the full redirect URL; in the latter case the
``state`` parameter must match the one that was sent.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from .config import ItembaseConfig
from .errors import (
    AuthorizationError,
    ItembaseAPIError,
    ItembaseDecodeError,
    PermissionHandlerNotConfigured,
    TokenExchangeError,
    TokenRefreshError,
)
from .models import Token

__all__ = [
    "STATE_BYTES",
    "AuthorizationFlow",
    "PermissionHandler",
    "console_permission_handler",
]

logger = logging.getLogger("itembase.oauth")

PermissionHandler = Callable[[str], str]

# Entropy of the anti-forgery state parameter
STATE_BYTES = 32


def console_permission_handler(authorization_url: str) -> str:
    """Ask for the authorization code on the terminal. Blocks until answered."""
    print("Open the following URL in a browser and grant access:")
    print(f"  {authorization_url}")
    return input("Authorization code: ").strip()


class AuthorizationFlow:
    """Interactive OAuth2 authorization for one client application.

    Args:
        config: ItembaseConfig with client credentials and endpoints
        transport: Transport used for token endpoint requests (``post_form``)
        permission_handler: Callable returning the authorization code
        clock: Returns the current time (tests inject a fixed clock)
    """

    def __init__(
        self,
        config: ItembaseConfig,
        transport,
        permission_handler: Optional[PermissionHandler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.transport = transport
        self.permission_handler = permission_handler
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def new_state() -> str:
        return secrets.token_hex(STATE_BYTES)

    def authorization_url(self, state: str) -> str:
        """Authorization endpoint URL requesting offline access."""
        params = {
            "access_type": "offline",
            "client_id": self.config.client_id,
            "response_type": "code",
        }
        if self.config.redirect_url:
            params["redirect_uri"] = self.config.redirect_url
        if self.config.scopes:
            params["scope"] = " ".join(self.config.scopes)
        params["state"] = state
        return f"{self.config.endpoints.auth_url}?{urlencode(params)}"

    def request_code(self, authorization_url: str, state: str) -> str:
        """Obtain an authorization code for ``authorization_url``.

        Uses the permission handler, or the console when ``console_prompt`` is
        enabled and no handler is registered.

        Raises:
            PermissionHandlerNotConfigured: Nothing can ask for the code.
            AuthorizationError: Empty code or state mismatch.
        """
        handler = self.permission_handler
        if handler is None:
            if not self.config.console_prompt:
                raise PermissionHandlerNotConfigured()
            handler = console_permission_handler

        answer = handler(authorization_url)
        code = self._extract_code(answer, state)
        if not code:
            raise AuthorizationError("permission handler returned no authorization code")
        return code

    @staticmethod
    def _extract_code(answer: Optional[str], state: str) -> Optional[str]:
        if not answer:
            return None
        answer = answer.strip()
        if "://" not in answer:
            return answer

        query = parse_qs(urlsplit(answer).query)
        returned_state = query.get("state", [None])[0]
        if returned_state is None:
            raise AuthorizationError("authorization redirect carries no state")
        if not secrets.compare_digest(returned_state, state):
            raise AuthorizationError("state mismatch in authorization redirect")
        if "error" in query:
            raise AuthorizationError(f"authorization denied: {query['error'][0]}")
        return query.get("code", [None])[0]

    def exchange(self, code: str) -> Token:
        """Exchange an authorization code for a token.

        Raises:
            TokenExchangeError: The token endpoint rejected the code.
            ItembaseDecodeError: The response carries no usable token.
            ItembaseTransportError: Network failure.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret.get_secret_value(),
        }
        if self.config.redirect_url:
            data["redirect_uri"] = self.config.redirect_url

        try:
            payload = self.transport.post_form(self.config.endpoints.token_url, data)
        except ItembaseAPIError as e:
            logger.error(
                "oauth_exchange_failed",
                extra={"status_code": e.status_code, "error": e.message},
            )
            raise TokenExchangeError(f"authorization code exchange failed: {e.message}") from e

        return Token.from_response(payload, now=self._clock())

    def refresh(self, token: Token) -> Token:
        """Obtain a new access token with ``token.refresh_token``.

        Raises:
            TokenRefreshError: No refresh token, or the endpoint rejected it.
            ItembaseTransportError: Network failure.
        """
        if not token.refresh_token:
            raise TokenRefreshError("token has no refresh token")

        data = {
            "grant_type": "refresh_token",
            "refresh_token": token.refresh_token,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret.get_secret_value(),
        }

        try:
            payload = self.transport.post_form(self.config.endpoints.token_url, data)
            return Token.from_response(
                payload, now=self._clock(), previous_refresh_token=token.refresh_token
            )
        except (ItembaseAPIError, ItembaseDecodeError) as e:
            raise TokenRefreshError(f"token refresh failed: {e}") from e

    def authorize(self, user_id: str) -> Token:
        """Run the full interactive flow for ``user_id`` and return the new token."""
        state = self.new_state()
        url = self.authorization_url(state)
        logger.info("oauth_authorization_requested", extra={"user_id": user_id})

        code = self.request_code(url, state)
        token = self.exchange(code)

        logger.info(
            "oauth_authorization_completed",
            extra={"user_id": user_id, "expiry": token.expiry, "refreshable": token.refreshable},
        )
        return token
