"""itembase API client.

Wires configuration, transport, OAuth2 token lifecycle and query descriptors
together.

Example:
    >>> store = FileTokenStore("~/.itembase/tokens.json")
    >>> with ItembaseClient(handlers=store.handlers(console_permission_handler)) as client:
    ...     products = DocumentCollection()
    ...     result = client.user("user-id").products().limit(100).get_all_into(products)
    ...     if result.anomalous:
    ...         print("partial drain:", result.anomaly.value)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from .config import ItembaseConfig, get_config
from .errors import ItembaseDecodeError
from .models import Token
from .oauth import AuthorizationFlow
from .query import Query
from .token_store import FileTokenStore
from .tokens import TokenHandlers, TokenLifecycleManager
from .transport import Transport

__all__ = ["ItembaseClient"]

logger = logging.getLogger("itembase.client")


class ItembaseClient:
    """Entry point of the SDK.

    Args:
        config: ItembaseConfig. Uses get_config() if not provided.
        handlers: Token loader/saver/permission callbacks. When omitted and
            ``config.token_store_path`` is set, a FileTokenStore at that path
            is used.
        transport: Transport to use (tests inject one over httpx.MockTransport).
            A transport created here is closed by close().
        clock: Returns the current time, for token expiry decisions.
    """

    def __init__(
        self,
        config: Optional[ItembaseConfig] = None,
        handlers: Optional[TokenHandlers] = None,
        transport: Optional[Transport] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or get_config()

        self._owns_transport = transport is None
        self.transport = transport or Transport(self.config)

        if handlers is None:
            if self.config.token_store_path is not None:
                handlers = FileTokenStore(self.config.token_store_path).handlers()
            else:
                handlers = TokenHandlers()
        self.handlers = handlers

        self.flow = AuthorizationFlow(
            self.config, self.transport, permission_handler=handlers.permissions, clock=clock
        )
        self.tokens = TokenLifecycleManager(
            handlers,
            self.flow,
            leeway=timedelta(seconds=self.config.expiry_leeway_seconds),
            clock=clock,
        )

    def __enter__(self) -> "ItembaseClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_transport:
            self.transport.close()

    def user(self, user_id: str) -> Query:
        """Query rooted at ``/users/<user_id>`` carrying a valid access token.

        May run the interactive authorization flow.
        """
        token = self.tokens.get_valid_token(user_id)
        return Query(
            transport=self.transport,
            root=self.config.endpoints.api_root,
            user_id=user_id,
            access_token=token.access_token,
        )

    def me(self, user_id: str) -> Any:
        """Profile of the user behind ``user_id``'s token (the "me" endpoint)."""
        token = self.tokens.get_valid_token(user_id)
        return self.transport.call("GET", self.config.endpoints.me_url, token.access_token)

    # --- Web application flow ---

    def authorization_url(self, state: Optional[str] = None) -> tuple[str, str]:
        """Authorization URL for redirect-based flows.

        Returns:
            (url, state); keep the state to verify the redirect.
        """
        state = state or self.flow.new_state()
        return self.flow.authorization_url(state), state

    def handle_oauth_code(self, code: str) -> Token:
        """Exchange a code delivered to the redirect URL. The token is not saved."""
        return self.flow.exchange(code)

    def user_id_for_token(self, token: Token) -> str:
        """itembase user id (``uuid``) the token belongs to."""
        payload = self.transport.call("GET", self.config.endpoints.me_url, token.access_token)
        user_id = payload.get("uuid") if isinstance(payload, dict) else None
        if not isinstance(user_id, str) or not user_id:
            raise ItembaseDecodeError("me response carries no uuid")
        return user_id

    def complete_authorization(self, code: str) -> tuple[str, Token]:
        """Exchange ``code``, identify its user and save the token.

        Returns:
            (user_id, token)
        """
        token = self.handle_oauth_code(code)
        user_id = self.user_id_for_token(token)
        self.tokens.save_token(user_id, token)
        logger.info("oauth_authorization_completed", extra={"user_id": user_id})
        return user_id, token
