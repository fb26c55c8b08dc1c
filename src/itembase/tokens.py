"""OAuth2 token lifecycle: cache, validate, refresh, authorize, persist.

``TokenLifecycleManager.get_valid_token`` walks these states:

    no cache  -> authorize interactively -> save -> valid
    cached    -> valid as-is
    cached    -> expired -> refresh -> save -> valid
    cached    -> expired -> refresh rejected -> authorize -> save -> valid

Every token created or refreshed is saved before it is returned, so a refresh
token is never lost on restart. Concurrent calls for the same user are
serialized inside one manager; token stores shared between processes must do
their own locking (see ``token_store.FileTokenStore``).
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from .errors import TokenRefreshError, TokenStoreNotConfigured
from .metrics import token_events_total
from .models import Token
from .oauth import AuthorizationFlow, PermissionHandler
from .timing import timed_operation

__all__ = [
    "TokenHandlers",
    "TokenLifecycleManager",
    "TokenLoader",
    "TokenSaver",
]

logger = logging.getLogger("itembase.tokens")

# Returns None when the user has no stored token
TokenLoader = Callable[[str], Optional[Token]]
TokenSaver = Callable[[str, Token], None]


@dataclass(frozen=True)
class TokenHandlers:
    """Pluggable token lifecycle callbacks, fixed for the client's lifetime.

    Attributes:
        loader: Load the stored token for a user id
        saver: Persist a token for a user id
        permissions: Obtain an authorization code for an authorization URL
    """

    loader: Optional[TokenLoader] = None
    saver: Optional[TokenSaver] = None
    permissions: Optional[PermissionHandler] = None


class TokenLifecycleManager:
    """Obtains valid bearer tokens per user.

    Args:
        handlers: TokenHandlers with loader and saver
        flow: AuthorizationFlow used for refresh and interactive authorization
        leeway: Tokens expiring within this window count as expired
        clock: Returns the current time (tests inject a fixed clock)
    """

    def __init__(
        self,
        handlers: TokenHandlers,
        flow: AuthorizationFlow,
        leeway: timedelta = timedelta(seconds=10),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.handlers = handlers
        self.flow = flow
        self.leeway = leeway
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        """Hold the per-user lock. Entries are dropped once no caller holds or awaits them."""
        with self._locks_guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]

    def get_cached_token(self, user_id: str) -> Optional[Token]:
        """Load the stored token for ``user_id``, or None.

        Raises:
            TokenStoreNotConfigured: No loader registered.
        """
        if self.handlers.loader is None:
            raise TokenStoreNotConfigured()
        return self.handlers.loader(user_id)

    def save_token(self, user_id: str, token: Token) -> None:
        """Persist ``token`` for ``user_id``.

        Raises:
            TokenStoreNotConfigured: No saver registered.
        """
        if self.handlers.saver is None:
            raise TokenStoreNotConfigured()
        self.handlers.saver(user_id, token)
        logger.debug("token_saved", extra={"user_id": user_id, "expiry": token.expiry})

    def get_valid_token(self, user_id: str) -> Token:
        """Return a usable token for ``user_id``.

        Raises:
            TokenStoreNotConfigured: No loader or saver registered.
            PermissionHandlerNotConfigured: Interactive authorization needed
                but no way to ask for the code.
            TokenExchangeError: Authorization code exchange failed.
            ItembaseTransportError: Network failure talking to the token endpoint.
        """
        if self.handlers.loader is None or self.handlers.saver is None:
            raise TokenStoreNotConfigured()

        with self._user_lock(user_id), timed_operation(
            "get_valid_token", logger, extra={"user_id": user_id}
        ) as ctx:
            token = self.get_cached_token(user_id)

            if token is None:
                ctx["source"] = "authorized"
                return self._authorize(user_id)

            if token.valid(self._clock(), self.leeway):
                ctx["source"] = "cache"
                token_events_total.labels(event="cache_hit").inc()
                return token

            if token.refreshable:
                try:
                    refreshed = self.flow.refresh(token)
                except TokenRefreshError as e:
                    token_events_total.labels(event="refresh_failed").inc()
                    logger.warning(
                        "token_refresh_failed", extra={"user_id": user_id, "error": str(e)}
                    )
                else:
                    self.save_token(user_id, refreshed)
                    token_events_total.labels(event="refreshed").inc()
                    logger.info(
                        "token_refreshed", extra={"user_id": user_id, "expiry": refreshed.expiry}
                    )
                    ctx["source"] = "refreshed"
                    return refreshed

            ctx["source"] = "authorized"
            return self._authorize(user_id)

    def _authorize(self, user_id: str) -> Token:
        token = self.flow.authorize(user_id)
        self.save_token(user_id, token)
        token_events_total.labels(event="authorized").inc()
        return token
