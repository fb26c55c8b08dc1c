"""itembase SDK - client for the itembase REST API.

Provides:
- OAuth2 token lifecycle (cache, refresh, interactive authorization, persistence)
- Offset pagination that drains collections into accumulators
- Immutable query descriptors for transactions, products, buyers and profiles

Python Version: 3.10+ required
"""

# Logging Configuration - configure before other imports
from .logging_config import StructuredFormatter, configure_logging

configure_logging()

from .__version__ import __version__
from .accumulators import Accumulator, DocumentCollection
from .client import ItembaseClient
from .config import ItembaseConfig, get_config, reset_config
from .errors import (
    AuthorizationError,
    DocumentRejected,
    ItembaseAPIError,
    ItembaseDecodeError,
    ItembaseError,
    ItembaseTransportError,
    PermissionHandlerNotConfigured,
    TokenExchangeError,
    TokenRefreshError,
    TokenStoreNotConfigured,
)
from .models import DrainAnomaly, DrainOutcome, DrainResult, Page, PaginationCursor, Token
from .oauth import AuthorizationFlow, console_permission_handler
from .pagination import PageFetcher, drain_all
from .query import Query
from .token_store import FileTokenStore, MemoryTokenStore
from .tokens import TokenHandlers, TokenLifecycleManager
from .transport import Transport

__all__ = [
    "Accumulator",
    "AuthorizationError",
    "AuthorizationFlow",
    "DocumentCollection",
    "DocumentRejected",
    "DrainAnomaly",
    "DrainOutcome",
    "DrainResult",
    "FileTokenStore",
    "ItembaseAPIError",
    "ItembaseClient",
    "ItembaseConfig",
    "ItembaseDecodeError",
    "ItembaseError",
    "ItembaseTransportError",
    "MemoryTokenStore",
    "Page",
    "PageFetcher",
    "PaginationCursor",
    "PermissionHandlerNotConfigured",
    "Query",
    "StructuredFormatter",
    "Token",
    "TokenExchangeError",
    "TokenHandlers",
    "TokenLifecycleManager",
    "TokenRefreshError",
    "TokenStoreNotConfigured",
    "Transport",
    "__version__",
    "configure_logging",
    "console_permission_handler",
    "drain_all",
    "get_config",
    "reset_config",
]
