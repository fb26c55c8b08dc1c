"""Data models for pagination envelopes, cursors, drain results and OAuth2 tokens.

Pagination envelope on the wire:
    {"documents": [...], "num_documents_found": 5, "num_documents_returned": 3}
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import ItembaseDecodeError
from .timestamps import format_rfc3339_nano, parse_rfc3339

__all__ = [
    "DrainAnomaly",
    "DrainOutcome",
    "DrainResult",
    "Page",
    "PaginationCursor",
    "Token",
]


def _count(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    # bool is an int subclass; a flag is never a document count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ItembaseDecodeError(f"page envelope field {key!r} missing or not a number")
    if value < 0 or value != int(value):
        raise ItembaseDecodeError(f"page envelope field {key!r} is not a count: {value!r}")
    return int(value)


@dataclass(frozen=True)
class Page:
    """One page of a paginated collection.

    Invariants: ``returned_in_this_call == len(items)`` and
    ``total_found >= returned_in_this_call``.
    """

    items: tuple
    total_found: int
    returned_in_this_call: int

    def __post_init__(self):
        if self.returned_in_this_call != len(self.items):
            raise ItembaseDecodeError(
                f"page reports {self.returned_in_this_call} documents but carries {len(self.items)}"
            )
        if self.total_found < self.returned_in_this_call:
            raise ItembaseDecodeError(
                f"page reports {self.total_found} found but {self.returned_in_this_call} returned"
            )

    @classmethod
    def from_payload(cls, payload: Any) -> "Page":
        """Build a Page from a decoded response body.

        Raises:
            ItembaseDecodeError: If the payload is not a page envelope.
        """
        if not isinstance(payload, Mapping):
            raise ItembaseDecodeError(
                f"expected a page envelope object, got {type(payload).__name__}"
            )

        documents = payload.get("documents")
        if documents is None:
            documents = []
        if not isinstance(documents, list):
            raise ItembaseDecodeError("page envelope field 'documents' is not a list")

        return cls(
            items=tuple(documents),
            total_found=_count(payload, "num_documents_found"),
            returned_in_this_call=_count(payload, "num_documents_returned"),
        )

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class PaginationCursor:
    """Position and filter state of one drain.

    Immutable: every step produces a new cursor, so query parameters never
    leak between drains that started from the same base parameters.

    Attributes:
        received: Documents received from the server so far in this drain
        query_params: Parameters sent with the next request
        max_allowed: Optional cap on the accumulator size
        start: Offset of the first document of the drain (``start_at_document``
            of the base parameters)
    """

    received: int = 0
    query_params: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    max_allowed: Optional[int] = None
    start: int = 0

    def __post_init__(self):
        # Snapshot caller-supplied mappings
        object.__setattr__(self, "query_params", MappingProxyType(dict(self.query_params)))

    def with_param(self, key: str, value: str) -> "PaginationCursor":
        params = dict(self.query_params)
        params[key] = value
        return replace(self, query_params=params)

    def advance(self, returned: int) -> "PaginationCursor":
        """Cursor for the next page after ``returned`` more documents arrived."""
        received = self.received + returned
        params = dict(self.query_params)
        params["start_at_document"] = str(self.start + received)
        return replace(self, received=received, query_params=params)

    @property
    def position(self) -> int:
        """Collection offset of the next document to fetch."""
        return self.start + self.received

    def cap_reached(self, count: int) -> bool:
        return self.max_allowed is not None and count >= self.max_allowed

    def params(self) -> dict[str, str]:
        """Plain dict copy of the query parameters for the transport."""
        return dict(self.query_params)


class DrainOutcome(str, Enum):
    """How a drain ended. None of these is an error."""

    COMPLETE = "complete"  # every document the server reported was received
    CAPPED = "capped"  # stopped at the caller's result cap
    ANOMALY = "anomaly"  # stopped early on ambiguous server pagination state


class DrainAnomaly(str, Enum):
    """Why an ANOMALY drain stopped."""

    CREATED_AT_LOOP = "created_at_loop"  # next created_at_from equals the current one
    EMPTY_PAGE = "empty_page"  # server returned no documents before the total was reached
    NO_GROWTH = "no_growth"  # page only contained documents already accumulated
    SINGLE_ITEM = "single_item"  # page carried a single document


@dataclass(frozen=True)
class DrainResult:
    """Summary of one drain.

    Attributes:
        outcome: COMPLETE, CAPPED or ANOMALY
        anomaly: Reason for an ANOMALY outcome, else None
        received: Documents received from the server
        added: Accumulator growth during the drain
        rejected: Documents the accumulator refused
        pages: Pages fetched
        total_found: Collection size reported by the last page
    """

    outcome: DrainOutcome
    anomaly: Optional[DrainAnomaly] = None
    received: int = 0
    added: int = 0
    rejected: int = 0
    pages: int = 0
    total_found: int = 0

    @property
    def complete(self) -> bool:
        return self.outcome is DrainOutcome.COMPLETE

    @property
    def capped(self) -> bool:
        return self.outcome is DrainOutcome.CAPPED

    @property
    def anomalous(self) -> bool:
        return self.outcome is DrainOutcome.ANOMALY


@dataclass(frozen=True)
class Token:
    """OAuth2 bearer token.

    Secrets are excluded from repr so tokens can appear in log output safely.

    Attributes:
        access_token: Bearer credential
        token_type: Usually "Bearer"
        refresh_token: Long-lived credential for silent renewal
        expiry: Expiry of the access token; None means it does not expire
    """

    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    refresh_token: Optional[str] = field(default=None, repr=False)
    expiry: Optional[datetime] = None

    def expired(self, now: Optional[datetime] = None, leeway: timedelta = timedelta(0)) -> bool:
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiry - leeway <= now

    def valid(self, now: Optional[datetime] = None, leeway: timedelta = timedelta(0)) -> bool:
        """True if the access token is present and not expired."""
        return bool(self.access_token) and not self.expired(now, leeway)

    @property
    def refreshable(self) -> bool:
        return bool(self.refresh_token)

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type or 'Bearer'} {self.access_token}"

    @classmethod
    def from_response(
        cls,
        payload: Any,
        now: Optional[datetime] = None,
        previous_refresh_token: Optional[str] = None,
    ) -> "Token":
        """Build a Token from a token endpoint response.

        A refresh response may omit ``refresh_token``; the previous one is kept.

        Raises:
            ItembaseDecodeError: If the response carries no access token.
        """
        if not isinstance(payload, Mapping):
            raise ItembaseDecodeError("token response is not an object")

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ItembaseDecodeError("token response carries no access_token")

        expiry = None
        expires_in = payload.get("expires_in")
        if expires_in not in (None, "", 0):
            try:
                seconds = int(expires_in)
            except (TypeError, ValueError) as e:
                raise ItembaseDecodeError(f"token response has invalid expires_in: {expires_in!r}") from e
            expiry = (now or datetime.now(timezone.utc)) + timedelta(seconds=seconds)

        return cls(
            access_token=access_token,
            token_type=payload.get("token_type") or "Bearer",
            refresh_token=payload.get("refresh_token") or previous_refresh_token,
            expiry=expiry,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "expiry": format_rfc3339_nano(self.expiry) if self.expiry else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Token":
        """Inverse of to_dict(), used by token stores.

        Raises:
            ItembaseDecodeError: If the stored record is unusable.
        """
        try:
            expiry = data.get("expiry")
            return cls(
                access_token=data["access_token"],
                token_type=data.get("token_type") or "Bearer",
                refresh_token=data.get("refresh_token"),
                expiry=parse_rfc3339(expiry) if expiry else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ItembaseDecodeError(f"invalid stored token: {e}") from e
