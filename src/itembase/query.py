"""Immutable query descriptors for itembase collections.

Every builder call returns a new ``Query``; the receiver is never modified, so
a partially built query can be reused or shared between threads without
parameters leaking from one request into another.

Example:
    >>> base = client.user("user-id")
    >>> recent = base.transactions().created_at_from(since).limit(50)
    >>> result = recent.get_all_into(DocumentCollection())
    >>> products = base.products().found()   # base is unchanged
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from .accumulators import Accumulator
from .models import DrainResult, Page
from .pagination import PageFetcher, drain_all
from .timestamps import format_rfc3339_nano

__all__ = ["Query"]


def _encode(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _unsigned(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True)
class Query:
    """Request descriptor bound to a transport and a user's access token.

    Attributes:
        transport: Object with ``call(method, url, bearer_token, body, params)``
        root: API root URL
        user_id: itembase user the query runs for
        access_token: Bearer token used for every request of this query
        url: Absolute URL the query targets
        query_params: Query string parameters
        cap: Result cap for get_all_into (0 = no cap)
    """

    transport: Any = field(repr=False, compare=False)
    root: str
    user_id: str
    access_token: str = field(repr=False)
    url: str = ""
    query_params: Mapping[str, str] = field(default_factory=dict)
    cap: int = 0

    def __post_init__(self):
        if not self.url:
            object.__setattr__(self, "url", self._user_url())
        object.__setattr__(self, "query_params", MappingProxyType(dict(self.query_params)))

    def _user_url(self) -> str:
        return f"{self.root}/users/{self.user_id}"

    def _with_param(self, key: str, value: Any) -> "Query":
        params = dict(self.query_params)
        params[key] = _encode(value)
        return replace(self, query_params=params)

    @property
    def params(self) -> dict[str, str]:
        return dict(self.query_params)

    # --- Navigation ---

    def transactions(self) -> "Query":
        return replace(self, url=self._user_url() + "/transactions")

    def products(self) -> "Query":
        return replace(self, url=self._user_url() + "/products")

    def buyers(self) -> "Query":
        return replace(self, url=self._user_url() + "/buyers")

    def profiles(self) -> "Query":
        return replace(self, url=self._user_url() + "/profiles")

    def child(self, path: str) -> "Query":
        """Reference to ``path`` below the current URL. No request is made."""
        return replace(self, url=self.url + "/" + path.strip("/"))

    def select(self, prop: str) -> "Query":
        return self.child(prop)

    # --- Filters ---

    def created_at_from(self, value: datetime) -> "Query":
        return self._with_param("created_at_from", format_rfc3339_nano(value))

    def created_at_to(self, value: datetime) -> "Query":
        return self._with_param("created_at_to", format_rfc3339_nano(value))

    def updated_at_from(self, value: datetime) -> "Query":
        return self._with_param("updated_at_from", format_rfc3339_nano(value))

    def updated_at_to(self, value: datetime) -> "Query":
        return self._with_param("updated_at_to", format_rfc3339_nano(value))

    def limit(self, limit: int) -> "Query":
        """Documents per request (``document_limit``)."""
        return self._with_param("document_limit", _unsigned("limit", limit))

    def offset(self, offset: int) -> "Query":
        """Skip the first ``offset`` documents (``start_at_document``)."""
        return self._with_param("start_at_document", _unsigned("offset", offset))

    def max_results(self, cap: int) -> "Query":
        """Stop get_all_into once this many documents are accumulated (0 = all)."""
        return replace(self, cap=_unsigned("cap", cap))

    # --- Requests ---

    def get(self) -> Any:
        """GET the referenced value and return the decoded JSON."""
        return self.transport.call("GET", self.url, self.access_token, None, self.params)

    def get_into(self, factory: Callable[[Any], Any]) -> Any:
        """GET the referenced value and pass the decoded JSON to ``factory``."""
        return factory(self.get())

    def get_all_into(self, into: Accumulator) -> DrainResult:
        """Page through the whole collection into ``into``.

        With ``offset(n)`` the drain starts at document ``n`` and continues
        from there to the end of the collection. See ``pagination.drain_all`` for outcomes and error behaviour.
        """
        fetch = PageFetcher(self.transport, self.url, self.access_token)
        return drain_all(fetch, into, self.query_params, cap=self.cap or None)

    def found(self) -> int:
        """Number of documents matching the query, using a one-document request."""
        payload = self.transport.call(
            "GET", self.url, self.access_token, None, self._with_param("document_limit", 1).params
        )
        return Page.from_payload(payload).total_found

    def page(self) -> Page:
        """Fetch a single page with the current parameters."""
        return PageFetcher(self.transport, self.url, self.access_token)(self.params)
