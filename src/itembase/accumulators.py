"""Accumulators: append-only sinks fed by the pagination driver.

The driver only needs ``add``, ``count``, ``max_created_at`` and
``max_updated_at``. ``DocumentCollection`` is the reference implementation:
documents are keyed by ``id`` so a document delivered twice (created_at
collisions while paging) is stored once, which is what lets the driver notice
a page that brought nothing new.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, Protocol, runtime_checkable

from .errors import DocumentRejected
from .timestamps import EPOCH, parse_rfc3339

__all__ = ["Accumulator", "DocumentCollection"]

logger = logging.getLogger("itembase.accumulators")


@runtime_checkable
class Accumulator(Protocol):
    """Sink consumed by ``pagination.drain_all``.

    ``add`` may raise ``DocumentRejected`` to refuse one document; any other
    exception aborts the drain.
    """

    def add(self, item: Any) -> None: ...

    def count(self) -> int: ...

    def max_created_at(self) -> datetime: ...

    def max_updated_at(self) -> datetime: ...


class DocumentCollection:
    """Ordered, id-deduplicated collection of itembase documents.

    Documents without an ``id`` are always appended. A document whose ``id``
    was seen before replaces the stored copy in place and does not grow the
    count.

    Args:
        factory: Optional callable turning the raw dict into the stored value
            (e.g. a dataclass constructor). Raising ValueError/TypeError from it
            rejects the document.
        id_field: Key holding the document identity (default ``id``).
    """

    def __init__(
        self,
        factory: Optional[Callable[[dict], Any]] = None,
        id_field: str = "id",
    ):
        self._factory = factory
        self._id_field = id_field
        self._documents: list[Any] = []
        self._index: dict[Any, int] = {}
        self._max_created = EPOCH
        self._max_updated = EPOCH
        self._lock = threading.Lock()

    def add(self, item: Any) -> None:
        if not isinstance(item, dict):
            raise DocumentRejected(f"document is not an object: {type(item).__name__}")

        created = self._timestamp(item, "created_at")
        updated = self._timestamp(item, "updated_at")

        value = item
        if self._factory is not None:
            try:
                value = self._factory(item)
            except (TypeError, ValueError) as e:
                raise DocumentRejected(str(e)) from e

        with self._lock:
            key = item.get(self._id_field)
            if key is not None and key in self._index:
                self._documents[self._index[key]] = value
            else:
                if key is not None:
                    self._index[key] = len(self._documents)
                self._documents.append(value)

            if created is not None and created > self._max_created:
                self._max_created = created
            if updated is not None and updated > self._max_updated:
                self._max_updated = updated

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def max_created_at(self) -> datetime:
        return self._max_created

    def max_updated_at(self) -> datetime:
        return self._max_updated

    def documents(self) -> list[Any]:
        """Snapshot of the stored documents in arrival order."""
        with self._lock:
            return list(self._documents)

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[Any]:
        return iter(self.documents())

    @staticmethod
    def _timestamp(item: dict, key: str) -> Optional[datetime]:
        raw = item.get(key)
        if not raw:
            return None
        try:
            return parse_rfc3339(raw)
        except (TypeError, ValueError, AttributeError):
            logger.debug("document_timestamp_unparsed", extra={"field": key, "value": raw})
            return None
