"""Offset pagination over itembase document collections.

``drain_all`` repeatedly fetches pages (``start_at_document`` offset) and feeds
every document to an accumulator until the collection is exhausted, a result
cap is reached, or the server's pagination state becomes ambiguous.

The backing collection can change between pages and the only continuation
keys are a position offset and creation-time filters, so exactly-once delivery
is not guaranteed. The driver stops early rather than risk an unbounded loop:

- empty page before the reported total was reached  -> EMPTY_PAGE
- page added nothing new to the accumulator         -> NO_GROWTH
- page carried exactly one document                 -> SINGLE_ITEM
- next created_at_from would equal the current one  -> CREATED_AT_LOOP

These are outcomes, not errors. Transport and decode errors propagate and end
the drain; documents already accumulated stay where they are.
"""

import logging
from typing import Any, Callable, Mapping, Optional

from .accumulators import Accumulator
from .errors import DocumentRejected
from .metrics import documents_received_total, drains_total
from .models import DrainAnomaly, DrainOutcome, DrainResult, Page, PaginationCursor
from .timestamps import format_rfc3339_nano, parse_rfc3339
from .timing import timed_operation

__all__ = ["PageFetcher", "drain_all"]

logger = logging.getLogger("itembase.pagination")

CREATED_AT_FROM = "created_at_from"
START_AT_DOCUMENT = "start_at_document"


class PageFetcher:
    """Fetches one page of a collection through a transport.

    Args:
        transport: Object with ``call(method, url, bearer_token, body, params)``
        url: Collection URL
        bearer_token: Access token sent with every page request
    """

    def __init__(self, transport: Any, url: str, bearer_token: Optional[str]):
        self.transport = transport
        self.url = url
        self.bearer_token = bearer_token

    def __call__(self, params: Mapping[str, str]) -> Page:
        payload = self.transport.call("GET", self.url, self.bearer_token, None, dict(params))
        return Page.from_payload(payload)

    def __repr__(self) -> str:
        return f"PageFetcher(url={self.url!r})"


def _feed(page: Page, into: Accumulator, cursor: PaginationCursor) -> tuple[int, int, bool]:
    """Add a page's documents in server order, stopping at the cap.

    Returns:
        (accepted, rejected, truncated)
    """
    accepted = 0
    rejected = 0
    for item in page.items:
        if cursor.cap_reached(into.count()):
            return accepted, rejected, True
        try:
            into.add(item)
        except DocumentRejected as e:
            rejected += 1
            logger.warning("drain_document_rejected", extra={"error": str(e)})
            continue
        accepted += 1
    return accepted, rejected, False


def _loops_on_created_at(cursor: PaginationCursor, into: Accumulator) -> bool:
    current = cursor.query_params.get(CREATED_AT_FROM)
    if current is None:
        return False
    try:
        # compare instants: the filter may carry another offset or precision
        return parse_rfc3339(current) == into.max_created_at()
    except ValueError:
        return format_rfc3339_nano(into.max_created_at()) == current


def drain_all(
    fetch: Callable[[Mapping[str, str]], Page],
    into: Accumulator,
    base_params: Optional[Mapping[str, str]] = None,
    cap: Optional[int] = None,
) -> DrainResult:
    """Drain a paginated collection into ``into``.

    Args:
        fetch: Callable returning the Page for a parameter mapping
            (usually a PageFetcher)
        into: Accumulator receiving every document, in server order
        base_params: Filters for every request; never modified. A
            ``start_at_document`` here is the offset of the first page and
            later pages continue from it.
        cap: Stop once the accumulator holds this many documents
            (None or 0 = no cap)

    Returns:
        DrainResult with outcome COMPLETE, CAPPED or ANOMALY.

    Raises:
        ItembaseError: Transport/decode failures from ``fetch``. Documents
            added before the failure are kept.
    """
    if cap is not None and cap <= 0:
        cap = None

    base_params = base_params or {}
    cursor = PaginationCursor(
        query_params=base_params,
        max_allowed=cap,
        start=int(base_params.get(START_AT_DOCUMENT, 0)),
    )
    start_count = into.count()
    pages = 0
    rejected = 0
    outcome = DrainOutcome.COMPLETE
    anomaly: Optional[DrainAnomaly] = None

    with timed_operation(
        "drain", logger, level=logging.INFO, extra={"target": repr(fetch), "cap": cap}
    ) as ctx:
        page = fetch(cursor.params())
        pages += 1

        while True:
            documents_received_total.inc(len(page))
            logger.debug(
                "drain_page_received",
                extra={
                    "found": page.total_found,
                    "returned": page.returned_in_this_call,
                    "offset": cursor.position,
                },
            )

            if not page.items:
                if cursor.position < page.total_found:
                    outcome, anomaly = DrainOutcome.ANOMALY, DrainAnomaly.EMPTY_PAGE
                break

            before = into.count()
            accepted, page_rejected, truncated = _feed(page, into, cursor)
            rejected += page_rejected
            cursor = cursor.advance(len(page))

            if truncated:
                outcome = DrainOutcome.CAPPED
                break

            if accepted and into.count() == before:
                # created_at collisions: the server re-sent documents we already hold
                outcome, anomaly = DrainOutcome.ANOMALY, DrainAnomaly.NO_GROWTH
                break

            if cursor.position >= page.total_found:
                break

            if cursor.cap_reached(into.count()):
                outcome = DrainOutcome.CAPPED
                break

            if len(page) == 1:
                outcome, anomaly = DrainOutcome.ANOMALY, DrainAnomaly.SINGLE_ITEM
                break

            if _loops_on_created_at(cursor, into):
                outcome, anomaly = DrainOutcome.ANOMALY, DrainAnomaly.CREATED_AT_LOOP
                break

            page = fetch(cursor.params())
            pages += 1

        result = DrainResult(
            outcome=outcome,
            anomaly=anomaly,
            received=cursor.received,
            added=into.count() - start_count,
            rejected=rejected,
            pages=pages,
            total_found=page.total_found,
        )
        ctx.update(
            {
                "outcome": outcome.value,
                "anomaly": anomaly.value if anomaly else None,
                "received": result.received,
                "added": result.added,
                "pages": pages,
            }
        )

    drains_total.labels(
        outcome=outcome.value, anomaly=anomaly.value if anomaly else "none"
    ).inc()

    if anomaly is not None:
        logger.warning(
            "drain_stopped_anomaly",
            extra={
                "anomaly": anomaly.value,
                "received": result.received,
                "total_found": result.total_found,
                "created_at_from": cursor.query_params.get(CREATED_AT_FROM),
            },
        )

    return result
