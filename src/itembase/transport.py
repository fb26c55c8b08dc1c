"""HTTP transport for the itembase REST API.

Performs one request/response cycle: bearer auth, query parameters, JSON
bodies, gzip responses (decoded by httpx), and structured errors for HTTP
status >= 400. Timeouts and connection failures are retried with exponential
backoff and full jitter; HTTP errors never are.
"""

import json
import logging
import random
import time
from typing import Any, Mapping, Optional

import httpx

from .config import ItembaseConfig, get_config
from .errors import ItembaseAPIError, ItembaseDecodeError, ItembaseTransportError
from .metrics import request_duration_seconds, requests_total

__all__ = ["Transport"]

logger = logging.getLogger("itembase.transport")


class Transport:
    """Synchronous itembase API transport using a long-lived httpx.Client.

    Safe to share between threads: httpx.Client is thread-safe and the
    transport keeps no per-request state.

    Attributes:
        config: ItembaseConfig with timeouts and retry settings
        client: Shared httpx.Client instance with connection pooling

    Example:
        >>> with Transport() as transport:
        ...     page = transport.call("GET", url, bearer_token=token.access_token,
        ...                           params={"document_limit": "50"})
    """

    def __init__(
        self,
        config: Optional[ItembaseConfig] = None,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize the transport.

        Args:
            config: Optional ItembaseConfig. Uses get_config() if not provided.
            client: Optional preconfigured httpx.Client (tests pass one built on
                httpx.MockTransport).
        """
        self.config = config or get_config()

        if client is None:
            timeout_config = httpx.Timeout(
                connect=self.config.connect_timeout,
                read=self.config.read_timeout,
                write=self.config.read_timeout,
                pool=self.config.connect_timeout,
            )
            limits = httpx.Limits(
                max_keepalive_connections=5,
                max_connections=20,
                keepalive_expiry=10.0,
            )
            client = httpx.Client(timeout=timeout_config, limits=limits)

        self.client = client
        self._max_retries = self.config.max_retries
        self._backoff_base = self.config.backoff_base
        self._backoff_cap = self.config.backoff_cap

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the httpx client and release connections."""
        self.client.close()

    def call(
        self,
        method: str,
        url: str,
        bearer_token: Optional[str] = None,
        body: Any = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Perform one API call and return the decoded JSON payload.

        Args:
            method: HTTP method
            url: Absolute itembase URL
            bearer_token: Access token for the Authorization header
            body: Data to JSON-encode as the request body
            params: Query string parameters

        Returns:
            Decoded JSON body, or None for an empty body.

        Raises:
            ItembaseAPIError: HTTP status >= 400.
            ItembaseTransportError: Network failure after all retries.
            ItembaseDecodeError: Body is not valid JSON.
        """
        headers = {"Accept": "application/json", "Accept-Encoding": "gzip"}
        if bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"

        content = None
        if body is not None:
            content = json.dumps(body).encode()
            headers["Content-Type"] = "application/json"

        response = self._send_with_retry(
            method, url, headers=headers, content=content, params=dict(params or {})
        )
        return self._decode(response)

    def post_form(self, url: str, data: Mapping[str, str]) -> Any:
        """POST an application/x-www-form-urlencoded body (OAuth2 token endpoint).

        Raises the same errors as call().
        """
        response = self._send_with_retry(
            "POST",
            url,
            headers={"Accept": "application/json"},
            data=dict(data),
        )
        return self._decode(response)

    def _send_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        last_error: Optional[httpx.TransportError] = None
        for attempt in range(1 + self._max_retries):
            start_time = time.perf_counter()
            try:
                response = self.client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                requests_total.labels(method=method, status="error").inc()
                last_error = e
                if attempt < self._max_retries:
                    sleep_time = random.uniform(
                        0, min(self._backoff_cap, self._backoff_base * (2**attempt))
                    )
                    logger.warning(
                        "itembase_request_retry",
                        extra={
                            "method": method,
                            "url": url,
                            "attempt": attempt + 1,
                            "max_retries": self._max_retries,
                            "sleep_seconds": round(sleep_time, 2),
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                    )
                    time.sleep(sleep_time)
                continue

            request_duration_seconds.labels(method=method).observe(
                time.perf_counter() - start_time
            )
            requests_total.labels(method=method, status=str(response.status_code)).inc()
            logger.debug(
                "itembase_request",
                extra={"method": method, "url": url, "status_code": response.status_code},
            )
            return response

        logger.error(
            "itembase_request_failed",
            extra={
                "method": method,
                "url": url,
                "attempts": 1 + self._max_retries,
                "error": str(last_error),
            },
        )
        raise ItembaseTransportError(
            f"{method} {url} failed after {1 + self._max_retries} attempts: {last_error}"
        ) from last_error

    def _decode(self, response: httpx.Response) -> Any:
        if response.status_code >= 400:
            raise self._api_error(response)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "itembase_decode_failed",
                extra={"url": str(response.request.url), "error": str(e)},
            )
            raise ItembaseDecodeError(f"response body is not JSON: {e}") from e

    @staticmethod
    def _api_error(response: httpx.Response) -> ItembaseAPIError:
        """Build an ItembaseAPIError from an error response.

        Uses ``{"message": ..., "code": ...}`` from the body when present and
        falls back to the status line. OAuth2 error bodies
        (``{"error": ..., "error_description": ...}``) are understood too.
        """
        message = f"{response.status_code} {response.reason_phrase}".strip()
        code = response.status_code

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            body_message = payload.get("message") or payload.get("error_description") or payload.get("error")
            if isinstance(body_message, str) and body_message:
                message = body_message
            body_code = payload.get("code")
            if isinstance(body_code, int) and not isinstance(body_code, bool):
                code = body_code

        logger.error(
            "itembase_api_error",
            extra={
                "url": str(response.request.url),
                "status_code": response.status_code,
                "error_code": code,
                "error": message,
            },
        )
        return ItembaseAPIError(message, code, status_code=response.status_code)
