"""
HTTP helpers shared by the GitHub and CircleCI gateways.

Maps httpx failures onto the ErrorKind taxonomy and retries transient
failures (5xx, timeouts, connection errors) with exponential backoff.
Client errors are never retried.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import httpx

from ghui.core.errors import ErrorKind, GatewayError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRIES = 2
BASE_DELAY = 0.5


def classify_response(response: httpx.Response) -> ErrorKind | None:
    """
    Classify a non-success HTTP response.

    Returns:
        The ErrorKind, or None for a successful response
    """
    status = response.status_code
    if status < 400:
        return None
    if status == 401:
        return ErrorKind.AUTH
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status == 403:
        if response.headers.get("x-ratelimit-remaining") == "0" or "rate limit" in response.text.lower():
            return ErrorKind.RATE_LIMIT
        return ErrorKind.AUTH
    if status == 404:
        return ErrorKind.NOT_FOUND
    return ErrorKind.NETWORK


def is_retryable_error(exception: Exception) -> bool:
    """
    Whether an httpx exception is transient.

    5xx responses, timeouts and connection errors are retryable; 4xx
    responses and anything else are not.
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code >= 500
    return isinstance(exception, (httpx.TimeoutException, httpx.RequestError))


def to_gateway_error(exception: Exception, service: str) -> GatewayError:
    """Convert an httpx exception into a GatewayError."""
    if isinstance(exception, httpx.HTTPStatusError):
        kind = classify_response(exception.response) or ErrorKind.NETWORK
        return GatewayError(kind, f"{service} returned HTTP {exception.response.status_code}")
    if isinstance(exception, httpx.TimeoutException):
        return GatewayError(ErrorKind.NETWORK, f"{service} request timed out")
    return GatewayError(ErrorKind.NETWORK, f"{service} request failed: {exception}")


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    service: str,
    retries: int = DEFAULT_RETRIES,
    **kwargs: Any,
) -> Any:
    """
    Send a request and decode its JSON body.

    Args:
        client: httpx client carrying auth headers
        method: HTTP method
        url: Absolute or client-relative URL
        service: Service name used in error messages
        retries: Retry attempts for transient failures
        **kwargs: Passed through to ``client.request``

    Returns:
        Decoded JSON body

    Raises:
        GatewayError: On any failure, classified by ErrorKind
    """
    attempt = 0
    while True:
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            if attempt < retries and is_retryable_error(e):
                delay = BASE_DELAY * (2**attempt) * random.uniform(0.8, 1.2)
                logger.debug("%s %s failed (%s), retrying in %.2fs", method, url, e, delay)
                time.sleep(delay)
                attempt += 1
                continue
            raise to_gateway_error(e, service) from e
        except ValueError as e:
            raise GatewayError(ErrorKind.NETWORK, f"{service} returned invalid JSON") from e
