"""Shared HTTP plumbing for gateway clients.

Every gateway speaks HTTP through ``httpx``; this module maps transport
and status failures onto the gateway exception hierarchy and retries
transient connection failures with exponential backoff.
"""

import logging
import time
from typing import Any, Callable

import httpx

from integrations.exceptions import (
    GatewayAPIError,
    GatewayAuthError,
    GatewayConnectionError,
    GatewayDataError,
)

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError)


def extract_error_message(response: httpx.Response) -> str:
    """Pull a human-readable error out of a gateway error body.

    Understands Stripe (``{"error": {"message": ...}}``) and PayPal
    (``error_description`` / ``message``) shapes. Falls back to the
    HTTP reason phrase.
    """
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or ""
    if not isinstance(body, dict):
        return response.reason_phrase or ""

    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    for key in ("error_description", "message"):
        if body.get(key):
            return str(body[key])
    if isinstance(error, str):
        return error
    return response.reason_phrase or ""


def send_request(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    gateway: str,
    retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, mapping failures to gateway exceptions.

    Transient transport errors are retried up to ``retries`` attempts in
    total. HTTP error statuses are never retried.

    Raises:
        GatewayAuthError: HTTP 401/403.
        GatewayAPIError: Any other 4xx/5xx.
        GatewayConnectionError: Transport failure after the last attempt.
    """
    attempts = max(1, retries)
    for attempt in range(attempts):
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = extract_error_message(exc.response)
            if status in (401, 403):
                raise GatewayAuthError(
                    f"{gateway} authentication failed (HTTP {status}): {detail}",
                    gateway=gateway,
                ) from exc
            raise GatewayAPIError(
                f"{gateway} API error (HTTP {status}): {detail}",
                gateway=gateway,
                status_code=status,
            ) from exc
        except _TRANSIENT_ERRORS as exc:
            if attempt == attempts - 1:
                raise GatewayConnectionError(
                    f"{gateway} connection failed: {exc}",
                    gateway=gateway,
                ) from exc
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s request failed (attempt %d/%d), retrying in %.1fs: %s",
                gateway, attempt + 1, attempts, delay, exc,
            )
            sleep(delay)
    raise AssertionError("unreachable")


def parse_json(response: httpx.Response, gateway: str) -> dict[str, Any]:
    """Decode a JSON object body or raise :class:`GatewayDataError`."""
    try:
        body = response.json()
    except ValueError as exc:
        raise GatewayDataError(
            f"{gateway} returned a non-JSON response", gateway=gateway
        ) from exc
    if not isinstance(body, dict):
        raise GatewayDataError(
            f"{gateway} returned an unexpected response shape", gateway=gateway
        )
    return body
