"""Typed JSON round trips over an :class:`~credhub_client.transport.base.AuthenticatedTransport`.

The helpers here are the only place where response bodies are read. Each
one acquires the response from the transport and releases it in a
``finally`` block, so the underlying connection goes back to the pool on
success, on an error status, on a decode failure, and on a read failure
alike.

Decoding goes through :class:`pydantic.TypeAdapter`, so one primitive
serves every result shape: ``dict[str, Any]``, ``Credential[Any]``,
``Credentials[dict[str, Any]]``, :class:`~credhub_client.models.CredentialNames`,
or plain ``Any``.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from credhub_client.exceptions import (
    AccessDeniedError,
    DecodeError,
    EncodeError,
    NotFoundError,
    ServerError,
    StatusError,
    TransportError,
)
from credhub_client.transport.base import AuthenticatedTransport

JSON_MEDIA_TYPE = "application/json"


def fetch_json(transport: AuthenticatedTransport, url: str, shape: Any = Any) -> Any:
    """GET *url* through *transport* and decode the body as *shape*.

    Args:
        transport: The authenticated transport to send the request with.
        url: Absolute URL of the resource.
        shape: Type to decode into (a pydantic model, a generic alias such
            as ``dict[str, Any]``, or ``Any``).

    Returns:
        The decoded value.

    Raises:
        DecodeError: The body is not valid JSON of the expected shape.
        StatusError: The service answered with an error status.
        TransportError: The request or the body read failed on the network.
        AuthError: Credential renewal failed (propagated unchanged).
    """
    request = httpx.Request("GET", url, headers={"Accept": JSON_MEDIA_TYPE})
    return read_json(transport.execute(request), shape)


def put_json_and_fetch(
    transport: AuthenticatedTransport,
    url: str,
    payload: Any,
    shape: Any = Any,
) -> Any:
    """PUT *payload* as JSON to *url* and decode the response body as *shape*.

    The payload is encoded before any I/O takes place, so an
    :class:`~credhub_client.exceptions.EncodeError` never touches the
    network or the credential state.

    Raises:
        EncodeError: *payload* cannot be serialised to JSON.
        DecodeError: The body is not valid JSON of the expected shape.
        StatusError: The service answered with an error status.
        TransportError: The request or the body read failed on the network.
    """
    body = encode_json(payload)
    request = httpx.Request(
        "PUT",
        url,
        content=body,
        headers={"Accept": JSON_MEDIA_TYPE, "Content-Type": JSON_MEDIA_TYPE},
    )
    return read_json(transport.execute(request), shape)


def send_and_discard(transport: AuthenticatedTransport, request: httpx.Request) -> None:
    """Send *request*, check its status, and drop the body."""
    response = transport.execute(request)
    try:
        response.read()
        raise_for_status(response)
    except httpx.HTTPError as exc:
        raise TransportError(f"Reading response from {request.url} failed: {exc}") from exc
    finally:
        response.close()


def read_json(response: httpx.Response, shape: Any = Any) -> Any:
    """Read, status-check, and decode *response*, then close it."""
    try:
        body = response.read()
        raise_for_status(response)
        return _adapter(shape).validate_json(body)
    except httpx.HTTPError as exc:
        raise TransportError(
            f"Reading response from {response.request.url} failed: {exc}"
        ) from exc
    except ValidationError as exc:
        raise DecodeError(
            f"Invalid JSON response from {response.request.url}: {exc}"
        ) from exc
    finally:
        response.close()


def encode_json(payload: Any) -> bytes:
    """Serialise *payload* (a pydantic model or plain data) to JSON bytes.

    Raises:
        EncodeError: The payload contains values JSON cannot represent.
    """
    try:
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(payload, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError, PydanticSerializationError) as exc:
        raise EncodeError(f"Cannot encode request payload as JSON: {exc}") from exc


def raise_for_status(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes.

    The body must already have been read.
    """
    status = response.status_code
    if status < 400:
        return

    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = (
                detail.get("error_description")
                or detail.get("error")
                or detail.get("message")
                or detail.get("detail")
                or ""
            )
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {status}"
    full_msg = f"{prefix}: {msg}" if msg else prefix

    if status in (401, 403):
        raise AccessDeniedError(full_msg, status)
    if status == 404:
        raise NotFoundError(full_msg, status)
    if status >= 500:
        raise ServerError(full_msg, status)
    raise StatusError(full_msg, status)


@lru_cache(maxsize=None)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)
