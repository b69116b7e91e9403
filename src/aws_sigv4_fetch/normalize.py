"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

Conversion of the many accepted request shapes into one
:py:class:`CanonicalRequest`.
"""

import logging
from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypedDict
from urllib.parse import urlencode

from ._http import URI, AWSRequest, Fields, MultipartForm, RequestBody, iter_file
from .exceptions import InvalidHeadersError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "GET"
TEXT_CONTENT_TYPE = "text/plain;charset=UTF-8"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"

_REQUEST_KEYS = frozenset(("method", "headers", "body", "duplex"))


class RequestInit(TypedDict, total=False):
    """Per-call overrides. Keys other than method, headers and body are passed
    through to the transport untouched."""

    method: str
    headers: Any
    body: Any
    duplex: str
    timeout: Any
    follow_redirects: bool
    extensions: dict[str, Any]


@dataclass(frozen=True, kw_only=True)
class CanonicalRequest:
    url: URI
    method: str = DEFAULT_METHOD
    headers: dict[str, str] = field(default_factory=dict)
    body: RequestBody | None = None
    duplex: str | None = None
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def streaming(self) -> bool:
        return self.body is not None and not self.body.replayable


def _header_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


def _header_pairs(headers: Any) -> Iterable[tuple[Any, Any]]:
    if isinstance(headers, Mapping):
        return headers.items()
    if isinstance(headers, Fields):
        return ((f.name, f.as_string()) for f in headers)
    if callable(getattr(headers, "items", None)):
        # Header collections such as email.message.Message or multidicts.
        return headers.items()
    if isinstance(headers, list | tuple):
        for pair in headers:
            if isinstance(pair, str | bytes) or not isinstance(pair, Iterable):
                raise InvalidHeadersError(
                    f"Header entries must be [name, value] pairs, not {pair!r}."
                )
        pairs = [tuple(pair) for pair in headers]
        for pair in pairs:
            if len(pair) != 2:
                raise InvalidHeadersError(
                    f"Header entries must be [name, value] pairs, not {pair!r}."
                )
        return pairs
    raise InvalidHeadersError(
        "Headers must be a list of [name, value] pairs, a mapping, or a header "
        f"collection. Received {type(headers).__name__}."
    )


def copy_headers(headers: Any) -> dict[str, str]:
    """Copy any supported header representation into a lowercase-keyed dict.

    Repeated names are combined with ``", "`` in the order they appear.
    """
    if headers is None:
        return {}
    result: dict[str, str] = {}
    for name, value in _header_pairs(headers):
        if not isinstance(name, str | bytes):
            raise InvalidHeadersError(f"Header names must be strings, not {name!r}.")
        key = _header_text(name).strip().lower()
        if not key:
            raise InvalidHeadersError("Header names must not be empty.")
        text = _header_text(value)
        result[key] = f"{result[key]}, {text}" if key in result else text
    return result


def _is_form_pairs(body: Any) -> bool:
    return (
        isinstance(body, list | tuple)
        and bool(body)
        and all(
            isinstance(pair, tuple)
            and len(pair) == 2
            and all(isinstance(item, str) for item in pair)
            for pair in body
        )
    )


def _resolve_body(body: Any) -> tuple[RequestBody | None, str | None]:
    """Wrap a body and report the content type it implies, if any."""
    if body is None:
        return None, None
    if isinstance(body, RequestBody):
        return body, None
    if isinstance(body, MultipartForm):
        if body.replayable:
            return RequestBody(content=body.to_bytes()), body.content_type
        return RequestBody(stream=body.iter_chunks()), body.content_type
    if isinstance(body, str):
        return RequestBody(content=body.encode("utf-8")), TEXT_CONTENT_TYPE
    if isinstance(body, bytes | bytearray | memoryview):
        return RequestBody(content=bytes(body)), None
    if isinstance(body, Mapping) or _is_form_pairs(body):
        content = urlencode(body, doseq=True).encode("ascii")
        return RequestBody(content=content), FORM_CONTENT_TYPE
    if callable(getattr(body, "read", None)):
        return RequestBody(stream=iter_file(body)), None
    if isinstance(body, AsyncIterable):
        return RequestBody(stream=body), None
    if isinstance(body, list | tuple):
        if not all(isinstance(chunk, bytes) for chunk in body):
            raise InvalidInputError(
                "List bodies must hold (name, value) string pairs or bytes chunks."
            )
        return RequestBody(content=b"".join(body)), None
    if isinstance(body, Iterable):
        return RequestBody(stream=body), None
    raise InvalidInputError(f"Unsupported request body type {type(body).__name__}.")


def _resolve_url(value: Any) -> URI:
    if isinstance(value, URI):
        return value
    if isinstance(value, str):
        if not value.strip():
            raise InvalidInputError("Request URL must not be empty.")
        return URI.from_string(value)
    if _is_url_like(value):
        geturl = getattr(value, "geturl", None)
        return URI.from_string(geturl() if callable(geturl) else str(value))
    raise InvalidInputError(
        f"Unable to resolve a URL from {type(value).__name__} input."
    )


def _is_url_like(value: Any) -> bool:
    return hasattr(value, "scheme") and any(
        hasattr(value, attr) for attr in ("host", "hostname", "netloc")
    )


def _is_request_like(value: Any) -> bool:
    return hasattr(value, "url") and hasattr(value, "method")


def _request_payload(request: Any) -> Any:
    """Read the body a request object carries.

    Objects without a ``body`` attribute, such as ``httpx.Request``, expose
    buffered bytes as ``content`` and unread payloads as ``stream``.
    """
    if hasattr(request, "body"):
        return request.body
    try:
        content = getattr(request, "content", None)
    except RuntimeError:
        # httpx raises RequestNotRead until a streamed body has been read.
        content = None
    if content is not None:
        return content or None
    stream = getattr(request, "stream", None)
    if stream is None:
        return None
    if isinstance(stream, AsyncIterable | Iterable):
        return stream
    raise InvalidInputError(
        f"Unable to read the body of {type(request).__name__}: its stream is "
        f"{type(stream).__name__}, not an iterable of bytes."
    )


def normalize_request(input: Any, init: RequestInit | None = None) -> CanonicalRequest:
    """Build a :py:class:`CanonicalRequest` from a URL or a request.

    :param input: A URL string, a URL object, a request object exposing
        ``url``/``method``/``headers``/``body``, or a mapping with a ``url`` key.
    :param init: Overrides. ``method``, ``headers`` and ``body`` each replace the
        value on ``input`` independently; an overriding ``headers`` replaces the
        whole header set.
    :raises InvalidInputError: If no absolute URL can be resolved.
    :raises InvalidHeadersError: If a header representation is not supported.
    """
    if init is not None and not isinstance(init, Mapping):
        raise InvalidInputError(
            f"Request overrides must be a mapping, not {type(init).__name__}."
        )
    overrides = dict(init or {})

    base: Mapping[str, Any]
    if input is None:
        raise InvalidInputError("Request input must not be None.")
    elif isinstance(input, str | URI):
        base = {"url": input}
    elif isinstance(input, Mapping):
        if input.get("url") is None:
            raise InvalidInputError("Request mappings must include a 'url'.")
        base = input
    elif isinstance(input, AWSRequest):
        base = {
            "url": input.destination,
            "method": input.method,
            "headers": input.fields,
            "body": input.body,
        }
    elif _is_request_like(input):
        base = {
            "url": input.url,
            "method": input.method,
            "headers": getattr(input, "headers", None),
            "body": _request_payload(input),
            "options": getattr(input, "options", None),
        }
    elif _is_url_like(input):
        base = {"url": input}
    else:
        raise InvalidInputError(
            f"Expected a URL or a request but received {type(input).__name__}."
        )

    url = _resolve_url(base["url"])
    method = (overrides.get("method") or base.get("method") or DEFAULT_METHOD).upper()
    if "headers" in overrides and overrides["headers"] is not None:
        headers = copy_headers(overrides["headers"])
    else:
        headers = copy_headers(base.get("headers"))
    raw_body = overrides["body"] if "body" in overrides else base.get("body")
    body, content_type = _resolve_body(raw_body)
    if content_type is not None and "content-type" not in headers:
        headers["content-type"] = content_type

    options = dict(base.get("options") or {})
    options.update((k, v) for k, v in overrides.items() if k not in _REQUEST_KEYS)
    streaming = body is not None and not body.replayable

    logger.debug(
        "Normalized %s request to %s (body=%s, streaming=%s)",
        method,
        url.authority,
        "absent" if body is None else type(raw_body).__name__,
        streaming,
    )
    return CanonicalRequest(
        url=url,
        method=method,
        headers=headers,
        body=body,
        duplex="half" if streaming else None,
        options=options,
    )
