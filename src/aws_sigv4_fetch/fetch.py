"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

A fetch-style coroutine that signs every request before handing it to a
transport.

    fetch = create_signed_fetcher(
        {"service": "es", "credentials": environment_credentials}
    )
    response = await fetch(
        "https://search-domain.eu-west-1.es.amazonaws.com/_search",
        {"method": "POST", "body": "{\"query\": {}}"},
    )
"""

import importlib.util
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from .exceptions import MissingExpectedParameterError, NoTransportAvailableError
from .interfaces.transport import Transport
from .normalize import RequestInit
from .sign import SignedRequest, SigningOptions, sign_request

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

_default_transport: Transport | None = None


class SignedFetcherOptions(SigningOptions, total=False):
    transport: Transport


SignedFetch = Callable[[Any, RequestInit | None], Awaitable[Any]]


def set_default_transport(transport: Transport | None) -> None:
    """Register the transport used by fetchers created without one.

    Pass ``None`` to clear the registration.
    """
    global _default_transport
    _default_transport = transport


def get_transport(transport: Transport | None = None) -> Transport:
    """Resolve a transport.

    The explicit ``transport`` wins, then the process default registered with
    :py:func:`set_default_transport`, then :py:class:`HTTPXTransport` when
    ``httpx`` is installed.

    :raises NoTransportAvailableError: If none of these is available.
    """
    if transport is not None:
        return transport
    if _default_transport is not None:
        return _default_transport
    if importlib.util.find_spec("httpx") is not None:
        return HTTPXTransport()
    raise NoTransportAvailableError(
        "No transport was provided and httpx is not installed. Pass a transport "
        "or install aws-sigv4-fetch[httpx]."
    )


class HTTPXTransport:
    """Send signed requests with an ``httpx.AsyncClient``.

    A client passed in is reused and left open. Otherwise a client is opened
    and closed around every call, and the response body is read before it
    closes.
    """

    def __init__(self, client: "httpx.AsyncClient | None" = None):
        self._client = client

    async def __call__(self, request: SignedRequest) -> "httpx.Response":
        import httpx

        if self._client is not None:
            return await self._send(self._client, request)
        async with httpx.AsyncClient() as client:
            return await self._send(client, request)

    async def _send(
        self, client: "httpx.AsyncClient", request: SignedRequest
    ) -> "httpx.Response":
        options = request.options
        build_kwargs: dict[str, Any] = {}
        if "timeout" in options:
            build_kwargs["timeout"] = options["timeout"]
        if "extensions" in options:
            build_kwargs["extensions"] = options["extensions"]

        content: Any = None
        if request.body is not None:
            if request.body.replayable:
                content = request.body.read()
            else:
                content = request.body.aiter_bytes()

        httpx_request = client.build_request(
            request.method,
            str(request.url),
            headers=request.headers,
            content=content,
            **build_kwargs,
        )
        send_kwargs: dict[str, Any] = {}
        if "follow_redirects" in options:
            send_kwargs["follow_redirects"] = options["follow_redirects"]
        return await client.send(httpx_request, **send_kwargs)


def create_signed_fetcher(options: SignedFetcherOptions) -> SignedFetch:
    """Create a fetch-style coroutine that signs requests with SigV4.

    The transport is resolved once, here. Every call signs the request, then
    calls the transport exactly once and returns its response as-is. Errors
    from signing prevent the transport call; transport errors, including
    cancellation, propagate unchanged.

    :raises MissingExpectedParameterError: If no service name is given.
    :raises NoTransportAvailableError: If no transport can be resolved.
    """
    if not options.get("service"):
        raise MissingExpectedParameterError(
            "Signed fetcher options must include a non-empty 'service'."
        )
    transport = get_transport(options.get("transport"))
    signing_options: SigningOptions = {
        k: v for k, v in options.items() if k != "transport"  # type: ignore[misc]
    }

    async def signed_fetch(input: Any, init: RequestInit | None = None) -> Any:
        signed = await sign_request(input, init, signing_options)
        logger.debug(
            "Dispatching signed %s request to %s", signed.method, signed.url.authority
        )
        response = transport(signed)
        if inspect.isawaitable(response):
            response = await response
        return response

    return signed_fetch
