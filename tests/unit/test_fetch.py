"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import asyncio
import importlib.util

import httpx
import pytest

from aws_sigv4_fetch import (
    UNSIGNED_PAYLOAD,
    HTTPXTransport,
    SignedFetcherOptions,
    SignedRequest,
    create_signed_fetcher,
    get_transport,
    set_default_transport,
)
from aws_sigv4_fetch.exceptions import (
    InvalidInputError,
    MissingCredentialsError,
    MissingExpectedParameterError,
    NoTransportAvailableError,
)

URL = "http://example.com/foo?bar=baz#qux"
SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date;x-amz-security-token"
AUTH_PREFIX = (
    "AWS4-HMAC-SHA256 Credential=dummyAccessKeyId/20240101/dummyRegion/"
    f"dummyService/aws4_request, SignedHeaders={SIGNED_HEADERS}, Signature="
)


class RecordingTransport:
    def __init__(self, response="response"):
        self.requests: list[SignedRequest] = []
        self.response = response

    async def __call__(self, request: SignedRequest):
        self.requests.append(request)
        return self.response


@pytest.fixture(autouse=True)
def reset_default_transport():
    yield
    set_default_transport(None)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def options(transport: RecordingTransport) -> SignedFetcherOptions:
    return SignedFetcherOptions(
        service="dummyService",
        region="dummyRegion",
        credentials={
            "accessKeyId": "dummyAccessKeyId",
            "secretAccessKey": "dummySecretAccessKey",
            "sessionToken": "dummySessionToken",
        },
        date="20240101T000000Z",
        transport=transport,
    )


class TestSignedFetcher:
    @pytest.mark.asyncio
    async def test_get(self, options: SignedFetcherOptions, transport):
        fetch = create_signed_fetcher(options)

        response = await fetch(URL)

        assert response == "response"
        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert isinstance(request, SignedRequest)
        assert str(request.url) == URL
        assert request.method == "GET"
        assert request.body is None
        assert request.headers["host"] == "example.com"
        assert request.headers["x-amz-security-token"] == "dummySessionToken"
        assert request.headers["authorization"] == (
            f"{AUTH_PREFIX}"
            "87967143809950c291d1539ed6a88fa6eb19cddbacfdae416db867d73e8fc08b"
        )

    @pytest.mark.asyncio
    async def test_post_without_body(self, options: SignedFetcherOptions, transport):
        fetch = create_signed_fetcher(options)

        await fetch(URL, {"method": "POST"})

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.headers["authorization"] == (
            f"{AUTH_PREFIX}"
            "c11bdcfcc19e3e5f3f3afdd81a8bf9456650ed6a94803142a92cd432fdacc714"
        )

    @pytest.mark.asyncio
    async def test_transport_receives_body_and_options(
        self, options: SignedFetcherOptions, transport
    ):
        fetch = create_signed_fetcher(options)

        await fetch(URL, {"method": "PUT", "body": b"abc", "timeout": 2.5})

        request = transport.requests[0]
        assert request.content == b"abc"
        assert request.options == {"timeout": 2.5}
        assert request.duplex is None

    @pytest.mark.asyncio
    async def test_stream_body_is_forwarded(
        self, options: SignedFetcherOptions, transport
    ):
        async def chunks():
            yield b"a"
            yield b"b"

        fetch = create_signed_fetcher(options)
        await fetch(URL, {"method": "PUT", "body": chunks()})

        request = transport.requests[0]
        assert request.duplex == "half"
        assert request.headers["x-amz-content-sha256"] == UNSIGNED_PAYLOAD
        assert [chunk async for chunk in request.body.aiter_bytes()] == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_sync_transport(self, options: SignedFetcherOptions):
        seen = []

        def transport(request: SignedRequest):
            seen.append(request)
            return 204

        fetch = create_signed_fetcher({**options, "transport": transport})

        assert await fetch(URL) == 204
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_fetcher_is_reusable_and_concurrent(
        self, options: SignedFetcherOptions, transport
    ):
        fetch = create_signed_fetcher(options)

        await asyncio.gather(
            fetch("https://example.com/a"),
            fetch("https://example.com/b", {"method": "POST", "body": "b"}),
            fetch("https://example.com/c"),
        )

        assert sorted(r.url.path for r in transport.requests) == ["/a", "/b", "/c"]

    @pytest.mark.asyncio
    async def test_credentials_resolved_per_call(
        self, options: SignedFetcherOptions, transport
    ):
        calls = []

        async def credentials():
            calls.append(True)
            return {"accessKeyId": f"key{len(calls)}", "secretAccessKey": "secret"}

        fetch = create_signed_fetcher({**options, "credentials": credentials})
        await fetch(URL)
        await fetch(URL)

        assert len(calls) == 2
        assert "Credential=key1/" in transport.requests[0].headers["authorization"]
        assert "Credential=key2/" in transport.requests[1].headers["authorization"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "input, init, credentials, error",
        [
            ("", None, {"accessKeyId": "a", "secretAccessKey": "b"}, InvalidInputError),
            (URL, None, None, MissingCredentialsError),
        ],
    )
    async def test_signing_failure_skips_transport(
        self, input, init, credentials, error, options, transport
    ):
        fetch = create_signed_fetcher({**options, "credentials": credentials})

        with pytest.raises(error):
            await fetch(input, init)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, options: SignedFetcherOptions):
        class Boom(Exception):
            pass

        async def transport(request: SignedRequest):
            raise Boom()

        fetch = create_signed_fetcher({**options, "transport": transport})

        with pytest.raises(Boom):
            await fetch(URL)

    def test_missing_service(self, options: SignedFetcherOptions):
        with pytest.raises(MissingExpectedParameterError):
            create_signed_fetcher({**options, "service": ""})


class TestGetTransport:
    def test_explicit_wins(self, transport):
        set_default_transport(RecordingTransport())
        assert get_transport(transport) is transport

    def test_process_default(self, transport):
        set_default_transport(transport)
        assert get_transport() is transport

    def test_httpx_fallback(self):
        assert isinstance(get_transport(), HTTPXTransport)

    def test_no_transport_available(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(importlib.util, "find_spec", lambda name: None)
        with pytest.raises(NoTransportAvailableError):
            get_transport()

    @pytest.mark.asyncio
    async def test_fetcher_uses_process_default(self, options, transport):
        options.pop("transport")
        set_default_transport(transport)

        fetch = create_signed_fetcher(options)
        await fetch(URL)

        assert len(transport.requests) == 1


class TestHTTPXTransport:
    @pytest.mark.asyncio
    async def test_sends_signed_request(self, options: SignedFetcherOptions):
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ) as client:
            fetch = create_signed_fetcher(
                {**options, "transport": HTTPXTransport(client)}
            )
            response = await fetch(URL, {"method": "POST", "body": "hello"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        request = received[0]
        assert request.method == "POST"
        assert request.url.path == "/foo"
        assert request.url.query == b"bar=baz"
        assert request.content == b"hello"
        assert request.headers["content-type"] == "text/plain;charset=UTF-8"
        assert request.headers["x-amz-date"] == "20240101T000000Z"
        assert request.headers["authorization"].startswith(
            "AWS4-HMAC-SHA256 Credential=dummyAccessKeyId/20240101/"
        )

    @pytest.mark.asyncio
    async def test_internationalized_host(self, options: SignedFetcherOptions):
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200)

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ) as client:
            fetch = create_signed_fetcher(
                {**options, "transport": HTTPXTransport(client)}
            )
            response = await fetch("https://bücher.example/foo")

        assert response.status_code == 200
        assert received[0].url.host == "xn--bcher-kva.example"
        assert received[0].headers["host"] == "xn--bcher-kva.example"

    @pytest.mark.asyncio
    async def test_streams_body(self, options: SignedFetcherOptions):
        received: list[bytes] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            received.append(await request.aread())
            return httpx.Response(201)

        async def chunks():
            yield b"part-1;"
            yield b"part-2"

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ) as client:
            fetch = create_signed_fetcher(
                {**options, "transport": HTTPXTransport(client)}
            )
            response = await fetch(URL, {"method": "PUT", "body": chunks()})

        assert response.status_code == 201
        assert received == [b"part-1;part-2"]
