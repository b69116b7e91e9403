"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import logging
import os
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Required, TypedDict

from ._http import URI, AWSRequest, Field, Fields, RequestBody
from ._identity import resolve_identity
from .encoding import encode_path_rfc3986, encode_query_rfc3986
from .exceptions import MissingExpectedParameterError
from .interfaces.signing import RequestSigner
from .normalize import CanonicalRequest, RequestInit, normalize_request
from .signers import SIGV4_TIMESTAMP_FORMAT, SigV4Signer, SigV4SigningProperties

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
REGION_ENVIRONMENT_VARIABLES = ("AWS_REGION", "AWS_DEFAULT_REGION")

_DEFAULT_SIGNER = SigV4Signer()


class SigningOptions(TypedDict, total=False):
    """Options for :py:func:`sign_request`.

    ``credentials`` may be an :py:class:`AWSCredentialIdentity`, a mapping or
    credentials object carrying the same members, or a (coroutine) function
    returning one of those. Resolvers are called at signing time.
    """

    service: Required[str]
    region: str
    region_from_environment: bool
    credentials: Any
    date: str | datetime
    encode_rfc3986: bool
    signer: RequestSigner


@dataclass(frozen=True, kw_only=True)
class SignedRequest:
    """A canonical request carrying the SigV4 authentication headers."""

    url: URI
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: RequestBody | None = None
    duplex: str | None = None
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def streaming(self) -> bool:
        return self.body is not None and not self.body.replayable

    @property
    def content(self) -> bytes | None:
        """The payload bytes, or ``None`` for absent and streamed bodies."""
        if self.body is None or not self.body.replayable:
            return None
        return self.body.read()


def resolve_region(
    region: str | None = None, *, from_environment: bool = False
) -> str:
    """Pick the explicit region, then ``us-east-1``.

    With ``from_environment``, ``AWS_REGION`` and ``AWS_DEFAULT_REGION`` are
    consulted before falling back to the default.
    """
    if region:
        return region
    if not from_environment:
        return DEFAULT_REGION
    for name in REGION_ENVIRONMENT_VARIABLES:
        if value := os.environ.get(name):
            return value
    return DEFAULT_REGION


def _format_date(date: str | datetime | None) -> str | None:
    if isinstance(date, datetime):
        if date.tzinfo is None:
            date = date.replace(tzinfo=UTC)
        return date.astimezone(UTC).strftime(SIGV4_TIMESTAMP_FORMAT)
    return date


def _strict_uri(uri: URI) -> URI:
    return replace(
        uri,
        path=encode_path_rfc3986(uri.path or "/"),
        query=encode_query_rfc3986(uri.query),
    )


def _to_aws_request(canonical: CanonicalRequest, url: URI) -> AWSRequest:
    headers = dict(canonical.headers)
    # host is part of every SigV4 signed header set.
    headers["host"] = url.authority
    body = canonical.body
    return AWSRequest(
        destination=url,
        method=canonical.method,
        fields=Fields(Field(name=k, values=[v]) for k, v in headers.items()),
        body=body.read() if body is not None and body.replayable else None,
    )


async def sign_request(
    input: Any,
    init: RequestInit | SigningOptions | None = None,
    options: SigningOptions | None = None,
) -> SignedRequest:
    """Sign a request with AWS Signature Version 4.

    ``sign_request(input, options)`` is shorthand for
    ``sign_request(input, None, options)``.

    Replayable bodies are hashed into ``x-amz-content-sha256``. Stream bodies
    are left untouched for the transport and signed as ``UNSIGNED-PAYLOAD``.

    :raises InvalidInputError: If the input has no resolvable URL.
    :raises InvalidHeadersError: If the headers cannot be read.
    :raises MissingExpectedParameterError: If no service name is given.
    :raises MissingCredentialsError: If no usable credentials are resolved.
    """
    if options is None:
        init, options = None, init  # type: ignore[assignment]
    if not options or not options.get("service"):
        raise MissingExpectedParameterError(
            "Signing options must include a non-empty 'service'."
        )

    canonical = normalize_request(input, init)  # type: ignore[arg-type]
    url = canonical.url
    if options.get("encode_rfc3986"):
        url = _strict_uri(url)

    identity = await resolve_identity(options.get("credentials"))

    signing_properties = SigV4SigningProperties(
        region=resolve_region(
            options.get("region"),
            from_environment=options.get("region_from_environment", False),
        ),
        service=options["service"],
        payload_signing_enabled=not canonical.streaming,
    )
    if date := _format_date(options.get("date")):
        signing_properties["date"] = date

    signer: RequestSigner = options.get("signer") or _DEFAULT_SIGNER
    signed = signer.sign(
        signing_properties=signing_properties,
        request=_to_aws_request(canonical, url),
        identity=identity,
    )
    logger.debug(
        "Signed %s request to %s for %s in %s (streaming=%s)",
        canonical.method,
        url.authority,
        signing_properties["service"],
        signing_properties["region"],
        canonical.streaming,
    )
    return SignedRequest(
        url=url,
        method=canonical.method,
        headers=signed.fields.as_dict(),
        body=canonical.body,
        duplex=canonical.duplex,
        options=dict(canonical.options),
    )
