"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

AWS SigV4 Fetch signs HTTP requests with AWS Signature Version 4, either as a
drop-in fetch-style coroutine or as a standalone ``sign_request`` utility whose
result can be sent with any HTTP client.
"""

from __future__ import annotations

from ._http import (
    URI,
    AWSRequest,
    Field,
    Fields,
    MultipartForm,
    Request,
    RequestBody,
)
from ._identity import AWSCredentialIdentity, environment_credentials
from ._version import __version__
from .encoding import encode_rfc3986
from .fetch import (
    HTTPXTransport,
    SignedFetcherOptions,
    create_signed_fetcher,
    get_transport,
    set_default_transport,
)
from .normalize import CanonicalRequest, RequestInit, copy_headers, normalize_request
from .sign import DEFAULT_REGION, SignedRequest, SigningOptions, sign_request
from .signers import UNSIGNED_PAYLOAD, SigV4Signer, SigV4SigningProperties

__license__ = "Apache-2.0"
__version__ = __version__

__all__ = (
    "AWSCredentialIdentity",
    "AWSRequest",
    "CanonicalRequest",
    "DEFAULT_REGION",
    "Field",
    "Fields",
    "HTTPXTransport",
    "MultipartForm",
    "Request",
    "RequestBody",
    "RequestInit",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SignedFetcherOptions",
    "SignedRequest",
    "SigningOptions",
    "UNSIGNED_PAYLOAD",
    "URI",
    "copy_headers",
    "create_signed_fetcher",
    "encode_rfc3986",
    "environment_credentials",
    "get_transport",
    "normalize_request",
    "set_default_transport",
    "sign_request",
)
