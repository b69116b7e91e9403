"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .._http import AWSRequest
    from .._identity import AWSCredentialIdentity


class RequestSigner(Protocol):
    """Computes authentication fields for a request.

    Implementations return a new request carrying every field of the input
    plus the authentication fields. The input request is left untouched.
    """

    def sign(
        self,
        *,
        signing_properties: Any,
        request: "AWSRequest",
        identity: "AWSCredentialIdentity",
    ) -> "AWSRequest": ...
