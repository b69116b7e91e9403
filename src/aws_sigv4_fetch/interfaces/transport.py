"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..sign import SignedRequest


class Transport(Protocol):
    """Dispatches a signed request and returns the response unchanged.

    Coroutine functions and plain callables are both accepted. A plain
    callable may still return an awaitable, which is awaited by the caller.
    """

    def __call__(self, request: "SignedRequest") -> Awaitable[Any] | Any: ...
