"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Identity(Protocol):
    """An entity that can be authenticated by a signer."""

    expiration: datetime | None = None

    @property
    def is_expired(self) -> bool:
        """Whether the identity is expired."""
        ...


# A resolver may be a coroutine function or a plain callable. The value it
# produces is coerced into an identity at signing time.
IdentityResolver = Callable[[], Awaitable[Any] | Any]
