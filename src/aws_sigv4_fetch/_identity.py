"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import inspect
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .exceptions import MissingCredentialsError
from .interfaces.identity import Identity, IdentityResolver

logger = logging.getLogger(__name__)

# Accepted spellings for each credential member when a mapping or a
# credentials object from another SDK is supplied.
_ACCESS_KEY_NAMES = ("access_key_id", "accessKeyId", "AccessKeyId", "access_key")
_SECRET_KEY_NAMES = (
    "secret_access_key",
    "secretAccessKey",
    "SecretAccessKey",
    "secret_key",
)
_SESSION_TOKEN_NAMES = ("session_token", "sessionToken", "SessionToken", "token")
_EXPIRATION_NAMES = ("expiration", "Expiration")


@dataclass(kw_only=True)
class AWSCredentialIdentity(Identity):
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    expiration: datetime | None = None

    @property
    def is_expired(self) -> bool:
        """Whether the identity is expired."""
        if self.expiration is None:
            return False
        return self.expiration < datetime.now(UTC)

    def __repr__(self) -> str:
        return (
            f"AWSCredentialIdentity(access_key_id={self.access_key_id!r}, "
            f"expiration={self.expiration!r})"
        )


def _lookup(value: Any, names: tuple[str, ...]) -> Any:
    for name in names:
        if isinstance(value, Mapping):
            if value.get(name) is not None:
                return value[name]
        elif getattr(value, name, None) is not None:
            return getattr(value, name)
    return None


def coerce_identity(value: Any) -> AWSCredentialIdentity:
    """Convert a resolved credential value into an :py:class:`AWSCredentialIdentity`.

    Mappings and objects are accepted as long as they carry an access key id
    and a secret access key under one of the usual spellings, which covers
    botocore ``Credentials`` and STS ``Credentials`` responses.

    :raises MissingCredentialsError: If the value is empty, incomplete, or
        expired.
    """
    if isinstance(value, AWSCredentialIdentity):
        identity = value
    elif value is None:
        raise MissingCredentialsError(
            "No credentials were provided. Pass static credentials or a "
            "credentials resolver in the signing options."
        )
    else:
        access_key_id = _lookup(value, _ACCESS_KEY_NAMES)
        secret_access_key = _lookup(value, _SECRET_KEY_NAMES)
        if not access_key_id or not secret_access_key:
            raise MissingCredentialsError(
                "Resolved credentials must include both an access key id and a "
                f"secret access key. Received {type(value).__name__}."
            )
        identity = AWSCredentialIdentity(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=_lookup(value, _SESSION_TOKEN_NAMES),
            expiration=_lookup(value, _EXPIRATION_NAMES),
        )

    if not identity.access_key_id or not identity.secret_access_key:
        raise MissingCredentialsError(
            "Credentials must include both an access key id and a secret access key."
        )
    if identity.is_expired:
        raise MissingCredentialsError(
            f"Provided identity expired at {identity.expiration}. Please "
            "refresh the credentials or update the expiration parameter."
        )
    return identity


async def resolve_identity(
    credentials: "AWSCredentialIdentity | IdentityResolver | Any",
) -> AWSCredentialIdentity:
    """Resolve static credentials or a credentials resolver into an identity.

    Resolvers are invoked once per call and their result is not cached.
    """
    if callable(credentials) and not isinstance(credentials, AWSCredentialIdentity):
        logger.debug("Resolving credentials with %r", credentials)
        credentials = credentials()
        if inspect.isawaitable(credentials):
            credentials = await credentials
    return coerce_identity(credentials)


async def environment_credentials() -> AWSCredentialIdentity:
    """Credentials resolver reading the standard ``AWS_*`` environment variables."""
    access_key_id = os.environ.get("AWS_ACCESS_KEY_ID")
    secret_access_key = os.environ.get("AWS_SECRET_ACCESS_KEY")
    if not access_key_id or not secret_access_key:
        raise MissingCredentialsError(
            "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set to use "
            "environment credentials."
        )
    return AWSCredentialIdentity(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=os.environ.get("AWS_SESSION_TOKEN") or None,
    )
