"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""


class BaseSignedFetchException(Exception):
    """Top-level exception to capture signing and dispatch errors."""

    ...


class InvalidInputError(BaseSignedFetchException, ValueError):
    """The request input has no resolvable absolute URL."""

    ...


class InvalidHeadersError(BaseSignedFetchException, TypeError):
    """The header input is not a pair list, mapping, or header collection."""

    ...


class MissingCredentialsError(BaseSignedFetchException):
    """No usable credentials were available at signing time."""

    ...


class MissingExpectedParameterError(BaseSignedFetchException, ValueError):
    """Some signing options, such as the service name, are required."""

    ...


class NoTransportAvailableError(BaseSignedFetchException, RuntimeError):
    """No transport was configured and none could be discovered."""

    ...


class StreamConsumedError(BaseSignedFetchException, RuntimeError):
    """A single-use request body stream was read more than once."""

    ...
