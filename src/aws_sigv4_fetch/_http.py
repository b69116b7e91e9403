"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import os
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, BinaryIO
from urllib.parse import quote, urlsplit, urlunsplit

from .exceptions import InvalidInputError, StreamConsumedError

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

# Characters left as-is when re-serializing a parsed path or query. Existing
# percent-escapes are kept so already encoded URLs are not double encoded.
_PATH_SAFE = "/%!$&'()*+,;=:@~"
_QUERY_SAFE = "/?%!$&'()*+,;=:@~"
_USERINFO_SAFE = "%!$&'()*+,;="

CHUNK_SIZE = 64 * 1024


def _encode_host(host: str) -> str:
    """Convert an internationalized hostname to its ASCII (punycode) form."""
    if host.isascii():
        return host
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise InvalidInputError(f"Invalid internationalized host {host!r}: {e}") from e


@dataclass(kw_only=True, frozen=True)
class URI:
    """Universal Resource Identifier, target location for a :py:class:`AWSRequest`."""

    host: str
    scheme: str = "https"
    username: str | None = None
    password: str | None = None
    port: int | None = None
    path: str | None = None
    query: str | None = None
    fragment: str | None = None

    @classmethod
    def from_string(cls, url: str) -> "URI":
        """Parse an absolute URL.

        :raises InvalidInputError: If the URL cannot be parsed or has no host.
        """
        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError as e:
            raise InvalidInputError(f"Unable to parse URL {url!r}: {e}") from e
        if not parts.scheme or not parts.hostname:
            raise InvalidInputError(
                f"Expected an absolute URL with a host but received {url!r}."
            )
        return cls(
            scheme=parts.scheme.lower(),
            username=parts.username,
            password=parts.password,
            host=_encode_host(parts.hostname),
            port=port,
            path=quote(parts.path, safe=_PATH_SAFE) or "/",
            query=quote(parts.query, safe=_QUERY_SAFE) or None,
            fragment=parts.fragment or None,
        )

    @property
    def authority(self) -> str:
        """The ``host`` header value: hostname plus any non-default port."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is None or DEFAULT_PORTS.get(self.scheme) == self.port:
            return host
        return f"{host}:{self.port}"

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{username}:{password}@{host}:{port}``"""
        userinfo = ""
        if self.username is not None:
            userinfo = quote(self.username, safe=_USERINFO_SAFE)
            if self.password is not None:
                userinfo += f":{quote(self.password, safe=_USERINFO_SAFE)}"
            userinfo += "@"
        return f"{userinfo}{self.authority}"

    def build(self) -> str:
        """Construct URI string representation."""
        return urlunsplit(
            (
                self.scheme,
                self.netloc,
                self.path or "/",
                self.query or "",
                self.fragment or "",
            )
        )

    def __str__(self) -> str:
        return self.build()


@dataclass
class Field:
    """A name-value pair representing a single field in an HTTP request."""

    name: str
    values: list[str] = field(default_factory=list)

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def as_string(self, delimiter: str = ", ") -> str:
        """Get delimited string of all values."""
        return delimiter.join(self.values)

    def as_tuples(self) -> list[tuple[str, str]]:
        return [(self.name, value) for value in self.values]


class Fields:
    """Collection of header fields, keyed case-insensitively by name."""

    def __init__(self, initial: Iterable[Field] | None = None):
        self._entries: dict[str, Field] = {}
        for item in initial or ():
            self.set_field(item)

    @staticmethod
    def _normalize_name(name: str) -> str:
        return name.lower()

    def set_field(self, field: Field) -> None:
        """Set entry for a Field name, replacing any existing values."""
        self._entries[self._normalize_name(field.name)] = field

    def get_field(self, name: str) -> Field:
        return self._entries[self._normalize_name(name)]

    def remove_field(self, name: str) -> None:
        del self._entries[self._normalize_name(name)]

    def as_dict(self, delimiter: str = ", ") -> dict[str, str]:
        """Flatten the collection into lowercase names and joined values."""
        return {
            name: entry.as_string(delimiter=delimiter)
            for name, entry in self._entries.items()
        }

    def copy(self) -> "Fields":
        return Fields(Field(name=f.name, values=list(f.values)) for f in self)

    def __getitem__(self, name: str) -> Field:
        return self.get_field(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._normalize_name(name) in self._entries

    def __iter__(self) -> Iterator[Field]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"Fields({list(self._entries.values())!r})"


@dataclass(kw_only=True)
class AWSRequest:
    """The request representation handed to a signer."""

    destination: URI
    method: str
    fields: Fields = field(default_factory=Fields)
    body: bytes | Iterable[bytes] | AsyncIterable[bytes] | None = None


@dataclass(kw_only=True)
class Request:
    """A full request description that can be passed in place of a URL."""

    url: str | URI
    method: str = "GET"
    headers: Any = None
    body: Any = None


class RequestBody:
    """A request payload.

    Replayable bodies hold their bytes and can be read any number of times.
    Stream bodies wrap a single-use byte source that is handed to the
    transport untouched; iterating one twice raises
    :py:class:`StreamConsumedError`.
    """

    def __init__(
        self,
        *,
        content: bytes | None = None,
        stream: AsyncIterable[bytes] | Iterable[bytes] | None = None,
    ):
        if (content is None) == (stream is None):
            raise ValueError("Exactly one of content or stream must be provided.")
        self.content = content
        self.stream = stream
        self._consumed = False

    @property
    def replayable(self) -> bool:
        return self.content is not None

    @property
    def is_async(self) -> bool:
        return isinstance(self.stream, AsyncIterable)

    def read(self) -> bytes:
        """Return the buffered payload of a replayable body."""
        if self.content is None:
            raise TypeError("Stream bodies cannot be read without consuming them.")
        return self.content

    def _claim_stream(self) -> AsyncIterable[bytes] | Iterable[bytes]:
        if self._consumed:
            raise StreamConsumedError("The request body stream was already consumed.")
        self._consumed = True
        assert self.stream is not None
        return self.stream

    def iter_bytes(self) -> Iterator[bytes]:
        """Iterate over the payload synchronously."""
        if self.content is not None:
            return iter((self.content,))
        stream = self._claim_stream()
        if isinstance(stream, AsyncIterable):
            raise TypeError(
                "An async body cannot be iterated synchronously. Use aiter_bytes."
            )
        return iter(stream)

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Iterate over the payload asynchronously, adapting sync streams."""
        if self.content is not None:
            return _aiter_sync((self.content,))
        stream = self._claim_stream()
        if isinstance(stream, AsyncIterable):
            return aiter(stream)
        return _aiter_sync(stream)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestBody):
            return NotImplemented
        if self.replayable and other.replayable:
            return self.content == other.content
        return self.stream is other.stream

    def __repr__(self) -> str:
        if self.content is not None:
            return f"RequestBody(content=<{len(self.content)} bytes>)"
        return f"RequestBody(stream={self.stream!r})"


async def _aiter_sync(iterable: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in iterable:
        yield chunk


def iter_file(fileobj: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Read a binary file object in chunks until EOF."""
    while chunk := fileobj.read(chunk_size):
        yield chunk


@dataclass
class _Part:
    name: str
    value: bytes | BinaryIO | Iterable[bytes]
    filename: str | None = None
    content_type: str | None = None


def _escape_disposition(value: str) -> str:
    return value.replace("\n", "%0A").replace("\r", "%0D").replace('"', "%22")


class MultipartForm:
    """A ``multipart/form-data`` payload.

    Parts holding ``str`` or ``bytes`` are kept in memory and the encoded form
    is replayable. Any part backed by a file object or byte iterator turns the
    whole form into a single-use stream.
    """

    def __init__(self, boundary: str | None = None):
        self.boundary = boundary or f"----aws-sigv4-fetch-{os.urandom(16).hex()}"
        self._parts: list[_Part] = []

    def add_field(self, name: str, value: str | bytes) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._parts.append(_Part(name=name, value=value))

    def add_file(
        self,
        name: str,
        value: str | bytes | BinaryIO | Iterable[bytes],
        *,
        filename: str = "blob",
        content_type: str = "application/octet-stream",
    ) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._parts.append(
            _Part(name=name, value=value, filename=filename, content_type=content_type)
        )

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def replayable(self) -> bool:
        return all(isinstance(part.value, bytes) for part in self._parts)

    def _part_header(self, part: _Part) -> bytes:
        disposition = f'form-data; name="{_escape_disposition(part.name)}"'
        if part.filename is not None:
            disposition += f'; filename="{_escape_disposition(part.filename)}"'
        lines = [f"--{self.boundary}", f"Content-Disposition: {disposition}"]
        if part.content_type is not None:
            lines.append(f"Content-Type: {part.content_type}")
        return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")

    def iter_chunks(self) -> Iterator[bytes]:
        for part in self._parts:
            yield self._part_header(part)
            if isinstance(part.value, bytes):
                yield part.value
            elif hasattr(part.value, "read"):
                yield from iter_file(part.value)  # type: ignore[arg-type]
            else:
                yield from part.value
            yield b"\r\n"
        yield f"--{self.boundary}--\r\n".encode("utf-8")

    def to_bytes(self) -> bytes:
        if not self.replayable:
            raise TypeError("Forms with streamed parts cannot be buffered.")
        return b"".join(self.iter_chunks())
