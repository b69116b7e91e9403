"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import re
from urllib.parse import parse_qsl, quote

# Sub-delimiters that most URL encoders leave alone but RFC 3986 reserves.
_RFC3986_RESERVED = re.compile(r"[!'()*]")


def encode_rfc3986(value: str) -> str:
    """Percent-encode ``! ' ( ) *`` and leave every other character as-is."""
    return _RFC3986_RESERVED.sub(lambda m: f"%{ord(m.group()):02X}", value)


def encode_path_rfc3986(path: str) -> str:
    return "/".join(encode_rfc3986(segment) for segment in path.split("/"))


def encode_query_rfc3986(query: str | None) -> str | None:
    """Re-encode each query name and value, keeping the original pair order."""
    if not query:
        return query
    pairs = parse_qsl(query, keep_blank_values=True)
    return "&".join(
        f"{encode_rfc3986(quote(key, safe=''))}={encode_rfc3986(quote(value, safe=''))}"
        for key, value in pairs
    )
