"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import string

import pytest

from aws_sigv4_fetch import encode_rfc3986
from aws_sigv4_fetch.encoding import encode_path_rfc3986, encode_query_rfc3986


def test_encode_reserved_characters():
    assert encode_rfc3986("* ! ' ( )") == "%2A %21 %27 %28 %29"


def test_other_characters_pass_through():
    value = (
        string.ascii_letters + string.digits + "- _ . ~ ; / ? : @ & = + $ , #"
    )
    assert encode_rfc3986(value) == value


def test_existing_escapes_are_untouched():
    assert encode_rfc3986("%2A%20") == "%2A%20"


@pytest.mark.parametrize(
    "path, expected",
    [
        ("", ""),
        ("/", "/"),
        ("/a(b)/c!", "/a%28b%29/c%21"),
        ("/it's/*", "/it%27s/%2A"),
        ("/plain/path%20encoded", "/plain/path%20encoded"),
    ],
)
def test_encode_path(path: str, expected: str):
    assert encode_path_rfc3986(path) == expected


@pytest.mark.parametrize(
    "query, expected",
    [
        (None, None),
        ("", ""),
        ("q=it's", "q=it%27s"),
        ("flag", "flag="),
        ("b=2&a=1&a=0", "b=2&a=1&a=0"),
        ("q=a+b", "q=a%20b"),
        ("k(1)=v*", "k%281%29=v%2A"),
        ("q=%2A", "q=%2A"),
    ],
)
def test_encode_query(query: str | None, expected: str | None):
    assert encode_query_rfc3986(query) == expected
