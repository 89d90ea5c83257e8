"""Tests for canonical string-to-sign construction."""

import pytest

from sms4dev.auth.canonical import (
    build_string_to_sign,
    canonical_headers,
    canonical_query_string,
    encode_component,
    signed_header_names,
)
from sms4dev.auth.descriptor import RequestDescriptor, decode_body

FIXED_TIMESTAMP = "2024-01-01T00:00:00.000Z"

EMPTY_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def _descriptor(**overrides) -> RequestDescriptor:
    values = {
        "method": "get",
        "path": "/api/messages",
        "query_params": {},
        "headers": {
            "X-SMS4DEV-KEY": "K1",
            "X-SMS4DEV-TIMESTAMP": FIXED_TIMESTAMP,
        },
        "body": None,
    }
    values.update(overrides)
    return RequestDescriptor(**values)


class TestRequestDescriptor:
    """Tests for the immutable request descriptor."""

    def test_method_uppercased_and_headers_lowercased(self):
        descriptor = _descriptor(headers={"X-SMS4DEV-Key": "K1", "Content-Type": "application/json"})
        assert descriptor.method == "GET"
        assert descriptor.headers == {"x-sms4dev-key": "K1", "content-type": "application/json"}

    def test_mappings_are_read_only(self):
        descriptor = _descriptor(query_params={"a": "1"})
        with pytest.raises(TypeError):
            descriptor.query_params["b"] = "2"  # type: ignore[index]
        with pytest.raises(TypeError):
            descriptor.headers["x-sms4dev-key"] = "K2"  # type: ignore[index]

    def test_header_lookup_is_case_insensitive_and_ignores_blank(self):
        descriptor = _descriptor(headers={"X-SMS4DEV-KEY": "  K1 ", "X-SMS4DEV-SECRET": "   "})
        assert descriptor.header("x-sms4dev-key") == "K1"
        assert descriptor.header("X-SMS4DEV-SECRET") is None
        assert descriptor.header("X-SMS4DEV-SIGNATURE") is None

    def test_relative_path_rejected(self):
        with pytest.raises(ValueError):
            _descriptor(path="api/messages")

    def test_decode_body(self):
        assert decode_body(b"") is None
        assert decode_body(b'{"b": 1, "a": 2}') == {"b": 1, "a": 2}
        assert decode_body(b"to=123&body=hi") == b"to=123&body=hi"


class TestQueryString:
    """Tests for canonical query strings."""

    def test_empty(self):
        assert canonical_query_string({}) == ""

    def test_sorted_by_encoded_pair(self):
        assert canonical_query_string({"b": "2", "a": "1", "c": "0"}) == "a=1&b=2&c=0"

    def test_reserved_characters_encoded_before_sorting(self):
        query = canonical_query_string({"q": "a&b=c", "p": "x y"})
        assert query == "p=x%20y&q=a%26b%3Dc"

    def test_matches_uri_component_encoding(self):
        assert encode_component("!*'()-_.~") == "!*'()-_.~"
        assert encode_component("+/?#") == "%2B%2F%3F%23"
        assert encode_component("é") == "%C3%A9"

    def test_order_invariant(self):
        first = canonical_query_string({"to": "+1555", "page": "2", "status": "delivered"})
        second = canonical_query_string({"status": "delivered", "to": "+1555", "page": "2"})
        assert first == second


class TestSignedHeaders:
    """Tests for the signed header block."""

    def test_only_prefixed_headers_signed(self):
        headers = {
            "x-sms4dev-key": "K1",
            "content-type": "application/json",
            "x-sms4dev-timestamp": FIXED_TIMESTAMP,
        }
        assert canonical_headers(headers) == (
            f"x-sms4dev-key:K1\nx-sms4dev-timestamp:{FIXED_TIMESTAMP}"
        )
        assert signed_header_names(headers) == "x-sms4dev-key;x-sms4dev-timestamp"

    def test_signature_header_excluded(self):
        headers = {"X-SMS4DEV-KEY": "K1", "X-SMS4DEV-SIGNATURE": "abc="}
        assert "signature" not in canonical_headers(headers)
        assert signed_header_names(headers) == "x-sms4dev-key"

    def test_values_trimmed_but_internal_whitespace_kept(self):
        headers = {"X-SMS4DEV-NOTE": "  hello   world  "}
        assert canonical_headers(headers) == "x-sms4dev-note:hello   world"

    def test_no_signed_headers(self):
        assert canonical_headers({"accept": "*/*"}) == ""
        assert signed_header_names({"accept": "*/*"}) == ""


class TestStringToSign:
    """Tests for the full canonical string."""

    def test_segment_layout(self):
        string_to_sign = build_string_to_sign(_descriptor(), FIXED_TIMESTAMP)
        assert string_to_sign == "\n".join(
            [
                "GET",
                "/api/messages",
                "",
                "x-sms4dev-key:K1",
                f"x-sms4dev-timestamp:{FIXED_TIMESTAMP}",
                "x-sms4dev-key;x-sms4dev-timestamp",
                EMPTY_HASH,
                FIXED_TIMESTAMP,
            ]
        )

    def test_deterministic(self):
        first = build_string_to_sign(_descriptor(body={"to": "+1555", "body": "hi"}), FIXED_TIMESTAMP)
        second = build_string_to_sign(_descriptor(body={"to": "+1555", "body": "hi"}), FIXED_TIMESTAMP)
        assert first == second

    def test_header_order_invariant(self):
        reordered = _descriptor(
            headers={
                "X-SMS4DEV-TIMESTAMP": FIXED_TIMESTAMP,
                "x-sms4dev-key": "K1",
            }
        )
        assert build_string_to_sign(reordered, FIXED_TIMESTAMP) == build_string_to_sign(
            _descriptor(), FIXED_TIMESTAMP
        )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"method": "POST"},
            {"path": "/api/send"},
            {"query_params": {"page": "2"}},
            {"headers": {"X-SMS4DEV-KEY": "K2", "X-SMS4DEV-TIMESTAMP": FIXED_TIMESTAMP}},
            {"body": {"to": "+1555"}},
        ],
    )
    def test_semantic_difference_changes_output(self, overrides):
        baseline = build_string_to_sign(_descriptor(), FIXED_TIMESTAMP)
        assert build_string_to_sign(_descriptor(**overrides), FIXED_TIMESTAMP) != baseline

    def test_timestamp_is_final_segment(self):
        string_to_sign = build_string_to_sign(_descriptor(), "2024-06-01T12:00:00Z")
        assert string_to_sign.endswith("\n2024-06-01T12:00:00Z")

    def test_empty_body_hashes_like_absent_body(self):
        absent = build_string_to_sign(_descriptor(), FIXED_TIMESTAMP)
        assert build_string_to_sign(_descriptor(body={}), FIXED_TIMESTAMP) == absent
        assert build_string_to_sign(_descriptor(body=b""), FIXED_TIMESTAMP) == absent
