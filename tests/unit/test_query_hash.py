"""Unit tests for technodog.utils.query_hash."""

from __future__ import annotations

from technodog.utils.query_hash import (
    _to_base36,
    _to_int32,
    generate_query_hash,
    rolling_hash,
    serialize_filters,
)


class TestRollingHash:
    def test_empty_string_is_zero(self) -> None:
        assert rolling_hash("") == 0

    def test_matches_java_string_hashcode(self) -> None:
        # Same (h << 5) - h + c recurrence as Java's String.hashCode.
        assert rolling_hash("a") == 97
        assert rolling_hash("ab") == 97 * 31 + 98
        assert rolling_hash("hello") == 99162322

    def test_wraps_to_signed_32_bit(self) -> None:
        assert rolling_hash("polygenelubricants") == -2147483648

    def test_consumes_utf16_code_units(self) -> None:
        # U+1F600 is the surrogate pair D83D DE00.
        assert rolling_hash("\U0001F600") == 0xD83D * 31 + 0xDE00

    def test_to_int32(self) -> None:
        assert _to_int32(0x7FFFFFFF) == 2147483647
        assert _to_int32(0x80000000) == -2147483648
        assert _to_int32(0x1_0000_0005) == 5


class TestBase36:
    def test_digits(self) -> None:
        assert _to_base36(0) == "0"
        assert _to_base36(35) == "z"
        assert _to_base36(36) == "10"
        assert _to_base36(1295) == "zz"


class TestSerializeFilters:
    def test_none_is_empty_string(self) -> None:
        assert serialize_filters(None) == ""

    def test_empty_dict(self) -> None:
        assert serialize_filters({}) == "{}"

    def test_keys_sorted_without_whitespace(self) -> None:
        assert serialize_filters({"b": 1, "a": "x"}) == '{"a":"x","b":1}'

    def test_non_ascii_kept(self) -> None:
        assert serialize_filters({"city": "Köln"}) == '{"city":"Köln"}'


class TestGenerateQueryHash:
    def test_deterministic(self) -> None:
        assert generate_query_hash("Jeff Mills") == generate_query_hash("Jeff Mills")

    def test_case_and_whitespace_insensitive(self) -> None:
        assert generate_query_hash("  JEFF mills ") == generate_query_hash("jeff mills")

    def test_filter_key_order_irrelevant(self) -> None:
        a = generate_query_hash("tresor", {"limit": 10, "type": "club"})
        b = generate_query_hash("tresor", {"type": "club", "limit": 10})
        assert a == b

    def test_filters_change_key(self) -> None:
        assert generate_query_hash("tresor") != generate_query_hash("tresor", {"limit": 10})

    def test_none_and_empty_filters_differ(self) -> None:
        assert generate_query_hash("tresor", None) != generate_query_hash("tresor", {})

    def test_output_is_lowercase_base36(self) -> None:
        key = generate_query_hash("Underground Resistance", {"limit": 5})
        assert key
        assert set(key) <= set("0123456789abcdefghijklmnopqrstuvwxyz")

    def test_equals_base36_of_absolute_hash(self) -> None:
        expected = _to_base36(abs(rolling_hash("hello|")))
        assert generate_query_hash("Hello") == expected
