"""Tests for the extended querystring parser."""

from urllib.parse import parse_qsl

import pytest

from natours.utils.querystring import MAX_DEPTH, parse_pairs, split_key


def parse(raw: str):
    return parse_pairs(parse_qsl(raw, keep_blank_values=True))


class TestSplitKey:
    @pytest.mark.parametrize(
        "key, expected",
        [
            ("price", ["price"]),
            ("price[lt]", ["price", "lt"]),
            ("a[b][c]", ["a", "b", "c"]),
            ("tags[]", ["tags", ""]),
            ("broken[", ["broken["]),
        ],
    )
    def test_segments(self, key, expected):
        assert split_key(key) == expected

    def test_too_deep_stays_flat(self):
        key = "a" + "[x]" * (MAX_DEPTH + 1)
        assert split_key(key) == [key]


class TestParsePairs:
    def test_flat_and_nested(self):
        assert parse("duration[gte]=5&sort=price") == {
            "duration": {"gte": "5"},
            "sort": "price",
        }

    def test_repeated_keys_become_list(self):
        assert parse("duration=5&duration=9&duration=14") == {"duration": ["5", "9", "14"]}

    def test_empty_brackets_append(self):
        assert parse("tags[]=a&tags[]=b") == {"tags": ["a", "b"]}

    def test_multiple_operators_on_one_field(self):
        assert parse("price[gte]=100&price[lt]=500") == {"price": {"gte": "100", "lt": "500"}}

    def test_blank_values_kept(self):
        assert parse("name=") == {"name": ""}

    def test_empty_keys_skipped(self):
        assert parse("=x&a=1") == {"a": "1"}
