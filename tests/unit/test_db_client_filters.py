"""Tests for filter and sort translation in the SQLite client."""

import pytest

from taskboard.core import db_client


@pytest.mark.unit
class TestParseFilter:
    """parse_filter()"""

    def test_empty(self):
        assert db_client.parse_filter("") == ("", [])

    def test_equality_and_conjunction(self):
        clause, params = db_client.parse_filter('owner_id = "u1" && is_shared = "true"')

        assert clause == '"owner_id" = ? AND "is_shared" = ?'
        assert params == ["u1", True]

    def test_in_group(self):
        clause, params = db_client.parse_filter('(uid = "a" || uid = "b")')

        assert clause == '("uid" = ? OR "uid" = ?)'
        assert params == ["a", "b"]

    def test_in_group_limit(self):
        alternatives = " || ".join(f'uid = "{i}"' for i in range(11))

        with pytest.raises(ValueError, match="at most 10"):
            db_client.parse_filter(f"({alternatives})")

    def test_array_contains(self):
        clause, params = db_client.parse_filter('members ?= "u1"')

        assert "json_each" in clause
        assert params == ["u1"]

    def test_contains_escapes_wildcards(self):
        clause, params = db_client.parse_filter('name ~ "50%_off"')

        assert "LIKE" in clause
        assert params == ["%50\\%\\_off%"]

    def test_share_code_digits_stay_strings(self):
        _, params = db_client.parse_filter('share_code = "00012345"')
        assert params == ["00012345"]

    def test_sanitized_quotes_round_trip(self):
        value = 'say "hi" && (bye)'
        _, params = db_client.parse_filter(f'name = "{db_client.sanitize_param(value)}"')

        assert params == [value]

    @pytest.mark.parametrize(
        "bad",
        ['owner_id = u1', 'owner_id == "u1"', 'owner_id = "u1', '(uid = "a"', 'bad-field = "x"'],
    )
    def test_invalid_syntax(self, bad):
        with pytest.raises(ValueError):
            db_client.parse_filter(bad)


@pytest.mark.unit
class TestParseSort:
    """parse_sort()"""

    @pytest.mark.parametrize(
        ("sort", "expected"),
        [
            ("", "id ASC"),
            ("+order", '"order" ASC, id ASC'),
            ("-created_at", '"created_at" DESC, id ASC'),
            ("order DESC", '"order" DESC, id ASC'),
            ("-id", "id DESC"),
            ("order; DROP TABLE tasks", "id ASC"),
        ],
    )
    def test_sort(self, sort, expected):
        assert db_client.parse_sort(sort) == expected
