"""Unit tests for RFC 3339 timestamp helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from itembase.timestamps import EPOCH, format_rfc3339_nano, parse_rfc3339


class TestFormat:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc), "2024-05-01T12:00:00Z"),
            (datetime(2024, 5, 1, 12, 0, 0, 120000, tzinfo=timezone.utc), "2024-05-01T12:00:00.12Z"),
            (datetime(2024, 5, 1, 12, 0, 0, 1, tzinfo=timezone.utc), "2024-05-01T12:00:00.000001Z"),
            (datetime(2024, 5, 1, 12, 0, 0), "2024-05-01T12:00:00Z"),
            (
                datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2))),
                "2024-05-01T14:00:00+02:00",
            ),
            (
                datetime(2024, 5, 1, 7, 0, 0, tzinfo=timezone(timedelta(hours=-5, minutes=-30))),
                "2024-05-01T07:00:00-05:30",
            ),
        ],
    )
    def test_format(self, value, expected):
        assert format_rfc3339_nano(value) == expected

    def test_epoch(self):
        assert format_rfc3339_nano(EPOCH) == "1970-01-01T00:00:00Z"


class TestParse:
    def test_utc(self):
        assert parse_rfc3339("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_nanoseconds_truncated(self):
        parsed = parse_rfc3339("2024-05-01T12:00:00.123456789Z")

        assert parsed.microsecond == 123456

    def test_offset(self):
        parsed = parse_rfc3339("2024-05-01T14:00:00+02:00")

        assert parsed == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_missing_offset_is_utc(self):
        assert parse_rfc3339("2024-05-01 12:00:00").tzinfo == timezone.utc

    def test_format_parse_agree(self):
        value = datetime(2023, 12, 31, 23, 59, 59, 500000, tzinfo=timezone.utc)

        assert parse_rfc3339(format_rfc3339_nano(value)) == value

    @pytest.mark.parametrize("raw", ["", "yesterday", "2024-05-01", "2024-13-01T00:00:00Z"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_rfc3339(raw)

    def test_not_a_string(self):
        with pytest.raises(TypeError):
            parse_rfc3339(1714564800)
