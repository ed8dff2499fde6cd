"""
Tests for the free-text measurement parser.

Tests cover:
- Pair formats (dash, quoted, space) and decimal separators
- Comma- vs newline-separated messages
- Date headers in every supported dialect
- Malformed input and all-or-nothing failure
"""

import math
from datetime import datetime, timezone

import pytest

from utils.measurement_parser import (
    DATE_PATTERNS,
    ParseError,
    ParsedRecord,
    extract_date,
    match_quoted_dash,
    match_space_separated,
    match_unquoted_dash,
    parse_fragment,
    parse_message,
    split_fragments,
)


def _day(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


class TestPairFormats:
    """Tests for the single-pair formats."""

    def test_dash_format(self):
        assert parse_message("Weight - 75.3") == [ParsedRecord("Weight", 75.3, None)]

    def test_space_format_with_comma_decimal(self):
        assert parse_message("Weight 75,3") == [ParsedRecord("Weight", 75.3, None)]

    def test_quoted_key_dash_format(self):
        assert parse_message('"temperature" - 25.5') == [ParsedRecord("temperature", 25.5)]

    def test_dash_without_spaces(self):
        assert parse_message("Weight-75") == [ParsedRecord("Weight", 75.0)]

    def test_integer_value(self):
        records = parse_message("Steps 12000")
        assert records[0].value == 12000.0
        assert isinstance(records[0].value, float)

    def test_key_with_inner_dash_splits_at_last_dash(self):
        assert parse_message("Blood-pressure - 120") == [ParsedRecord("Blood-pressure", 120.0)]

    def test_multi_word_key_space_format(self):
        assert parse_message("Body fat 21.4") == [ParsedRecord("Body fat", 21.4)]

    def test_quotes_stripped_in_space_format(self):
        assert parse_message('"Waist" 81') == [ParsedRecord("Waist", 81.0)]

    def test_non_latin_keys(self):
        records = parse_message("Вес - 75.3\nГрудь 117,8\nБицуха - 41.9")
        assert [(r.key, r.value) for r in records] == [
            ("Вес", 75.3), ("Грудь", 117.8), ("Бицуха", 41.9)
        ]

    def test_key_case_is_preserved(self):
        records = parse_message("weight 70\nWEIGHT 71")
        assert [r.key for r in records] == ["weight", "WEIGHT"]


class TestMessageSplitting:
    """Tests for comma vs newline splitting."""

    def test_comma_separated_quoted_pairs(self):
        records = parse_message('"temp" - 25, "humidity" - 60')
        assert records == [ParsedRecord("temp", 25.0), ParsedRecord("humidity", 60.0)]

    def test_newline_separated_with_comma_decimals(self):
        records = parse_message("Вес 75,3\nГрудь 117,8\nБицуха 41,9")
        assert [r.value for r in records] == [75.3, 117.8, 41.9]

    def test_comma_separated_with_comma_decimals(self):
        records = parse_message("a - 1,5, b - 2,25")
        assert [(r.key, r.value) for r in records] == [("a", 1.5), ("b", 2.25)]

    def test_mixed_formats_across_lines(self):
        records = parse_message("Вес - 75.3\nГрудь 117,8\nБицуха - 42")
        assert [r.value for r in records] == [75.3, 117.8, 42.0]

    def test_blank_lines_are_ignored(self):
        records = parse_message("\n\nWeight 75\n\n   \nChest 110\n")
        assert len(records) == 2

    def test_trailing_comma_is_ignored(self):
        assert len(parse_message('"a" - 1, "b" - 2,')) == 2

    def test_windows_line_endings(self):
        records = parse_message("Weight 75\r\nChest 110\r\n")
        assert [r.key for r in records] == ["Weight", "Chest"]

    def test_split_fragments_newline_mode(self):
        assert split_fragments(" a 1 \n\n b 2 ") == ["a 1", "b 2"]

    def test_split_fragments_comma_mode_is_global(self):
        # The list comma makes the whole message comma-separated
        assert split_fragments("a 1, b 2\nc 3") == ["a 1", "b 2\nc 3"]

    def test_newline_inside_comma_fragment_fails(self):
        with pytest.raises(ParseError):
            parse_message("a 1, b 2\nc 3")

    @pytest.mark.parametrize("message", [
        "Weight 75.3\nChest 117.8\nBiceps 41.9",
        '"a" - 1, "b" - 2, "c" - 3',
        "DATE: 2023-05-15\nx 1\ny 2,5\nz - 3",
    ])
    def test_record_count_equals_fragment_count(self, message):
        _, body = extract_date(message.strip())
        assert len(parse_message(message)) == len(split_fragments(body))


class TestDateHeader:
    """Tests for date header extraction."""

    def test_iso_date_header_applies_to_all_records(self):
        records = parse_message("DATE: 2023-05-15\nWeight 75.3\nChest 117.8")
        assert len(records) == 2
        assert all(r.timestamp == _day(2023, 5, 15) for r in records)
        assert records[0].timestamp == records[1].timestamp

    def test_day_first_date_header(self):
        records = parse_message("DATE: 15.05.2023\nWeight 75.3")
        assert len(records) == 1
        ts = records[0].timestamp
        assert (ts.year, ts.month, ts.day) == (2023, 5, 15)

    @pytest.mark.parametrize("header", [
        "DATE: 2023-05-15", "DATE: 2023/05/15", "DATE: 2023.05.15",
        "DATE: 15.05.2023", "DATE: 15/05/2023", "DATE: 15-05-2023",
        "date: 2023-05-15", "Date:15.05.2023", "DATE:2023-05-15",
        "2023-05-15", "15.05.2023", "15/05/2023",
    ])
    def test_supported_date_dialects(self, header):
        records = parse_message(f"{header}\nWeight 75")
        assert records == [ParsedRecord("Weight", 75.0, _day(2023, 5, 15))]

    def test_date_header_with_comma_separated_pairs(self):
        records = parse_message('DATE: 2023-09-01\n"Вес" - 127.2, "Грудь" - 115.5, "Бицуха" - 43.5')
        assert [r.key for r in records] == ["Вес", "Грудь", "Бицуха"]
        assert {r.timestamp for r in records} == {_day(2023, 9, 1)}

    def test_date_header_on_same_line(self):
        records = parse_message("DATE: 2023-05-15 Weight 75")
        assert records == [ParsedRecord("Weight", 75.0, _day(2023, 5, 15))]

    def test_single_digit_day_and_month(self):
        timestamp, rest = extract_date("DATE: 1.8.2023\nx 1")
        assert timestamp == _day(2023, 8, 1)
        assert rest == "x 1"

    def test_no_header_means_no_timestamp(self):
        records = parse_message("Weight 75\nChest 110")
        assert all(r.timestamp is None for r in records)

    def test_timestamp_is_utc_midnight(self):
        ts = parse_message("DATE: 2023-05-15\nx 1")[0].timestamp
        assert ts.tzinfo == timezone.utc
        assert (ts.hour, ts.minute, ts.second) == (0, 0, 0)

    def test_invalid_calendar_date_is_treated_as_absent(self):
        timestamp, rest = extract_date("2023-13-45\nWeight 75")
        assert timestamp is None
        assert rest == "2023-13-45\nWeight 75"

    def test_invalid_date_falls_through_to_pair_parsing(self):
        # The date text stays in the message; the dash form reads it as a pair
        records = parse_message("DATE: 2023-02-30\nWeight 75")
        assert all(r.timestamp is None for r in records)
        assert records == [ParsedRecord("DATE: 2023-02", 30.0), ParsedRecord("Weight", 75.0)]

    def test_invalid_day_first_date_fails_on_first_line(self):
        with pytest.raises(ParseError) as exc_info:
            parse_message("DATE: 31.02.2023\nWeight 75")
        assert exc_info.value.fragment == "DATE: 31.02.2023"

    def test_invalid_bare_date_with_pair_fails(self):
        with pytest.raises(ParseError) as exc_info:
            parse_message("2023-13-45 Weight 75")
        assert exc_info.value.fragment == "2023-13-45 Weight 75"

    def test_invalid_date_followed_by_text_fails(self):
        with pytest.raises(ParseError) as exc_info:
            parse_message("DATE: 2023-13-45 today\nWeight 75")
        assert "2023-13-45" in exc_info.value.fragment

    def test_date_only_message_has_no_records(self):
        assert parse_message("DATE: 2023-05-15") == []

    def test_date_must_be_a_whole_token(self):
        timestamp, rest = extract_date("2023-05-15kg 3")
        assert timestamp is None

    def test_patterns_are_ordered_label_first(self):
        assert [p.day_first for p in DATE_PATTERNS] == [False, True, False, True]


class TestMalformedInput:
    """Tests for parse failures."""

    def test_text_without_value_fails(self):
        with pytest.raises(ParseError) as exc_info:
            parse_message("not a valid line")
        assert exc_info.value.fragment == "not a valid line"
        assert "not a valid line" in str(exc_info.value)

    def test_one_bad_line_fails_whole_message(self):
        with pytest.raises(ParseError) as exc_info:
            parse_message("Weight 75\nChest about 110cm\nBiceps 41")
        assert exc_info.value.fragment == "Chest about 110cm"

    def test_missing_key_fails(self):
        with pytest.raises(ParseError):
            parse_message("- 75")

    def test_empty_quoted_key_fails(self):
        with pytest.raises(ParseError):
            parse_message('"  " - 75')

    def test_value_only_fails(self):
        with pytest.raises(ParseError):
            parse_message("75.3")

    def test_trailing_unit_fails(self):
        with pytest.raises(ParseError):
            parse_message("Weight 75kg")

    def test_parse_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_fragment("nonsense")

    def test_empty_message_has_no_records(self):
        assert parse_message("") == []
        assert parse_message("   \n  ") == []


class TestGrammarVariants:
    """Tests for the individual pair grammars."""

    def test_quoted_dash(self):
        assert match_quoted_dash('"temp" - 25.5') == ("temp", "25.5")
        assert match_quoted_dash("temp - 25.5") is None

    def test_unquoted_dash(self):
        assert match_unquoted_dash("Weight - 75,3") == ("Weight ", "75,3")
        assert match_unquoted_dash("Weight 75") is None

    def test_space_separated(self):
        assert match_space_separated("Weight 75") == ("Weight", "75")
        assert match_space_separated("Weight") is None
        assert match_space_separated("Blood-pressure 120") is None


class TestDeterminism:
    """Tests for purity and numeric normalization."""

    def test_reparsing_gives_identical_output(self):
        message = "DATE: 15.05.2023\nВес 75,3\nГрудь - 117.8"
        assert parse_message(message) == parse_message(message)

    @pytest.mark.parametrize("comma, dot", [("41,9", "41.9"), ("0,1", "0.1"), ("117,80", "117.80")])
    def test_comma_and_dot_decimals_match(self, comma, dot):
        assert parse_message(f"x {comma}")[0].value == float(dot)
        assert parse_message(f"x - {comma}")[0].value == parse_message(f"x - {dot}")[0].value

    def test_values_are_finite(self):
        records = parse_message("x 99999999999999999999.5\ny 0")
        assert all(math.isfinite(r.value) for r in records)

    def test_records_are_immutable(self):
        record = parse_message("x 1")[0]
        with pytest.raises(AttributeError):
            record.value = 2.0
