"""Tests for group_scraper.parser.metrics — parse_count and parse_time."""

from datetime import datetime, timedelta, timezone

import pytest

from group_scraper.parser.metrics import ensure_utc, parse_count, parse_epoch, parse_iso, parse_time

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)  # a Friday


# ── parse_count ───────────────────────────────────────────────────────────

class TestParseCount:

    @pytest.mark.parametrize("text,expected", [
        ("1.2K", 1200),
        ("2.5k", 2500),
        ("3M", 3_000_000),
        ("1.5 M", 1_500_000),
        ("5,300", 5300),
        ("12,345,678", 12_345_678),
        ("17 comments", 17),
        ("2,500 reactions", 2500),
        ("All reactions: 48", 48),
    ])
    def test_formats(self, text, expected):
        assert parse_count(text) == expected

    def test_no_numbers(self):
        assert parse_count("no numbers here") == 0

    def test_empty_and_none(self):
        assert parse_count("") == 0
        assert parse_count(None) == 0

    def test_suffix_wins_over_grouping(self):
        assert parse_count("1.2K likes, 1,000 views") == 1200

    def test_word_starting_with_suffix_letter_is_not_a_suffix(self):
        # "members" must not read as "3M"
        assert parse_count("3 members") == 3


# ── parse_time ────────────────────────────────────────────────────────────

class TestParseTimeRelative:

    def test_hours_ago(self):
        assert parse_time("3 hours ago", NOW) == (NOW - timedelta(hours=3), True)

    def test_article_instead_of_number(self):
        assert parse_time("an hour ago", NOW) == (NOW - timedelta(hours=1), True)
        assert parse_time("a minute ago", NOW) == (NOW - timedelta(minutes=1), True)

    def test_abbreviated_units(self):
        assert parse_time("2 wks ago", NOW) == (NOW - timedelta(weeks=2), True)

    def test_shorthand(self):
        assert parse_time("5h", NOW) == (NOW - timedelta(hours=5), True)
        assert parse_time("3d", NOW) == (NOW - timedelta(days=3), True)
        assert parse_time("12 mins", NOW) == (NOW - timedelta(minutes=12), True)

    def test_m_means_minutes(self):
        assert parse_time("10m", NOW) == (NOW - timedelta(minutes=10), True)

    def test_just_now(self):
        assert parse_time("Just now", NOW) == (NOW, True)

    def test_yesterday_is_one_day_back(self):
        parsed, ok = parse_time("yesterday", NOW)
        assert ok is True
        assert parsed.date() == (NOW - timedelta(days=1)).date()

    def test_yesterday_with_time(self):
        parsed, ok = parse_time("Yesterday at 9:15 AM", NOW)
        assert ok is True
        assert parsed.date() == datetime(2024, 5, 9).date()

    def test_today(self):
        assert parse_time("Today at 8:00", NOW) == (NOW, True)


class TestParseTimeWeekday:

    def test_earlier_weekday_this_week(self):
        parsed, ok = parse_time("Monday at 2:30 pm", NOW)
        assert ok is True
        assert parsed.date() == datetime(2024, 5, 6).date()

    def test_same_weekday_is_a_week_ago(self):
        parsed, ok = parse_time("Friday", NOW)
        assert ok is True
        assert parsed.date() == datetime(2024, 5, 3).date()

    def test_later_weekday_is_last_week(self):
        parsed, _ = parse_time("Saturday", NOW)
        assert parsed.date() == datetime(2024, 5, 4).date()


class TestParseTimeAbsolute:

    def test_epoch_seconds(self):
        epoch = int(NOW.timestamp())
        assert parse_time(str(epoch), NOW) == (NOW, True)

    def test_epoch_milliseconds(self):
        epoch = int(NOW.timestamp()) * 1000
        assert parse_time(str(epoch), NOW) == (NOW, True)

    def test_iso_with_z(self):
        assert parse_time("2024-05-01T08:30:00Z", NOW) == (
            datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc), True
        )

    def test_iso_with_offset_is_converted_to_utc(self):
        parsed, ok = parse_time("2024-05-01T10:30:00+02:00", NOW)
        assert ok is True
        assert parsed == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

    def test_month_day_assumes_current_year(self):
        parsed, ok = parse_time("April 2", NOW)
        assert ok is True
        assert parsed == datetime(2024, 4, 2, tzinfo=timezone.utc)

    def test_month_day_in_future_means_last_year(self):
        parsed, _ = parse_time("December 24", NOW)
        assert parsed == datetime(2023, 12, 24, tzinfo=timezone.utc)

    def test_month_day_with_year_and_time(self):
        parsed, _ = parse_time("March 14, 2023 at 10:15 pm", NOW)
        assert parsed == datetime(2023, 3, 14, 22, 15, tzinfo=timezone.utc)

    def test_abbreviated_month(self):
        parsed, _ = parse_time("Jan 2 at 3:04 am", NOW)
        assert parsed == datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)

    def test_invalid_day(self):
        assert parse_time("February 31", NOW) == (None, False)


class TestParseTimeMisses:

    @pytest.mark.parametrize("text", ["", "   ", None, "Like", "Write a comment", "Sponsored"])
    def test_unparseable(self, text):
        assert parse_time(text, NOW) == (None, False)

    def test_naive_now_is_treated_as_utc(self):
        naive = NOW.replace(tzinfo=None)
        assert parse_time("1 hour ago", naive) == (NOW - timedelta(hours=1), True)


# ── helpers ───────────────────────────────────────────────────────────────

class TestHelpers:

    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc

    def test_parse_epoch_rejects_short_numbers(self):
        assert parse_epoch("12345") is None

    def test_parse_iso_rejects_garbage(self):
        assert parse_iso("2024-13-45") is None
        assert parse_iso("hello") is None
