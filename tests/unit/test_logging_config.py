"""Tests for group_scraper.logging_config — console message humanizing."""

import logging

import pytest

from group_scraper.logging_config import HumanConsoleHandler, HumanFormatter


def make_record(event: dict, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("test", level, __file__, 1, event, None, None)


@pytest.fixture()
def formatter():
    return HumanFormatter()


class TestHumanFormatter:

    def test_group_scrape_complete(self, formatter):
        record = make_record({"event": "Group scrape complete", "extracted": 12, "kept": 4, "saved": 3})
        assert "12 posts extracted, 4 passed filters, 3 saved" in formatter.format(record)

    def test_fetch_failed_warning(self, formatter):
        record = make_record(
            {"event": "Fetch failed", "strategy": "static_mobile", "error": "Unexpected status 500"},
            logging.WARNING,
        )
        message = formatter.format(record)
        assert "Warning:" in message
        assert "static_mobile failed: Unexpected status 500" in message

    def test_session_invalid_error(self, formatter):
        record = make_record({"event": "Session invalid", "error": "Cookies file not found"}, logging.ERROR)
        assert "login_facebook.py" in formatter.format(record)

    def test_scrape_interval(self, formatter):
        record = make_record({"event": "Scrape interval: 30 minutes"})
        assert "every 30 minutes" in formatter.format(record)

    def test_unknown_event_passes_through(self, formatter):
        assert "Something else" in formatter.format(make_record({"event": "Something else"}))


class TestHumanConsoleHandler:

    def test_suppresses_per_post_events(self, capsys):
        handler = HumanConsoleHandler()
        handler.setFormatter(HumanFormatter())
        handler.emit(make_record({"event": "Post filtered out", "post_id": "1"}))
        handler.emit(make_record({"event": "Scheduler started"}))
        out = capsys.readouterr().out
        assert "filtered" not in out
        assert "Scheduler started" in out

    def test_drops_debug(self, capsys):
        handler = HumanConsoleHandler()
        handler.setFormatter(HumanFormatter())
        handler.emit(make_record({"event": "Extraction finished"}, logging.DEBUG))
        assert capsys.readouterr().out == ""
