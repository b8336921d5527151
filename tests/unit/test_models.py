"""Tests for group_scraper.storage.models — JSON-backed list columns and to_dict."""

from datetime import datetime

from group_scraper.storage.models import PostRecord, ScrapeRun, utcnow


def make_record(**overrides) -> PostRecord:
    fields = dict(
        post_id="1001",
        group_id="555",
        content="hello",
        url="https://www.facebook.com/groups/555/posts/1001/",
        posted_at=datetime(2024, 5, 10, 10, 0),
    )
    fields.update(overrides)
    return PostRecord(**fields)


class TestPostRecordLists:
    """The list properties are stored as JSON arrays."""

    def test_set_and_get_images(self):
        record = make_record()
        record.images = ["img1.jpg", "img2.jpg"]
        assert record.images == ["img1.jpg", "img2.jpg"]

    def test_empty_default(self):
        record = make_record()
        assert record.images == []
        assert record.hashtags == []
        assert record.mentions == []

    def test_empty_list_stored_as_null(self):
        record = make_record()
        record.links = []
        assert record._links is None
        assert record.links == []

    def test_order_is_kept(self):
        record = make_record()
        record.hashtags = ["zeta", "alpha", "mid"]
        assert record.hashtags == ["zeta", "alpha", "mid"]

    def test_set_then_clear(self):
        record = make_record()
        record.mentions = ["Sam Rivera"]
        record.mentions = []
        assert record.mentions == []

    def test_accepts_tuples(self):
        record = make_record()
        record.videos = ("https://video.example/clip.mp4",)
        assert record.videos == ["https://video.example/clip.mp4"]


class TestPostRecordToDict:

    def test_to_dict(self):
        record = make_record(likes=1200, post_type="image", media_count=1)
        record.images = ["https://scontent.xx.fbcdn.net/a.jpg"]
        data = record.to_dict()
        assert data["post_id"] == "1001"
        assert data["likes"] == 1200
        assert data["images"] == ["https://scontent.xx.fbcdn.net/a.jpg"]
        assert data["posted_at"] == "2024-05-10T10:00:00"
        assert data["scraped_at"] is None

    def test_repr(self):
        assert repr(make_record(likes=5, post_type="text")) == "<PostRecord 1001 likes=5 type=text>"


class TestScrapeRun:

    def test_to_dict(self):
        run = ScrapeRun(group_id="555", status="failed", error_message="No posts retrieved")
        data = run.to_dict()
        assert data["status"] == "failed"
        assert data["error_message"] == "No posts retrieved"
        assert data["finished_at"] is None


def test_utcnow_is_naive():
    assert utcnow().tzinfo is None
