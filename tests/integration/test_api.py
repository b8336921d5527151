"""Integration tests for the query API."""

import csv
import io
from datetime import timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from group_scraper.api.server import CSV_COLUMNS, create_app, posts_to_csv
from group_scraper.parser.post import Post
from group_scraper.storage.models import utcnow
from group_scraper.storage.store import PostStore

pytestmark = pytest.mark.integration


def make_post(post_id: str, likes: int, **overrides) -> Post:
    now = utcnow().replace(tzinfo=timezone.utc)
    fields = dict(
        post_id=post_id,
        group_id="555",
        content=f"Post number {post_id}, with a comma",
        url=f"https://www.facebook.com/groups/555/posts/{post_id}/",
        posted_at=now - timedelta(hours=1),
        author_name="Jane Doe",
        likes=likes,
        id_source="permalink",
        timestamp_found=True,
    )
    fields.update(overrides)
    return Post(**fields)


@pytest.fixture()
def store(session_factory):
    store = PostStore(session_factory)
    store.save_all([
        make_post("1", 5000),
        make_post("2", 1500),
        make_post("3", 900),
        make_post("4", 20, group_id="777"),
    ], group_name="Bike Swap")
    return store


@pytest.fixture()
def client(mock_config, store):
    with TestClient(create_app(store)) as test_client:
        yield test_client


# ── envelope ──────────────────────────────────────────────────────────────

class TestRoot:

    def test_lists_endpoints(self, client):
        body = client.get("/").json()
        assert body["success"] is True
        assert body["error"] is None
        assert "/api/posts" in body["data"]["endpoints"]


class TestPosts:

    def test_default_min_likes(self, client):
        body = client.get("/api/posts").json()
        assert body["success"] is True
        assert [p["post_id"] for p in body["data"]["posts"]] == ["1", "2"]
        assert body["data"]["total_count"] == 2
        assert body["count"] == 2
        assert body["data"]["page"] == 1
        assert body["data"]["page_size"] == 20

    def test_explicit_min_likes(self, client):
        body = client.get("/api/posts", params={"min_likes": 100}).json()
        assert [p["post_id"] for p in body["data"]["posts"]] == ["1", "2", "3"]

    @pytest.mark.parametrize("min_likes", [0, -5])
    def test_min_likes_below_one_uses_default(self, client, min_likes):
        body = client.get("/api/posts", params={"min_likes": min_likes}).json()
        assert body["data"]["total_count"] == 2

    @pytest.mark.parametrize("page_size", [0, 101, 500])
    def test_page_size_out_of_range_resets(self, client, page_size):
        body = client.get("/api/posts", params={"page_size": page_size}).json()
        assert body["data"]["page_size"] == 20

    def test_pagination(self, client):
        body = client.get("/api/posts", params={"page": 2, "page_size": 1, "min_likes": 1}).json()
        assert [p["post_id"] for p in body["data"]["posts"]] == ["2"]
        assert body["data"]["total_count"] == 4

    def test_page_below_one(self, client):
        body = client.get("/api/posts", params={"page": 0}).json()
        assert body["data"]["page"] == 1

    def test_invalid_parameter_type(self, client):
        assert client.get("/api/posts", params={"page": "abc"}).status_code == 422


class TestPostsByGroup:

    def test_group_posts(self, client):
        body = client.get("/api/posts/group/777").json()
        assert [p["post_id"] for p in body["data"]] == ["4"]
        assert body["count"] == 1

    def test_unknown_group(self, client):
        body = client.get("/api/posts/group/nope").json()
        assert body["data"] == []
        assert body["count"] == 0

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_out_of_range(self, client, limit):
        body = client.get("/api/posts/group/555", params={"limit": limit}).json()
        assert body["count"] == 3


class TestStats:

    def test_stats(self, client):
        data = client.get("/api/stats").json()["data"]
        assert data["total_posts"] == 4
        assert data["high_engagement_posts"] == 2
        assert data["top_group"] == "555"

    def test_authors(self, client):
        body = client.get("/api/authors").json()
        assert body["data"][0]["author_name"] == "Jane Doe"
        assert body["data"][0]["posts"] == 4

    def test_trends(self, client):
        body = client.get("/api/trends", params={"days": 7}).json()
        assert sum(day["posts"] for day in body["data"]) == 4

    def test_runs(self, client, store):
        store.record_run("555", status="success", posts_saved=4)
        body = client.get("/api/runs").json()
        assert body["data"][0]["status"] == "success"


# ── CSV export ────────────────────────────────────────────────────────────

class TestExport:

    def test_csv(self, client):
        response = client.get("/api/export/csv")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=facebook_posts_" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert tuple(rows[0]) == CSV_COLUMNS
        assert len(rows) == 3
        assert rows[1][0] == "Bike Swap"
        assert rows[1][2] == "Post number 1, with a comma"
        assert rows[1][3] == "5000"

    def test_posts_to_csv_quotes_fields(self):
        text = posts_to_csv([{
            "group_name": "G",
            "author_name": 'Jane "JD" Doe',
            "content": "line one\nline two",
            "likes": 1,
            "comments": 0,
            "shares": 0,
            "post_type": "text",
            "posted_at": "2024-05-10T10:00:00",
            "url": "https://example.org",
        }])
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[1][1] == 'Jane "JD" Doe'
        assert rows[1][2] == "line one\nline two"
        assert rows[1][7] == "2024-05-10 10:00:00"


# ── health and errors ─────────────────────────────────────────────────────

class TestHealth:

    def test_healthy(self, client):
        body = client.get("/api/health").json()
        assert body["data"]["status"] == "healthy"
        assert body["data"]["database"] == "connected"

    def test_database_down(self, mock_config):
        broken = MagicMock(spec=PostStore)
        broken.ping.side_effect = OperationalError("SELECT 1", {}, Exception("gone"))
        with TestClient(create_app(broken)) as test_client:
            response = test_client.get("/api/health")
        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "data": None,
            "error": "Database connection failed",
            "count": None,
        }

    def test_query_failure_is_500(self, mock_config):
        broken = MagicMock(spec=PostStore)
        broken.get_stats.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        with TestClient(create_app(broken)) as test_client:
            response = test_client.get("/api/stats")
        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "OperationalError" in response.json()["error"]
