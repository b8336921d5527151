"""End-to-end tests for the extraction pipeline: HTML in, merged posts out."""

from datetime import datetime, timezone

import pytest

from group_scraper.parser import DocumentParseError, extract_posts, run_extraction
from group_scraper.storage.dedup import merge_posts

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


class TestScenario:
    """A post seen twice on one page, plus a bare Like button."""

    def test_extracts_both_sightings(self, scenario_html):
        posts = extract_posts(scenario_html, "555", now=NOW)
        assert len(posts) == 2
        assert [p.post_id for p in posts] == ["987654321", "987654321"]

    def test_bare_like_button_rejected(self, scenario_html):
        result = run_extraction(scenario_html, "555", now=NOW)
        assert result.candidates == 3
        assert result.rejected == 1
        assert result.strategy == "feed_article"

    def test_merge_collapses_sightings(self, scenario_html):
        merged = merge_posts(extract_posts(scenario_html, "555", now=NOW))
        assert len(merged) == 1
        post = merged[0]
        assert post.author_name == "Jane Doe"
        assert post.likes == 2500
        assert post.media_count == 1
        assert post.post_type == "image"
        assert post.url == "https://www.facebook.com/groups/555/posts/987654321/"
        assert post.hashtags == ("forsale",)

    def test_bytes_input(self, scenario_html):
        posts = extract_posts(scenario_html.encode("utf-8"), "555", now=NOW)
        assert len(posts) == 2


class TestSkins:

    def test_feed(self, feed_html):
        posts = extract_posts(feed_html, "555", now=NOW)
        assert [p.post_id for p in posts] == ["1111111111", "2222222222"]

    def test_mobile(self, mobile_html):
        posts = extract_posts(mobile_html, "555", now=NOW)
        assert [p.post_id for p in posts] == ["111222333", "444555666"]
        assert posts[1].posted_at.date() == datetime(2024, 5, 6).date()

    def test_story(self, story_html):
        posts = extract_posts(story_html, "555", now=NOW)
        assert len(posts) == 1
        assert posts[0].posted_at == NOW

    def test_heuristic(self, heuristic_html):
        result = run_extraction(heuristic_html, "555", now=NOW)
        assert result.strategy == "heuristic"
        assert [p.author_name for p in result.posts] == ["Sam Rivera", "Ana Costa"]
        assert all(p.has_generated_id for p in result.posts)

    def test_merge_across_documents(self, feed_html, mobile_html):
        feed = extract_posts(feed_html, "555", now=NOW)
        mobile = extract_posts(mobile_html, "555", now=NOW)
        assert len(merge_posts(feed, mobile, feed)) == 4


class TestEdgeCases:

    def test_page_without_posts(self):
        result = run_extraction("<html><body><div>Nothing here</div></body></html>", "555", now=NOW)
        assert result.posts == []
        assert result.candidates == 0
        assert result.strategy is None

    def test_unparseable_input(self):
        with pytest.raises(DocumentParseError):
            extract_posts("", "555", now=NOW)

    def test_every_post_is_valid(self, feed_html, mobile_html, story_html, heuristic_html):
        for html in (feed_html, mobile_html, story_html, heuristic_html):
            assert all(p.is_valid() for p in extract_posts(html, "555", now=NOW))

    def test_default_now(self, story_html):
        posts = extract_posts(story_html, "555")
        assert posts[0].captured_at.tzinfo == timezone.utc

    def test_photo_only_posts_stay_separate(self):
        html = """
        <div role="feed">
          <div role="article">
            <span aria-label="10 reactions"></span>
            <img src="https://scontent.xx.fbcdn.net/v/t39/first_photo_n.jpg" width="600" height="400">
          </div>
          <div role="article">
            <span aria-label="99 reactions"></span>
            <img src="https://scontent.xx.fbcdn.net/v/t39/second_photo_n.jpg" width="600" height="400">
          </div>
        </div>"""
        posts = extract_posts(html, "555", now=NOW)
        assert len(posts) == 2
        assert posts[0].post_id != posts[1].post_id

        merged = merge_posts(posts)
        assert sorted(p.likes for p in merged) == [10, 99]
        assert [p.media_count for p in merged] == [1, 1]
