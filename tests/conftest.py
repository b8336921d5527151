"""Shared fixtures for group-scraper tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from group_scraper.storage.models import Base


# Fixed "now" used by the HTML fixtures and the tests that read them
NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
TWO_HOURS_AGO = int((NOW - timedelta(hours=2)).timestamp())


# ---------------------------------------------------------------------------
# Mock config fixture
# ---------------------------------------------------------------------------

def _make_mock_config(tmp_path):
    """Build a MagicMock that behaves like group_scraper.config.Config."""
    cfg = MagicMock()

    # Scraper
    cfg.scraper_interval_minutes = 60
    cfg.scraper_min_delay = 0
    cfg.scraper_max_delay = 0
    cfg.session_path = tmp_path / "session"
    cfg.cookies_file = tmp_path / "session" / "cookies.json"
    cfg.user_agent = "Mozilla/5.0 (test)"
    cfg.request_timeout = 5
    cfg.use_static = True
    cfg.use_browser = False
    cfg.browser_timeout_seconds = 5
    cfg.max_concurrent_fetches = 2

    # Scroll policy
    cfg.scroll_max_scrolls = 3
    cfg.scroll_delay = 0
    cfg.scroll_settle_delay = 0
    cfg.scroll_days_back = 5

    # Filters
    cfg.min_likes = 0
    cfg.max_likes = None
    cfg.min_comments = 0
    cfg.min_shares = 0
    cfg.days_back = None
    cfg.start_date = None
    cfg.end_date = None
    cfg.keywords = []
    cfg.exclude_keywords = []
    cfg.filter_group_ids = []
    cfg.filter_author_names = []

    cfg.groups = [{"id": "555", "name": "Test Group"}]

    # API
    cfg.api_default_min_likes = 1000
    cfg.high_engagement_likes = 1000
    cfg.api_max_page_size = 100

    return cfg


@pytest.fixture()
def mock_config(tmp_path):
    """Patch group_scraper.config.config globally and return the mock object."""
    cfg = _make_mock_config(tmp_path)
    with patch("group_scraper.config.config", cfg):
        # Also patch the config references inside individual modules so that
        # code which imported `config` at module level sees the mock.
        with patch("group_scraper.filters.criteria.config", cfg), \
             patch("group_scraper.scraper.session.config", cfg), \
             patch("group_scraper.scraper.browser.config", cfg), \
             patch("group_scraper.scraper.facebook.config", cfg), \
             patch("group_scraper.api.server.config", cfg):
            yield cfg


# ---------------------------------------------------------------------------
# In-memory database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def db_engine():
    """Create an in-memory SQLite engine with tables.

    StaticPool keeps one connection, so every session sees the same
    in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(db_engine):
    """Yield a transactional DB session that rolls back after the test."""
    SessionLocal = sessionmaker(bind=db_engine)
    session: Session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture()
def session_factory(db_engine):
    """Session factory for code that opens its own sessions (PostStore)."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


# ---------------------------------------------------------------------------
# Sample group pages, one per skin
# ---------------------------------------------------------------------------

FEED_POST = """
<div role="article">
  <h2><a href="https://www.facebook.com/profile.php?id=100001"><strong><span>Jane Doe</span></strong></a></h2>
  <a href="https://www.facebook.com/groups/555/posts/987654321/?__cft__[0]=AZX&amp;__tn__=%2CO%2CP-R">
    <abbr data-utime="{utime}">2 hrs</abbr>
  </a>
  <div data-ad-rendering-role="story_message">
    <div dir="auto">Selling my road bike, barely used. Message me for details #forsale</div>
  </div>
  {extra}
  <span aria-label="{likes} reactions">{likes}</span>
  <div role="button">Like</div>
  <div role="button">Comment</div>
</div>
"""


@pytest.fixture()
def scenario_html():
    """A full post, a bare Like button and a duplicate of the post with an image."""
    image = (
        '<img src="https://scontent.xx.fbcdn.net/v/t39.30808-6/bike_123_n.jpg" '
        'width="600" height="400" alt="Road bike">'
    )
    return (
        "<html><head><title>Test Group | Facebook</title></head><body>"
        + FEED_POST.format(utime=TWO_HOURS_AGO, likes="2.5K", extra="")
        + '<div role="article"><div role="button">Like</div></div>'
        + FEED_POST.format(utime=TWO_HOURS_AGO, likes="2,500", extra=image)
        + "</body></html>"
    )


@pytest.fixture()
def feed_html():
    """Desktop feed: two posts, one carrying a comment thread."""
    return f"""
<html><body>
<div role="feed">
  <div aria-posinset="1">
    <div role="article">
      <h2><a href="/profile.php?id=100001"><strong><span>Jane Doe</span></strong></a></h2>
      <a href="/groups/555/permalink/1111111111/"><abbr data-utime="{TWO_HOURS_AGO}">2h</abbr></a>
      <div data-ad-rendering-role="story_message">
        <div dir="auto">Community cleanup this Saturday at the park, bring gloves! @Sam_Rivera #cleanup</div>
        <div dir="auto">Details: https://l.facebook.com/l.php?u=https%3A%2F%2Fexample.org%2Fcleanup%3Ffbclid%3Dabc&amp;h=AT0</div>
      </div>
      <span aria-label="1.2K reactions">1.2K</span>
      <span aria-label="37 comments">37 comments</span>
      <span aria-label="5 shares">5 shares</span>
      <div role="article" aria-label="Comment by Bob Stone">
        <a href="/profile.php?id=200002"><strong>Bob Stone</strong></a>
        <div dir="auto">Count me in, I will bring trash bags for everyone</div>
        <span aria-label="99 reactions">99</span>
      </div>
    </div>
  </div>
  <div aria-posinset="2">
    <div role="article">
      <h2><a href="/groups/555/user/300003/"><strong><span>Ana Costa</span></strong></a></h2>
      <a href="/groups/555/posts/2222222222/"><abbr>Yesterday at 9:15 am</abbr></a>
      <div data-ad-rendering-role="story_message"><div dir="auto">Lost cat near Main Street, grey tabby, answers to Milo.</div></div>
      <img src="https://scontent.xx.fbcdn.net/v/cat_photo_n.jpg" width="720" height="540">
      <img src="https://static.xx.fbcdn.net/rsrc.php/emoji.png" width="16" height="16">
      <span aria-label="48 reactions">48</span>
    </div>
  </div>
  <div aria-posinset="3" aria-label="Loading..."><div data-visualcompletion="loading-state"></div></div>
</div>
</body></html>
"""


@pytest.fixture()
def mobile_html():
    """m.facebook.com skin: posts carry a data-ft tracking blob."""
    return """
<html><body>
<div id="m_group_stories_container">
  <div class="_55wo" data-ft='{"top_level_post_id":"111222333","content_owner_id_new":"42"}'>
    <header><h3><strong><a href="/profile.php?id=42&amp;refid=18">John Smith</a></strong></h3></header>
    <div class="story_body_container"><div><p>Anyone know a good plumber in town? Need one this week.</p></div></div>
    <abbr>3 hrs</abbr>
    <footer>
      <div data-sigil="reactions-sentence">17</div>
      <span data-sigil="comments-token">4 Comments</span>
    </footer>
  </div>
  <div class="_55wo" data-ft='{"mf_story_key":"444555666"}'>
    <header><h3><strong><a href="/profile.php?id=43">Lee Park</a></strong></h3></header>
    <div class="story_body_container"><div><p>Farmers market moved to Sunday mornings starting next week.</p></div></div>
    <abbr>Monday at 2:30 pm</abbr>
  </div>
</div>
</body></html>
"""


@pytest.fixture()
def story_html():
    """Basic skin: no tracking data, post ids only in element ids."""
    return """
<html><body>
<div id="mall_post_777888999:6:0">
  <strong><a href="https://www.facebook.com/groups/555/user/777888/">Maria Lopez</a></strong>
  <p>Free couch available for pickup downtown this weekend.</p>
  <span>12 likes</span>
</div>
</body></html>
"""


@pytest.fixture()
def heuristic_html():
    """Markup none of the selector strategies recognize."""
    return """
<html><body><main>
<section>
  <div class="a">
    <div><h4><a href="/profile.php?id=9001">Sam Rivera</a></h4></div>
    <div><span dir="auto">Looking for a weekend hiking buddy near the lake trail.</span></div>
  </div>
  <div class="b">
    <div><h4><a href="/profile.php?id=9002">Ana Costa</a></h4></div>
    <div><span dir="auto">Does anyone have a spare tent I could borrow next week?</span></div>
  </div>
  <div class="c"><button>Like</button></div>
</section>
</main></body></html>
"""
