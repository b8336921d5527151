"""Configuration management for the group scraper."""

import os
from datetime import date
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


def load_config(path: Optional[Path] = None) -> dict[str, Any]:
    """Load configuration from config.yaml.

    A missing file yields an empty config so every property falls back to
    its default.
    """
    config_path = path or Path(os.getenv("CONFIG_PATH", PROJECT_ROOT / "config.yaml"))
    if not config_path.exists():
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f)
    return config_data or {}


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class Config:
    """Application configuration."""

    def __init__(self, data: Optional[dict[str, Any]] = None):
        self._config = data if data is not None else load_config()

    def _section(self, name: str) -> dict[str, Any]:
        return self._config.get(name) or {}

    # Environment variables
    @property
    def fb_email(self) -> str:
        return os.getenv("FB_EMAIL", "")

    @property
    def fb_password(self) -> str:
        return os.getenv("FB_PASSWORD", "")

    @property
    def database_url(self) -> str:
        url = os.getenv("DATABASE_URL", "")
        if url:
            return url
        return f"sqlite:///{PROJECT_ROOT / 'data' / 'posts.db'}"

    @property
    def log_level(self) -> str:
        return os.getenv("LOG_LEVEL", "INFO")

    @property
    def api_host(self) -> str:
        return os.getenv("API_HOST", "0.0.0.0")

    @property
    def api_port(self) -> int:
        return int(os.getenv("API_PORT", "8080"))

    # Scraper settings
    @property
    def scraper_interval_minutes(self) -> int:
        return self._section("scraper").get("interval_minutes", 60)

    @property
    def scraper_min_delay(self) -> float:
        return self._section("scraper").get("min_delay", 2)

    @property
    def scraper_max_delay(self) -> float:
        return self._section("scraper").get("max_delay", 5)

    @property
    def session_path(self) -> Path:
        return PROJECT_ROOT / self._section("scraper").get("session_path", "data/session")

    @property
    def cookies_file(self) -> Path:
        return PROJECT_ROOT / self._section("scraper").get("cookies_file", "data/session/cookies.json")

    @property
    def user_agent(self) -> str:
        return self._section("scraper").get(
            "user_agent",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        )

    @property
    def request_timeout(self) -> float:
        return self._section("scraper").get("request_timeout", 30)

    @property
    def use_static(self) -> bool:
        return self._section("scraper").get("use_static", True)

    @property
    def use_browser(self) -> bool:
        """Whether rendered (Playwright) fetches are attempted (off by default)."""
        return self._section("scraper").get("use_browser", False)

    @property
    def browser_timeout_seconds(self) -> float:
        """Upper bound for a single rendered fetch, navigation and scrolling included."""
        return self._section("scraper").get("browser_timeout_seconds", 120)

    @property
    def max_concurrent_fetches(self) -> int:
        return self._section("scraper").get("max_concurrent_fetches", 3)

    # Scroll policy for rendered fetches
    @property
    def scroll_max_scrolls(self) -> int:
        return self._section("scroll").get("max_scrolls", 20)

    @property
    def scroll_delay(self) -> float:
        return self._section("scroll").get("scroll_delay", 2)

    @property
    def scroll_settle_delay(self) -> float:
        return self._section("scroll").get("settle_delay", 3)

    @property
    def scroll_days_back(self) -> int:
        return self._section("scroll").get("days_back", 5)

    # Filter settings
    @property
    def min_likes(self) -> int:
        return self._section("filters").get("min_likes") or 0

    @property
    def max_likes(self) -> Optional[int]:
        return self._section("filters").get("max_likes")

    @property
    def min_comments(self) -> int:
        return self._section("filters").get("min_comments") or 0

    @property
    def min_shares(self) -> int:
        return self._section("filters").get("min_shares") or 0

    @property
    def days_back(self) -> Optional[int]:
        return self._section("filters").get("days_back")

    @property
    def start_date(self) -> Optional[date]:
        return _as_date(self._section("filters").get("start_date"))

    @property
    def end_date(self) -> Optional[date]:
        return _as_date(self._section("filters").get("end_date"))

    @property
    def keywords(self) -> list[str]:
        return self._section("filters").get("keywords") or []

    @property
    def exclude_keywords(self) -> list[str]:
        return self._section("filters").get("exclude_keywords") or []

    @property
    def filter_group_ids(self) -> list[str]:
        return [str(g) for g in self._section("filters").get("group_ids") or []]

    @property
    def filter_author_names(self) -> list[str]:
        return self._section("filters").get("author_names") or []

    # Groups
    @property
    def groups(self) -> list[dict[str, str]]:
        """Configured groups as ``{"id": ..., "name": ...}`` dicts."""
        groups = []
        for group in self._config.get("groups") or []:
            group_id = str(group["id"])
            groups.append({"id": group_id, "name": group.get("name") or f"Group_{group_id}"})
        return groups

    # Query API settings
    @property
    def api_default_min_likes(self) -> int:
        return self._section("api").get("default_min_likes", 1000)

    @property
    def high_engagement_likes(self) -> int:
        """Likes threshold counted as high engagement in stats."""
        return self._section("api").get("high_engagement_likes", 1000)

    @property
    def api_max_page_size(self) -> int:
        return self._section("api").get("max_page_size", 100)


# Global config instance
config = Config()
