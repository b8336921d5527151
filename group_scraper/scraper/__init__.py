"""Fetch collaborators: session handling, static and rendered fetchers, orchestration."""

from .browser import BrowserFetcher, ScrollPolicy, fetch_rendered
from .facebook import GroupScraper, GroupScrapeResult, UrlVariant, build_variants
from .session import AuthError, AuthManager
from .static import FetchError, fetch_static

__all__ = [
    "AuthError",
    "AuthManager",
    "BrowserFetcher",
    "FetchError",
    "GroupScrapeResult",
    "GroupScraper",
    "ScrollPolicy",
    "UrlVariant",
    "build_variants",
    "fetch_rendered",
    "fetch_static",
]
