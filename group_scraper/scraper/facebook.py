"""Per-group scraping: fetch every URL variant, extract, merge, filter, store."""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx
import structlog

from ..config import config
from ..filters.criteria import FilterCriteria, FilterStats, apply_filters
from ..logging_config import print_error, print_status, print_success, print_warning
from ..parser.document import DocumentParseError, parse_document
from ..parser.pipeline import run_extraction
from ..parser.post import Post
from ..storage.dedup import merge_posts
from ..storage.models import utcnow
from ..storage.store import PostStore
from .browser import BrowserFetcher
from .session import AuthError, AuthManager
from .static import FetchError, fetch_static

logger = structlog.get_logger()

StaticFetcher = Callable[[str, Optional[httpx.AsyncClient]], Awaitable[tuple[bytes, int]]]


@dataclass(frozen=True)
class UrlVariant:
    """One way of fetching a group feed, tried as an independent strategy."""
    name: str
    url: str
    rendered: bool = False


def build_variants(group_id: str, use_static: bool = True, use_browser: bool = False) -> list[UrlVariant]:
    """URL variants for a group, in the order their documents are merged."""
    variants = []
    if use_static:
        variants += [
            UrlVariant("static_mobile", f"https://m.facebook.com/groups/{group_id}"),
            UrlVariant("static_mobile_posts", f"https://m.facebook.com/groups/{group_id}/posts"),
            UrlVariant(
                "static_desktop",
                f"https://www.facebook.com/groups/{group_id}?sorting_setting=CHRONOLOGICAL",
            ),
        ]
    if use_browser:
        variants += [
            UrlVariant("rendered_mobile", f"https://m.facebook.com/groups/{group_id}", rendered=True),
            UrlVariant("rendered_basic", f"https://mbasic.facebook.com/groups/{group_id}", rendered=True),
            UrlVariant("rendered_desktop", f"https://www.facebook.com/groups/{group_id}", rendered=True),
        ]
    return variants


def group_name_from_title(title: Optional[str]) -> Optional[str]:
    """Group name from an ``/about`` page title like ``"Name | Facebook"``."""
    if not title:
        return None
    name = title.split("|")[0].strip()
    if not name or name.lower() in ("facebook", "log in to facebook", "log into facebook"):
        return None
    return name


@dataclass
class FetchOutcome:
    variant: UrlVariant
    html: Optional[Any] = None
    error: Optional[str] = None


@dataclass
class GroupScrapeResult:
    """What happened while scraping one group."""
    group_id: str
    group_name: str
    documents_fetched: int = 0
    strategies_failed: int = 0
    posts_extracted: int = 0
    posts: list[Post] = field(default_factory=list)
    kept: list[Post] = field(default_factory=list)
    posts_saved: int = 0
    filter_stats: FilterStats = field(default_factory=FilterStats)
    status: str = "success"
    error: Optional[str] = None


class GroupScraper:
    """Scrapes configured Facebook groups through several URL variants.

    Fetches for one group run concurrently. Documents are extracted in
    variant order and merged, so the stored result does not depend on
    which fetch finished first.
    """

    def __init__(
        self,
        store: Optional[PostStore] = None,
        auth: Optional[AuthManager] = None,
        criteria: Optional[FilterCriteria] = None,
        static_fetcher: Optional[StaticFetcher] = None,
        rendered_fetcher: Optional[BrowserFetcher] = None,
        use_static: Optional[bool] = None,
        use_browser: Optional[bool] = None,
        max_concurrent: Optional[int] = None,
    ):
        self.store = store or PostStore()
        self.auth = auth or AuthManager()
        self.criteria = criteria or FilterCriteria.from_config()
        self.static_fetcher = static_fetcher or fetch_static
        self.rendered_fetcher = rendered_fetcher
        self.use_static = config.use_static if use_static is None else use_static
        self.use_browser = config.use_browser if use_browser is None else use_browser
        self._semaphore = asyncio.Semaphore(max_concurrent or config.max_concurrent_fetches)
        self._owns_browser = False
        self.client: Optional[httpx.AsyncClient] = None
        self.cookies: list[dict[str, Any]] = []

    async def _random_delay(self, min_sec: Optional[float] = None, max_sec: Optional[float] = None):
        """Wait a random amount of time between groups."""
        min_sec = config.scraper_min_delay if min_sec is None else min_sec
        max_sec = config.scraper_max_delay if max_sec is None else max_sec
        await asyncio.sleep(random.uniform(min_sec, max_sec))

    async def start(self):
        """Establish the session and, when enabled, launch the browser.

        Raises:
            AuthError: no valid session; the run cannot continue.
        """
        print_status("Checking Facebook session...")
        try:
            self.client, self.cookies = await self.auth.get_session()
        except AuthError:
            print_error("Not logged in - run scripts/login_facebook.py first")
            raise
        if self.use_browser and self.rendered_fetcher is None:
            self.rendered_fetcher = BrowserFetcher()
            await self.rendered_fetcher.start()
            self._owns_browser = True

    async def stop(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        if self._owns_browser and self.rendered_fetcher is not None:
            await self.rendered_fetcher.stop()
            self.rendered_fetcher = None
            self._owns_browser = False

    async def __aenter__(self) -> "GroupScraper":
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    async def _fetch(self, variant: UrlVariant, group_id: str) -> FetchOutcome:
        async with self._semaphore:
            try:
                if variant.rendered:
                    if self.rendered_fetcher is None:
                        raise FetchError("Browser not available", url=variant.url)
                    html = await self.rendered_fetcher.fetch(variant.url, self.cookies)
                else:
                    html, _ = await self.static_fetcher(variant.url, self.client)
            except FetchError as e:
                logger.warning("Fetch failed", group_id=group_id, strategy=variant.name, url=variant.url, error=str(e))
                return FetchOutcome(variant, error=str(e))
        return FetchOutcome(variant, html=html)

    async def fetch_group_name(self, group_id: str) -> Optional[str]:
        """Read the group's display name from its about page."""
        url = f"https://www.facebook.com/groups/{group_id}/about"
        try:
            html, _ = await self.static_fetcher(url, self.client)
            return group_name_from_title(parse_document(html).title)
        except (FetchError, DocumentParseError) as e:
            logger.debug("Group name lookup failed", group_id=group_id, error=str(e))
            return None

    async def resolve_group_name(self, group_id: str, configured: Optional[str] = None) -> str:
        if configured and configured != f"Group_{group_id}":
            return configured
        return await self.fetch_group_name(group_id) or f"Group_{group_id}"

    async def scrape_group(
        self,
        group_id: str,
        group_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GroupScrapeResult:
        """Fetch, extract, merge, filter and save the posts of one group."""
        started_at = utcnow()
        now = now or datetime.now(timezone.utc)
        name = await self.resolve_group_name(group_id, group_name)
        result = GroupScrapeResult(group_id=group_id, group_name=name)

        print_status(f"Scraping: {name}")
        logger.info("Scraping group", group_id=group_id, group_name=name)

        variants = build_variants(group_id, self.use_static, self.use_browser)
        outcomes = await asyncio.gather(*(self._fetch(variant, group_id) for variant in variants))

        post_lists: list[list[Post]] = []
        errors: list[str] = []
        for outcome in outcomes:
            if outcome.html is None:
                result.strategies_failed += 1
                errors.append(f"{outcome.variant.name}: {outcome.error}")
                continue
            result.documents_fetched += 1
            try:
                extraction = run_extraction(outcome.html, group_id, now)
            except DocumentParseError as e:
                result.strategies_failed += 1
                errors.append(f"{outcome.variant.name}: {e}")
                logger.warning("Fetch failed", group_id=group_id, strategy=outcome.variant.name, error=str(e))
                continue
            result.posts_extracted += len(extraction.posts)
            post_lists.append(extraction.posts)

        result.posts = merge_posts(*post_lists)
        result.kept, result.filter_stats = apply_filters(result.posts, self.criteria, now)
        result.posts_saved = self.store.save_all(result.kept, group_name=name)

        if not post_lists:
            result.status = "failed"
            result.error = "; ".join(errors) or "No URL variants enabled"
            print_warning(f"  No posts retrieved for {name}")
            logger.warning("No posts retrieved", group_id=group_id, strategies_failed=result.strategies_failed)
        elif not result.posts:
            result.status = "empty"
            logger.warning("No posts retrieved", group_id=group_id, documents=result.documents_fetched)
        else:
            print_success(f"  Found {len(result.posts)} posts, {len(result.kept)} passed filters")

        self.store.touch_group(group_id, name, result.posts_saved)
        self.store.record_run(
            group_id,
            started_at=started_at,
            documents_fetched=result.documents_fetched,
            strategies_failed=result.strategies_failed,
            posts_extracted=result.posts_extracted,
            posts_kept=len(result.kept),
            posts_saved=result.posts_saved,
            status=result.status,
            error_message=result.error,
        )

        logger.info(
            "Group scrape complete",
            group_id=group_id,
            extracted=len(result.posts),
            kept=len(result.kept),
            saved=result.posts_saved,
            filters=str(result.filter_stats),
        )
        return result

    async def scrape_all_groups(self, groups: Optional[list[dict[str, str]]] = None) -> list[GroupScrapeResult]:
        """Scrape each configured group in turn."""
        groups = config.groups if groups is None else groups
        print_status(f"Scraping {len(groups)} groups...")

        results = []
        for i, group in enumerate(groups):
            if i:
                await self._random_delay()
            results.append(await self.scrape_group(group["id"], group.get("name")))

        logger.info(
            "Scraping complete",
            groups_scraped=len(results),
            posts_saved=sum(r.posts_saved for r in results),
        )
        return results

