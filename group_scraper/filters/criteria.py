"""Inclusion and exclusion criteria for extracted posts."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

import structlog

from ..config import Config, config
from ..parser.metrics import ensure_utc
from ..parser.post import Post

logger = structlog.get_logger()

# Predicate categories, in evaluation order
CATEGORIES = (
    "likes",
    "comments",
    "shares",
    "time",
    "keywords",
    "excluded_keywords",
    "group",
    "author",
)

DateBound = Union[date, datetime, None]


@dataclass
class FilterCriteria:
    """What a post must satisfy to be kept. Unset fields impose nothing."""
    min_likes: int = 0
    max_likes: Optional[int] = None
    min_comments: int = 0
    min_shares: int = 0
    days_back: Optional[int] = None
    start_date: DateBound = None
    end_date: DateBound = None
    keywords: list[str] = field(default_factory=list)
    exclude_keywords: list[str] = field(default_factory=list)
    group_ids: list[str] = field(default_factory=list)
    author_names: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "FilterCriteria":
        cfg = cfg or config
        return cls(
            min_likes=cfg.min_likes,
            max_likes=cfg.max_likes,
            min_comments=cfg.min_comments,
            min_shares=cfg.min_shares,
            days_back=cfg.days_back,
            start_date=cfg.start_date,
            end_date=cfg.end_date,
            keywords=list(cfg.keywords),
            exclude_keywords=list(cfg.exclude_keywords),
            group_ids=list(cfg.filter_group_ids),
            author_names=list(cfg.filter_author_names),
        )


@dataclass
class FilterStats:
    """Per-category failure tallies.

    A post failing several predicates is counted in each of them, so the
    category counts can add up to more than ``total``.
    """
    total: int = 0
    passed: int = 0
    failed: dict[str, int] = field(default_factory=lambda: {category: 0 for category in CATEGORIES})

    @property
    def filtered(self) -> int:
        return self.total - self.passed

    def __str__(self) -> str:
        failures = ", ".join(f"{name}={count}" for name, count in self.failed.items() if count)
        return f"{self.passed}/{self.total} passed" + (f" ({failures})" if failures else "")


@dataclass
class FilterResult:
    """Result of checking one post against the criteria."""
    matches: bool
    reasons: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def fail(self, category: str, reason: str) -> None:
        self.matches = False
        if category not in self.failed:
            self.failed.append(category)
        self.reasons.append(reason)


def _lower_bound(value: DateBound) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _upper_bound(value: DateBound) -> Optional[datetime]:
    """Inclusive end; a bare date covers the whole day."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value + timedelta(days=1), time.min, tzinfo=timezone.utc) - timedelta(microseconds=1)


def evaluate_post(post: Post, criteria: FilterCriteria, now: Optional[datetime] = None) -> FilterResult:
    """Check every configured predicate independently."""
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    result = FilterResult(matches=True)
    posted_at = ensure_utc(post.posted_at)
    content = post.content.lower()

    # Engagement
    if criteria.min_likes and post.likes < criteria.min_likes:
        result.fail("likes", f"Likes {post.likes} below minimum {criteria.min_likes}")
    if criteria.max_likes is not None and post.likes > criteria.max_likes:
        result.fail("likes", f"Likes {post.likes} above maximum {criteria.max_likes}")
    if criteria.min_comments and post.comments < criteria.min_comments:
        result.fail("comments", f"Comments {post.comments} below minimum {criteria.min_comments}")
    if criteria.min_shares and post.shares < criteria.min_shares:
        result.fail("shares", f"Shares {post.shares} below minimum {criteria.min_shares}")

    # Recency
    if criteria.days_back:
        cutoff = now - timedelta(days=criteria.days_back)
        if not posted_at > cutoff:
            result.fail("time", f"Posted more than {criteria.days_back} days ago")
    start = _lower_bound(criteria.start_date)
    if start and posted_at < start:
        result.fail("time", f"Posted before {start.date()}")
    end = _upper_bound(criteria.end_date)
    if end and posted_at > end:
        result.fail("time", f"Posted after {end.date()}")

    # Keywords
    if criteria.keywords and not any(keyword.lower() in content for keyword in criteria.keywords):
        result.fail("keywords", "No required keyword found")
    excluded = [keyword for keyword in criteria.exclude_keywords if keyword.lower() in content]
    if excluded:
        result.fail("excluded_keywords", f"Contains excluded keyword '{excluded[0]}'")

    # Allow-lists
    if criteria.group_ids and post.group_id not in criteria.group_ids:
        result.fail("group", f"Group {post.group_id} not in allow-list")
    if criteria.author_names:
        author = (post.author_name or "").casefold()
        if not any(author == name.casefold() for name in criteria.author_names):
            result.fail("author", f"Author '{post.author_name}' not in allow-list")

    return result


def apply_filters(
    posts: list[Post],
    criteria: FilterCriteria,
    now: Optional[datetime] = None,
) -> tuple[list[Post], FilterStats]:
    """Keep the posts that pass every predicate, and tally the failures."""
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    stats = FilterStats(total=len(posts))
    kept: list[Post] = []

    for post in posts:
        result = evaluate_post(post, criteria, now)
        for category in result.failed:
            stats.failed[category] += 1
        if result.matches:
            kept.append(post)
        else:
            logger.debug("Post filtered out", post_id=post.post_id, reasons=result.reasons)

    stats.passed = len(kept)
    return kept, stats
