"""Post persistence and the read queries behind the API."""

from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

import structlog
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from ..parser.metrics import ensure_utc
from ..parser.post import Post, classify_post_type
from .database import get_session_factory, session_scope
from .dedup import find_similar
from .models import Group, PostRecord, ScrapeRun, utcnow

logger = structlog.get_logger()


def _naive_utc(value: datetime) -> datetime:
    return ensure_utc(value).replace(tzinfo=None)


def _merge_list(existing: list[str], new: Iterable[str]) -> list[str]:
    merged = list(existing)
    for value in new:
        if value not in merged:
            merged.append(value)
    return merged


class PostStore:
    """Upserts posts keyed by post id and answers the dashboard queries.

    Saving the same post twice is safe: the second save updates the row,
    keeping the highest engagement seen so far.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_session_factory()

    def _scope(self):
        return session_scope(self._session_factory)

    # ── writes ───────────────────────────────────────────────────────────

    def _apply_update(self, record: PostRecord, post: Post, group_name: Optional[str]) -> None:
        if post.content and post.content != record.content:
            record.content = post.content
        if not record.author_name and post.author_name:
            record.author_name = post.author_name
            record.author_id = post.author_id
        if group_name and not record.group_name:
            record.group_name = group_name
        if post.timestamp_found and not record.timestamp_found:
            record.posted_at = _naive_utc(post.posted_at)
            record.timestamp_found = True
        record.url = record.url or post.url

        record.likes = max(record.likes or 0, post.likes)
        record.comments = max(record.comments or 0, post.comments)
        record.shares = max(record.shares or 0, post.shares)

        record.images = _merge_list(record.images, (item.url for item in post.images))
        record.videos = _merge_list(record.videos, (item.url for item in post.videos))
        record.links = _merge_list(record.links, post.links)
        record.hashtags = _merge_list(record.hashtags, post.hashtags)
        record.mentions = _merge_list(record.mentions, post.mentions)
        self._refresh_derived(record)
        record.updated_at = utcnow()

    @staticmethod
    def _refresh_derived(record: PostRecord) -> None:
        images, videos = record.images, record.videos
        record.post_type = classify_post_type(bool(images), bool(videos), bool(record.links))
        record.media_count = len(images) + len(videos)

    @staticmethod
    def _new_record(post: Post, group_name: Optional[str]) -> PostRecord:
        record = PostRecord(
            post_id=post.post_id,
            id_source=post.id_source,
            group_id=post.group_id,
            group_name=group_name,
            author_name=post.author_name,
            author_id=post.author_id,
            url=post.url,
            content=post.content,
            likes=post.likes,
            comments=post.comments,
            shares=post.shares,
            posted_at=_naive_utc(post.posted_at),
            timestamp_found=post.timestamp_found,
        )
        record.images = [item.url for item in post.images]
        record.videos = [item.url for item in post.videos]
        record.links = list(post.links)
        record.hashtags = list(post.hashtags)
        record.mentions = list(post.mentions)
        record.post_type = post.post_type
        record.media_count = post.media_count
        return record

    def _find_existing(self, session: Session, post: Post) -> Optional[PostRecord]:
        existing = session.query(PostRecord).filter(PostRecord.post_id == post.post_id).first()
        if existing or not post.has_generated_id:
            return existing
        # Generated ids change between runs; match on the text instead
        return find_similar(session, post.group_id, post.content)

    def _upsert(self, session: Session, post: Post, group_name: Optional[str]) -> bool:
        """Insert or update one post. Returns True when a row was inserted."""
        existing = self._find_existing(session, post)
        if existing:
            self._apply_update(existing, post, group_name)
            return False

        session.add(self._new_record(post, group_name))
        # Flush so a repeat of this post later in the batch finds the row
        session.flush()
        return True

    def save(self, post: Post, group_name: Optional[str] = None) -> bool:
        """Upsert a single post. Returns True when it was new."""
        with self._scope() as session:
            return self._upsert(session, post, group_name)

    def save_all(self, posts: Iterable[Post], group_name: Optional[str] = None) -> int:
        """Upsert many posts in one transaction. Returns how many were new."""
        created = 0
        with self._scope() as session:
            for post in posts:
                if self._upsert(session, post, group_name):
                    created += 1
        logger.debug("Posts saved", created=created, group_name=group_name)
        return created

    def touch_group(self, group_id: str, name: str, posts_saved: int) -> None:
        """Update the tracking row for a monitored group."""
        with self._scope() as session:
            group = session.get(Group, group_id)
            if group is None:
                group = Group(
                    id=group_id,
                    name=name,
                    url=f"https://www.facebook.com/groups/{group_id}",
                    total_posts_scraped=0,
                )
                session.add(group)
            group.name = name or group.name
            group.last_checked = utcnow()
            group.total_posts_scraped = (group.total_posts_scraped or 0) + posts_saved

    def record_run(self, group_id: str, **fields: Any) -> dict[str, Any]:
        """Store monitoring metrics for one group scrape."""
        with self._scope() as session:
            run = ScrapeRun(group_id=group_id, finished_at=utcnow(), **fields)
            session.add(run)
            session.flush()
            return run.to_dict()

    # ── reads ────────────────────────────────────────────────────────────

    @staticmethod
    def _recent_query(session: Session, min_likes: int, days: Optional[int]):
        query = session.query(PostRecord).filter(PostRecord.likes >= min_likes)
        if days:
            query = query.filter(PostRecord.scraped_at >= utcnow() - timedelta(days=days))
        return query

    def get_posts(
        self,
        page: int = 1,
        page_size: int = 20,
        min_likes: int = 0,
        days: Optional[int] = 5,
    ) -> list[dict[str, Any]]:
        """Recently scraped posts, most liked first."""
        page = max(page, 1)
        with self._scope() as session:
            records = (
                self._recent_query(session, min_likes, days)
                .order_by(PostRecord.likes.desc(), PostRecord.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return [record.to_dict() for record in records]

    def count_posts(self, min_likes: int = 0, days: Optional[int] = 5) -> int:
        with self._scope() as session:
            return self._recent_query(session, min_likes, days).count()

    def get_posts_by_group(self, group_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """Newest posts of one group."""
        with self._scope() as session:
            records = (
                session.query(PostRecord)
                .filter(PostRecord.group_id == group_id)
                .order_by(PostRecord.posted_at.desc(), PostRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [record.to_dict() for record in records]

    def get_posts_for_export(self, min_likes: int = 0, days: Optional[int] = 5) -> list[dict[str, Any]]:
        with self._scope() as session:
            records = (
                self._recent_query(session, min_likes, days)
                .order_by(PostRecord.likes.desc(), PostRecord.id)
                .all()
            )
            return [record.to_dict() for record in records]

    def get_stats(self, high_engagement_likes: int = 1000) -> dict[str, Any]:
        """Totals for the dashboard."""
        with self._scope() as session:
            total = session.query(func.count(PostRecord.id)).scalar() or 0
            high = (
                session.query(func.count(PostRecord.id))
                .filter(PostRecord.likes >= high_engagement_likes)
                .scalar()
                or 0
            )
            avg_likes = session.query(func.avg(PostRecord.likes)).scalar()
            last_scraped = session.query(func.max(PostRecord.scraped_at)).scalar()
            groups_scraped = session.query(func.count(func.distinct(PostRecord.group_id))).scalar() or 0

            top_group = (
                session.query(PostRecord.group_id, func.count(PostRecord.id).label("posts"))
                .group_by(PostRecord.group_id)
                .order_by(text("posts DESC"))
                .first()
            )
            by_type = dict(
                session.query(PostRecord.post_type, func.count(PostRecord.id))
                .group_by(PostRecord.post_type)
                .all()
            )

            return {
                "total_posts": total,
                "high_engagement_posts": high,
                "avg_likes": round(float(avg_likes), 2) if avg_likes is not None else 0.0,
                "top_group": top_group[0] if top_group else None,
                "last_scraped": last_scraped.isoformat() if last_scraped else None,
                "groups_scraped": groups_scraped,
                "posts_by_type": by_type,
            }

    def get_top_authors(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._scope() as session:
            rows = (
                session.query(
                    PostRecord.author_name,
                    func.count(PostRecord.id).label("posts"),
                    func.sum(PostRecord.likes).label("total_likes"),
                )
                .filter(PostRecord.author_name.isnot(None))
                .group_by(PostRecord.author_name)
                .order_by(text("total_likes DESC"))
                .limit(limit)
                .all()
            )
            return [
                {"author_name": name, "posts": posts, "total_likes": int(total_likes or 0)}
                for name, posts, total_likes in rows
            ]

    def get_engagement_trends(self, days: int = 30) -> list[dict[str, Any]]:
        """Posts and likes per posting day over the last ``days`` days."""
        day = func.date(PostRecord.posted_at)
        with self._scope() as session:
            rows = (
                session.query(
                    day.label("day"),
                    func.count(PostRecord.id),
                    func.sum(PostRecord.likes),
                    func.avg(PostRecord.likes),
                )
                .filter(PostRecord.posted_at >= utcnow() - timedelta(days=days))
                .group_by(day)
                .order_by(day)
                .all()
            )
            return [
                {
                    "date": str(row_day),
                    "posts": posts,
                    "total_likes": int(total or 0),
                    "avg_likes": round(float(avg or 0), 2),
                }
                for row_day, posts, total, avg in rows
            ]

    def recent_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._scope() as session:
            runs = session.query(ScrapeRun).order_by(ScrapeRun.id.desc()).limit(limit).all()
            return [run.to_dict() for run in runs]

    def ping(self) -> bool:
        """True when the database answers."""
        with self._scope() as session:
            session.execute(text("SELECT 1"))
        return True
