"""SQLAlchemy models for scraped group posts."""

from datetime import datetime, timezone
from typing import Optional
import json

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _load_list(value: Optional[str]) -> list[str]:
    if value:
        return json.loads(value)
    return []


def _dump_list(value: Optional[list[str]]) -> Optional[str]:
    return json.dumps(list(value)) if value else None


class Base(DeclarativeBase):
    pass


class PostRecord(Base):
    """A stored post. Lists are kept as JSON-encoded arrays, in order."""

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    id_source: Mapped[str] = mapped_column(String(20), default="generated")

    # Source information
    group_id: Mapped[str] = mapped_column(String(64), index=True)
    group_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    author_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    url: Mapped[str] = mapped_column(String(1024), default="")

    content: Mapped[str] = mapped_column(Text, default="")

    # Engagement
    likes: Mapped[int] = mapped_column(Integer, default=0, index=True)
    comments: Mapped[int] = mapped_column(Integer, default=0)
    shares: Mapped[int] = mapped_column(Integer, default=0)

    # Lists stored as JSON arrays
    _images: Mapped[Optional[str]] = mapped_column("images", Text, nullable=True)
    _videos: Mapped[Optional[str]] = mapped_column("videos", Text, nullable=True)
    _links: Mapped[Optional[str]] = mapped_column("links", Text, nullable=True)
    _hashtags: Mapped[Optional[str]] = mapped_column("hashtags", Text, nullable=True)
    _mentions: Mapped[Optional[str]] = mapped_column("mentions", Text, nullable=True)

    post_type: Mapped[str] = mapped_column(String(20), default="text")
    media_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    posted_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    timestamp_found: Mapped[bool] = mapped_column(Boolean, default=False)
    scraped_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def images(self) -> list[str]:
        return _load_list(self._images)

    @images.setter
    def images(self, value: list[str]):
        self._images = _dump_list(value)

    @property
    def videos(self) -> list[str]:
        return _load_list(self._videos)

    @videos.setter
    def videos(self, value: list[str]):
        self._videos = _dump_list(value)

    @property
    def links(self) -> list[str]:
        return _load_list(self._links)

    @links.setter
    def links(self, value: list[str]):
        self._links = _dump_list(value)

    @property
    def hashtags(self) -> list[str]:
        return _load_list(self._hashtags)

    @hashtags.setter
    def hashtags(self, value: list[str]):
        self._hashtags = _dump_list(value)

    @property
    def mentions(self) -> list[str]:
        return _load_list(self._mentions)

    @mentions.setter
    def mentions(self, value: list[str]):
        self._mentions = _dump_list(value)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "author_name": self.author_name,
            "author_id": self.author_id,
            "content": self.content,
            "url": self.url,
            "likes": self.likes,
            "comments": self.comments,
            "shares": self.shares,
            "images": self.images,
            "videos": self.videos,
            "links": self.links,
            "hashtags": self.hashtags,
            "mentions": self.mentions,
            "post_type": self.post_type,
            "media_count": self.media_count,
            "posted_at": self.posted_at.isoformat() if self.posted_at else None,
            "scraped_at": self.scraped_at.isoformat() if self.scraped_at else None,
        }

    def __repr__(self) -> str:
        return f"<PostRecord {self.post_id} likes={self.likes} type={self.post_type}>"


class Group(Base):
    """A Facebook group being monitored."""

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(512))

    # Tracking
    last_checked: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Stats
    total_posts_scraped: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<Group {self.name}>"


class ScrapeRun(Base):
    """One scrape of one group, kept for monitoring."""

    __tablename__ = "scrape_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[str] = mapped_column(String(64), index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    documents_fetched: Mapped[int] = mapped_column(Integer, default=0)
    strategies_failed: Mapped[int] = mapped_column(Integer, default=0)
    posts_extracted: Mapped[int] = mapped_column(Integer, default=0)
    posts_kept: Mapped[int] = mapped_column(Integer, default=0)
    posts_saved: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(20))  # 'success', 'empty', 'failed'
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "documents_fetched": self.documents_fetched,
            "strategies_failed": self.strategies_failed,
            "posts_extracted": self.posts_extracted,
            "posts_kept": self.posts_kept,
            "posts_saved": self.posts_saved,
            "status": self.status,
            "error_message": self.error_message,
        }
