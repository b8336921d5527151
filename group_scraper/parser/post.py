"""Post value types produced by the extraction pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


POST_TYPES = ("text", "image", "video", "link", "mixed")
ID_SOURCES = ("tracking", "permalink", "element", "generated")


@dataclass(frozen=True)
class MediaItem:
    """An image or video attached to a post."""
    url: str
    kind: str  # 'image' or 'video'
    width: Optional[int] = None
    height: Optional[int] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "type": self.kind,
            "width": self.width,
            "height": self.height,
            "description": self.description,
            "thumbnail": self.thumbnail,
        }


@dataclass(frozen=True)
class Entities:
    """Mentions, hashtags and outbound links found in a post."""
    mentions: tuple[str, ...] = ()
    hashtags: tuple[str, ...] = ()
    links: tuple[str, ...] = ()


def classify_post_type(has_images: bool, has_videos: bool, has_links: bool) -> str:
    if has_images and has_videos:
        return "mixed"
    if has_videos:
        return "video"
    if has_images:
        return "image"
    if has_links:
        return "link"
    return "text"


@dataclass(frozen=True)
class Post:
    """A post extracted from a group page.

    Engagement counters default to 0, which means "none seen": a post
    nobody liked and a post whose like count could not be read look the
    same.
    """
    post_id: str
    group_id: str
    content: str
    url: str
    posted_at: datetime
    author_name: Optional[str] = None
    author_id: Optional[str] = None
    likes: int = 0
    comments: int = 0
    shares: int = 0
    media: tuple[MediaItem, ...] = ()
    mentions: tuple[str, ...] = ()
    hashtags: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    id_source: str = "generated"
    timestamp_found: bool = False
    captured_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def images(self) -> tuple[MediaItem, ...]:
        return tuple(item for item in self.media if item.kind == "image")

    @property
    def videos(self) -> tuple[MediaItem, ...]:
        return tuple(item for item in self.media if item.kind == "video")

    @property
    def media_count(self) -> int:
        return len(self.images) + len(self.videos)

    @property
    def post_type(self) -> str:
        return classify_post_type(bool(self.images), bool(self.videos), bool(self.links))

    @property
    def has_generated_id(self) -> bool:
        return self.id_source == "generated"

    def is_valid(self) -> bool:
        """A post needs an id and at least one piece of real data."""
        if not self.post_id:
            return False
        return bool(
            self.content.strip()
            or self.author_name
            or self.likes > 0
            or self.comments > 0
            or self.shares > 0
            or self.media
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "post_id": self.post_id,
            "group_id": self.group_id,
            "author_name": self.author_name,
            "author_id": self.author_id,
            "content": self.content,
            "url": self.url,
            "posted_at": self.posted_at.isoformat(),
            "likes": self.likes,
            "comments": self.comments,
            "shares": self.shares,
            "images": [item.url for item in self.images],
            "videos": [item.url for item in self.videos],
            "media": [item.to_dict() for item in self.media],
            "mentions": list(self.mentions),
            "hashtags": list(self.hashtags),
            "links": list(self.links),
            "post_type": self.post_type,
            "media_count": self.media_count,
            "id_source": self.id_source,
            "timestamp_found": self.timestamp_found,
        }
