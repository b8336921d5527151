"""Deduplication of extracted posts.

``merge_posts`` collapses duplicate sightings inside one run (the same
post seen through several URL variants). ``find_similar`` catches posts
whose generated ids differ from run to run but whose text is the same.
"""

import re
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fuzzywuzzy import fuzz
from sqlalchemy.orm import Session

from ..parser.post import MediaItem, Post
from .models import PostRecord


def dedup_key(post: Post) -> tuple[str, str]:
    """Identity of a post within a run.

    Generated ids are weak, so they are qualified by the author name.
    """
    if post.has_generated_id:
        return post.post_id, (post.author_name or "").strip().lower()
    return post.post_id, ""


def _union(first: Iterable[str], second: Iterable[str]) -> tuple[str, ...]:
    values = list(first)
    for value in second:
        if value not in values:
            values.append(value)
    return tuple(values)


def _union_media(first: Iterable[MediaItem], second: Iterable[MediaItem]) -> tuple[MediaItem, ...]:
    items = list(first)
    seen = {item.url for item in items}
    for item in second:
        if item.url not in seen:
            seen.add(item.url)
            items.append(item)
    return tuple(items)


def _combine(kept: Post, other: Post) -> Post:
    """Fold a later sighting into the first one.

    First non-empty author, content and URL win. Engagement takes the
    maximum of each counter. Lists are unioned, and a timestamp read from
    the page beats one defaulted to capture time.
    """
    posted_at, timestamp_found = kept.posted_at, kept.timestamp_found
    if not timestamp_found and other.timestamp_found:
        posted_at, timestamp_found = other.posted_at, True

    return replace(
        kept,
        author_name=kept.author_name or other.author_name,
        author_id=kept.author_id or other.author_id,
        content=kept.content or other.content,
        url=kept.url or other.url,
        posted_at=posted_at,
        timestamp_found=timestamp_found,
        likes=max(kept.likes, other.likes),
        comments=max(kept.comments, other.comments),
        shares=max(kept.shares, other.shares),
        media=_union_media(kept.media, other.media),
        mentions=_union(kept.mentions, other.mentions),
        hashtags=_union(kept.hashtags, other.hashtags),
        links=_union(kept.links, other.links),
    )


def merge_posts(*post_lists: Iterable[Post]) -> list[Post]:
    """Merge post lists from several documents into one duplicate-free list.

    Output keeps first-seen order. Merging an already merged list changes
    nothing.
    """
    merged: dict[tuple[str, str], Post] = {}
    for posts in post_lists:
        for post in posts:
            key = dedup_key(post)
            if key in merged:
                merged[key] = _combine(merged[key], post)
            else:
                merged[key] = post
    return list(merged.values())


def normalize_text(text: str) -> str:
    """Normalize text for comparison - drop punctuation and emojis, collapse whitespace."""
    text = re.sub(r'[^\w\s]', ' ', text)
    text = ' '.join(text.split())
    return text.lower().strip()


def find_similar(
    session: Session,
    group_id: str,
    content: str,
    similarity_threshold: int = 90,
    days: int = 7,
) -> Optional[PostRecord]:
    """Find a recently stored post from the same group with near-identical text.

    Only recent posts are compared to keep the scan cheap. Returns None
    for empty content.
    """
    normalized = normalize_text(content)
    if not normalized:
        return None

    since = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
    recent = session.query(PostRecord).filter(
        PostRecord.group_id == group_id,
        PostRecord.scraped_at >= since,
    ).all()

    for record in recent:
        if fuzz.ratio(normalized, normalize_text(record.content or "")) >= similarity_threshold:
            return record
    return None
