"""Builds a Post from one candidate node."""

from datetime import datetime
from typing import Optional

from .document import Candidate
from .fields import (
    extract_author,
    extract_comments,
    extract_content,
    extract_entities,
    extract_likes,
    extract_media,
    extract_post_id,
    extract_post_url,
    extract_shares,
    extract_timestamp,
    fallback_post_id,
    fallback_post_url,
)
from .metrics import ensure_utc
from .post import Post


def assemble(candidate: Candidate, group_id: str, captured_at: datetime) -> tuple[Optional[Post], bool]:
    """Run every field extractor over the candidate.

    Returns (post, True) for a valid post and (None, False) otherwise.
    An invalid candidate is a normal outcome: callers drop it and move on.
    """
    node = candidate.node
    captured_at = ensure_utc(captured_at)

    author_name, author_id, _ = extract_author(node)
    content, _ = extract_content(node)
    likes, _ = extract_likes(node)
    comments, _ = extract_comments(node)
    shares, _ = extract_shares(node)
    posted_at, timestamp_found = extract_timestamp(node, captured_at)
    media, _ = extract_media(node)
    entities, _ = extract_entities(node, content, author_name)

    post_id, id_source = extract_post_id(node)
    if not post_id:
        post_id = fallback_post_id(
            group_id,
            content,
            captured_at,
            author_name=author_name,
            media_urls=[item.url for item in media],
            position=candidate.position,
        )
        id_source = "generated"

    url, found = extract_post_url(node)
    if not found:
        url = fallback_post_url(group_id, post_id, id_source)

    post = Post(
        post_id=post_id,
        group_id=group_id,
        author_name=author_name,
        author_id=author_id,
        content=content,
        url=url,
        posted_at=posted_at,
        likes=likes,
        comments=comments,
        shares=shares,
        media=media,
        mentions=entities.mentions,
        hashtags=entities.hashtags,
        links=entities.links,
        id_source=id_source,
        timestamp_found=timestamp_found,
        captured_at=captured_at,
    )

    if not post.is_valid():
        return None, False
    return post, True
