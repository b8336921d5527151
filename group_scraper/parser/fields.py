"""Field extractors.

One function per post field. Each runs its ordered strategies against a
single candidate node and returns ``(value, found)``; a miss is a normal
outcome and never raises.
"""

import hashlib
import json
import re
from datetime import datetime
from typing import Callable, Iterable, Optional
from urllib.parse import parse_qs, parse_qsl, urlencode, urljoin, urlparse, urlunparse

from .document import Node
from .metrics import parse_count, parse_epoch, parse_iso, parse_time
from .post import Entities, MediaItem
from .selectors import (
    AUTHOR_STRATEGIES,
    CONTENT_AREA_STRATEGIES,
    CONTENT_STRATEGIES,
    ENGAGEMENT_LABEL_SELECTORS,
    ENGAGEMENT_TEXT_STRATEGIES,
    IMAGE_SELECTORS,
    TIMESTAMP_ATTRIBUTE_SELECTORS,
    TIMESTAMP_TEXT_STRATEGIES,
    VIDEO_ID_SELECTOR,
    VIDEO_SELECTORS,
)


FACEBOOK_BASE_URL = "https://www.facebook.com"

# Tracking-blob keys that carry the post id, best first
TRACKING_ID_KEYS = (
    "top_level_post_id",
    "tl_objid",
    "content_id",
    "mf_story_key",
    "story_fbid",
    "post_id",
)

PERMALINK_PATTERNS = (
    re.compile(r'/(?:permalink|posts)/(pfbid\w+|\d+)'),
    re.compile(r'[?&]story_fbid=(pfbid\w+|\d+)'),
    re.compile(r'[?&]multi_permalinks=(\d+)'),
    re.compile(r'[?&]fbid=(\d+)'),
    re.compile(r'/(pfbid\w+)'),
    re.compile(r'/videos/(\d+)'),
    re.compile(r'/reel/(\d+)'),
)
PERMALINK_HREF = "a[href*='/permalink/'], a[href*='/posts/'], a[href*='story_fbid='], " \
                 "a[href*='multi_permalinks='], a[href*='fbid='], a[href*='pfbid'], " \
                 "a[href*='/videos/'], a[href*='/reel/']"

ELEMENT_ID_PATTERN = re.compile(r'(?:story|post)', re.IGNORECASE)
SIGIL_STORY_PATTERN = re.compile(r'story-(\d+)')
DIGITS = re.compile(r'\d{5,}')

# Query parameters Facebook appends for tracking
TRACKING_PARAMS = {"__cft__", "__tn__", "__xts__", "ref", "refid", "fbclid", "_rdr", "paipv", "eav"}

AUTHOR_UI_WORDS = re.compile(r'\b(?:like|likes|comment|comments|follow|share|reply|see more)\b', re.IGNORECASE)
MAX_AUTHOR_LENGTH = 100
AUTHOR_ID_PATTERNS = (
    re.compile(r'profile\.php\?(?:.*&)?id=(\d+)'),
    re.compile(r'/groups/[^/]+/user/(\d+)'),
    re.compile(r'/user/(\d+)'),
    re.compile(r'/people/[^/]+/(\d+)'),
)

MAX_CONTENT_LENGTH = 2000
CONTENT_LINE_MIN_LENGTH = 20
SEE_MORE = re.compile(r'(?:\.\.\.|…)\s*(?:see more|see translation|see original)\b', re.IGNORECASE)
UI_ONLY_TEXT = re.compile(
    r'^(?:(?:like|comment|share|reply|send|follow|more|see more|write a comment\.*|all reactions:?)\s*|[·•|\s])+$',
    re.IGNORECASE,
)

COMMENT_LABEL = re.compile(r'^\s*(?:comment|reply) by\b', re.IGNORECASE)

METRIC_TEXT_PATTERNS = {
    "likes": re.compile(r'(\d[\d.,]*\s?[KkMmBb]?)\s+(?:likes?|reactions?|people reacted)\b', re.IGNORECASE),
    "comments": re.compile(r'(\d[\d.,]*\s?[KkMmBb]?)\s+comments?\b', re.IGNORECASE),
    "shares": re.compile(r'(\d[\d.,]*\s?[KkMmBb]?)\s+shares?\b', re.IGNORECASE),
}

IMAGE_HOST_TOKENS = ("fbcdn.net", "scontent", "fbsbx.com", "facebook.com")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
VIDEO_HOST_TOKENS = ("fbcdn.net", "video", "facebook.com")
VIDEO_EXTENSIONS = (".mp4", ".webm", ".mov", ".m3u8")
MEDIA_BLACKLIST = ("rsrc.php", "static.xx")
MEDIA_KEYWORDS = re.compile(r'(?<![a-z])(?:avatar|profile|emoji|icon)s?(?![a-z])')
MIN_MEDIA_DIMENSION = 100

MENTION_PATTERN = re.compile(r'(?<![\w@])@([A-Za-z0-9_][\w.]*\w|[A-Za-z0-9_])')
HASHTAG_PATTERN = re.compile(r'(?<![\w#&])#(\w+)')
URL_PATTERN = re.compile(r'https?://[^\s<>"\']+')
HASHTAG_HREF = re.compile(r'/hashtag/([^/?#]+)')
PROFILE_HREF = re.compile(r'profile\.php\?|/user/\d+|/people/')
PLATFORM_HOSTS = ("facebook.com", "fb.com", "fb.me", "messenger.com", "fbcdn.net", "fbsbx.com")
REDIRECT_HOSTS = ("l.facebook.com", "lm.facebook.com")


# ── helpers ──────────────────────────────────────────────────────────────

def _regions_between(node: Node, root: Node) -> Iterable[Node]:
    """The node and its ancestors up to, not including, ``root``."""
    if node == root:
        return
    yield node
    for parent in node.parents():
        if parent == root:
            return
        yield parent


def is_comment_region(node: Node) -> bool:
    """Comment threads and replies inside a candidate."""
    classes = " ".join(node.classes)
    if "UFICommentContainer" in classes:
        return True
    if COMMENT_LABEL.match(node.get("aria-label")):
        return True
    # "comment" and "comment-body", but not counters like "comments-token"
    sigils = node.get("data-sigil").lower().split()
    if any(sigil == "comment" or sigil.startswith("comment-") for sigil in sigils):
        return True
    return False


def is_content_noise(node: Node) -> bool:
    """Subtrees that never hold post text: comments, reactions, popovers,
    buttons, bylines and timestamps."""
    if is_comment_region(node):
        return True
    classes = " ".join(node.classes).lower()
    if any(token in classes for token in ("uipopover", "comment", "reaction", "timestampcontent")):
        return True
    testid = node.get("data-testid").lower()
    if "react" in testid or "comment" in testid:
        return True
    if node.get("role") in ("button", "toolbar", "dialog", "menu"):
        return True
    if node.name in ("h1", "h2", "h3", "h4", "h5", "h6", "header", "abbr", "time", "form"):
        return True
    if node.has_attr("data-utime"):
        return True
    return False


def _inside(node: Node, root: Node, predicate: Callable[[Node], bool]) -> bool:
    return any(predicate(region) for region in _regions_between(node, root))


def _outermost(nodes: list[Node]) -> list[Node]:
    kept: list[Node] = []
    for node in nodes:
        if any(other.contains(node) for other in kept):
            continue
        kept.append(node)
    return kept


def absolute_url(href: str) -> str:
    return urljoin(FACEBOOK_BASE_URL + "/", href)


def normalize_post_url(href: str) -> str:
    """Absolute www URL with tracking parameters removed."""
    parsed = urlparse(absolute_url(href))
    host = parsed.netloc
    if host.startswith(("m.", "mbasic.", "web.", "touch.")) and host.endswith("facebook.com"):
        host = "www.facebook.com"
    query = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key not in TRACKING_PARAMS and not key.startswith("__")
    ]
    return urlunparse((parsed.scheme or "https", host, parsed.path, "", urlencode(query), ""))


def _hostname(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def _host_matches(host: str, domains: Iterable[str]) -> bool:
    return any(host == domain or host.endswith("." + domain) for domain in domains)


# ── identifier ───────────────────────────────────────────────────────────

def _tracking_value(blob: str) -> Optional[str]:
    if not blob:
        return None
    try:
        data = json.loads(blob)
    except ValueError:
        data = None

    if isinstance(data, dict):
        for key in TRACKING_ID_KEYS:
            value = data.get(key)
            if isinstance(value, (str, int)) and str(value) not in ("", "0"):
                return str(value)
        return None

    # Not JSON; fall back to key/value scanning
    for key in TRACKING_ID_KEYS:
        match = re.search(rf'"?{key}"?\s*[:=]\s*"?([\w:.-]+)', blob)
        if match:
            return match.group(1)
    return None


def _id_from_tracking(node: Node) -> Optional[str]:
    holders = [node] + node.select("[data-ft], [data-store]")
    for holder in holders:
        if holder != node and _inside(holder, node, is_comment_region):
            continue
        for attr in ("data-ft", "data-store"):
            value = _tracking_value(holder.get(attr))
            if value:
                return value

    for holder in [node] + node.select("[data-sigil*='story']"):
        match = SIGIL_STORY_PATTERN.search(holder.get("data-sigil"))
        if match:
            return match.group(1)
    return None


def _permalink_matches(node: Node) -> Iterable[tuple[str, str]]:
    """(post id, href) pairs for permalink-style links outside comments."""
    for link in node.select(PERMALINK_HREF):
        if _inside(link, node, is_comment_region):
            continue
        href = link.get("href")
        for pattern in PERMALINK_PATTERNS:
            match = pattern.search(href)
            if match:
                yield match.group(1), href
                break


def _id_from_element(node: Node) -> Optional[str]:
    element_id = node.id
    if not element_id or not ELEMENT_ID_PATTERN.search(element_id):
        return None
    digits = DIGITS.search(element_id)
    return digits.group(0) if digits else element_id


def extract_post_id(node: Node) -> tuple[str, str]:
    """Best platform identifier for the candidate.

    Returns (post_id, source) where source is "tracking", "permalink" or
    "element"; ("", "") when none of them yields anything. Generating a
    fallback is the assembler's job, see ``fallback_post_id``.
    """
    value = _id_from_tracking(node)
    if value:
        return value, "tracking"

    for value, _ in _permalink_matches(node):
        return value, "permalink"

    value = _id_from_element(node)
    if value:
        return value, "element"

    return "", ""


def fallback_post_id(
    group_id: str,
    content: str,
    captured_at: datetime,
    author_name: Optional[str] = None,
    media_urls: Iterable[str] = (),
    position: Optional[int] = None,
) -> str:
    """Generated identifier from group, truncated content and capture time.

    Posts without text are told apart by author, media URLs and their
    position on the page instead. Not stable across runs: the same post
    captured at another time gets another id.
    """
    text = " ".join(content.split())[:200]
    if not text:
        text = "|".join([author_name or "", *sorted(media_urls), str(position or "")])
    seed = f"{group_id}|{text}|{captured_at.isoformat()}"
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:16]
    return f"{group_id}_{digest}"


def extract_post_url(node: Node) -> tuple[str, bool]:
    """Canonical permalink of the candidate, if one is linked."""
    for _, href in _permalink_matches(node):
        return normalize_post_url(href), True
    return "", False


def fallback_post_url(group_id: str, post_id: str, id_source: str) -> str:
    if id_source == "generated":
        return f"{FACEBOOK_BASE_URL}/groups/{group_id}"
    return f"{FACEBOOK_BASE_URL}/groups/{group_id}/posts/{post_id}"


# ── author ───────────────────────────────────────────────────────────────

def _plausible_author(name: str) -> bool:
    if not name or len(name) > MAX_AUTHOR_LENGTH:
        return False
    if name.lower().startswith("http"):
        return False
    if AUTHOR_UI_WORDS.search(name):
        return False
    return True


def _author_link(element: Node) -> Optional[Node]:
    if element.name == "a":
        return element
    for parent in element.parents():
        if parent.name == "a":
            return parent
    return element.select_one("a[href]")


def _author_id(href: str) -> Optional[str]:
    for pattern in AUTHOR_ID_PATTERNS:
        match = pattern.search(href)
        if match:
            return match.group(1)
    return None


def extract_author(node: Node) -> tuple[Optional[str], Optional[str], bool]:
    """Author name, plus the numeric profile id when the byline links one.

    Returns (name, author_id, found).
    """
    for strategy in AUTHOR_STRATEGIES:
        for selector in strategy.selectors:
            for element in node.select(selector):
                if _inside(element, node, is_comment_region):
                    continue
                name = element.text.strip()
                if not _plausible_author(name):
                    continue
                link = _author_link(element)
                author_id = _author_id(link.get("href")) if link else None
                return name, author_id, True
    return None, None, False


# ── content ──────────────────────────────────────────────────────────────

def clean_content(text: str) -> str:
    """Strip truncation affordances and collapse whitespace."""
    text = SEE_MORE.sub(" ", text)
    return " ".join(text.split())


def _usable(text: str) -> bool:
    return bool(text) and not UI_ONLY_TEXT.match(text)


def _first_content_line(segments: list[str]) -> Optional[str]:
    for segment in segments:
        line = segment.strip()
        if len(line) > CONTENT_LINE_MIN_LENGTH and not line.startswith(("Like", "Comment")):
            return line
    return None


def _bounded(text: str, segments: list[str]) -> str:
    # Oversized blobs are almost always page chrome leaking in
    if len(text) <= MAX_CONTENT_LENGTH:
        return text
    line = _first_content_line(segments)
    if line:
        return clean_content(line)
    return text[:1000]


def extract_content(node: Node) -> tuple[str, bool]:
    """Post body text.

    Tries the content selector strategies first, joining every matching
    block outside comments, reactions and other chrome. Falls back to
    whole content areas when no block matched.
    """
    for strategy in CONTENT_STRATEGIES:
        matches = [
            element for element in node.select(strategy.css)
            if not _inside(element, node, is_content_noise)
        ]
        segments: list[str] = []
        for element in _outermost(matches):
            segments.extend(element.text_segments(exclude=is_content_noise))
        text = clean_content(" ".join(segments))
        if _usable(text):
            return _bounded(text, segments), True

    for strategy in CONTENT_AREA_STRATEGIES:
        for selector in strategy.selectors:
            area = node.select_one(selector)
            if area is None or _inside(area, node, is_comment_region):
                continue
            segments = area.text_segments(exclude=is_content_noise)
            text = clean_content(" ".join(segments))
            if _usable(text):
                return _bounded(text, segments), True

    return "", False


# ── engagement ───────────────────────────────────────────────────────────

def _count_from_labels(node: Node, metric: str) -> int:
    for selector in ENGAGEMENT_LABEL_SELECTORS[metric]:
        for element in node.select(selector):
            label = element.get("aria-label")
            if COMMENT_LABEL.match(label) or _inside(element, node, is_comment_region):
                continue
            count = parse_count(label)
            if count > 0:
                return count
    return 0


def _count_from_text(node: Node, metric: str) -> int:
    for strategy in ENGAGEMENT_TEXT_STRATEGIES[metric]:
        for selector in strategy.selectors:
            for element in node.select(selector):
                if _inside(element, node, is_comment_region):
                    continue
                count = parse_count(element.text)
                if count > 0:
                    return count
    return 0


def _count_from_phrases(node: Node, metric: str) -> int:
    pattern = METRIC_TEXT_PATTERNS[metric]
    for segment in node.text_segments(exclude=is_comment_region):
        match = pattern.search(segment)
        if match:
            count = parse_count(match.group(1))
            if count > 0:
                return count
    return 0


def extract_metric(node: Node, metric: str) -> tuple[int, bool]:
    """Engagement counter ("likes", "comments" or "shares").

    Accessible labels are tried before visible text; the first positive
    count wins.
    """
    for lookup in (_count_from_labels, _count_from_text, _count_from_phrases):
        count = lookup(node, metric)
        if count > 0:
            return count, True
    return 0, False


def extract_likes(node: Node) -> tuple[int, bool]:
    return extract_metric(node, "likes")


def extract_comments(node: Node) -> tuple[int, bool]:
    return extract_metric(node, "comments")


def extract_shares(node: Node) -> tuple[int, bool]:
    return extract_metric(node, "shares")


# ── timestamp ────────────────────────────────────────────────────────────

def _time_from_attribute(attr: str, value: str) -> Optional[datetime]:
    if attr == "data-store":
        try:
            data = json.loads(value)
        except ValueError:
            return None
        if not isinstance(data, dict) or "time" not in data:
            return None
        value = str(data["time"])
    return parse_epoch(value) or parse_iso(value)


def extract_timestamp(node: Node, now: datetime) -> tuple[datetime, bool]:
    """Post time, machine-readable attributes first.

    Falls back to ``now`` (the capture time) with found=False.
    """
    for selector, attr in TIMESTAMP_ATTRIBUTE_SELECTORS:
        for element in node.select(selector):
            if _inside(element, node, is_comment_region):
                continue
            parsed = _time_from_attribute(attr, element.get(attr))
            if parsed:
                return parsed, True

    for strategy in TIMESTAMP_TEXT_STRATEGIES:
        for selector in strategy.selectors:
            for element in node.select(selector):
                if _inside(element, node, is_comment_region):
                    continue
                for text in (element.text, element.get("title"), element.get("aria-label")):
                    parsed, ok = parse_time(text, now)
                    if ok:
                        return parsed, True

    return now, False


# ── media ────────────────────────────────────────────────────────────────

def _dimension(value: str) -> Optional[int]:
    match = re.match(r'\s*(\d+)', value or "")
    return int(match.group(1)) if match else None


def _blacklisted(url: str) -> bool:
    lowered = url.lower()
    if any(token in lowered for token in MEDIA_BLACKLIST):
        return True
    return bool(MEDIA_KEYWORDS.search(urlparse(lowered).path))


def _path_has_extension(url: str, extensions: tuple[str, ...]) -> bool:
    return urlparse(url).path.lower().endswith(extensions)


def is_image_url(url: str) -> bool:
    if not url.startswith(("http://", "https://")) or _blacklisted(url):
        return False
    host = _hostname(url)
    return any(token in host for token in IMAGE_HOST_TOKENS) or _path_has_extension(url, IMAGE_EXTENSIONS)


def is_video_url(url: str) -> bool:
    if not url.startswith(("http://", "https://")) or _blacklisted(url):
        return False
    host = _hostname(url)
    if _path_has_extension(url, VIDEO_EXTENSIONS):
        return True
    return any(token in host for token in VIDEO_HOST_TOKENS)


def _too_small(element: Node) -> bool:
    for attr in ("width", "height"):
        size = _dimension(element.get(attr))
        if size is not None and size < MIN_MEDIA_DIMENSION:
            return True
    return False


def _in_profile_link(element: Node, root: Node) -> bool:
    return any(
        region.name == "a" and PROFILE_HREF.search(region.get("href"))
        for region in _regions_between(element, root)
    )


def extract_media(node: Node) -> tuple[tuple[MediaItem, ...], bool]:
    """Images and videos attached to the post, deduplicated by URL."""
    items: list[MediaItem] = []
    seen: set[str] = set()

    def add(item: MediaItem) -> None:
        if item.url not in seen:
            seen.add(item.url)
            items.append(item)

    for element in node.select(", ".join(IMAGE_SELECTORS)):
        if _inside(element, node, is_comment_region) or _in_profile_link(element, node):
            continue
        url = element.get("src") or element.get("data-src")
        if not is_image_url(url) or _too_small(element):
            continue
        add(MediaItem(
            url=url,
            kind="image",
            width=_dimension(element.get("width")),
            height=_dimension(element.get("height")),
            description=element.get("alt") or None,
        ))

    for element in node.select(", ".join(VIDEO_SELECTORS)):
        if _inside(element, node, is_comment_region):
            continue
        url = element.get("src")
        if not is_video_url(url):
            continue
        video = element if element.name == "video" else next(
            (parent for parent in element.parents() if parent.name == "video"), element
        )
        poster = video.get("poster")
        add(MediaItem(
            url=url,
            kind="video",
            width=_dimension(video.get("width")),
            height=_dimension(video.get("height")),
            thumbnail=poster if poster and is_image_url(poster) else None,
        ))

    for element in node.select(VIDEO_ID_SELECTOR):
        if _inside(element, node, is_comment_region):
            continue
        video_id = element.get("data-video-id").strip()
        if video_id.isdigit():
            add(MediaItem(url=f"{FACEBOOK_BASE_URL}/video.php?v={video_id}", kind="video"))

    return tuple(items), bool(items)


# ── entities ─────────────────────────────────────────────────────────────

def unwrap_redirect(url: str) -> str:
    """Target of an l.facebook.com/l.php?u=... wrapper, else ``url`` unchanged."""
    parsed = urlparse(url)
    if (parsed.hostname or "").lower() in REDIRECT_HOSTS:
        target = parse_qs(parsed.query).get("u")
        if target and target[0]:
            return target[0]
    return url


def _strip_fbclid(url: str) -> str:
    parsed = urlparse(url)
    if "fbclid" not in parsed.query:
        return url
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "fbclid"]
    return urlunparse(parsed._replace(query=urlencode(query)))


def external_link(href: str) -> Optional[str]:
    """Outbound link target, or None for links that stay on the platform."""
    if not href:
        return None
    url = unwrap_redirect(absolute_url(href) if href.startswith("/") else href)
    if not url.startswith(("http://", "https://")):
        return None
    if _host_matches(_hostname(url), PLATFORM_HOSTS):
        return None
    return _strip_fbclid(url)


def _add_unique(values: list[str], value: str) -> None:
    if value and value not in values:
        values.append(value)


def extract_entities(node: Node, content: str, author_name: Optional[str] = None) -> tuple[Entities, bool]:
    """Mentions, hashtags and external links.

    Regex matches over the content are unioned with values taken from the
    candidate's anchors (hashtag links, profile links, outbound links).
    """
    mentions: list[str] = []
    hashtags: list[str] = []
    links: list[str] = []

    for match in MENTION_PATTERN.finditer(content):
        _add_unique(mentions, match.group(1))
    for match in HASHTAG_PATTERN.finditer(content):
        _add_unique(hashtags, match.group(1))
    for match in URL_PATTERN.finditer(content):
        link = external_link(match.group(0).rstrip(".,;:!?)"))
        if link:
            _add_unique(links, link)

    for anchor in node.select("a[href]"):
        if _inside(anchor, node, is_content_noise):
            continue
        href = anchor.get("href")
        text = anchor.text.strip()

        hashtag = HASHTAG_HREF.search(href)
        if hashtag:
            _add_unique(hashtags, text.lstrip("#") or hashtag.group(1))
            continue

        if PROFILE_HREF.search(href):
            if text and text != author_name:
                _add_unique(mentions, text.lstrip("@"))
            continue

        link = external_link(href)
        if link:
            _add_unique(links, link)

    entities = Entities(mentions=tuple(mentions), hashtags=tuple(hashtags), links=tuple(links))
    return entities, bool(mentions or hashtags or links)
