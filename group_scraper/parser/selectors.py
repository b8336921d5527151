"""Ordered selector tables.

Every lookup in the extraction pipeline is driven by one of these tables.
Each table lists strategies from most to least specific and covers all
page skins (www, m., mbasic.) at once; the first strategy that produces
a usable value wins.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SelectorStrategy:
    """A named group of CSS selectors tried together."""
    name: str
    selectors: tuple[str, ...]

    @property
    def css(self) -> str:
        """All selectors as one selector list (matches come back in document order)."""
        return ", ".join(self.selectors)


# ── Post containers ──────────────────────────────────────────────────────

LOCATOR_STRATEGIES = (
    SelectorStrategy("feed_article", (
        "div[role='feed'] div[aria-posinset]",
        "[data-pagelet*='FeedUnit']",
        "div[role='article']",
        "article",
    )),
    SelectorStrategy("tracking_data", (
        "div[data-ft]",
    )),
    SelectorStrategy("story_id", (
        "div[id*='story']",
        "div[id*='mall_post']",
        "div.story_body_container",
    )),
)

LOADING_PLACEHOLDER = "[aria-label='Loading...'], [data-visualcompletion='loading-state']"

# Elements the heuristic fallback may promote to candidates
CONTAINER_TAGS = ("div", "article", "section", "li")


# ── Author ───────────────────────────────────────────────────────────────

AUTHOR_STRATEGIES = (
    SelectorStrategy("heading_link", (
        "h2 a strong span",
        "h2 strong span",
        "h2 a strong",
        "h2 strong",
        "h3 strong a",
        "h3 a",
        "h4 a",
        "h5 a",
    )),
    SelectorStrategy("profile_name", (
        "[data-ad-rendering-role='profile_name'] h2 span",
        "[data-ad-rendering-role='profile_name'] span",
    )),
    SelectorStrategy("byline", (
        "header a strong",
        "header h3",
        "strong a",
        "a[role='link'] strong",
        ".profileLink",
        "a.actor-link",
        "a[data-hovercard]",
    )),
)


# ── Content ──────────────────────────────────────────────────────────────

CONTENT_STRATEGIES = (
    SelectorStrategy("message_role", (
        "[data-ad-rendering-role='story_message']",
        "[data-ad-rendering-role='message']",
        "[data-ad-preview='message']",
        "[data-ad-comet-preview='message']",
        "[data-testid='post_message']",
    )),
    SelectorStrategy("classic_body", (
        ".userContent",
        "._5pbx",
        ".story_body_container > div",
    )),
    SelectorStrategy("styled_text", (
        "div[dir='auto'][style*='text-align']",
    )),
    SelectorStrategy("generic_text", (
        "div[dir='auto']",
        "span[dir='auto']",
        "p",
    )),
)

# Whole-area fallbacks, used when no text block matched
CONTENT_AREA_STRATEGIES = (
    SelectorStrategy("content_area", (
        "div._5pcr",
        ".story_body_container",
        "div[role='article']",
        "div[data-ft]",
    )),
)


# ── Engagement ───────────────────────────────────────────────────────────

ENGAGEMENT_LABEL_SELECTORS = {
    "likes": ("[aria-label*='reaction' i]", "[aria-label*='like' i]"),
    "comments": ("[aria-label*='comment' i]",),
    "shares": ("[aria-label*='share' i]",),
}

ENGAGEMENT_TEXT_STRATEGIES = {
    "likes": (
        SelectorStrategy("likes_text", (
            "span[data-testid*='like']",
            "span.like_def",
            "span._81hb",
            "span._4arz",
            "div[data-sigil*='reactions-sentence']",
            "span[data-sigil*='reaction']",
        )),
    ),
    "comments": (
        SelectorStrategy("comments_text", (
            "span[data-testid*='comment']",
            "a._3hg-",
            "span._1whp",
            "span[data-sigil*='comments-token']",
        )),
    ),
    "shares": (
        SelectorStrategy("shares_text", (
            "span[data-testid*='share']",
            "span._355t",
            "span._15ko",
            "span[data-sigil*='share']",
        )),
    ),
}


# ── Timestamp ────────────────────────────────────────────────────────────

TIMESTAMP_ATTRIBUTE_SELECTORS = (
    ("[data-utime]", "data-utime"),
    ("time[datetime]", "datetime"),
    ("abbr[data-store]", "data-store"),
)

TIMESTAMP_TEXT_STRATEGIES = (
    SelectorStrategy("timestamp_element", (
        "abbr",
        "a span.timestampContent",
        ".timestampContent",
        "[data-testid='story-subtitle'] abbr",
        "time",
    )),
    SelectorStrategy("permalink_text", (
        "a[href*='/permalink/']",
        "a[href*='/posts/']",
        "a[href*='story.php']",
        "[data-testid='story-subtitle'] a",
    )),
)


# ── Media ────────────────────────────────────────────────────────────────

IMAGE_SELECTORS = ("img[src]", "img[data-src]")
VIDEO_SELECTORS = ("video[src]", "video source[src]")
VIDEO_ID_SELECTOR = "[data-video-id]"


# ── Heuristic fallback hints ─────────────────────────────────────────────

HEURISTIC_HINTS = {
    "author": tuple(
        selector for strategy in AUTHOR_STRATEGIES for selector in strategy.selectors
    ) + ("a[href*='profile.php']", "a[href*='/user/']"),
    "timestamp": (
        "abbr",
        "[data-utime]",
        "time",
        ".timestampContent",
        "a[href*='/permalink/']",
        "a[href*='/posts/']",
        "a[href*='story.php']",
    ),
    "content": tuple(
        selector for strategy in CONTENT_STRATEGIES for selector in strategy.selectors
    ),
    "engagement": (
        "[aria-label*='reaction' i]",
        "[aria-label*='like' i]",
        "[aria-label*='comment' i]",
        "[aria-label*='share' i]",
    ) + tuple(
        selector
        for strategies in ENGAGEMENT_TEXT_STRATEGIES.values()
        for strategy in strategies
        for selector in strategy.selectors
    ),
}
