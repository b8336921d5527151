"""HTML in, posts out.

``extract_posts`` is the entry point the scraper uses. It does no I/O and
keeps no state between calls.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

import structlog

from .assembler import assemble
from .document import parse_document
from .locator import locate, winning_strategy
from .metrics import ensure_utc
from .post import Post

logger = structlog.get_logger()


@dataclass
class ExtractionResult:
    """Posts from one document plus diagnostics."""
    posts: list[Post] = field(default_factory=list)
    candidates: int = 0
    rejected: int = 0
    strategy: Optional[str] = None


def run_extraction(
    html: Union[str, bytes],
    group_id: str,
    now: Optional[datetime] = None,
) -> ExtractionResult:
    """Locate, assemble and validate every post in a document.

    Raises:
        DocumentParseError: the markup could not be parsed at all.
    """
    captured_at = ensure_utc(now) if now else datetime.now(timezone.utc)
    document = parse_document(html)
    candidates = locate(document)

    result = ExtractionResult(candidates=len(candidates), strategy=winning_strategy(candidates))
    for candidate in candidates:
        post, ok = assemble(candidate, group_id, captured_at)
        if ok:
            result.posts.append(post)
        else:
            result.rejected += 1
            logger.debug("Candidate rejected", group_id=group_id, strategy=candidate.strategy, position=candidate.position)

    logger.debug(
        "Extraction finished",
        group_id=group_id,
        strategy=result.strategy,
        candidates=result.candidates,
        posts=len(result.posts),
        rejected=result.rejected,
    )
    return result


def extract_posts(html: Union[str, bytes], group_id: str, now: Optional[datetime] = None) -> list[Post]:
    """Valid posts found in ``html``, in document order.

    Duplicates within the document are kept; run the result through
    ``merge_posts`` to collapse them.
    """
    return run_extraction(html, group_id, now).posts
