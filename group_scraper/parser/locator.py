"""Finds the regions of a page that hold individual posts."""

from typing import Optional

import structlog

from .document import Candidate, Document, Node
from .selectors import CONTAINER_TAGS, HEURISTIC_HINTS, LOADING_PLACEHOLDER, LOCATOR_STRATEGIES

logger = structlog.get_logger()

HEURISTIC_STRATEGY = "heuristic"
# Content hints shorter than this are usually labels, not post text
MIN_CONTENT_HINT_LENGTH = 20
MIN_PLACEHOLDER_TEXT = 50


def is_loading_placeholder(node: Node) -> bool:
    """Skeleton posts Facebook renders before the real content arrives."""
    if node.get("aria-label") == "Loading..." or node.get("data-visualcompletion") == "loading-state":
        return True
    if node.select_one(LOADING_PLACEHOLDER) is not None:
        return len(node.text) < MIN_PLACEHOLDER_TEXT
    return False


def _outermost(nodes: list[Node]) -> list[Node]:
    """Drop nodes nested in an earlier node; input must be in document order."""
    kept: list[Node] = []
    for node in nodes:
        if kept and any(outer.contains(node) for outer in kept):
            continue
        kept.append(node)
    return kept


def _position(node: Node, index: int) -> int:
    posinset = node.get("aria-posinset")
    if posinset.isdigit():
        return int(posinset)
    return index


def _candidates(nodes: list[Node], strategy: str) -> list[Candidate]:
    return [
        Candidate(node=node, strategy=strategy, position=_position(node, index))
        for index, node in enumerate(nodes, 1)
    ]


def _heuristic_categories(document: Document) -> dict[Node, set[str]]:
    """Map every container to the hint categories found inside it."""
    categories: dict[Node, set[str]] = {}
    for category, selectors in HEURISTIC_HINTS.items():
        for hint in document.select(", ".join(selectors)):
            if category == "content" and len(hint.text) < MIN_CONTENT_HINT_LENGTH:
                continue
            for region in [hint, *hint.parents()]:
                if region.name in CONTAINER_TAGS:
                    categories.setdefault(region, set()).add(category)
    return categories


def _qualifies(found: set[str]) -> bool:
    # Two independent signals; a lone button or a lone name never counts
    return {"author", "content"} <= found or {"timestamp", "engagement"} <= found


def locate_heuristic(document: Document) -> list[Node]:
    """Containers scored by the post-like signals they hold.

    The innermost qualifying containers are found first, then each one is
    widened to its largest ancestor that still holds no other qualifying
    container, so the whole post (byline, body and footer) is kept.
    """
    categories = _heuristic_categories(document)
    qualifying = [node for node, found in categories.items() if _qualifies(found)]
    if not qualifying:
        return []

    minimal = [
        node for node in qualifying
        if not any(other is not node and node.contains(other) for other in qualifying)
    ]

    widened: list[Node] = []
    for node in minimal:
        best = node
        for parent in node.parents():
            if parent.name not in CONTAINER_TAGS:
                break
            if any(other != node and parent.contains(other) for other in minimal):
                break
            best = parent
        if best not in widened:
            widened.append(best)

    order = {node: index for index, node in enumerate(document.elements(*CONTAINER_TAGS))}
    widened.sort(key=lambda node: order.get(node, 0))
    return _outermost(widened)


def locate(document: Document) -> list[Candidate]:
    """Candidate post nodes, from the first strategy that finds any.

    Strategies run from most to least specific and the search stops at
    the first one with results, so one post is never picked up twice
    under different layouts. The heuristic scan only runs when every
    selector strategy comes up empty.
    """
    for strategy in LOCATOR_STRATEGIES:
        matches = [
            node for node in _outermost(document.select(strategy.css))
            if not is_loading_placeholder(node)
        ]
        if matches:
            logger.debug("Located candidates", strategy=strategy.name, count=len(matches))
            return _candidates(matches, strategy.name)

    nodes = [node for node in locate_heuristic(document) if not is_loading_placeholder(node)]
    logger.debug("Located candidates", strategy=HEURISTIC_STRATEGY, count=len(nodes))
    return _candidates(nodes, HEURISTIC_STRATEGY)


def winning_strategy(candidates: list[Candidate]) -> Optional[str]:
    return candidates[0].strategy if candidates else None
