"""Typed wrapper around a BeautifulSoup tree.

Everything downstream of the fetchers works against ``Document`` and
``Node`` instead of raw bs4 objects, so the extraction code only deals
with a handful of well-defined queries.
"""

from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from bs4 import BeautifulSoup, NavigableString, Tag, UnicodeDammit


# Tags whose text never belongs to a post
NON_TEXT_TAGS = {"script", "style", "noscript", "template", "svg"}


class DocumentParseError(ValueError):
    """Raised when fetched markup cannot be turned into a usable tree."""


class Node:
    """A single element in a parsed document."""

    __slots__ = ("tag",)

    def __init__(self, tag: Tag):
        self.tag = tag

    def __eq__(self, other) -> bool:
        return isinstance(other, Node) and other.tag is self.tag

    def __hash__(self) -> int:
        return id(self.tag)

    def __repr__(self) -> str:
        return f"<Node {self.name} id={self.id!r}>"

    @property
    def name(self) -> str:
        return self.tag.name or ""

    @property
    def id(self) -> str:
        return self.get("id")

    @property
    def classes(self) -> list[str]:
        value = self.tag.get("class") or []
        if isinstance(value, str):
            return value.split()
        return list(value)

    def get(self, attr: str, default: str = "") -> str:
        """Attribute value as a string, ``default`` when absent."""
        value = self.tag.get(attr)
        if value is None:
            return default
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def has_attr(self, attr: str) -> bool:
        return self.tag.has_attr(attr)

    def select(self, selector: str) -> list["Node"]:
        return [Node(tag) for tag in self.tag.select(selector)]

    def select_one(self, selector: str) -> Optional["Node"]:
        tag = self.tag.select_one(selector)
        return Node(tag) if tag is not None else None

    def parents(self) -> Iterator["Node"]:
        """Ancestors from the nearest outwards, document root excluded."""
        for parent in self.tag.parents:
            if isinstance(parent, BeautifulSoup):
                return
            yield Node(parent)

    def contains(self, other: "Node") -> bool:
        """True when ``other`` is a strict descendant of this node."""
        return any(parent.tag is self.tag for parent in other.parents())

    @property
    def text(self) -> str:
        """Visible text with whitespace collapsed."""
        return " ".join(self.text_segments())

    def text_segments(self, exclude: Optional[Callable[["Node"], bool]] = None) -> list[str]:
        """Non-empty text fragments in document order.

        Subtrees whose root satisfies ``exclude`` are skipped entirely.
        The node itself is never tested against ``exclude``.
        """
        segments: list[str] = []
        _collect_text(self.tag, exclude, segments)
        return segments


def _collect_text(tag: Tag, exclude, out: list[str]) -> None:
    for child in tag.children:
        if isinstance(child, Tag):
            if child.name in NON_TEXT_TAGS:
                continue
            if exclude is not None and exclude(Node(child)):
                continue
            _collect_text(child, exclude, out)
        elif type(child) is NavigableString:
            # Comment, CData and friends are NavigableString subclasses
            text = " ".join(str(child).split())
            if text:
                out.append(text)


class Document:
    """A parsed HTML page."""

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup
        self.root = Node(soup.find())

    def select(self, selector: str) -> list[Node]:
        return [Node(tag) for tag in self.soup.select(selector)]

    def select_one(self, selector: str) -> Optional[Node]:
        tag = self.soup.select_one(selector)
        return Node(tag) if tag is not None else None

    def elements(self, *names: str) -> list[Node]:
        """All elements with one of the given tag names, in document order."""
        return [Node(tag) for tag in self.soup.find_all(list(names))]

    @property
    def title(self) -> str:
        tag = self.soup.find("title")
        return " ".join(tag.get_text().split()) if tag else ""


@dataclass
class Candidate:
    """A region of a document that probably holds one post."""
    node: Node
    strategy: str
    position: Optional[int] = None


def parse_document(html: Union[str, bytes]) -> Document:
    """Parse raw markup into a ``Document``.

    Raises:
        DocumentParseError: input is not text, is blank, cannot be decoded
            or contains no elements at all.
    """
    if isinstance(html, (bytes, bytearray)):
        try:
            html = bytes(html).decode("utf-8")
        except UnicodeDecodeError:
            html = UnicodeDammit(bytes(html)).unicode_markup
            if html is None:
                raise DocumentParseError("Could not decode document bytes")
    elif not isinstance(html, str):
        raise DocumentParseError(f"Expected HTML text, got {type(html).__name__}")

    if not html.strip():
        raise DocumentParseError("Document is empty")

    soup = BeautifulSoup(html, "html.parser")
    if soup.find() is None:
        raise DocumentParseError("Document contains no elements")

    return Document(soup)
