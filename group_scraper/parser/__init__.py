"""Extraction pipeline: raw group-page HTML to validated Post records."""

from .document import DocumentParseError, parse_document
from .metrics import parse_count, parse_time
from .pipeline import ExtractionResult, extract_posts, run_extraction
from .post import Entities, MediaItem, Post

__all__ = [
    "DocumentParseError",
    "Entities",
    "ExtractionResult",
    "MediaItem",
    "Post",
    "extract_posts",
    "parse_count",
    "parse_document",
    "parse_time",
    "run_extraction",
]
