"""Facebook group scraper: fetch group pages, extract posts, store them."""

__version__ = "0.1.0"
