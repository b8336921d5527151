"""Plain HTTP fetcher for group pages."""

from typing import Optional

import httpx
import structlog

logger = structlog.get_logger()

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class FetchError(Exception):
    """A URL variant could not be fetched. Counted as a failed strategy."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


async def fetch_static(url: str, client: httpx.AsyncClient) -> tuple[bytes, int]:
    """GET a page with the session client and return ``(html_bytes, status)``.

    httpx handles content decoding, so the returned bytes are the
    decompressed document.

    Raises:
        FetchError: transport failure, a non-200 status or a non-HTML body.
    """
    logger.debug("Fetching page", url=url)
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        raise FetchError(f"Request failed: {e}", url=url) from e

    if response.status_code != 200:
        raise FetchError(
            f"Unexpected status {response.status_code}",
            url=url,
            status_code=response.status_code,
        )

    content_type = response.headers.get("content-type", "")
    if content_type and not content_type.startswith(HTML_CONTENT_TYPES):
        raise FetchError(f"Not an HTML page ({content_type})", url=url, status_code=response.status_code)

    if "login" in response.url.path:
        raise FetchError("Redirected to login page", url=url, status_code=response.status_code)

    logger.debug("Fetched page", url=url, size=len(response.content))
    return response.content, response.status_code
