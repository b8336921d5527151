"""Facebook session handling: cookie loading, validation and HTTP client setup."""

import json
from pathlib import Path
from typing import Any, Optional

import httpx
import structlog

from ..config import config

logger = structlog.get_logger()

FACEBOOK_URL = "https://www.facebook.com"
VALIDATION_URL = f"{FACEBOOK_URL}/notifications"

# Cookies a logged-in session always carries
REQUIRED_COOKIES = ("c_user", "xs", "datr")

SUCCESS_MARKERS = ('"USER_ID"', '"viewer"', "fb-notifications")


class AuthError(Exception):
    """Raised when no usable Facebook session is available."""


class AuthManager:
    """Loads saved Facebook cookies and builds authenticated HTTP clients.

    Two cookie file layouts are accepted: ``{"facebook.com": [cookie, ...]}``
    as written by :meth:`save_cookies`, and the Playwright storage state
    saved by ``scripts/login_facebook.py``.
    """

    HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
    }

    def __init__(
        self,
        cookies_file: Optional[Path] = None,
        storage_state_file: Optional[Path] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.cookies_file = Path(cookies_file or config.cookies_file)
        self.storage_state_file = Path(storage_state_file or config.session_path / "facebook_session.json")
        self.user_agent = user_agent or config.user_agent
        self.timeout = timeout or config.request_timeout
        self.cookies: list[dict[str, Any]] = []

    @staticmethod
    def parse_cookie_data(data: Any) -> list[dict[str, Any]]:
        """Cookie dicts from any supported file layout."""
        if isinstance(data, dict):
            if "facebook.com" in data:
                return list(data["facebook.com"])
            if "cookies" in data:
                return [c for c in data["cookies"] if "facebook.com" in c.get("domain", "facebook.com")]
        if isinstance(data, list):
            return list(data)
        raise AuthError("Unrecognized cookies file format")

    def load_cookies(self) -> list[dict[str, Any]]:
        """Read cookies from the first file that exists."""
        for path in (self.cookies_file, self.storage_state_file):
            if not path.exists():
                continue
            logger.info("Loading cookies", path=str(path))
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except ValueError as e:
                raise AuthError(f"Failed to parse cookies file {path}: {e}") from e
            cookies = self.parse_cookie_data(data)
            if not cookies:
                raise AuthError(f"No Facebook cookies found in {path}")
            self.cookies = cookies
            logger.debug("Loaded cookies", count=len(cookies))
            return cookies

        raise AuthError(f"Cookies file not found: {self.cookies_file}")

    def missing_cookies(self, cookies: Optional[list[dict[str, Any]]] = None) -> list[str]:
        names = {cookie.get("name") for cookie in (cookies if cookies is not None else self.cookies)}
        return [name for name in REQUIRED_COOKIES if name not in names]

    def build_client(self, cookies: Optional[list[dict[str, Any]]] = None) -> httpx.AsyncClient:
        """Async HTTP client carrying the session cookies."""
        jar = httpx.Cookies()
        for cookie in cookies if cookies is not None else self.cookies:
            jar.set(
                cookie["name"],
                cookie["value"],
                domain=cookie.get("domain") or ".facebook.com",
                path=cookie.get("path") or "/",
            )
        return httpx.AsyncClient(
            headers={**self.HEADERS, "User-Agent": self.user_agent},
            cookies=jar,
            timeout=self.timeout,
            follow_redirects=True,
        )

    @staticmethod
    def check_validation_response(status_code: int, final_url: str, body: str) -> None:
        """Raise AuthError unless the response looks like a logged-in page."""
        if "checkpoint" in final_url:
            raise AuthError("Account requires checkpoint verification")
        if "login" in final_url:
            raise AuthError("Redirected to login page")
        if status_code != 200:
            raise AuthError(f"Validation request returned status {status_code}")
        if any(marker in body for marker in SUCCESS_MARKERS):
            return
        lowered = body.lower()
        if "captcha" in lowered:
            raise AuthError("Captcha challenge required")
        if 'name="email"' in body or "log in" in lowered:
            raise AuthError("Login form returned instead of notifications")

    async def validate(self, client: httpx.AsyncClient) -> None:
        """Fetch the notifications page and check we are still logged in."""
        try:
            response = await client.get(VALIDATION_URL)
        except httpx.HTTPError as e:
            raise AuthError(f"Failed to validate authentication: {e}") from e

        self.check_validation_response(response.status_code, str(response.url), response.text)
        logger.info("Session validated")

    async def get_session(self, validate: bool = True) -> tuple[httpx.AsyncClient, list[dict[str, Any]]]:
        """Authenticated client plus the raw cookies for the browser.

        Raises:
            AuthError: cookies are missing, incomplete or rejected.
        """
        cookies = self.load_cookies()
        missing = self.missing_cookies(cookies)
        if missing:
            raise AuthError(f"Missing required cookies: {', '.join(missing)}")

        client = self.build_client(cookies)
        if validate:
            try:
                await self.validate(client)
            except AuthError:
                await client.aclose()
                raise
        return client, cookies

    def save_cookies(self, cookies: list[dict[str, Any]], path: Optional[Path] = None) -> Path:
        """Write cookies in the ``{"facebook.com": [...]}`` layout."""
        path = Path(path or self.cookies_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"facebook.com": cookies}, indent=2), encoding="utf-8")
        self.cookies = list(cookies)
        logger.info("Cookies saved", path=str(path), count=len(cookies))
        return path
