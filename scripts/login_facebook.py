#!/usr/bin/env python3
"""Create the Facebook session used by the scraper.

Opens a visible browser. Log in (and clear any checkpoint) by hand, then
press Enter: the browser storage state is written to the session file and
the cookies to the cookies file.

Usage:
    python scripts/login_facebook.py
"""

import asyncio

from playwright.async_api import async_playwright

from group_scraper.config import config
from group_scraper.scraper.session import AuthManager


def banner(text: str):
    print()
    print("=" * 50)
    print(f"  {text}")
    print("=" * 50)


async def interactive_login():
    banner("Facebook Interactive Login")
    print("A browser window will open. Log in, open one of the monitored")
    print("groups to check you can see its posts, then come back here.")

    auth = AuthManager()
    session_path = auth.storage_state_file
    first_group = config.groups[0]["id"] if config.groups else None

    async with async_playwright() as playwright:
        browser = await playwright.firefox.launch(headless=False, slow_mo=100)
        try:
            context = await browser.new_context(
                storage_state=str(session_path) if session_path.exists() else None,
                viewport={"width": 1280, "height": 900},
                user_agent=config.user_agent,
                locale="en-US",
            )
            page = await context.new_page()
            start_url = "https://www.facebook.com"
            if first_group:
                start_url = f"{start_url}/groups/{first_group}"
            print(f"\nOpening {start_url}")
            await page.goto(start_url)

            input("\nPress Enter once you are logged in... ")

            session_path.parent.mkdir(parents=True, exist_ok=True)
            state = await context.storage_state(path=str(session_path))
            cookies = AuthManager.parse_cookie_data(state)
            auth.save_cookies(cookies)
        finally:
            await browser.close()

    print(f"\nBrowser session: {session_path}")
    print(f"Cookies:         {auth.cookies_file} ({len(cookies)} cookies)")
    missing = auth.missing_cookies(cookies)
    if missing:
        print(f"Warning: missing {', '.join(missing)} - the login probably did not complete")

    banner("Done! You can now run the scraper.")


if __name__ == "__main__":
    asyncio.run(interactive_login())
