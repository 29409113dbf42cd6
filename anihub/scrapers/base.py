import asyncio
import re
from typing import Callable, Dict, List

from playwright.async_api import Error as PlaywrightError, Page
from selectolax.parser import HTMLParser

from anihub.config.settings import settings
from anihub.utils.browser import browser_manager
from anihub.utils.errors import NotFoundError, UpstreamError
from anihub.utils.helpers import format_url
from anihub.utils.logger import scraper_logger

# ===========================
# Constants
# ===========================
DIRECT_FILE_PATTERN = re.compile(r"\.(mp4|mkv|mov)(\?|$)", re.IGNORECASE)
SCROLL_STEP = 300
SCROLL_INTERVAL = 0.2
MAX_SCROLL_STEPS = 500

# ===========================
# Base Browser Scraper Class
# ===========================
class BaseScraper:

    @classmethod
    def collect_anchors(cls, html: str, css_selector: str, base_url: str) -> List[Dict[str, str]]:
        anchors = []
        for node in HTMLParser(html).css(css_selector):
            link = (node.attributes.get("href") or "").strip()
            if not link:
                continue
            anchors.append({
                "href": format_url(link, base_url),
                "text": node.text(strip=True),
                "title": node.attributes.get("title") or ""
            })
        return anchors

    @staticmethod
    def watch_responses(page: Page, predicate: Callable[[str], bool]) -> List[str]:
        captured = []

        def on_response(response):
            if not captured and predicate(response.url):
                captured.append(response.url)
                scraper_logger.debug(f"Captured: {response.url[:80]}")

        page.on("response", on_response)
        return captured

    @staticmethod
    def is_direct_file_url(url: str) -> bool:
        if DIRECT_FILE_PATTERN.search(url):
            return True
        return any(marker in url for marker in settings.DIRECT_FILE_HOST_MARKERS)

    @staticmethod
    async def auto_scroll(page: Page):
        for _ in range(MAX_SCROLL_STEPS):
            at_bottom = await page.evaluate(
                """(distance) => {
                    window.scrollBy(0, distance);
                    return window.scrollY + window.innerHeight >= document.body.scrollHeight;
                }""",
                SCROLL_STEP
            )
            if at_bottom:
                return
            await asyncio.sleep(SCROLL_INTERVAL)

    async def resolve_direct_file(self, url: str) -> str:
        scraper_logger.debug(f"Resolving: {url[:80]}")

        try:
            async with browser_manager.new_page() as page:
                captured = self.watch_responses(page, self.is_direct_file_url)
                await page.goto(url, wait_until="networkidle", timeout=settings.RESOLVE_TIMEOUT * 1000)
        except PlaywrightError as e:
            scraper_logger.error(f"Resolve error: {type(e).__name__}")
            raise UpstreamError("Failed to resolve URL", details=str(e)) from e

        if not captured:
            raise NotFoundError("No direct file URL found after redirects")

        scraper_logger.debug(f"Resolved: {captured[0][:80]}")
        return captured[0]
