import asyncio

from playwright.async_api import Error as PlaywrightError

from anihub.config.settings import settings
from anihub.scrapers.base import BaseScraper
from anihub.utils.browser import browser_manager
from anihub.utils.errors import NotFoundError, UpstreamError
from anihub.utils.logger import scraper_logger

# ===========================
# Visible Iframe Script
# ===========================
VISIBLE_IFRAME_SCRIPT = """() => {
    for (const iframe of document.querySelectorAll('iframe')) {
        const style = window.getComputedStyle(iframe);
        if (style.display !== 'none' && iframe.src) {
            return iframe.src;
        }
    }
    return null;
}"""


# ===========================
# Generic Page Scraper Class
# ===========================
class PageScraper(BaseScraper):

    async def find_visible_iframe(self, url: str) -> str:
        scraper_logger.debug(f"Looking for iframe: {url[:80]}")

        try:
            async with browser_manager.new_page() as page:
                await page.goto(url, wait_until="load")
                await asyncio.sleep(settings.IFRAME_SETTLE_DELAY)
                iframe_src = await page.evaluate(VISIBLE_IFRAME_SCRIPT)
        except PlaywrightError as e:
            scraper_logger.error(f"Iframe lookup error: {type(e).__name__}")
            raise UpstreamError("Failed to process URL", details=str(e)) from e

        if not iframe_src:
            raise NotFoundError("No visible iframe found")

        return iframe_src

    async def resolve(self, url: str) -> str:
        return await self.resolve_direct_file(url)


# ===========================
# Singleton Instance
# ===========================
page_scraper = PageScraper()
