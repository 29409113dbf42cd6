import asyncio
import re
from typing import Dict, List, Optional
from urllib.parse import quote, urlparse

from playwright.async_api import Error as PlaywrightError, Route

from anihub.config.settings import settings
from anihub.scrapers.base import BaseScraper
from anihub.utils.browser import browser_manager
from anihub.utils.cache import get_cache, set_cache
from anihub.utils.database import database
from anihub.utils.errors import NotFoundError, UpstreamError
from anihub.utils.helpers import slugify_query, strip_query
from anihub.utils.logger import scraper_logger

# ===========================
# Constants
# ===========================
BLOCKED_RESOURCE_TYPES = {"image", "font", "stylesheet", "media", "other", "xhr", "script"}
MOVIE_LINK_PATTERN = re.compile(r"/anime/.*-movie")
DOWNLOAD_REQUEST_MARKER = "admin-ajax.php"
DOWNLOAD_HEADERS = {
    "upgrade-insecure-requests": "1",
    "sec-ch-ua": '"Not_A Brand";v="8", "Chromium";v="120"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"'
}


# ===========================
# 9anime Scraper Class
# ===========================
class NineAnimeScraper(BaseScraper):

    @classmethod
    def parse_show_links(cls, html: str, base_url: str) -> List[str]:
        show_prefix = f"{base_url}/anime/"
        show_pattern = re.compile(rf"^{re.escape(base_url)}/anime/[^/]+/?$")

        links = []
        seen = set()
        for anchor in cls.collect_anchors(html, "a[href]", base_url):
            href = strip_query(anchor["href"])
            if not href.startswith(show_prefix) or href in seen:
                continue
            if show_pattern.match(href):
                seen.add(href)
                links.append(href)

        return [link for link in links if not MOVIE_LINK_PATTERN.search(link)]

    @staticmethod
    def score_slug(slug: str, query_slug: str) -> int:
        if slug == query_slug:
            return 3
        if slug.startswith(query_slug):
            return 2
        if query_slug in slug:
            return 1
        return 0

    @classmethod
    def rank_show_links(cls, links: List[str], query: str) -> List[Dict]:
        query_slug = slugify_query(query)

        scored = []
        for link in links:
            slug = link.split("/anime/")[1].rstrip("/").lower()
            scored.append({"link": link, "slug": slug, "score": cls.score_slug(slug, query_slug)})

        scored.sort(key=lambda item: (-item["score"], len(item["slug"])))
        return scored

    @classmethod
    def parse_download_links(cls, html: str, base_url: str) -> List[Dict[str, str]]:
        return [
            {"quality": anchor["text"], "link": anchor["href"]}
            for anchor in cls.collect_anchors(html, "#download-links a.btn.btn-primary", base_url)
        ]

    @staticmethod
    def build_episode_url(show_link: str, episode: str) -> str:
        parsed = urlparse(show_link)
        path = re.sub(r"/$", "", parsed.path.replace("/anime/", "/", 1))
        return f"{parsed.scheme}://{parsed.netloc}{path}-episode-{episode}/"

    async def _search_show_links(self, query: str) -> List[str]:
        search_url = f"{settings.NINEANIME_URL}/?s={quote(query, safe='')}"
        scraper_logger.debug(f"[9anime] Search: {search_url}")

        try:
            async with browser_manager.new_page() as page:
                await page.goto(search_url, wait_until="domcontentloaded")
                await asyncio.sleep(settings.SEARCH_SETTLE_DELAY)
                html = await page.content()
        except PlaywrightError as e:
            scraper_logger.error(f"[9anime] Search error: {type(e).__name__}")
            raise UpstreamError("Failed to search anime", details=str(e)) from e

        return self.parse_show_links(html, settings.NINEANIME_URL)

    async def find_best_link(self, raw_query: Optional[str]) -> str:
        if not settings.NINEANIME_URL:
            scraper_logger.error("settings.NINEANIME_URL not configured")
            raise UpstreamError("9anime source not configured")

        query = (raw_query or "Naruto").lower().strip()

        cached = await get_cache(database, "nineanime", query)
        if cached:
            return cached

        links = await self._search_show_links(query)
        if not links:
            raise NotFoundError("No valid anime links found")

        best = next((item for item in self.rank_show_links(links, query) if item["score"] > 0), None)
        if not best:
            raise NotFoundError("No suitable match found")

        scraper_logger.debug(f"[9anime] Best match: {best['link']}")
        await set_cache(database, "nineanime", query, best["link"])
        return best["link"]

    async def _filter_request(self, route: Route):
        request = route.request
        if request.resource_type in BLOCKED_RESOURCE_TYPES and settings.NINEANIME_SITE_MARKER not in request.url:
            await route.abort()
        else:
            await route.continue_()

    async def get_download_links(self, url: str) -> List[Dict[str, str]]:
        scraper_logger.debug(f"[9anime] Download links: {url[:80]}")

        try:
            async with browser_manager.new_page(extra_headers=DOWNLOAD_HEADERS) as page:
                await page.route("**/*", self._filter_request)
                await page.goto(url, wait_until="networkidle")

                await page.wait_for_selector("#download-btn")
                async with page.expect_response(
                    lambda response: DOWNLOAD_REQUEST_MARKER in response.url and response.status == 200
                ):
                    await page.click("#download-btn")
                    await page.wait_for_selector("#downloadModal.show")

                links = self.parse_download_links(await page.content(), page.url)
        except PlaywrightError as e:
            scraper_logger.error(f"[9anime] Download links error: {type(e).__name__}")
            raise UpstreamError("Failed to extract download links", details=str(e)) from e

        scraper_logger.debug(f"[9anime] {len(links)} download links")
        return links

    async def get_episode_downloads(self, query: str, episode: str) -> Dict:
        show_link = await self.find_best_link(query)
        episode_url = self.build_episode_url(show_link, episode)

        return {
            "success": True,
            "anime": query,
            "episode": episode,
            "stream_url": episode_url,
            "download_links": await self.get_download_links(episode_url)
        }


# ===========================
# Singleton Instance
# ===========================
nineanime_scraper = NineAnimeScraper()
