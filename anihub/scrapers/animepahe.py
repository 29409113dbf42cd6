import asyncio
from typing import Dict, List, Optional

from playwright.async_api import Error as PlaywrightError, Page
from selectolax.parser import HTMLParser

from anihub.config.settings import settings
from anihub.scrapers.base import BaseScraper
from anihub.utils.cache import get_cache, set_cache
from anihub.utils.browser import browser_manager
from anihub.utils.database import database
from anihub.utils.errors import InvalidRequestError, NotFoundError, UpstreamError
from anihub.utils.helpers import extract_pahe_slug, format_url, last_path_segment, same_number
from anihub.utils.logger import scraper_logger
from anihub.utils.quality import map_links_by_quality
from anihub.utils.similarity import best_item

# ===========================
# Constants
# ===========================
CATALOG_SELECTOR = ".tab-content .tab-pane"
CATALOG_ENTRY_SELECTOR = ".tab-content .tab-pane .col-12.col-md-6 a"
RELEASE_FETCH_SCRIPT = """async (apiUrl) => {
    const res = await fetch(apiUrl);
    if (!res.ok) return null;
    return await res.json();
}"""


# ===========================
# AnimePahe Scraper Class
# ===========================
class AnimePaheScraper(BaseScraper):

    @staticmethod
    def parse_catalog(html: str) -> List[Dict[str, str]]:
        catalog = []
        for node in HTMLParser(html).css(CATALOG_ENTRY_SELECTOR):
            title = node.attributes.get("title")
            link = node.attributes.get("href")
            if title and link:
                catalog.append({"title": title, "link": link})
        return catalog

    @staticmethod
    def parse_anime_id(html: str) -> Optional[str]:
        meta = HTMLParser(html).css_first('meta[property="og:url"]')
        if not meta:
            return None
        content = meta.attributes.get("content") or ""
        return last_path_segment(content) or None

    @staticmethod
    def match_release(entries: List[Dict], episode: int) -> Optional[Dict]:
        for entry in entries:
            if same_number(entry.get("episode"), episode) or same_number(entry.get("number"), episode):
                return {
                    "episode": entry.get("episode"),
                    "snapshot": (entry.get("snapshot") or "").replace("\\/", "/"),
                    "session": entry.get("session")
                }
        return None

    @classmethod
    def parse_pahe_links(cls, html: str, base_url: str) -> Dict[str, str]:
        anchors = cls.collect_anchors(html, 'a[href*="pahe.win"]', base_url)
        return map_links_by_quality(anchors)

    async def _get_catalog(self, page: Page) -> List[Dict[str, str]]:
        cached = await get_cache(database, "animepahe", "catalog")
        if cached:
            return cached

        await page.goto(f"{settings.ANIMEPAHE_URL}/anime", wait_until="domcontentloaded")
        await page.wait_for_selector(CATALOG_SELECTOR, state="attached")
        await self.auto_scroll(page)

        catalog = self.parse_catalog(await page.content())
        scraper_logger.debug(f"[AnimePahe] Catalog entries: {len(catalog)}")

        if catalog:
            await set_cache(database, "animepahe", "catalog", catalog)
        return catalog

    async def _find_release(self, page: Page, anime_id: str, episode: int) -> Optional[Dict]:
        for page_num in range(1, settings.ANIMEPAHE_MAX_RELEASE_PAGES + 1):
            api_url = f"{settings.ANIMEPAHE_URL}/api?m=release&id={anime_id}&page={page_num}&sort=episode_asc"
            data = await page.evaluate(RELEASE_FETCH_SCRIPT, api_url)

            if not data or not data.get("data"):
                continue

            release = self.match_release(data["data"], episode)
            if release:
                return release

            last_page = data.get("last_page")
            if isinstance(last_page, int) and page_num >= last_page:
                break

        return None

    async def _get_pahe_links(self, page: Page, play_url: str) -> Dict[str, str]:
        play_page = await page.context.new_page()
        try:
            await play_page.goto(play_url, wait_until="domcontentloaded")
            await asyncio.sleep(settings.PLAY_PAGE_SETTLE_DELAY)
            return self.parse_pahe_links(await play_page.content(), play_page.url)
        finally:
            await play_page.close()

    async def get_episode(self, anime: str, episode: int) -> Dict:
        if not settings.ANIMEPAHE_URL:
            scraper_logger.error("settings.ANIMEPAHE_URL not configured")
            raise UpstreamError("AnimePahe source not configured")

        scraper_logger.debug(f"[AnimePahe] Searching '{anime}' episode {episode}")

        try:
            async with browser_manager.new_page() as page:
                catalog = await self._get_catalog(page)

                result = best_item(anime, catalog, key=lambda entry: entry["title"], threshold=settings.MATCH_THRESHOLD)
                if not result:
                    raise NotFoundError("No matching anime found.")

                entry, candidate = result
                scraper_logger.debug(f"[AnimePahe] Matched '{candidate.label}' ({candidate.score:.2f})")

                await page.goto(format_url(entry["link"], settings.ANIMEPAHE_URL), wait_until="domcontentloaded")
                anime_id = self.parse_anime_id(await page.content())
                if not anime_id:
                    raise UpstreamError("Failed to extract anime ID")

                release = await self._find_release(page, anime_id, episode)
                if not release:
                    raise NotFoundError(f"Episode {episode} not found.")

                play_url = f"{settings.ANIMEPAHE_URL}/play/{anime_id}/{release['session']}"
                pahe_links = await self._get_pahe_links(page, play_url)

        except PlaywrightError as e:
            scraper_logger.error(f"[AnimePahe] Scrape error: {type(e).__name__}")
            raise UpstreamError(str(e)) from e

        return {
            "title": entry["title"],
            "episode": release["episode"],
            "snapshot": release["snapshot"],
            "playUrl": play_url,
            "paheLinks": pahe_links
        }

    async def resolve_pahe(self, url: str) -> str:
        slug = extract_pahe_slug(url)
        if not slug:
            raise InvalidRequestError("Invalid pahe.win URL")

        return await self.resolve_direct_file(f"{settings.PAHE_MIRROR_URL}/{slug}")


# ===========================
# Singleton Instance
# ===========================
animepahe_scraper = AnimePaheScraper()
