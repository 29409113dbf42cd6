from typing import Dict, List, Optional
from urllib.parse import quote

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from anihub.config.settings import settings
from anihub.scrapers.base import BaseScraper
from anihub.utils.browser import browser_manager
from anihub.utils.errors import NotFoundError, UpstreamError
from anihub.utils.helpers import parse_episode_number
from anihub.utils.logger import scraper_logger

# ===========================
# Constants
# ===========================
SHOW_LINK_MARKER = "anime.php?"
EPISODE_LINK_MARKER = "episode.php?"


# ===========================
# AnimeHeaven Scraper Class
# ===========================
class AnimeHeavenScraper(BaseScraper):

    @classmethod
    def find_show_link(cls, html: str, base_url: str) -> Optional[str]:
        for anchor in cls.collect_anchors(html, "a[href]", base_url):
            if SHOW_LINK_MARKER in anchor["href"]:
                return anchor["href"]
        return None

    @classmethod
    def parse_episode_links(cls, html: str, base_url: str) -> List[Dict]:
        episodes = []
        for anchor in cls.collect_anchors(html, "a[href]", base_url):
            if EPISODE_LINK_MARKER not in anchor["href"]:
                continue
            number = parse_episode_number(anchor["text"])
            if number is not None:
                episodes.append({"number": number, "url": anchor["href"]})
        return episodes

    async def get_video(self, name: str, episode: int) -> Dict:
        if not settings.ANIMEHEAVEN_URL:
            scraper_logger.error("settings.ANIMEHEAVEN_URL not configured")
            raise UpstreamError("AnimeHeaven source not configured")

        scraper_logger.debug(f"[AnimeHeaven] Searching '{name}' episode {episode}")

        try:
            async with browser_manager.new_page(user_agent="Mozilla/5.0") as page:
                search_url = f"{settings.ANIMEHEAVEN_URL}/search.php?s={quote(name, safe='')}"
                await page.goto(search_url, wait_until="networkidle")

                show_link = self.find_show_link(await page.content(), page.url)
                if not show_link:
                    raise NotFoundError("Anime not found")

                await page.goto(show_link, wait_until="networkidle")
                episodes = self.parse_episode_links(await page.content(), page.url)
                scraper_logger.debug(f"[AnimeHeaven] {len(episodes)} episodes listed")

                target = next((item for item in episodes if item["number"] == episode), None)
                if not target:
                    raise NotFoundError(f"Episode {episode} not found")

                captured = self.watch_responses(page, lambda url: ".mp4" in url)
                await page.goto(target["url"], wait_until="networkidle")

                try:
                    await page.wait_for_selector("video, iframe", timeout=settings.PLAYER_WAIT_TIMEOUT * 1000)
                except PlaywrightTimeoutError:
                    scraper_logger.debug("[AnimeHeaven] No player element rendered")

                page_episode = parse_episode_number(await page.inner_text("body"))

        except PlaywrightError as e:
            scraper_logger.error(f"[AnimeHeaven] Scrape error: {type(e).__name__}")
            raise UpstreamError("Internal server error") from e

        if not captured:
            raise NotFoundError("Video URL not found")

        return {
            "animeName": name,
            "episodeNumber": page_episode or episode,
            "videoUrl": captured[0]
        }


# ===========================
# Singleton Instance
# ===========================
animeheaven_scraper = AnimeHeavenScraper()
