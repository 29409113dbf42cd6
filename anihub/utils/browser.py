import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from anihub.config.settings import settings
from anihub.utils.logger import browser_logger

# ===========================
# Browser Manager Singleton
# ===========================
class BrowserManager:

    _instance: Optional['BrowserManager'] = None
    _playwright: Optional[Playwright] = None
    _browser: Optional[Browser] = None
    _lock: Optional[asyncio.Lock] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def get_browser(self) -> Browser:
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if self._browser is not None and not self._browser.is_connected():
                browser_logger.debug("Browser disconnected, relaunching")
                self._browser = None

            if self._browser is None:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()

                launch_args = {
                    "headless": settings.BROWSER_HEADLESS,
                    "args": settings.BROWSER_ARGS
                }
                if settings.PROXY_URL:
                    launch_args["proxy"] = {"server": settings.PROXY_URL}

                self._browser = await self._playwright.chromium.launch(**launch_args)
                browser_logger.info("Chromium launched")

        return self._browser

    @asynccontextmanager
    async def new_page(self, user_agent: Optional[str] = None,
                       extra_headers: Optional[Dict[str, str]] = None) -> AsyncIterator[Page]:
        browser = await self.get_browser()

        headers = {"accept-language": settings.BROWSER_ACCEPT_LANGUAGE}
        if extra_headers:
            headers.update(extra_headers)

        context = await browser.new_context(
            user_agent=user_agent or settings.BROWSER_USER_AGENT,
            extra_http_headers=headers,
            viewport={"width": 1920, "height": 1080},
            ignore_https_errors=True
        )
        context.set_default_timeout(settings.SELECTOR_TIMEOUT * 1000)
        context.set_default_navigation_timeout(settings.NAVIGATION_TIMEOUT * 1000)

        try:
            page = await context.new_page()
            yield page
        finally:
            await context.close()

    async def close(self):
        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                browser_logger.error(f"Browser close failed: {type(e).__name__}")
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

# ===========================
# Global Browser Instance
# ===========================
browser_manager = BrowserManager()
