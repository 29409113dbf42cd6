import asyncio
from typing import AsyncIterator, Optional

import httpx

from anihub.config.settings import settings
from anihub.utils.logger import media_logger

# ===========================
# Shared HTTP Client
# ===========================
class HTTPClient:
    """One pooled ``httpx.AsyncClient`` for every upstream API call.

    Responses whose status is listed in ``HTTP_RETRY_ERRORS`` are retried up to
    ``HTTP_MAX_RETRIES`` times; the last response is returned either way so the
    caller decides whether it is an error.
    """

    _instance: Optional['HTTPClient'] = None
    _client: Optional[httpx.AsyncClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @staticmethod
    def _build_client() -> httpx.AsyncClient:
        options = {
            "timeout": httpx.Timeout(float(settings.HTTP_TIMEOUT)),
            "follow_redirects": True,
            "headers": {"User-Agent": settings.BROWSER_USER_AGENT},
        }
        if settings.PROXY_URL:
            options["proxy"] = settings.PROXY_URL
        return httpx.AsyncClient(**options)

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = self._build_client()
        return self._client

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self.get_client()

        attempt = 0
        while True:
            response = await client.request(method, url, **kwargs)
            if response.status_code not in settings.HTTP_RETRY_ERRORS or attempt >= settings.HTTP_MAX_RETRIES:
                return response

            attempt += 1
            media_logger.debug(f"HTTP {response.status_code} on {method} {url[:60]} - Retry {attempt}/{settings.HTTP_MAX_RETRIES}")
            await asyncio.sleep(settings.HTTP_RETRY_DELAY * attempt)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def stream_lines(self, method: str, url: str, **kwargs) -> AsyncIterator[str]:
        # streamed bodies cannot be replayed, so no retry here
        client = await self.get_client()
        async with client.stream(method, url, **kwargs) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                yield line

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


http_client = HTTPClient()
