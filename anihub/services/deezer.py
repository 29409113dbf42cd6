from typing import Dict

import httpx

from anihub.config.settings import settings
from anihub.utils.errors import NotFoundError, UpstreamError
from anihub.utils.http_client import http_client
from anihub.utils.logger import media_logger

# ===========================
# Deezer Service Class
# ===========================
class DeezerService:

    @staticmethod
    def format_track(track: Dict) -> Dict:
        artist = track.get("artist") or {}
        album = track.get("album") or {}

        return {
            "title": track.get("title"),
            "artist": artist.get("name"),
            "album": album.get("title"),
            "deezerLink": track.get("link"),
            "preview": track.get("preview"),
            "thumbnail": album.get("cover_medium")
        }

    async def find_track(self, query: str) -> Dict:
        media_logger.debug(f"Deezer search: '{query}'")

        try:
            response = await http_client.get(f"{settings.DEEZER_API_URL}/search", params={"q": query})
            response.raise_for_status()
            results = response.json().get("data") or []

            if not results:
                raise NotFoundError("No results found")

            track = results[0]

            dl_response = await http_client.get(f"{settings.DEEZMATE_API_URL}/dl/{track['id']}")
            dl_response.raise_for_status()
            dl_data = dl_response.json()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            media_logger.error(f"Deezer error: {type(e).__name__}")
            raise UpstreamError("Something went wrong") from e

        if not dl_data.get("success"):
            raise NotFoundError("Download links not available")

        links = dl_data.get("links") or {}
        media_logger.debug(f"Deezer track: {track.get('title')}")

        return {
            **self.format_track(track),
            "downloads": {
                "mp3": links.get("mp3"),
                "flac": links.get("flac")
            }
        }


# ===========================
# Singleton Instance
# ===========================
deezer_service = DeezerService()
