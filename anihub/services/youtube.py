from typing import Dict, List

import httpx

from anihub.config.settings import settings
from anihub.utils.errors import UpstreamError
from anihub.utils.http_client import http_client
from anihub.utils.logger import media_logger

# ===========================
# Constants
# ===========================
AUDIO_EXTENSIONS = ("m4a", "opus")


# ===========================
# YouTube Service Class
# ===========================
class YoutubeService:

    @staticmethod
    def _format_medias(medias: List[Dict]) -> List[Dict[str, str]]:
        return [{"quality": media.get("quality") or "unknown", "url": media.get("url")} for media in medias]

    @classmethod
    def format_video_info(cls, data: Dict) -> Dict:
        medias = data.get("medias") or []

        return {
            "title": data.get("title"),
            "thumbnail": data.get("thumbnail"),
            "mp4": cls._format_medias([m for m in medias if m.get("ext") == "mp4"]),
            "audio": cls._format_medias([
                m for m in medias if m.get("type") == "audio" and m.get("ext") in AUDIO_EXTENSIONS
            ])
        }

    async def get_video_info(self, url: str) -> Dict:
        media_logger.debug(f"YouTube info: {url[:80]}")

        try:
            response = await http_client.post(
                settings.CLIPTO_API_URL,
                json={"url": url},
                headers={
                    "Accept": "application/json, text/plain, */*",
                    "Content-Type": "application/json"
                }
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            media_logger.error(f"YouTube info error: {type(e).__name__}")
            raise UpstreamError("Failed to fetch video info") from e

        return self.format_video_info(data)


# ===========================
# Singleton Instance
# ===========================
youtube_service = YoutubeService()
