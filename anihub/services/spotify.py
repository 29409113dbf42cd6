import random
import secrets
import time
from base64 import b64encode
from typing import Dict, List, Optional

import httpx

from anihub.config.settings import settings
from anihub.utils.errors import AniHubError, NotFoundError, UpstreamError
from anihub.utils.helpers import get_random_user_agent, random_delay
from anihub.utils.http_client import http_client
from anihub.utils.logger import media_logger

# ===========================
# Constants
# ===========================
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"
TOKEN_EXPIRY_MARGIN = 60
METADATA_TIMEOUT = 15
DOWNLOAD_TIMEOUT = 20
VERIFY_TIMEOUT = 10


# ===========================
# Spotify Service Class
# ===========================
class SpotifyService:

    def __init__(self):
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    # ===========================
    # Track Download (spotisongdownloader)
    # ===========================
    @staticmethod
    def _build_session_headers(user_agent: str) -> Dict[str, str]:
        fingerprint = random.randint(-1000000000, 999999999)
        session_id = secrets.token_hex(16)

        return {
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "X-Requested-With": "XMLHttpRequest",
            "User-Agent": user_agent,
            "Origin": settings.SPOTISONG_URL,
            "Referer": f"{settings.SPOTISONG_URL}/",
            "Cookie": f"PHPSESSID={session_id}; fp={fingerprint}",
            "Accept-Language": "en-US,en;q=0.9",
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-origin"
        }

    @staticmethod
    def _fingerprint_of(headers: Dict[str, str]) -> str:
        return headers["Cookie"].split("fp=")[-1]

    @staticmethod
    def is_valid_metadata(meta: Optional[Dict]) -> bool:
        return bool(meta) and isinstance(meta, dict) and all(meta.get(field) for field in ("song_name", "artist", "url"))

    async def _verify_fingerprint(self, headers: Dict[str, str]):
        try:
            await http_client.post(
                f"{settings.SPOTISONG_URL}/users/fingerprints.php",
                data={
                    "action": "verify",
                    "fp": self._fingerprint_of(headers),
                    "days": f"{random.random():.6f}"
                },
                headers={**headers, "Content-Type": FORM_CONTENT_TYPE},
                timeout=VERIFY_TIMEOUT
            )
        except httpx.HTTPError as e:
            media_logger.debug(f"Fingerprint verification failed: {type(e).__name__}")

    async def _fetch_metadata(self, spotify_url: str, headers: Dict[str, str]) -> Dict:
        metadata_url = f"{settings.SPOTISONG_URL}/api/composer/spotify/xsingle_track.php"

        response = await http_client.get(metadata_url, params={"url": spotify_url}, headers=headers, timeout=METADATA_TIMEOUT)
        response.raise_for_status()
        meta = response.json()

        if self.is_valid_metadata(meta):
            return meta

        media_logger.debug("Invalid metadata, retrying with a new user agent")
        await random_delay(1000, 3000)

        try:
            retry_response = await http_client.get(
                metadata_url,
                params={"url": spotify_url},
                headers={**headers, "User-Agent": get_random_user_agent()},
                timeout=METADATA_TIMEOUT
            )
            retry_meta = retry_response.json()
        except (httpx.HTTPError, ValueError) as e:
            media_logger.debug(f"Metadata retry failed: {type(e).__name__}")
            retry_meta = None

        if not self.is_valid_metadata(retry_meta):
            raise UpstreamError("Invalid metadata received", details=meta)

        return retry_meta

    async def _request_download(self, meta: Dict, headers: Dict[str, str]) -> Dict:
        download_url = f"{settings.SPOTISONG_URL}/api/composer/spotify/ssdw23456ytrfds.php"
        post_data = {
            "song_name": meta["song_name"],
            "artist_name": meta["artist"],
            "url": meta["url"]
        }

        response = await http_client.post(
            download_url,
            data=post_data,
            headers={**headers, "Content-Type": FORM_CONTENT_TYPE, "Accept-Encoding": "gzip, deflate, br"},
            timeout=DOWNLOAD_TIMEOUT
        )

        if response.status_code == 403:
            media_logger.debug("Download HTTP 403 - Retry 1/1")
            await random_delay(3000, 5000)
            response = await http_client.post(
                download_url,
                data=post_data,
                headers={**headers, "Content-Type": FORM_CONTENT_TYPE, "User-Agent": get_random_user_agent()},
                timeout=DOWNLOAD_TIMEOUT
            )

        response.raise_for_status()
        return response.json()

    async def _log_completion(self, headers: Dict[str, str]):
        try:
            await http_client.get(
                f"{settings.SPOTISONG_URL}/log.php",
                params={"t": int(time.time() * 1000), "status": "finished with m4a", "error": "Spotify"},
                headers=headers
            )
        except httpx.HTTPError as e:
            media_logger.debug(f"Completion log failed: {type(e).__name__}")

    async def download_track(self, spotify_url: str) -> Dict:
        media_logger.debug(f"Spotify download: {spotify_url[:80]}")
        headers = self._build_session_headers(get_random_user_agent())

        try:
            await random_delay(500, 1500)
            await self._verify_fingerprint(headers)

            await random_delay(800, 2000)
            meta = await self._fetch_metadata(spotify_url, headers)

            await random_delay(1000, 2500)
            download_data = await self._request_download(meta, headers)
        except httpx.HTTPStatusError as e:
            media_logger.error(f"Spotify download error: HTTP {e.response.status_code}")
            raise UpstreamError(
                "Failed to fetch data",
                details={"message": str(e), "status": e.response.status_code, "suggestion": "Try again in a few seconds"}
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            media_logger.error(f"Spotify download error: {type(e).__name__}")
            raise UpstreamError(
                "Failed to fetch data",
                details={"message": str(e), "suggestion": "Try again in a few seconds"}
            ) from e

        if not isinstance(download_data, dict) or not download_data.get("dlink"):
            message = download_data.get("message") if isinstance(download_data, dict) else None
            raise AniHubError(
                "403 Forbidden or no download link",
                details={"message": message or "No error message provided", "response": download_data},
                status_code=403
            )

        await random_delay(500, 1500)
        await self._log_completion(headers)

        return {
            "meta": meta,
            "download": download_data["dlink"]
        }

    # ===========================
    # Playlist Analysis (Trackify)
    # ===========================
    @staticmethod
    def format_playlist_track(item: Dict) -> Dict:
        track = item.get("track") or {}
        album = track.get("album") or {}
        images = album.get("images") or []

        return {
            "name": track.get("name"),
            "url": (track.get("external_urls") or {}).get("spotify"),
            "artists": [artist.get("name") for artist in track.get("artists") or []],
            "duration_ms": track.get("duration_ms"),
            "album": album.get("name"),
            "album_image": images[0].get("url") if images else None
        }

    async def get_playlist_songs(self, playlist_id: str) -> List[Dict]:
        media_logger.debug(f"Playlist: {playlist_id}")

        try:
            response = await http_client.get(
                f"{settings.TRACKIFY_API_URL}/playlist/analyse",
                params={"playlist_id": playlist_id, "include_details": "true"}
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            media_logger.error(f"Playlist fetch error: {type(e).__name__}")
            return []

        if data.get("status") != "success":
            return []

        tracks = (data.get("data") or {}).get("tracks") or []
        return [self.format_playlist_track(item) for item in tracks]

    # ===========================
    # Track Search (Spotify Web API)
    # ===========================
    async def _get_access_token(self) -> str:
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token

        if not settings.SPOTIFY_CLIENT_ID or not settings.SPOTIFY_CLIENT_SECRET:
            raise UpstreamError("Spotify credentials not configured")

        auth_string = b64encode(f"{settings.SPOTIFY_CLIENT_ID}:{settings.SPOTIFY_CLIENT_SECRET}".encode()).decode()

        response = await http_client.post(
            settings.SPOTIFY_ACCOUNTS_URL,
            data={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {auth_string}"}
        )
        response.raise_for_status()
        payload = response.json()

        self._access_token = payload["access_token"]
        self._token_expires_at = time.time() + int(payload.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN
        media_logger.debug("Spotify access token refreshed")
        return self._access_token

    @staticmethod
    def format_search_track(track: Dict) -> Dict:
        album = track.get("album") or {}

        return {
            "title": track.get("name"),
            "id": track.get("id"),
            "artists": [artist.get("name") for artist in track.get("artists") or []],
            "album": album.get("name"),
            "duration_seconds": (track.get("duration_ms") or 0) // 1000,
            "popularity": track.get("popularity"),
            "release_date": album.get("release_date"),
            "spotify_url": (track.get("external_urls") or {}).get("spotify"),
            "preview_available": bool(track.get("preview_url")),
            "explicit": track.get("explicit"),
            "album_type": album.get("album_type"),
            "total_tracks_in_album": album.get("total_tracks"),
            "track_number": track.get("track_number"),
            "isrc": (track.get("external_ids") or {}).get("isrc"),
            "available_markets_count": len(track.get("available_markets") or [])
        }

    async def search_track(self, query: str) -> Dict:
        media_logger.debug(f"Spotify search: '{query}'")

        try:
            token = await self._get_access_token()
            response = await http_client.get(
                f"{settings.SPOTIFY_API_URL}/search",
                params={"q": query, "type": "track", "limit": 1, "include_external": "audio"},
                headers={"Authorization": f"Bearer {token}"}
            )
            response.raise_for_status()
            items = ((response.json().get("tracks") or {}).get("items")) or []
        except (httpx.HTTPError, ValueError, KeyError) as e:
            media_logger.error(f"Spotify search error: {type(e).__name__}")
            raise UpstreamError("Failed to fetch track") from e

        if not items:
            raise NotFoundError("No tracks found")

        return self.format_search_track(items[0])


# ===========================
# Singleton Instance
# ===========================
spotify_service = SpotifyService()
