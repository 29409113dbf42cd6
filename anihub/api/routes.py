import time
from typing import Dict, Optional

from fastapi import APIRouter, Request, Query, Path
from fastapi.responses import JSONResponse, RedirectResponse

from anihub.config.settings import settings
from anihub.scrapers.animeheaven import animeheaven_scraper
from anihub.scrapers.animepahe import animepahe_scraper
from anihub.scrapers.generic import page_scraper
from anihub.scrapers.nineanime import nineanime_scraper
from anihub.services.chat import chat_service
from anihub.services.deezer import deezer_service
from anihub.services.shortener import short_link_service
from anihub.services.spotify import spotify_service
from anihub.services.youtube import youtube_service
from anihub.utils.database import database
from anihub.utils.errors import InvalidRequestError
from anihub.utils.helpers import extract_playlist_id, parse_int
from anihub.utils.http_client import http_client
from anihub.utils.logger import api_logger


# ===========================
# Router Instance
# ===========================
router = APIRouter()


# ===========================
# Health Check Sources
# ===========================
def get_health_sources() -> Dict[str, Optional[str]]:
    return {
        "animeheaven": settings.ANIMEHEAVEN_URL,
        "nineanime": settings.NINEANIME_URL,
        "animepahe": settings.ANIMEPAHE_URL,
    }


# ===========================
# Home Endpoint
# ===========================
@router.get("/", summary="Home", description="Redirects to the API documentation")
async def root():
    return RedirectResponse("/docs")


# ===========================
# Anime Endpoints
# ===========================
@router.get("/video", summary="AnimeHeaven video", description="Finds the mp4 URL of an AnimeHeaven episode")
async def get_video(
    name: Optional[str] = Query(None, description="Anime name"),
    episode: Optional[str] = Query(None, description="Episode number")
):
    episode_number = parse_int(episode)
    if not name or episode_number is None:
        raise InvalidRequestError("Missing or invalid query parameters: name and episode")

    api_logger.debug(f"Video: '{name}' episode {episode_number}")
    return JSONResponse(content=await animeheaven_scraper.get_video(name, episode_number))


@router.get("/api/anime-links", summary="9anime search", description="Returns the best matching 9anime show page")
async def get_anime_links(q: Optional[str] = Query(None, description="Anime name")):
    best_match = await nineanime_scraper.find_best_link(q)
    return JSONResponse(content={"success": True, "bestMatch": best_match})


@router.get("/api/download-links", summary="9anime download links", description="Extracts download links of a 9anime episode page")
async def get_download_links(url: Optional[str] = Query(None, description="Episode page URL")):
    if not url:
        raise InvalidRequestError("Missing URL parameter")

    links = await nineanime_scraper.get_download_links(url)
    return JSONResponse(content={"success": True, "links": links})


@router.get("/api/anime-download", summary="9anime episode download", description="Finds an anime on 9anime and returns the download links of an episode")
async def get_anime_download(
    q: Optional[str] = Query(None, description="Anime name"),
    episode: Optional[str] = Query(None, description="Episode number")
):
    if not q or not episode:
        raise InvalidRequestError("Missing 'q' (anime name) or 'episode'")

    return JSONResponse(content=await nineanime_scraper.get_episode_downloads(q, episode))


@router.get("/api/episode", summary="AnimePahe episode", description="Fuzzy matches an anime on AnimePahe and returns its pahe.win links")
async def get_episode(
    anime: Optional[str] = Query(None, description="Anime name"),
    ep: Optional[str] = Query(None, description="Episode number")
):
    episode_number = parse_int(ep)
    if not anime or episode_number is None:
        raise InvalidRequestError("anime and ep query parameters are required")

    api_logger.debug(f"Episode: '{anime}' episode {episode_number}")
    return JSONResponse(content=await animepahe_scraper.get_episode(anime, episode_number))


@router.get("/pahe", summary="Resolve pahe.win", description="Resolves a pahe.win link to a direct file URL")
async def resolve_pahe(url: Optional[str] = Query(None, description="pahe.win URL")):
    if not url:
        raise InvalidRequestError("Missing ?url parameter")

    resolved_url = await animepahe_scraper.resolve_pahe(url)
    return JSONResponse(content={"success": True, "resolvedUrl": resolved_url})


# ===========================
# Generic Page Endpoints
# ===========================
@router.get("/iframe", summary="Visible iframe", description="Returns the source of the first visible iframe of a page")
async def get_iframe(url: Optional[str] = Query(None, description="Page URL")):
    if not url:
        raise InvalidRequestError('Missing "url" query parameter')

    iframe_url = await page_scraper.find_visible_iframe(url)
    return JSONResponse(content={"iframeUrl": iframe_url})


@router.get("/resolve", summary="Resolve link", description="Follows a page until a direct video file is requested")
async def resolve(url: Optional[str] = Query(None, description="Page URL")):
    if not url:
        raise InvalidRequestError("Missing ?url parameter")

    resolved_url = await page_scraper.resolve(url)
    return JSONResponse(content={"success": True, "resolvedUrl": resolved_url})


# ===========================
# Short Link Endpoints
# ===========================
@router.get("/q", summary="Create short link", description="Stores a URL behind a random short path")
async def create_short_link(request: Request, q: Optional[str] = Query(None, description="URL to shorten")):
    link_id = await short_link_service.create(q)
    base_url = str(request.base_url).rstrip("/")
    return JSONResponse(content={"url": f"{base_url}/vid/{link_id}"})


@router.get("/vid/{link_id}", summary="Follow short link", description="Redirects to the stored URL")
async def follow_short_link(link_id: str = Path(..., description="Short link identifier")):
    original_url = await short_link_service.resolve(link_id)
    return RedirectResponse(original_url, status_code=302)


# ===========================
# Media Endpoints
# ===========================
@router.get("/ytdl", summary="YouTube formats", description="Lists mp4 and audio formats of a YouTube video")
async def get_youtube_formats(url: Optional[str] = Query(None, description="YouTube URL")):
    if not url:
        raise InvalidRequestError("Missing url query parameter")

    return JSONResponse(content=await youtube_service.get_video_info(url))


@router.get("/spotify", summary="Spotify download", description="Returns track metadata and a download link")
async def get_spotify_download(url: Optional[str] = Query(None, description="Spotify track URL")):
    if not url:
        raise InvalidRequestError("Missing Spotify URL in query.")

    return JSONResponse(content=await spotify_service.download_track(url))


@router.get("/list", summary="Spotify playlist", description="Lists the songs of a Spotify playlist")
async def get_playlist(url: Optional[str] = Query(None, description="Spotify playlist URL")):
    if not url:
        raise InvalidRequestError("Missing playlist URL in query parameters")

    playlist_id = extract_playlist_id(url)
    if not playlist_id:
        raise InvalidRequestError("Invalid Spotify playlist URL")

    songs = await spotify_service.get_playlist_songs(playlist_id)
    return JSONResponse(content={
        "playlistId": playlist_id,
        "songCount": len(songs),
        "songs": songs
    })


@router.get("/search", summary="Spotify search", description="Returns the first Spotify track matching a query")
async def search_spotify(q: Optional[str] = Query(None, description="Search query")):
    if not q:
        raise InvalidRequestError("Missing query parameter q")

    return JSONResponse(content=await spotify_service.search_track(q))


@router.get("/deezer", summary="Deezer track", description="Finds a Deezer track and its download links")
async def get_deezer_track(q: Optional[str] = Query(None, description="Song name")):
    if not q:
        raise InvalidRequestError("Missing ?q=song name in query")

    return JSONResponse(content=await deezer_service.find_track(q))


# ===========================
# Chat Endpoints
# ===========================
@router.get("/gpt", summary="GPT chat", description="Relays a message to the GPT chat bot")
async def chat_gpt(
    message: Optional[str] = Query(None, description="Message"),
    chat_id: Optional[str] = Query(None, description="Six digit chat identifier")
):
    return JSONResponse(content=await chat_service.send_message("gpt", message, chat_id))


@router.get("/deepseek", summary="DeepSeek chat", description="Relays a message to the DeepSeek chat bot")
async def chat_deepseek(
    message: Optional[str] = Query(None, description="Message"),
    chat_id: Optional[str] = Query(None, description="Six digit chat identifier")
):
    return JSONResponse(content=await chat_service.send_message("deepseek", message, chat_id))


# ===========================
# Health Check Endpoint
# ===========================
def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


async def _check_database() -> Dict:
    try:
        await database.fetch_val("SELECT 1")
    except Exception as e:
        return {"status": "error", "message": f"Database error: {type(e).__name__}"}
    return {"status": "ok", "message": "Database connection active"}


async def _check_upstream(name: str, url: Optional[str]) -> Dict:
    if not url:
        return {"status": "disabled", "message": f"{name} not configured"}

    started = time.perf_counter()
    try:
        response = await http_client.get(url, timeout=settings.HEALTH_CHECK_TIMEOUT)
    except Exception as e:
        return {"status": "error", "message": f"{name} unreachable: {type(e).__name__}", "response_time_ms": _elapsed_ms(started)}

    if response.status_code != 200:
        return {"status": "error", "message": f"{name} HTTP {response.status_code}", "response_time_ms": _elapsed_ms(started)}
    return {"status": "ok", "message": f"{name} accessible", "response_time_ms": _elapsed_ms(started)}


async def _check_proxy() -> Dict:
    if not settings.PROXY_URL:
        return {"status": "disabled", "message": "No proxy configured"}

    try:
        response = await http_client.get("https://httpbin.org/ip", timeout=settings.HEALTH_CHECK_TIMEOUT)
    except Exception as e:
        return {"status": "error", "message": f"Proxy error: {type(e).__name__}"}

    if response.status_code != 200:
        return {"status": "error", "message": "Proxy not responding"}
    return {"status": "ok", "message": "Proxy functional"}


@router.get("/health",
            summary="Health check",
            description="Returns the current health status of the service")
async def health_check():
    started = time.perf_counter()
    sources = get_health_sources()

    checks = {"server": {"status": "ok", "message": "Server running"}}
    checks["database"] = await _check_database()
    for name, url in sources.items():
        checks[name] = await _check_upstream(name, url)
    checks["proxy"] = await _check_proxy()

    source_states = [checks[name]["status"] for name in sources]
    if source_states and all(state == "error" for state in source_states):
        status = "unhealthy"
    elif any(check["status"] == "error" for check in checks.values()):
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "version": settings.APP_VERSION,
        "timestamp": int(time.time()),
        "checks": checks,
        "total_response_time_ms": _elapsed_ms(started)
    }
