import asyncio

import httpx
import pytest

from anihub.config.settings import settings
from anihub.services import chat, deezer, spotify, youtube
from anihub.services.chat import ChatService, extract_stream_text
from anihub.services.deezer import DeezerService
from anihub.services.spotify import SpotifyService
from anihub.services.youtube import YoutubeService
from anihub.utils.errors import AniHubError, InvalidRequestError, NotFoundError, UpstreamError
from conftest import make_response, no_delay


class FakeHTTPClient:
    """Routes requests to canned responses keyed by a URL fragment."""

    def __init__(self, get_routes=None, post_routes=None):
        self.get_routes = get_routes or {}
        self.post_routes = post_routes or {}
        self.calls = []

    @staticmethod
    def _match(routes, url, method):
        for fragment, handler in routes.items():
            if fragment in url:
                response = handler() if callable(handler) else handler
                if isinstance(response, Exception):
                    raise response
                return response
        return make_response(url, 404, method=method)

    async def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._match(self.get_routes, url, "GET")

    async def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._match(self.post_routes, url, "POST")


# ===========================
# YouTube
# ===========================
CLIPTO_PAYLOAD = {
    "title": "Opening",
    "thumbnail": "https://i.ytimg.com/vi/x/hq.jpg",
    "medias": [
        {"type": "video", "ext": "mp4", "quality": "720p", "url": "https://v/720.mp4"},
        {"type": "video", "ext": "mp4", "url": "https://v/unknown.mp4"},
        {"type": "video", "ext": "webm", "quality": "1080p", "url": "https://v/1080.webm"},
        {"type": "audio", "ext": "m4a", "quality": "128kbps", "url": "https://a/128.m4a"},
        {"type": "audio", "ext": "opus", "quality": "160kbps", "url": "https://a/160.opus"},
        {"type": "audio", "ext": "mp3", "quality": "320kbps", "url": "https://a/320.mp3"},
    ],
}


def test_youtube_format_video_info():
    assert YoutubeService.format_video_info(CLIPTO_PAYLOAD) == {
        "title": "Opening",
        "thumbnail": "https://i.ytimg.com/vi/x/hq.jpg",
        "mp4": [
            {"quality": "720p", "url": "https://v/720.mp4"},
            {"quality": "unknown", "url": "https://v/unknown.mp4"},
        ],
        "audio": [
            {"quality": "128kbps", "url": "https://a/128.m4a"},
            {"quality": "160kbps", "url": "https://a/160.opus"},
        ],
    }


def test_youtube_get_video_info(monkeypatch):
    fake = FakeHTTPClient(post_routes={settings.CLIPTO_API_URL: make_response(settings.CLIPTO_API_URL, json=CLIPTO_PAYLOAD, method="POST")})
    monkeypatch.setattr(youtube, "http_client", fake)

    info = asyncio.run(YoutubeService().get_video_info("https://youtu.be/x"))

    assert info["title"] == "Opening"
    assert fake.calls[0][2]["json"] == {"url": "https://youtu.be/x"}


def test_youtube_upstream_failure(monkeypatch):
    fake = FakeHTTPClient(post_routes={settings.CLIPTO_API_URL: make_response(settings.CLIPTO_API_URL, 502, method="POST")})
    monkeypatch.setattr(youtube, "http_client", fake)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(YoutubeService().get_video_info("https://youtu.be/x"))
    assert exc_info.value.message == "Failed to fetch video info"


# ===========================
# Deezer
# ===========================
DEEZER_TRACK = {
    "id": 3135556,
    "title": "Harder, Better, Faster, Stronger",
    "link": "https://www.deezer.com/track/3135556",
    "preview": "https://cdns-preview.dzcdn.net/x.mp3",
    "artist": {"name": "Daft Punk"},
    "album": {"title": "Discovery", "cover_medium": "https://e-cdns-images.dzcdn.net/cover.jpg"},
}


def deezer_client(search_payload, dl_payload):
    return FakeHTTPClient(get_routes={
        "/search": make_response(f"{settings.DEEZER_API_URL}/search", json=search_payload),
        "/dl/": make_response(f"{settings.DEEZMATE_API_URL}/dl/3135556", json=dl_payload),
    })


def test_deezer_find_track(monkeypatch):
    fake = deezer_client({"data": [DEEZER_TRACK]}, {"success": True, "links": {"mp3": "https://dl/a.mp3", "flac": "https://dl/a.flac"}})
    monkeypatch.setattr(deezer, "http_client", fake)

    result = asyncio.run(DeezerService().find_track("harder better"))

    assert result == {
        "title": "Harder, Better, Faster, Stronger",
        "artist": "Daft Punk",
        "album": "Discovery",
        "deezerLink": "https://www.deezer.com/track/3135556",
        "preview": "https://cdns-preview.dzcdn.net/x.mp3",
        "thumbnail": "https://e-cdns-images.dzcdn.net/cover.jpg",
        "downloads": {"mp3": "https://dl/a.mp3", "flac": "https://dl/a.flac"},
    }
    assert fake.calls[0][2]["params"] == {"q": "harder better"}
    assert fake.calls[1][1] == f"{settings.DEEZMATE_API_URL}/dl/3135556"


def test_deezer_no_results(monkeypatch):
    monkeypatch.setattr(deezer, "http_client", deezer_client({"data": []}, {}))

    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(DeezerService().find_track("zzzz"))
    assert exc_info.value.message == "No results found"


def test_deezer_download_unavailable(monkeypatch):
    monkeypatch.setattr(deezer, "http_client", deezer_client({"data": [DEEZER_TRACK]}, {"success": False}))

    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(DeezerService().find_track("harder better"))
    assert exc_info.value.message == "Download links not available"


def test_deezer_upstream_failure(monkeypatch):
    fake = FakeHTTPClient(get_routes={"/search": httpx.ConnectError("boom")})
    monkeypatch.setattr(deezer, "http_client", fake)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(DeezerService().find_track("harder better"))
    assert exc_info.value.message == "Something went wrong"


# ===========================
# Spotify Download
# ===========================
SPOTIFY_META = {"song_name": "Blinding Lights", "artist": "The Weeknd", "url": "https://open.spotify.com/track/0VjIjW4GlUZAMYd2vXMi3b"}


def spotify_download_client(meta_payload, download_payload, download_status=200):
    return FakeHTTPClient(
        get_routes={
            "xsingle_track.php": lambda: make_response(settings.SPOTISONG_URL, json=meta_payload),
            "log.php": make_response(settings.SPOTISONG_URL),
        },
        post_routes={
            "fingerprints.php": make_response(settings.SPOTISONG_URL, json={}, method="POST"),
            "ssdw23456ytrfds.php": lambda: make_response(settings.SPOTISONG_URL, download_status, json=download_payload, method="POST"),
        },
    )


def test_spotify_download_track(monkeypatch):
    fake = spotify_download_client(SPOTIFY_META, {"dlink": "https://dl/blinding.m4a"})
    monkeypatch.setattr(spotify, "http_client", fake)
    monkeypatch.setattr(spotify, "random_delay", no_delay)

    result = asyncio.run(SpotifyService().download_track(SPOTIFY_META["url"]))

    assert result == {"meta": SPOTIFY_META, "download": "https://dl/blinding.m4a"}
    download_call = next(call for call in fake.calls if "ssdw23456ytrfds.php" in call[1])
    assert download_call[2]["data"] == {
        "song_name": "Blinding Lights",
        "artist_name": "The Weeknd",
        "url": SPOTIFY_META["url"],
    }


def test_spotify_download_without_link(monkeypatch):
    monkeypatch.setattr(spotify, "http_client", spotify_download_client(SPOTIFY_META, {"message": "limit reached"}))
    monkeypatch.setattr(spotify, "random_delay", no_delay)

    with pytest.raises(AniHubError) as exc_info:
        asyncio.run(SpotifyService().download_track(SPOTIFY_META["url"]))
    assert exc_info.value.status_code == 403
    assert exc_info.value.details["message"] == "limit reached"


def test_spotify_download_invalid_metadata(monkeypatch):
    monkeypatch.setattr(spotify, "http_client", spotify_download_client({"song_name": ""}, {}))
    monkeypatch.setattr(spotify, "random_delay", no_delay)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(SpotifyService().download_track(SPOTIFY_META["url"]))
    assert exc_info.value.message == "Invalid metadata received"


def test_spotify_download_retries_forbidden_once(monkeypatch):
    statuses = [403, 200]

    def download():
        return make_response(settings.SPOTISONG_URL, statuses.pop(0), json={"dlink": "https://dl/ok.m4a"}, method="POST")

    fake = spotify_download_client(SPOTIFY_META, {})
    fake.post_routes["ssdw23456ytrfds.php"] = download
    monkeypatch.setattr(spotify, "http_client", fake)
    monkeypatch.setattr(spotify, "random_delay", no_delay)

    result = asyncio.run(SpotifyService().download_track(SPOTIFY_META["url"]))

    assert result["download"] == "https://dl/ok.m4a"
    assert statuses == []


# ===========================
# Spotify Playlist
# ===========================
def test_spotify_playlist_songs(monkeypatch):
    payload = {
        "status": "success",
        "data": {"tracks": [{
            "track": {
                "name": "Blinding Lights",
                "external_urls": {"spotify": "https://open.spotify.com/track/1"},
                "artists": [{"name": "The Weeknd"}],
                "duration_ms": 200040,
                "album": {"name": "After Hours", "images": [{"url": "https://i.scdn.co/image/1"}]},
            }
        }]},
    }
    monkeypatch.setattr(spotify, "http_client", FakeHTTPClient(get_routes={"/playlist/analyse": make_response(settings.TRACKIFY_API_URL, json=payload)}))

    songs = asyncio.run(SpotifyService().get_playlist_songs("37i9dQZF1DXcBWIGoYBM5M"))

    assert songs == [{
        "name": "Blinding Lights",
        "url": "https://open.spotify.com/track/1",
        "artists": ["The Weeknd"],
        "duration_ms": 200040,
        "album": "After Hours",
        "album_image": "https://i.scdn.co/image/1",
    }]


def test_spotify_playlist_failure_is_empty(monkeypatch):
    monkeypatch.setattr(spotify, "http_client", FakeHTTPClient(get_routes={"/playlist/analyse": make_response(settings.TRACKIFY_API_URL, json={"status": "error"})}))
    assert asyncio.run(SpotifyService().get_playlist_songs("abc")) == []

    monkeypatch.setattr(spotify, "http_client", FakeHTTPClient())
    assert asyncio.run(SpotifyService().get_playlist_songs("abc")) == []


# ===========================
# Spotify Search
# ===========================
def test_spotify_search_requires_credentials(monkeypatch):
    monkeypatch.setattr(settings, "SPOTIFY_CLIENT_ID", None)
    monkeypatch.setattr(settings, "SPOTIFY_CLIENT_SECRET", None)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(SpotifyService().search_track("blinding lights"))
    assert exc_info.value.message == "Spotify credentials not configured"


def test_spotify_search_track(monkeypatch):
    monkeypatch.setattr(settings, "SPOTIFY_CLIENT_ID", "client")
    monkeypatch.setattr(settings, "SPOTIFY_CLIENT_SECRET", "secret")
    track = {
        "name": "Blinding Lights",
        "id": "0VjIjW4GlUZAMYd2vXMi3b",
        "artists": [{"name": "The Weeknd"}],
        "album": {"name": "After Hours", "release_date": "2020-03-20", "album_type": "album", "total_tracks": 14},
        "duration_ms": 200040,
        "popularity": 91,
        "external_urls": {"spotify": "https://open.spotify.com/track/0VjIjW4GlUZAMYd2vXMi3b"},
        "preview_url": None,
        "explicit": False,
        "track_number": 9,
        "external_ids": {"isrc": "USUG11904206"},
        "available_markets": ["US", "FR"],
    }
    fake = FakeHTTPClient(
        get_routes={"/search": make_response(settings.SPOTIFY_API_URL, json={"tracks": {"items": [track]}})},
        post_routes={settings.SPOTIFY_ACCOUNTS_URL: make_response(settings.SPOTIFY_ACCOUNTS_URL, json={"access_token": "tok", "expires_in": 3600}, method="POST")},
    )
    monkeypatch.setattr(spotify, "http_client", fake)

    service = SpotifyService()

    async def search_twice():
        return await service.search_track("blinding lights"), await service.search_track("blinding lights")

    first, _ = asyncio.run(search_twice())

    assert first["title"] == "Blinding Lights"
    assert first["artists"] == ["The Weeknd"]
    assert first["duration_seconds"] == 200
    assert first["preview_available"] is False
    assert first["isrc"] == "USUG11904206"
    assert first["available_markets_count"] == 2
    assert len([call for call in fake.calls if call[0] == "POST"]) == 1
    assert fake.calls[-1][2]["headers"] == {"Authorization": "Bearer tok"}


def test_spotify_search_no_tracks(monkeypatch):
    service = SpotifyService()
    service._access_token = "tok"
    service._token_expires_at = float("inf")
    monkeypatch.setattr(spotify, "http_client", FakeHTTPClient(get_routes={"/search": make_response(settings.SPOTIFY_API_URL, json={"tracks": {"items": []}})}))

    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(service.search_track("zzzz"))
    assert exc_info.value.message == "No tracks found"


# ===========================
# Chat
# ===========================
def stream_line(field, text):
    return 'data: {"choices": [{"delta": {"%s": "%s"}}]}' % (field, text)


def test_extract_stream_text():
    lines = [
        stream_line("content", "Hel"),
        ": keep-alive",
        "data: [DONE]",
        stream_line("reasoning", "ignored"),
        stream_line("content", "lo"),
    ]
    assert extract_stream_text(lines, "content") == "Hello"
    assert extract_stream_text(lines, "reasoning") == "ignored"


@pytest.mark.parametrize("message, chat_id, error", [
    (None, "123456", "Missing message or chat_id"),
    ("hi", None, "Missing message or chat_id"),
    ("hi", "12345", "chat_id must be exactly 6 digits"),
    ("hi", "12345a", "chat_id must be exactly 6 digits"),
    ("hi", "１２３４５６", "chat_id must be exactly 6 digits"),
])
def test_chat_validation(message, chat_id, error):
    with pytest.raises(InvalidRequestError) as exc_info:
        ChatService.validate_request(message, chat_id)
    assert exc_info.value.message == error


def test_chat_send_message(monkeypatch):
    captured = {}

    class FakeStreamClient:
        async def stream_lines(self, method, url, **kwargs):
            captured["url"] = url
            captured["data"] = kwargs["data"]
            for line in [stream_line("reasoning", "Think"), stream_line("reasoning", "ing"), "data: [DONE]"]:
                yield line

    monkeypatch.setattr(chat, "http_client", FakeStreamClient())

    result = asyncio.run(ChatService().send_message("deepseek", "hello", "123456"))

    assert result == {"response": "Thinking", "creator": settings.CHAT_CREATOR}
    assert captured["url"].endswith("/wp-admin/admin-ajax.php")
    assert captured["data"]["bot_id"] == "68"
    assert captured["data"]["chat_id"] == "123456"
    assert captured["data"]["message"] == "hello"


def test_chat_upstream_failure(monkeypatch):
    class FailingStreamClient:
        async def stream_lines(self, method, url, **kwargs):
            raise httpx.ConnectError("boom")
            yield

    monkeypatch.setattr(chat, "http_client", FailingStreamClient())

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(ChatService().send_message("gpt", "hello", "123456"))
    assert exc_info.value.message == "Failed to get response from chat bot"
