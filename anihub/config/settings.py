from typing import Optional, List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from anihub.utils.similarity import DEFAULT_MATCH_THRESHOLD

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    # ===========================
    # Application Customization
    # ===========================
    APP_NAME: Optional[str] = "AniHub"
    APP_VERSION: str = "1.0.0"

    # ===========================
    # Server Configuration
    # ===========================
    PORT: Optional[int] = 7860

    # ===========================
    # Anime Source Configuration
    # ===========================
    ANIMEHEAVEN_URL: Optional[str] = "https://animeheaven.me"
    NINEANIME_URL: Optional[str] = "https://9anime.org.lv"
    NINEANIME_SITE_MARKER: str = "9anime"
    ANIMEPAHE_URL: Optional[str] = "https://animepahe.ru"
    PAHE_MIRROR_URL: str = "https://pahe.bunniescdn.online"
    ANIMEPAHE_MAX_RELEASE_PAGES: int = 50

    # ===========================
    # Media API Configuration
    # ===========================
    CLIPTO_API_URL: str = "https://www.clipto.com/api/youtube"
    SPOTISONG_URL: str = "https://spotisongdownloader.to"
    TRACKIFY_API_URL: str = "https://api.trackify.am"
    SPOTIFY_ACCOUNTS_URL: str = "https://accounts.spotify.com/api/token"
    SPOTIFY_API_URL: str = "https://api.spotify.com/v1"
    DEEZER_API_URL: str = "https://api.deezer.com"
    DEEZMATE_API_URL: str = "https://api.deezmate.com"

    # ===========================
    # Credentials Configuration
    # ===========================
    SPOTIFY_CLIENT_ID: Optional[str] = None
    SPOTIFY_CLIENT_SECRET: Optional[str] = None

    # ===========================
    # Chat Proxy Configuration
    # ===========================
    CHATFREEAI_URL: str = "https://chatfreeai.com"
    CHAT_NONCE: str = "d0bfe9bf42"
    CHAT_CLIENT_ID: str = "uL7gDcdTME"
    CHAT_CREATOR: str = "Reiker"

    # ===========================
    # Browser Configuration
    # ===========================
    BROWSER_HEADLESS: bool = True
    BROWSER_ARGS: List[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-accelerated-2d-canvas",
        "--no-first-run",
        "--no-zygote",
        "--disable-gpu",
        "--window-size=1920,1080",
        "--disable-web-security",
        "--disable-features=IsolateOrigins,site-per-process"
    ]
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    BROWSER_ACCEPT_LANGUAGE: str = "en-US,en;q=0.9"

    # ===========================
    # Browser Timeout Configuration (seconds)
    # ===========================
    NAVIGATION_TIMEOUT: int = 60
    RESOLVE_TIMEOUT: int = 30
    SELECTOR_TIMEOUT: int = 30
    PLAYER_WAIT_TIMEOUT: int = 10
    IFRAME_SETTLE_DELAY: float = 7.0
    SEARCH_SETTLE_DELAY: float = 1.0
    PLAY_PAGE_SETTLE_DELAY: float = 5.0

    # ===========================
    # Direct File Detection
    # ===========================
    DIRECT_FILE_HOST_MARKERS: List[str] = ["nextcdn", "vault-13.kwik.cx"]

    # ===========================
    # Matching Configuration
    # ===========================
    MATCH_THRESHOLD: float = DEFAULT_MATCH_THRESHOLD

    # ===========================
    # Short Link Configuration
    # ===========================
    SHORT_LINK_TTL: int = 86400
    SHORT_LINK_ID_BYTES: int = 8

    # ===========================
    # Database Configuration
    # ===========================
    DATABASE_VERSION: str = "1.0"
    DATABASE_TYPE: Optional[str] = "sqlite"
    DATABASE_PATH: Optional[str] = "/app/data/anihub.db"
    DATABASE_URL: Optional[str] = ""

    # ===========================
    # Cache Configuration
    # ===========================
    CONTENT_CACHE_TTL: Optional[int] = 3600

    # ===========================
    # HTTP Timeout Configuration
    # ===========================
    HTTP_TIMEOUT: Optional[int] = 15
    HEALTH_CHECK_TIMEOUT: Optional[int] = 5

    # ===========================
    # Retry Configuration
    # ===========================
    HTTP_RETRY_ERRORS: List[int] = [429, 500, 502, 503, 504]
    HTTP_MAX_RETRIES: int = 2
    HTTP_RETRY_DELAY: float = 1.0

    # ===========================
    # Proxy Configuration
    # ===========================
    PROXY_URL: Optional[str] = None

    # ===========================
    # Logging Configuration
    # ===========================
    LOG_LEVEL: Optional[str] = "DEBUG"

    # ===========================
    # Internal Configuration
    # ===========================
    CLEANUP_INTERVAL: int = 60

    # ===========================
    # Field Validators
    # ===========================
    @field_validator(
        "ANIMEHEAVEN_URL", "NINEANIME_URL", "ANIMEPAHE_URL", "PAHE_MIRROR_URL",
        "SPOTISONG_URL", "TRACKIFY_API_URL", "SPOTIFY_API_URL", "DEEZER_API_URL",
        "DEEZMATE_API_URL", "CHATFREEAI_URL", "PROXY_URL"
    )
    @classmethod
    def normalize_urls(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("MATCH_THRESHOLD")
    @classmethod
    def validate_match_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("MATCH_THRESHOLD must be between 0 and 1")
        return v

    def get_database_url(self) -> str:
        if self.DATABASE_TYPE == "sqlite":
            return f"sqlite:///{self.DATABASE_PATH}"
        return f"postgresql://{self.DATABASE_URL}"


# ===========================
# Settings Instance
# ===========================
settings = Settings()
