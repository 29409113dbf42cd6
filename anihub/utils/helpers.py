import asyncio
import random
import re
from typing import Optional
from urllib.parse import quote_plus, urljoin

# ===========================
# User Agents
# ===========================
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/115.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.5 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 10; SM-G981B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Mobile Safari/537.36"
]

EPISODE_PATTERN = re.compile(r"Episode\s*(\d+)", re.IGNORECASE)
PLAYLIST_ID_PATTERN = re.compile(r"(?:spotify\.com/playlist/|open\.spotify\.com/playlist/|spotify:playlist:)([a-zA-Z0-9]+)")
PAHE_SLUG_PATTERN = re.compile(r"pahe\.win/([^/?\s]+)", re.IGNORECASE)


def get_random_user_agent() -> str:
    return random.choice(USER_AGENTS)


# ===========================
# Human-like Delays
# ===========================
async def random_delay(min_ms: int, max_ms: int):
    await asyncio.sleep(random.randint(min_ms, max_ms) / 1000.0)


# ===========================
# Cache Key Creation
# ===========================
def create_cache_key(cache_type: str, name: str) -> str:
    return f"{cache_type}:{quote_plus(name.lower())}"


# ===========================
# URL Formatting
# ===========================
def format_url(url: str, base_url: str) -> str:
    if not url:
        return ""

    if url.startswith("http://") or url.startswith("https://"):
        return url

    return urljoin(base_url, url)


def strip_query(url: str) -> str:
    return url.split("?")[0]


# ===========================
# Query Parsing
# ===========================
def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    match = re.match(r"\s*([+-]?\d+)", value)
    return int(match.group(1)) if match else None


def slugify_query(query: str) -> str:
    return re.sub(r"\s+", "-", query.lower().strip())


# ===========================
# Episode Number Extraction
# ===========================
def parse_episode_number(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    match = EPISODE_PATTERN.search(text)
    return int(match.group(1)) if match else None


def same_number(value, target: int) -> bool:
    try:
        return float(value) == float(target)
    except (TypeError, ValueError):
        return False


# ===========================
# Link Identifier Extraction
# ===========================
def extract_playlist_id(url: str) -> Optional[str]:
    match = PLAYLIST_ID_PATTERN.search(url)
    return match.group(1) if match else None


def extract_pahe_slug(url: str) -> Optional[str]:
    match = PAHE_SLUG_PATTERN.search(url)
    return match.group(1) if match else None


def last_path_segment(url: str) -> str:
    return url.split("/")[-1]
