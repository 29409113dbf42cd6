import json
import time
from typing import Any, Optional

from anihub.config.settings import settings
from anihub.utils.database import is_sqlite
from anihub.utils.helpers import create_cache_key
from anihub.utils.logger import cache_logger

# ===========================
# Upsert Queries
# ===========================
UPSERT_QUERIES = {
    "sqlite": """INSERT OR REPLACE INTO content_cache (cache_key, content, expires_at)
                 VALUES (:cache_key, :content, :expires_at)""",
    "postgresql": """INSERT INTO content_cache (cache_key, content, expires_at)
                     VALUES (:cache_key, :content, :expires_at)
                     ON CONFLICT (cache_key) DO UPDATE
                     SET content = :content, expires_at = :expires_at""",
}


# ===========================
# Cache Access
# ===========================
async def get_cache(database, cache_type: str, name: str) -> Optional[Any]:
    """Return the JSON value stored for ``(cache_type, name)`` or ``None``.

    Any storage or decoding problem is logged and treated as a miss, so a broken
    cache never fails the request that consulted it.
    """
    cache_key = create_cache_key(cache_type, name)

    try:
        row = await database.fetch_one(
            "SELECT content FROM content_cache WHERE cache_key = :cache_key AND expires_at > :now",
            {"cache_key": cache_key, "now": int(time.time())}
        )
        value = json.loads(row["content"]) if row else None
    except Exception as e:
        cache_logger.error(f"Read failed for {cache_key}: {type(e).__name__}")
        return None

    cache_logger.debug(f"{'Hit' if row else 'Miss'}: {cache_key}")
    return value


async def set_cache(database, cache_type: str, name: str, content: Any, ttl: Optional[int] = None):
    cache_key = create_cache_key(cache_type, name)
    ttl = settings.CONTENT_CACHE_TTL if ttl is None else ttl
    query = UPSERT_QUERIES["sqlite" if is_sqlite() else "postgresql"]

    try:
        await database.execute(query, {
            "cache_key": cache_key,
            "content": json.dumps(content),
            "expires_at": int(time.time()) + ttl
        })
    except Exception as e:
        cache_logger.error(f"Write failed for {cache_key}: {type(e).__name__}")
        return

    cache_logger.debug(f"Stored: {cache_key} ({ttl}s)")
