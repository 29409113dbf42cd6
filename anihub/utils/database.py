import asyncio
import os
import time

from databases import Database

from anihub.config.settings import settings
from anihub.utils.logger import database_logger

# ===========================
# Schema
# ===========================
TABLES = {
    "short_links": "link_id TEXT PRIMARY KEY, url TEXT NOT NULL, expires_at INTEGER NOT NULL",
    "content_cache": "cache_key TEXT PRIMARY KEY, content TEXT NOT NULL, expires_at INTEGER NOT NULL",
}

# every table above carries expires_at and is purged by the cleanup task
EXPIRING_TABLES = tuple(TABLES)

SQLITE_PRAGMAS = (
    "PRAGMA busy_timeout=30000",
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
)

database = Database(settings.get_database_url())


def is_sqlite() -> bool:
    return settings.DATABASE_TYPE == "sqlite"


# ===========================
# Schema Versioning
# ===========================
async def _stored_version():
    await database.execute("CREATE TABLE IF NOT EXISTS db_version (id INTEGER PRIMARY KEY CHECK (id = 1), version TEXT)")
    return await database.fetch_val("SELECT version FROM db_version WHERE id = 1")


async def _reset_schema():
    database_logger.info(f"Schema version changed, rebuilding tables (v{settings.DATABASE_VERSION})")
    cascade = "" if is_sqlite() else " CASCADE"
    for table in TABLES:
        await database.execute(f"DROP TABLE IF EXISTS {table}{cascade}")

    if is_sqlite():
        query = "INSERT OR REPLACE INTO db_version VALUES (1, :version)"
    else:
        query = "INSERT INTO db_version VALUES (1, :version) ON CONFLICT (id) DO UPDATE SET version = :version"
    await database.execute(query, {"version": settings.DATABASE_VERSION})


async def _create_tables():
    for table, columns in TABLES.items():
        await database.execute(f"CREATE TABLE IF NOT EXISTS {table} ({columns})")
        await database.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_expires ON {table}(expires_at)")


# ===========================
# Lifecycle
# ===========================
async def setup_database():
    database_logger.info(f"Setup {settings.DATABASE_TYPE} database")

    try:
        if is_sqlite():
            os.makedirs(os.path.dirname(settings.DATABASE_PATH) or ".", exist_ok=True)

        await database.connect()

        if await _stored_version() != settings.DATABASE_VERSION:
            await _reset_schema()
        await _create_tables()

        if is_sqlite():
            for pragma in SQLITE_PRAGMAS:
                await database.execute(pragma)
    except Exception as e:
        database_logger.error(f"Setup failed: {type(e).__name__}")
        raise

    database_logger.info("Ready")


async def teardown_database():
    try:
        await database.disconnect()
        database_logger.info("Disconnected")
    except Exception as e:
        database_logger.error(f"Failed to disconnect: {type(e).__name__}")


# ===========================
# Expiry Cleanup
# ===========================
async def purge_expired_rows():
    now = int(time.time())
    for table in EXPIRING_TABLES:
        await database.execute(f"DELETE FROM {table} WHERE expires_at <= :now", {"now": now})


async def cleanup_expired_data():
    while True:
        try:
            await purge_expired_rows()
        except Exception as e:
            database_logger.error(f"Cleanup error: {type(e).__name__}")

        await asyncio.sleep(settings.CLEANUP_INTERVAL)
