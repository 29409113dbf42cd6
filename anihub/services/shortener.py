import secrets
import time
from typing import Optional

from anihub.config.settings import settings
from anihub.utils.database import database
from anihub.utils.errors import InvalidRequestError, NotFoundError
from anihub.utils.logger import database_logger

# ===========================
# Short Link Service Class
# ===========================
class ShortLinkService:

    @staticmethod
    def new_link_id() -> str:
        return secrets.token_hex(settings.SHORT_LINK_ID_BYTES)

    async def create(self, url: Optional[str], ttl: Optional[int] = None) -> str:
        if not url:
            raise InvalidRequestError("Missing URL.")

        link_id = self.new_link_id()
        expires_at = int(time.time()) + (settings.SHORT_LINK_TTL if ttl is None else ttl)

        await database.execute(
            "INSERT INTO short_links (link_id, url, expires_at) VALUES (:link_id, :url, :expires_at)",
            {"link_id": link_id, "url": url, "expires_at": expires_at}
        )

        database_logger.debug(f"Short link created: {link_id}")
        return link_id

    async def resolve(self, link_id: str) -> str:
        result = await database.fetch_one(
            "SELECT url FROM short_links WHERE link_id = :link_id AND expires_at > :current_time",
            {"link_id": link_id, "current_time": int(time.time())}
        )

        if not result:
            raise NotFoundError("URL not found.")

        return result["url"]


# ===========================
# Singleton Instance
# ===========================
short_link_service = ShortLinkService()
