import json
from typing import Dict, Iterable, List

import httpx

from anihub.config.settings import settings
from anihub.utils.errors import InvalidRequestError, UpstreamError
from anihub.utils.http_client import http_client
from anihub.utils.logger import media_logger

# ===========================
# Bot Profiles
# ===========================
BOT_PROFILES = {
    "gpt": {
        "post_id": "10",
        "path": "",
        "bot_id": "0",
        "chatbot_identity": "shortcode",
        "history": [],
        "delta_field": "content",
        "error": "Failed to get response from chat bot"
    },
    "deepseek": {
        "post_id": "77",
        "path": "/deepseek-ai-unlimited-free",
        "bot_id": "68",
        "chatbot_identity": "custom_bot_68",
        "history": [
            {"id": "", "text": "Human: Yo"},
            {"id": 2125, "text": "AI: Hey! Thanks for reaching out. DeepSeek AI is a free platform offering AI chatbots for writing, coding and research. How can I help?"}
        ],
        "delta_field": "reasoning",
        "error": "Failed to get DeepSeek response"
    }
}

CHAT_ID_LENGTH = 6


# ===========================
# Stream Parsing
# ===========================
def extract_stream_text(lines: Iterable[str], delta_field: str) -> str:
    parts = []

    for line in lines:
        if not line.startswith("data: "):
            continue
        try:
            payload = json.loads(line[6:])
            content = payload["choices"][0]["delta"].get(delta_field)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            continue
        if content:
            parts.append(content)

    return "".join(parts)


# ===========================
# Chat Service Class
# ===========================
class ChatService:

    @staticmethod
    def validate_request(message: str, chat_id: str):
        if not message or not chat_id:
            raise InvalidRequestError("Missing message or chat_id")

        if len(chat_id) != CHAT_ID_LENGTH or not chat_id.isascii() or not chat_id.isdigit():
            raise InvalidRequestError("chat_id must be exactly 6 digits")

    @staticmethod
    def build_form(bot: str, message: str, chat_id: str) -> Dict[str, str]:
        profile = BOT_PROFILES[bot]

        return {
            "_wpnonce": settings.CHAT_NONCE,
            "post_id": profile["post_id"],
            "url": f"{settings.CHATFREEAI_URL}{profile['path']}",
            "action": "wpaicg_chat_shortcode_message",
            "message": message,
            "bot_id": profile["bot_id"],
            "chatbot_identity": profile["chatbot_identity"],
            "wpaicg_chat_history": json.dumps(profile["history"]),
            "wpaicg_chat_client_id": settings.CHAT_CLIENT_ID,
            "chat_id": chat_id
        }

    async def send_message(self, bot: str, message: str, chat_id: str) -> Dict[str, str]:
        self.validate_request(message, chat_id)
        profile = BOT_PROFILES[bot]

        lines: List[str] = []
        try:
            async for line in http_client.stream_lines(
                "POST",
                f"{settings.CHATFREEAI_URL}/wp-admin/admin-ajax.php",
                data=self.build_form(bot, message, chat_id),
                headers={"Content-Type": "application/x-www-form-urlencoded"}
            ):
                lines.append(line)
        except httpx.HTTPError as e:
            media_logger.error(f"Chat ({bot}) error: {type(e).__name__}")
            raise UpstreamError(profile["error"], details={"creator": settings.CHAT_CREATOR}) from e

        reply = extract_stream_text(lines, profile["delta_field"])
        media_logger.debug(f"Chat ({bot}) reply: {len(reply)} chars")

        return {
            "response": reply,
            "creator": settings.CHAT_CREATOR
        }


# ===========================
# Singleton Instance
# ===========================
chat_service = ChatService()
