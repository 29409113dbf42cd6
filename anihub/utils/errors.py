from typing import Any, Dict, Optional


# ===========================
# Base Error
# ===========================
class AniHubError(Exception):

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


# ===========================
# Client Errors
# ===========================
class InvalidRequestError(AniHubError):
    status_code = 400


class NotFoundError(AniHubError):
    status_code = 404


# ===========================
# Upstream Errors
# ===========================
class UpstreamError(AniHubError):
    status_code = 500
