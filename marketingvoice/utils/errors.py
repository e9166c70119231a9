# marketingvoice/utils/errors.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException


class ErrorCode:
    # Auth related errors
    AUTH_001 = "AUTH_001"  # No session
    AUTH_002 = "AUTH_002"  # Not the resource owner
    AUTH_003 = "AUTH_003"  # Daily message quota exceeded

    # Request related errors
    REQUEST_001 = "REQUEST_001"  # Malformed request
    REQUEST_002 = "REQUEST_002"  # Resource not found

    # Provider related errors
    UPSTREAM_001 = "UPSTREAM_001"  # Model provider failure
    IMAGE_001 = "IMAGE_001"  # Image generation failed
    IMAGE_002 = "IMAGE_002"  # Image provider rejected the input
    SPEECH_001 = "SPEECH_001"  # Transcription failed


class APIError(HTTPException):
    def __init__(
            self,
            code: str,
            message: str,
            status_code: int = 400,
            details: Optional[Any] = None
    ):
        self.error_code = code
        self.error_message = message
        self.error_details = details
        super().__init__(status_code=status_code, detail=message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.error_code,
                "message": self.error_message,
                "details": self.error_details
            },
            "success": False,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Unauthorized", details: Optional[Any] = None):
        super().__init__(ErrorCode.AUTH_001, message, 401, details)


class ForbiddenError(APIError):
    def __init__(self, message: str = "Forbidden", details: Optional[Any] = None):
        super().__init__(ErrorCode.AUTH_002, message, 403, details)


class QuotaExceededError(APIError):
    def __init__(
            self,
            message: str = "You have exceeded your maximum number of messages for the day! Please try again later.",
            details: Optional[Any] = None
    ):
        super().__init__(ErrorCode.AUTH_003, message, 429, details)


class BadRequestError(APIError):
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(ErrorCode.REQUEST_001, message, 400, details)


class NotFoundError(APIError):
    def __init__(self, message: str = "Not found", details: Optional[Any] = None):
        super().__init__(ErrorCode.REQUEST_002, message, 404, details)


class UpstreamError(APIError):
    def __init__(
            self,
            message: str = "An error occurred while processing your request",
            details: Optional[Any] = None
    ):
        super().__init__(ErrorCode.UPSTREAM_001, message, 500, details)


class ImageGenerationError(APIError):
    def __init__(self, message: str, details: Optional[Any] = None, status_code: int = 500):
        code = ErrorCode.IMAGE_002 if status_code == 422 else ErrorCode.IMAGE_001
        super().__init__(code, message, status_code, details)


class TranscriptionError(APIError):
    def __init__(self, message: str = "Failed to process audio", details: Optional[Any] = None):
        super().__init__(ErrorCode.SPEECH_001, message, 500, details)
