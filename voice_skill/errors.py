"""
Skill error taxonomy.

Failures that reach the turn controller are mapped to stable categories for
logs and events. None of them ever reaches the voice platform as an
exception: the caller always gets a speakable response.
"""
import asyncio
from typing import Optional


class SkillError(Exception):
    """Base class for errors raised by skill components."""


class ConfigurationError(SkillError):
    """Required configuration (API key, secret) could not be resolved."""


class UpstreamError(SkillError):
    """The answer source failed: network error, HTTP error or unusable payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AnswerErrorCategory:
    """Stable error categories."""

    # Configuration
    MISSING_API_KEY = "config.missing_api_key"

    # Upstream call
    AUTH_FAILED = "answer.auth_failed"
    RATE_LIMITED = "answer.rate_limited"
    CAPACITY_LIMITED = "answer.capacity_limited"
    NETWORK_ERROR = "answer.network_error"
    BAD_RESPONSE = "answer.bad_response"

    # Unknown
    UNKNOWN_ERROR = "answer.unknown_error"


class AnswerErrorHandler:
    """Classifies answer-source failures."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify an error into a stable category.
        Never raises; unrecognized errors map to UNKNOWN_ERROR.
        """
        if isinstance(error, ConfigurationError):
            return AnswerErrorCategory.MISSING_API_KEY

        status = getattr(error, "status", None)
        if isinstance(status, int):
            if status in (401, 403):
                return AnswerErrorCategory.AUTH_FAILED
            if status == 429:
                return AnswerErrorCategory.RATE_LIMITED
            if status in (502, 503, 504):
                return AnswerErrorCategory.CAPACITY_LIMITED
            return AnswerErrorCategory.BAD_RESPONSE

        error_str = str(error).lower()

        if "unauthorized" in error_str or "forbidden" in error_str:
            return AnswerErrorCategory.AUTH_FAILED

        if "rate limit" in error_str or "throttl" in error_str:
            return AnswerErrorCategory.RATE_LIMITED

        if (
            isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError))
            or "timeout" in error_str
            or "connect" in error_str
            or "network" in error_str
        ):
            return AnswerErrorCategory.NETWORK_ERROR

        if isinstance(error, UpstreamError):
            return AnswerErrorCategory.BAD_RESPONSE

        return AnswerErrorCategory.UNKNOWN_ERROR

    @staticmethod
    def redact(error: Exception) -> str:
        """
        Error detail safe for logs.
        Messages that may carry a credential are replaced wholesale.
        """
        detail = str(error)
        lowered = detail.lower()
        if "secret" in lowered or "bearer" in lowered or "password" in lowered or "key" in lowered:
            return "[redacted: potential secret]"
        return detail
