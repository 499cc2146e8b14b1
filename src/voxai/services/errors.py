"""
Error codes and exceptions for voxai.

Every failure a caller can see is a VoxError carrying a machine-readable
code, a human-readable message and optional details. The API layer maps
codes to HTTP statuses (see api/routes.py) and serializes with to_dict():

    {"ok": false, "error": "INSUFFICIENT_CREDITS",
     "message": "Insufficient credits",
     "details": {"required": 600, "available": 100, "upsell": true}}

Cancellation is not an error: a cancelled run returns a
cancelled outcome and the API answers 204.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    UNAUTHENTICATED = "UNAUTHENTICATED"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    TEXT_TOO_LONG = "TEXT_TOO_LONG"
    TEXT_REQUIRED = "TEXT_REQUIRED"
    UPLOAD_REQUIRED = "UPLOAD_REQUIRED"
    INVALID_INPUT = "INVALID_INPUT"
    VOICE_NOT_FOUND = "VOICE_NOT_FOUND"
    HISTORY_NOT_FOUND = "HISTORY_NOT_FOUND"
    EMPTY_TRANSCRIPTION = "EMPTY_TRANSCRIPTION"
    EMPTY_SYNTHESIS = "EMPTY_SYNTHESIS"
    UPSTREAM_QUOTA_EXCEEDED = "UPSTREAM_QUOTA_EXCEEDED"
    UPSTREAM_FAILED = "UPSTREAM_FAILED"
    IDENTITY_PROVIDER_FAILED = "IDENTITY_PROVIDER_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VoxError(Exception):
    """
    Base exception for voxai errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Session and ledger
# =============================================================================

class Unauthenticated(VoxError):
    """No usable credentials, bad signature, or expired session."""
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.UNAUTHENTICATED, details)


class AccountNotFound(VoxError):
    def __init__(self, identity: str):
        super().__init__("User not found", ErrorCode.ACCOUNT_NOT_FOUND, {"identity": identity})


class InsufficientCreditsError(VoxError):
    """
    Raised when a metered account cannot cover a cost.

    The balance is left untouched. details carries the required and
    available amounts plus an upsell hint for the client.
    """
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            "Insufficient credits",
            ErrorCode.INSUFFICIENT_CREDITS,
            {"required": required, "available": available, "upsell": True},
        )


# =============================================================================
# Request validation
# =============================================================================

class InvalidInputError(VoxError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class TextTooLongError(VoxError):
    def __init__(self, length: int, limit: int):
        super().__init__(
            f"Text exceeds maximum length ({length} > {limit})",
            ErrorCode.TEXT_TOO_LONG,
            {"length": length, "limit": limit},
        )


class EmptyTextError(VoxError):
    def __init__(self, message: str = "Text is required"):
        super().__init__(message, ErrorCode.TEXT_REQUIRED)


class MissingUploadError(VoxError):
    def __init__(self, mode: str):
        super().__init__(
            f"An audio upload is required for {mode} mode",
            ErrorCode.UPLOAD_REQUIRED,
            {"mode": mode},
        )


class VoiceNotFoundError(VoxError):
    def __init__(self, voice_id: str):
        super().__init__(f"Unknown voice: {voice_id}", ErrorCode.VOICE_NOT_FOUND, {"voice_id": voice_id})


class HistoryNotFoundError(VoxError):
    def __init__(self, item_id: str):
        super().__init__("History item not found", ErrorCode.HISTORY_NOT_FOUND, {"item_id": item_id})


# =============================================================================
# Upstream model
# =============================================================================

class EmptyTranscriptionError(VoxError):
    """Transcription or translation produced no speakable text."""
    def __init__(self, mode: str):
        super().__init__(
            "Could not extract any speech from the uploaded audio",
            ErrorCode.EMPTY_TRANSCRIPTION,
            {"mode": mode},
        )


class EmptySynthesisError(VoxError):
    def __init__(self, message: str = "No audio data received from the speech model"):
        super().__init__(message, ErrorCode.EMPTY_SYNTHESIS)


class UpstreamQuotaExceeded(VoxError):
    """The model provider signalled a rate limit or exhausted quota. Not retried."""
    def __init__(self, message: str = "Speech model quota exceeded. Please wait and retry later.",
                 details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.UPSTREAM_QUOTA_EXCEEDED, details)


class UpstreamError(VoxError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.UPSTREAM_FAILED, details)


class IdentityProviderError(VoxError):
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.IDENTITY_PROVIDER_FAILED, details)


QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED", "quota")


def is_quota_error(exc: BaseException) -> bool:
    """True if an upstream exception looks like a rate limit or quota signal."""
    if getattr(exc, "code", None) == 429 or getattr(exc, "status_code", None) == 429:
        return True
    text = f"{type(exc).__name__}: {exc}"
    return any(marker.lower() in text.lower() for marker in QUOTA_MARKERS)
