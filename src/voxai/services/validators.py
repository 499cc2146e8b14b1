"""
Input validation for generation requests.

Validation happens before any upstream call so that malformed requests
never cost a model round-trip.

Validation Rules:
    - Text (direct): required after trimming, at most billing.max_chars
    - Upload (convert/dub): base64, at most upload.max_bytes decoded
    - MIME type: must be an audio/* or video/* type
    - Target language: optional, at most 64 characters
    - Manual deduction amount: non-negative integer

Errors raised here are VoxErrors (see services/errors.py), so the API
layer maps them to 400 responses without special handling.

Usage:
    from voxai.services.validators import validate_text, validate_upload_b64

    text = validate_text(request.text, max_length=20000)
    audio = validate_upload_b64(request.audio_b64, max_decoded_size=50 * 1024 * 1024)
"""
from __future__ import annotations

import base64
import binascii
from typing import Optional

from voxai.core.logging import get_logger, warn
from voxai.services.errors import EmptyTextError, InvalidInputError, TextTooLongError

_LOG = get_logger("voxai.validators")

# Base64 adds ~33% overhead on top of the decoded size.
B64_OVERHEAD = 4 / 3
MAX_LANGUAGE_LENGTH = 64
ALLOWED_MIME_PREFIXES = ("audio/", "video/")


def validate_text(text: Optional[str], max_length: int) -> str:
    """
    Validate text for direct synthesis.

    The text is returned unchanged; trimming is only used to decide
    whether anything speakable was submitted.

    Raises:
        EmptyTextError: If the text is missing or whitespace only.
        TextTooLongError: If the text exceeds max_length characters.
    """
    if not text or not text.strip():
        raise EmptyTextError()

    check_length(text, max_length)
    return text


def check_length(text: str, max_length: int) -> None:
    """Raise TextTooLongError if text is longer than max_length."""
    if len(text) > max_length:
        raise TextTooLongError(len(text), max_length)


def validate_upload_b64(b64: Optional[str], max_decoded_size: int) -> Optional[bytes]:
    """
    Validate and decode a base64 audio upload.

    Args:
        b64: Base64 encoded audio, optionally as a data: URL.
        max_decoded_size: Maximum decoded size in bytes.

    Returns:
        Decoded bytes, or None if nothing was uploaded.

    Raises:
        InvalidInputError: If the payload is too large or not base64.
    """
    if not b64:
        return None

    # Accept "data:audio/mpeg;base64,...." as produced by FileReader.readAsDataURL
    if b64.startswith("data:") and "," in b64:
        b64 = b64.split(",", 1)[1]

    max_b64_size = int(max_decoded_size * B64_OVERHEAD) + 4
    if len(b64) > max_b64_size:
        raise InvalidInputError(
            f"Uploaded audio exceeds maximum size ({max_decoded_size} bytes)",
            {"limit": max_decoded_size},
        )

    try:
        decoded = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        warn(_LOG, "upload_b64_decode_failed", error=str(e))
        raise InvalidInputError("Invalid base64 encoding in audio_b64")

    if len(decoded) > max_decoded_size:
        raise InvalidInputError(
            f"Uploaded audio exceeds maximum size ({len(decoded)} > {max_decoded_size})",
            {"limit": max_decoded_size},
        )

    return decoded


def validate_mime_type(mime_type: Optional[str], default: str = "audio/wav") -> str:
    """Validate the upload's MIME type, defaulting when absent."""
    if not mime_type:
        return default

    mime_type = mime_type.strip().lower()
    if not mime_type.startswith(ALLOWED_MIME_PREFIXES):
        raise InvalidInputError(f"Unsupported upload type: {mime_type}", {"mime_type": mime_type})
    return mime_type


def validate_target_language(language: Optional[str], default: str) -> str:
    if not language or not language.strip():
        return default

    language = language.strip()
    if len(language) > MAX_LANGUAGE_LENGTH:
        raise InvalidInputError(
            f"Target language exceeds maximum length ({len(language)} > {MAX_LANGUAGE_LENGTH})",
        )
    return language


def validate_amount(amount: int) -> int:
    """Validate a manual deduction amount."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInputError("Amount must be an integer")
    if amount < 0:
        raise InvalidInputError("Amount must be non-negative", {"amount": amount})
    return amount
