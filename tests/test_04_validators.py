"""Tests for request validation and error serialization."""
from __future__ import annotations

import base64

import pytest

from voxai.services.errors import (
    EmptyTextError,
    ErrorCode,
    InsufficientCreditsError,
    InvalidInputError,
    TextTooLongError,
    Unauthenticated,
    UpstreamQuotaExceeded,
    VoxError,
    is_quota_error,
)
from voxai.services.validators import (
    check_length,
    validate_amount,
    validate_mime_type,
    validate_target_language,
    validate_text,
    validate_upload_b64,
)


class TestErrors:
    """VoxError.to_dict() is the API error body."""

    def test_to_dict_without_details(self):
        assert Unauthenticated().to_dict() == {
            "ok": False,
            "error": ErrorCode.UNAUTHENTICATED,
            "message": "Unauthorized",
        }

    def test_insufficient_credits_details(self):
        e = InsufficientCreditsError(required=600, available=100)
        assert e.required == 600
        assert e.available == 100
        assert e.to_dict()["details"] == {"required": 600, "available": 100, "upsell": True}

    def test_default_code(self):
        assert VoxError("boom").code == ErrorCode.INTERNAL_ERROR

    def test_quota_default_message(self):
        assert "retry later" in UpstreamQuotaExceeded().message


class TestQuotaDetection:
    """Rate limit and quota signals from the upstream client."""

    class _Coded(Exception):
        def __init__(self, code):
            super().__init__("upstream said no")
            self.code = code

    def test_status_code_attribute(self):
        assert is_quota_error(self._Coded(429))

    @pytest.mark.parametrize("message", [
        "429 Too Many Requests",
        "RESOURCE_EXHAUSTED: try again",
        "Quota exceeded for metric",
    ])
    def test_message_markers(self, message):
        assert is_quota_error(RuntimeError(message))

    def test_other_errors(self):
        assert not is_quota_error(self._Coded(500))
        assert not is_quota_error(RuntimeError("connection reset"))


class TestValidateText:
    def test_returns_text_unchanged(self):
        assert validate_text("  hi  ", 100) == "  hi  "

    @pytest.mark.parametrize("text", [None, "", "   \n\t"])
    def test_blank_text(self, text):
        with pytest.raises(EmptyTextError) as exc:
            validate_text(text, 100)
        assert exc.value.code == ErrorCode.TEXT_REQUIRED

    def test_at_limit(self):
        assert validate_text("x" * 10, 10) == "x" * 10

    def test_over_limit(self):
        with pytest.raises(TextTooLongError) as exc:
            validate_text("x" * 11, 10)
        assert exc.value.details == {"length": 11, "limit": 10}

    def test_check_length(self):
        check_length("abc", 3)
        with pytest.raises(TextTooLongError):
            check_length("abcd", 3)


class TestValidateUpload:
    def test_empty(self):
        assert validate_upload_b64(None, 100) is None
        assert validate_upload_b64("", 100) is None

    def test_plain_base64(self):
        data = b"\x00\x01audio"
        assert validate_upload_b64(base64.b64encode(data).decode(), 100) == data

    def test_data_url(self):
        data = b"mp3 bytes"
        url = "data:audio/mpeg;base64," + base64.b64encode(data).decode()
        assert validate_upload_b64(url, 100) == data

    def test_invalid_base64(self):
        with pytest.raises(InvalidInputError):
            validate_upload_b64("not base64!!", 100)

    def test_too_large(self):
        encoded = base64.b64encode(b"x" * 200).decode()
        with pytest.raises(InvalidInputError) as exc:
            validate_upload_b64(encoded, 100)
        assert exc.value.details == {"limit": 100}

    def test_decoded_size_checked(self):
        # 102 decoded bytes fit the base64 length budget but not the decoded limit
        encoded = base64.b64encode(b"x" * 102).decode()
        with pytest.raises(InvalidInputError):
            validate_upload_b64(encoded, 101)


class TestOtherValidators:
    def test_mime_default(self):
        assert validate_mime_type(None) == "audio/wav"

    def test_mime_normalized(self):
        assert validate_mime_type(" Audio/MPEG ") == "audio/mpeg"
        assert validate_mime_type("video/mp4") == "video/mp4"

    def test_mime_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_mime_type("text/plain")

    def test_target_language(self):
        assert validate_target_language(None, "Hindi") == "Hindi"
        assert validate_target_language("  ", "Hindi") == "Hindi"
        assert validate_target_language(" Spanish ", "Hindi") == "Spanish"
        with pytest.raises(InvalidInputError):
            validate_target_language("x" * 65, "Hindi")

    def test_amount(self):
        assert validate_amount(0) == 0
        assert validate_amount(50) == 50
        for bad in (-1, True, 1.5, "5"):
            with pytest.raises(InvalidInputError):
                validate_amount(bad)
