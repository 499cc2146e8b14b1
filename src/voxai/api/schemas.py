"""
API request/response schemas.

Models:
    GenerateRequest: Body of POST /api/generate
    GenerateResponse: Completed generation with base64 WAV
    CancelRequest: Body of POST /api/generate/cancel
    DeductRequest: Body of POST /api/user/deduct
    AccountOut / HistoryItemOut: Serialized domain objects

Example Request (dub):
    {
        "mode": "dub",
        "audio_b64": "<base64 mp3>",
        "audio_mime_type": "audio/mpeg",
        "voice_id": "Kore",
        "target_language": "Spanish",
        "client_id": "tab-7f3a"
    }

Size limits for text and uploads are enforced by services/validators.py
so that they come back as 400 errors with the usual error body rather
than as 422 schema errors.
"""
from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """
    Generation request.

    Attributes:
        mode: "direct" speaks text; "convert" and "dub" need audio_b64.
        text: Text to speak (direct mode).
        audio_b64: Base64 (or data: URL) audio clip (convert/dub).
        audio_mime_type: MIME type of the clip, e.g. "audio/mpeg".
        voice_id: Prebuilt voice; defaults to the configured voice.
        target_language: Dub target; defaults to the configured language.
        client_id: Browser session key used for cancellation.
    """
    mode: Literal["direct", "convert", "dub"] = Field(
        default="direct",
        description="Generation mode",
    )
    text: str = Field(default="", description="Text to synthesize (direct mode)")
    audio_b64: Optional[str] = Field(default=None, description="Base64-encoded audio upload")
    audio_mime_type: Optional[str] = Field(default=None, description="MIME type of the upload")
    voice_id: Optional[str] = Field(default=None, description="Prebuilt voice id")
    target_language: Optional[str] = Field(default=None, description="Dub target language")
    client_id: Optional[str] = Field(default=None, max_length=128, description="Browser session key")


class CancelRequest(BaseModel):
    client_id: Optional[str] = Field(default=None, max_length=128)


class DeductRequest(BaseModel):
    amount: int = Field(..., description="Credits to deduct")


class AccountOut(BaseModel):
    email: str
    credits: Optional[int] = Field(description="Remaining credits, null when unlimited")
    unlimited: bool
    tier: str
    isPremium: bool


class HistoryItemOut(BaseModel):
    id: str
    text: str
    voice: str
    audioUrl: str
    createdAt: int
    cost: int
    mode: str
    charged: bool


class GenerateResponse(BaseModel):
    """
    Completed generation.

    Example Response:
        {
            "ok": true,
            "request_id": "abc123def456",
            "mode": "direct",
            "text": "Hello",
            "audio_b64": "UklGR...",
            "mime_type": "audio/wav",
            "sample_rate": 24000,
            "duration_seconds": 0.42,
            "cost": 5,
            "charged": true,
            "account": {...},
            "history_item": {...}
        }
    """
    ok: bool = True
    request_id: str
    mode: str
    text: str
    audio_b64: str
    mime_type: str = "audio/wav"
    sample_rate: int
    duration_seconds: float
    cost: int
    charged: bool
    account: AccountOut
    history_item: HistoryItemOut
    timings: Dict[str, float] = Field(default_factory=dict)
