"""
Speech/Language model capability.

The pipeline talks to the upstream model only through SpeechModel:

    transcribe_or_translate(audio, mime_type, instruction) -> str
        Run an instruction over an uploaded clip and return the text
        (used for transcription in convert mode and translation in dub mode).

    synthesize(text, voice_id) -> bytes
        Speak text with a prebuilt voice and return raw PCM, 16-bit
        little-endian mono at `sample_rate`.

Implementations raise whatever their client raises; the pipeline turns
those into UpstreamError / UpstreamQuotaExceeded.

Implementing another provider:
    1. Subclass SpeechModel
    2. Implement both coroutines
    3. Register it in get_speech_model()
"""
from __future__ import annotations

import base64
from typing import Any, Optional

from google import genai
from google.genai import types

from voxai.core.config import ModelConfig
from voxai.core.logging import debug, get_logger


class SpeechModel:
    """
    Abstract base class for upstream speech/language models.

    Attributes:
        name: Provider identifier.
        sample_rate: Sample rate of PCM returned by synthesize().
    """
    name: str = "base"

    def __init__(self, sample_rate: int = 24000):
        self.sample_rate = sample_rate
        self.logger = get_logger(f"voxai.model.{self.name}")

    async def transcribe_or_translate(self, audio: bytes, mime_type: str, instruction: str) -> str:
        raise NotImplementedError

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        raise NotImplementedError

    def describe(self) -> dict:
        return {"provider": self.name, "sample_rate": self.sample_rate}


def extract_pcm_bytes(response: Any) -> bytes:
    """
    Pull the first inline audio payload out of a generate_content response.

    Returns b"" when the response carries no audio.
    """
    candidates = getattr(response, "candidates", None) or []
    for cand in candidates:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is None:
                continue
            data = getattr(inline_data, "data", None)
            if not data:
                continue
            if isinstance(data, bytes):
                return data
            if isinstance(data, str):
                return base64.b64decode(data)
    return b""


class GeminiSpeechModel(SpeechModel):
    """
    Gemini via the google-genai SDK.

    Text tasks go to `text_model` with the audio attached as an inline
    part; speech goes to `speech_model` with AUDIO response modality and
    a prebuilt voice. The async client (client.aio) is used throughout
    so upstream calls never block the event loop.
    """
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        text_model: str = "gemini-2.5-flash",
        speech_model: str = "gemini-2.5-flash-preview-tts",
        sample_rate: int = 24000,
        client: Optional[genai.Client] = None,
    ):
        super().__init__(sample_rate=sample_rate)
        self.text_model = text_model
        self.speech_model = speech_model
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def transcribe_or_translate(self, audio: bytes, mime_type: str, instruction: str) -> str:
        part = types.Part.from_bytes(data=audio, mime_type=mime_type)
        debug(self.logger, "text_request", model=self.text_model, bytes=len(audio), mime_type=mime_type)
        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=[part, instruction],
        )
        return (getattr(response, "text", None) or "").strip()

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        debug(self.logger, "speech_request", model=self.speech_model, voice=voice_id, chars=len(text))
        response = await self.client.aio.models.generate_content(
            model=self.speech_model,
            contents=text,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_id),
                    ),
                ),
            ),
        )
        return extract_pcm_bytes(response)

    def describe(self) -> dict:
        return {
            "provider": self.name,
            "sample_rate": self.sample_rate,
            "text_model": self.text_model,
            "speech_model": self.speech_model,
            "api_key_configured": bool(self._api_key),
        }


def get_speech_model(config: ModelConfig) -> SpeechModel:
    """
    Create the configured speech model.

    Raises:
        ValueError: If the provider is unknown.
    """
    if config.provider == "gemini":
        return GeminiSpeechModel(
            api_key=config.api_key,
            text_model=config.text_model,
            speech_model=config.speech_model,
            sample_rate=config.sample_rate,
        )
    raise ValueError(f"Unknown model provider: {config.provider}")
