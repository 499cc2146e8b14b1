"""Shared fixtures: a scripted speech model and config/orchestrator factories."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from voxai.core.config import Settings, VoxServiceConfig
from voxai.services.orchestrator import GenerationOrchestrator, build_orchestrator
from voxai.tts.model import SpeechModel

# 0.01s of silence at 24 kHz
SILENCE_PCM = b"\x00\x00" * 240

_ENV_VARS = (
    "VOXAI_SETTINGS",
    "VOXAI_PRIVILEGED_IDENTITIES",
    "VOXAI_ALLOW_PREVIEW",
    "VOXAI_JWT_SECRET",
    "VOXAI_MODEL_PROVIDER",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GEMINI_API_KEY",
)


class FakeSpeechModel(SpeechModel):
    """
    Scripted SpeechModel.

    transcript is returned by every transcribe/translate call and pcm by
    every synthesize call. Set text_error/synth_error to raise instead,
    and on_synthesize to an async hook that runs before synthesis returns.
    """
    name = "fake"

    def __init__(self, transcript: str = "Hello from the clip", pcm: bytes = SILENCE_PCM,
                 sample_rate: int = 24000):
        super().__init__(sample_rate=sample_rate)
        self.transcript = transcript
        self.pcm = pcm
        self.text_error: Optional[BaseException] = None
        self.synth_error: Optional[BaseException] = None
        self.on_synthesize = None
        self.text_calls: List[Tuple[bytes, str, str]] = []
        self.synth_calls: List[Tuple[str, str]] = []

    async def transcribe_or_translate(self, audio: bytes, mime_type: str, instruction: str) -> str:
        self.text_calls.append((audio, mime_type, instruction))
        if self.text_error is not None:
            raise self.text_error
        return self.transcript

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        self.synth_calls.append((text, voice_id))
        if self.on_synthesize is not None:
            await self.on_synthesize(text, voice_id)
        if self.synth_error is not None:
            raise self.synth_error
        return self.pcm


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host credentials and overrides out of the config under test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def fake_model() -> FakeSpeechModel:
    return FakeSpeechModel()


@pytest.fixture
def make_config():
    """Factory: make_config({"billing": {...}}) -> validated VoxServiceConfig."""
    def _make(raw: Optional[Dict[str, Any]] = None) -> VoxServiceConfig:
        base: Dict[str, Any] = {"auth": {"jwt_secret": "test-secret-key-that-is-long-enough-for-hs256"}}
        for section, values in (raw or {}).items():
            base.setdefault(section, {}).update(values)
        return Settings(raw=base).get_service_config()
    return _make


@pytest.fixture
def make_orchestrator(make_config, fake_model):
    """Factory: make_orchestrator(raw_settings, model=None) -> GenerationOrchestrator."""
    def _make(raw: Optional[Dict[str, Any]] = None, model: Optional[SpeechModel] = None) -> GenerationOrchestrator:
        return build_orchestrator(make_config(raw), model=model or fake_model)
    return _make


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    def _run(coro):
        return asyncio.run(coro)
    return _run
