"""
Tests for the generation pipeline.

Tests cover:
- Mode dispatch (direct, convert, dub) and the instructions sent upstream
- State transitions for completed, failed and cancelled runs
- Empty transcription / synthesis handling
- Upstream error and quota mapping
- The synthesis gate
"""
from __future__ import annotations

import asyncio

import pytest

from conftest import SILENCE_PCM, FakeSpeechModel
from voxai.services.cancellation import CancellationToken
from voxai.services.errors import ErrorCode, InsufficientCreditsError
from voxai.tts.pipeline import (
    GenerationPipeline,
    GenerationRequest,
    Mode,
    PipelineOutcome,
    PipelineState,
    Upload,
)

S = PipelineState
CLIP = Upload(data=b"clip-bytes", mime_type="audio/mpeg")


@pytest.fixture
def pipeline(fake_model):
    return GenerationPipeline(fake_model, max_chars=100)


class TestDirectMode:
    def test_completed(self, pipeline, fake_model, run):
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="Hello", voice_id="Kore")))
        assert outcome.completed
        assert outcome.transitions == [S.IDLE, S.SYNTHESIZING, S.COMPLETED]
        assert outcome.text == "Hello"
        assert outcome.cost == 5
        assert outcome.pcm == SILENCE_PCM
        assert outcome.wav[:4] == b"RIFF"
        assert len(outcome.wav) == 44 + len(SILENCE_PCM)
        assert outcome.sample_rate == 24000
        assert fake_model.synth_calls == [("Hello", "Kore")]
        assert fake_model.text_calls == []
        assert set(outcome.timings) == {"synthesizing", "encoding"}

    def test_text_spoken_verbatim(self, pipeline, fake_model, run):
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="  Hi  ")))
        assert fake_model.synth_calls[0][0] == "  Hi  "
        assert outcome.cost == 6

    def test_blank_text_fails_without_upstream_call(self, pipeline, fake_model, run):
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="   ")))
        assert outcome.failed
        assert outcome.transitions == [S.IDLE, S.FAILED]
        assert outcome.error.code == ErrorCode.TEXT_REQUIRED
        assert fake_model.synth_calls == []

    def test_too_long(self, pipeline, run):
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="x" * 101)))
        assert outcome.error.code == ErrorCode.TEXT_TOO_LONG

    def test_empty_synthesis(self, pipeline, fake_model, run):
        fake_model.pcm = b""
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="Hello")))
        assert outcome.transitions == [S.IDLE, S.SYNTHESIZING, S.FAILED]
        assert outcome.error.code == ErrorCode.EMPTY_SYNTHESIS


class TestConvertAndDub:
    def test_convert(self, pipeline, fake_model, run):
        fake_model.transcript = "Transcribed words"
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.CONVERT, upload=CLIP)))
        assert outcome.completed
        assert outcome.transitions == [S.IDLE, S.PREPROCESSING, S.SYNTHESIZING, S.COMPLETED]
        assert outcome.text == "Transcribed words"
        assert outcome.cost == len("Transcribed words")
        audio, mime, instruction = fake_model.text_calls[0]
        assert (audio, mime) == (b"clip-bytes", "audio/mpeg")
        assert instruction.startswith("Transcribe")
        assert "preprocessing" in outcome.timings

    def test_dub_default_language(self, pipeline, fake_model, run):
        run(pipeline.run(GenerationRequest(mode=Mode.DUB, upload=CLIP)))
        assert "to Hindi" in fake_model.text_calls[0][2]

    def test_dub_target_language(self, pipeline, fake_model, run):
        fake_model.transcript = "Hola"
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DUB, upload=CLIP, target_language="Spanish")))
        assert "to Spanish" in fake_model.text_calls[0][2]
        assert fake_model.synth_calls[0][0] == "Hola"
        assert outcome.cost == 4

    def test_missing_upload(self, pipeline, fake_model, run):
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.CONVERT)))
        assert outcome.error.code == ErrorCode.UPLOAD_REQUIRED
        assert fake_model.text_calls == []

    def test_empty_upload(self, pipeline, run):
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DUB, upload=Upload(data=b""))))
        assert outcome.error.code == ErrorCode.UPLOAD_REQUIRED

    def test_empty_translation(self, pipeline, fake_model, run):
        fake_model.transcript = "  \n "
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DUB, upload=CLIP)))
        assert outcome.transitions == [S.IDLE, S.PREPROCESSING, S.FAILED]
        assert outcome.error.code == ErrorCode.EMPTY_TRANSCRIPTION
        assert fake_model.synth_calls == []

    def test_transcript_too_long(self, pipeline, fake_model, run):
        fake_model.transcript = "y" * 101
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.CONVERT, upload=CLIP)))
        assert outcome.error.code == ErrorCode.TEXT_TOO_LONG
        assert fake_model.synth_calls == []


class TestUpstreamErrors:
    """Upstream exceptions are normalized and never retried."""

    def test_quota(self, pipeline, fake_model, run):
        fake_model.synth_error = RuntimeError("429 RESOURCE_EXHAUSTED")
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="Hello")))
        assert outcome.error.code == ErrorCode.UPSTREAM_QUOTA_EXCEEDED
        assert len(fake_model.synth_calls) == 1

    def test_generic_failure(self, pipeline, fake_model, run):
        fake_model.text_error = ConnectionError("reset by peer")
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.CONVERT, upload=CLIP)))
        assert outcome.error.code == ErrorCode.UPSTREAM_FAILED
        assert outcome.error.details == {"stage": "preprocessing"}
        assert outcome.transitions == [S.IDLE, S.PREPROCESSING, S.FAILED]


class TestCancellation:
    def test_cancelled_before_start(self, pipeline, fake_model, run):
        token = CancellationToken()
        token.cancel()
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="Hello"), token=token))
        assert outcome.cancelled
        assert outcome.transitions == [S.IDLE, S.SYNTHESIZING, S.CANCELLED]
        assert outcome.wav == b""

    def test_cancelled_during_preprocessing(self, fake_model, run):
        token = CancellationToken()

        class SlowTranscriber(FakeSpeechModel):
            async def transcribe_or_translate(self, audio, mime_type, instruction):
                token.cancel()
                await asyncio.sleep(10)
                return "never"

        model = SlowTranscriber()
        outcome = run(GenerationPipeline(model).run(
            GenerationRequest(mode=Mode.CONVERT, upload=CLIP), token=token
        ))
        assert outcome.transitions == [S.IDLE, S.PREPROCESSING, S.CANCELLED]
        assert model.synth_calls == []

    def test_cancelled_during_synthesis(self, pipeline, fake_model, run):
        token = CancellationToken()

        async def hang(text, voice_id):
            token.cancel()
            await asyncio.sleep(10)

        fake_model.on_synthesize = hang
        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="Hello"), token=token))
        assert outcome.cancelled
        assert outcome.cost == 0


class TestGate:
    def test_gate_sees_resolved_text(self, pipeline, fake_model, run):
        seen = []

        async def gate(text):
            seen.append(text)

        fake_model.transcript = "Resolved"
        run(pipeline.run(GenerationRequest(mode=Mode.CONVERT, upload=CLIP), gate=gate))
        assert seen == ["Resolved"]

    def test_gate_failure_stops_synthesis(self, pipeline, fake_model, run):
        async def gate(text):
            raise InsufficientCreditsError(required=len(text), available=0)

        outcome = run(pipeline.run(GenerationRequest(mode=Mode.DIRECT, text="Hello"), gate=gate))
        assert outcome.error.code == ErrorCode.INSUFFICIENT_CREDITS
        assert outcome.transitions == [S.IDLE, S.FAILED]
        assert fake_model.synth_calls == []


class TestTransitions:
    def test_illegal_transition(self):
        outcome = PipelineOutcome(mode=Mode.DIRECT)
        with pytest.raises(RuntimeError):
            outcome.transition(S.COMPLETED)

    def test_terminal_states_are_final(self):
        outcome = PipelineOutcome(mode=Mode.DIRECT)
        outcome.transition(S.FAILED)
        with pytest.raises(RuntimeError):
            outcome.transition(S.SYNTHESIZING)
