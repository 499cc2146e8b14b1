"""
Generation Pipeline.

Drives one generation through its states:

    idle -> preprocessing -> synthesizing -> completed
      |          |                |
      +----------+----------------+--> failed
                 |                |
                 +----------------+--> cancelled

    - direct skips preprocessing and speaks the caller's text verbatim
    - convert transcribes the upload, then speaks the transcript
    - dub translates the upload into the target language, then speaks it

Modes are dispatched through ModeHandler; each one only knows how to
resolve the text to speak. Synthesis, encoding and costing are shared.

The pipeline never raises for expected failures. run() returns a
PipelineOutcome whose state tells the caller what happened and whose
error carries the VoxError for failed runs. Every state change is
recorded in outcome.transitions and every stage is timed.

Upstream calls are raced against a CancellationToken. Quota and rate
limit signals become UpstreamQuotaExceeded; any other upstream
exception becomes UpstreamError. Neither is retried.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from voxai.core.logging import get_logger, info, verbose, warn
from voxai.core.metrics import metrics
from voxai.services.cancellation import CancellationToken
from voxai.services.errors import (
    EmptySynthesisError,
    EmptyTranscriptionError,
    MissingUploadError,
    UpstreamError,
    UpstreamQuotaExceeded,
    VoxError,
    is_quota_error,
)
from voxai.services.validators import check_length, validate_text
from voxai.tts.model import SpeechModel
from voxai.utils.audio import wav_bytes_from_pcm16
from voxai.utils.text import char_cost
from voxai.utils.timeit import timeit

_LOG = get_logger("voxai.pipeline")

TRANSCRIBE_INSTRUCTION = (
    "Transcribe the speech in this audio exactly. Return ONLY the transcription, nothing else."
)
TRANSLATE_INSTRUCTION = (
    "Translate the speech in this audio to {language}. Return ONLY the translated text, nothing else."
)


class Mode(str, Enum):
    DIRECT = "direct"
    CONVERT = "convert"
    DUB = "dub"


class PipelineState(str, Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_ALLOWED = {
    PipelineState.IDLE: {PipelineState.PREPROCESSING, PipelineState.SYNTHESIZING, PipelineState.FAILED},
    PipelineState.PREPROCESSING: {PipelineState.SYNTHESIZING, PipelineState.FAILED, PipelineState.CANCELLED},
    PipelineState.SYNTHESIZING: {PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.CANCELLED},
    PipelineState.COMPLETED: set(),
    PipelineState.FAILED: set(),
    PipelineState.CANCELLED: set(),
}


@dataclass(frozen=True)
class Upload:
    data: bytes
    mime_type: str = "audio/wav"


@dataclass
class GenerationRequest:
    """
    One generation request.

    Attributes:
        mode: direct, convert or dub.
        text: Text to speak (direct mode).
        upload: Audio clip (convert and dub modes).
        voice_id: Prebuilt voice to speak with.
        target_language: Translation target (dub mode). None uses the default.
    """
    mode: Mode
    text: str = ""
    upload: Optional[Upload] = None
    voice_id: str = "Puck"
    target_language: Optional[str] = None


@dataclass
class PipelineOutcome:
    """
    Result of a pipeline run.

    For completed runs, text/pcm/wav/cost are set. For failed runs,
    error holds the VoxError. Cancelled runs carry neither.
    """
    mode: Mode
    state: PipelineState = PipelineState.IDLE
    text: str = ""
    pcm: bytes = b""
    wav: bytes = b""
    sample_rate: int = 0
    cost: int = 0
    error: Optional[VoxError] = None
    transitions: List[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return self.state is PipelineState.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.state is PipelineState.CANCELLED

    @property
    def failed(self) -> bool:
        return self.state is PipelineState.FAILED

    def transition(self, new_state: PipelineState) -> None:
        if new_state not in _ALLOWED[self.state]:
            raise RuntimeError(f"illegal pipeline transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.transitions.append(new_state)
        verbose(_LOG, "state", mode=self.mode.value, state=new_state.value)


# Called with the resolved text just before synthesizing; raises VoxError to stop the run.
SynthesisGate = Callable[[str], Awaitable[None]]


class ModeHandler:
    """Resolves the text a mode will speak."""
    mode: Mode
    needs_upload: bool = False

    async def resolve_text(
        self,
        pipeline: "GenerationPipeline",
        request: GenerationRequest,
        token: CancellationToken,
    ) -> Tuple[bool, str]:
        raise NotImplementedError


class DirectMode(ModeHandler):
    mode = Mode.DIRECT

    async def resolve_text(self, pipeline, request, token):
        return True, request.text


class ConvertMode(ModeHandler):
    mode = Mode.CONVERT
    needs_upload = True

    def instruction(self, pipeline: "GenerationPipeline", request: GenerationRequest) -> str:
        return TRANSCRIBE_INSTRUCTION

    async def resolve_text(self, pipeline, request, token):
        assert request.upload is not None
        won, text = await pipeline.call_upstream(
            "preprocessing",
            pipeline.model.transcribe_or_translate(
                request.upload.data,
                request.upload.mime_type,
                self.instruction(pipeline, request),
            ),
            token,
        )
        return won, (text or "")


class DubMode(ConvertMode):
    mode = Mode.DUB

    def instruction(self, pipeline, request):
        language = request.target_language or pipeline.default_target_language
        return TRANSLATE_INSTRUCTION.format(language=language)


MODE_HANDLERS: Dict[Mode, ModeHandler] = {
    Mode.DIRECT: DirectMode(),
    Mode.CONVERT: ConvertMode(),
    Mode.DUB: DubMode(),
}


class GenerationPipeline:
    """
    Stateless driver; one instance serves all requests.

    Args:
        model: Upstream speech/language model.
        max_chars: Ceiling on the text that may be spoken.
        default_target_language: Dub target when the request names none.
    """

    def __init__(self, model: SpeechModel, max_chars: int = 20000, default_target_language: str = "Hindi"):
        self.model = model
        self.max_chars = max_chars
        self.default_target_language = default_target_language

    def check_preconditions(self, request: GenerationRequest) -> None:
        """
        Validate a request before any upstream call.

        Raises:
            MissingUploadError: convert/dub without upload bytes.
            EmptyTextError: direct with blank text.
            TextTooLongError: direct text over the ceiling.
        """
        handler = MODE_HANDLERS[request.mode]
        if handler.needs_upload:
            if request.upload is None or not request.upload.data:
                raise MissingUploadError(request.mode.value)
        else:
            validate_text(request.text, self.max_chars)

    async def call_upstream(self, stage: str, awaitable: Awaitable, token: CancellationToken) -> Tuple[bool, object]:
        """Race an upstream call against token, normalizing its failures."""
        try:
            return await token.race(awaitable)
        except VoxError:
            raise
        except Exception as e:
            if is_quota_error(e):
                metrics.record_upstream_error("quota")
                warn(_LOG, "upstream_quota", stage=stage, error=str(e)[:200])
                raise UpstreamQuotaExceeded(details={"stage": stage})
            metrics.record_upstream_error(stage)
            warn(_LOG, "upstream_failed", stage=stage, error=f"{type(e).__name__}: {e}"[:200])
            raise UpstreamError(f"Speech model request failed during {stage}", {"stage": stage})

    async def run(
        self,
        request: GenerationRequest,
        token: Optional[CancellationToken] = None,
        gate: Optional[SynthesisGate] = None,
    ) -> PipelineOutcome:
        """
        Run one generation to a terminal state.

        Args:
            request: What to generate.
            token: Cancellation token; a private one is used if omitted.
            gate: Optional coroutine run with the resolved text right
                before synthesizing. A VoxError from it fails the run.

        Returns:
            PipelineOutcome in completed, failed or cancelled state.
        """
        token = token or CancellationToken()
        outcome = PipelineOutcome(mode=request.mode)
        handler = MODE_HANDLERS[request.mode]

        try:
            self.check_preconditions(request)
        except VoxError as e:
            outcome.error = e
            outcome.transition(PipelineState.FAILED)
            return outcome

        try:
            if handler.needs_upload:
                outcome.transition(PipelineState.PREPROCESSING)
                with timeit("preprocessing") as t:
                    won, text = await handler.resolve_text(self, request, token)
                outcome.timings["preprocessing"] = t.timing.seconds if t.timing else -1.0
                if not won:
                    outcome.transition(PipelineState.CANCELLED)
                    return outcome
                if not text.strip():
                    raise EmptyTranscriptionError(request.mode.value)
                check_length(text, self.max_chars)
            else:
                _, text = await handler.resolve_text(self, request, token)

            if gate is not None:
                await gate(text)

            outcome.transition(PipelineState.SYNTHESIZING)
            with timeit("synthesizing", meta={"chars": len(text)}) as t:
                won, pcm = await self.call_upstream(
                    "synthesizing", self.model.synthesize(text, request.voice_id), token
                )
            outcome.timings["synthesizing"] = t.timing.seconds if t.timing else -1.0
            if not won:
                outcome.transition(PipelineState.CANCELLED)
                return outcome
            if not pcm:
                raise EmptySynthesisError()

            with timeit("encoding") as t:
                wav = wav_bytes_from_pcm16(pcm, self.model.sample_rate)
            outcome.timings["encoding"] = t.timing.seconds if t.timing else -1.0

        except VoxError as e:
            outcome.error = e
            outcome.transition(PipelineState.FAILED)
            info(_LOG, "failed", mode=request.mode.value, error=e.code)
            return outcome

        outcome.text = text
        outcome.pcm = pcm
        outcome.wav = wav
        outcome.sample_rate = self.model.sample_rate
        outcome.cost = char_cost(text)
        outcome.transition(PipelineState.COMPLETED)
        return outcome
