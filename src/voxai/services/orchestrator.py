"""
Generation Session Orchestrator.

Binds the session resolver, credit ledger, pipeline, cancellation
registry and history store into one request lifecycle:

    resolve session -> resolve account -> validate -> check credits
        -> run pipeline -> (cancelled? stop) -> deduct -> record history

Credit checks:
    - direct: the cost (one credit per character) is known up front and
      checked before any upstream call
    - convert/dub: the cost is only known once the upload has been
      transcribed or translated, so the check runs as the pipeline's
      synthesis gate

Commit:
    Deduction and the history append happen only after synthesis has
    completed and only if the run was not cancelled. If the deduction
    then fails because the balance was drained concurrently, the
    billing.post_deduct_failure policy decides: "deliver" returns the
    audio uncharged, "discard" drops it and raises.

Example:
    >>> orchestrator = build_orchestrator(config, model=my_model)
    >>> outcome = await orchestrator.generate(
    ...     Credentials(preview="a@example.com"),
    ...     GenerationRequest(mode=Mode.DIRECT, text="Hello"),
    ... )
    >>> outcome.result.account.balance
    19995
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from voxai.core.config import VoxServiceConfig
from voxai.core.logging import get_logger, info, success, verbose, warn
from voxai.core.metrics import metrics
from voxai.services.cancellation import CancellationRegistry, CancellationToken
from voxai.services.errors import EmptySynthesisError, InsufficientCreditsError, VoxError
from voxai.services.history import HistoryItem, HistoryStore
from voxai.services.ledger import Account, CreditLedger
from voxai.services.sessions import Credentials, SessionResolver
from voxai.services.validators import validate_amount
from voxai.tts.cache import CacheItem, TinyLRUCache, preview_key
from voxai.tts.model import SpeechModel, get_speech_model
from voxai.tts.pipeline import GenerationPipeline, GenerationRequest, Mode, PipelineState
from voxai.tts.voices import get_voice
from voxai.utils.audio import pcm16_duration_seconds, wav_bytes_from_pcm16
from voxai.utils.text import char_cost, preview

_LOG = get_logger("voxai.orchestrator")


@dataclass
class GenerationResult:
    """
    A committed generation.

    Attributes:
        mode: Generation mode that produced it.
        voice_id: Prebuilt voice used for synthesis.
        text: The text actually spoken.
        wav: WAV container bytes.
        sample_rate: Sample rate of the audio.
        cost: Credits the generation cost.
        charged: False if delivered without a deduction.
        account: Account snapshot after the deduction.
        history_item: The history entry created for it.
        timings: Seconds spent per pipeline stage.
    """
    mode: Mode
    voice_id: str
    text: str
    wav: bytes
    sample_rate: int
    cost: int
    charged: bool
    account: Account
    history_item: HistoryItem
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        return pcm16_duration_seconds(max(len(self.wav) - 44, 0), self.sample_rate)


@dataclass
class GenerationOutcome:
    """Either a committed result or a cancellation."""
    state: PipelineState
    result: Optional[GenerationResult] = None
    transitions: List[PipelineState] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.state is PipelineState.CANCELLED


class GenerationOrchestrator:
    """
    One instance per process; safe for concurrent requests.

    Args:
        config: Validated service configuration.
        sessions: Session resolver (owns the ledger).
        pipeline: Generation pipeline (owns the model).
        history: History store.
        cancellations: Cancellation registry.
        preview_cache: Cache for voice previews.
    """

    def __init__(
        self,
        config: VoxServiceConfig,
        sessions: SessionResolver,
        pipeline: GenerationPipeline,
        history: HistoryStore,
        cancellations: CancellationRegistry,
        preview_cache: TinyLRUCache,
    ):
        self.config = config
        self.sessions = sessions
        self.pipeline = pipeline
        self.history = history
        self.cancellations = cancellations
        self.preview_cache = preview_cache

    @property
    def ledger(self) -> CreditLedger:
        return self.sessions.ledger

    @property
    def model(self) -> SpeechModel:
        return self.pipeline.model

    def account(self, credentials: Credentials) -> Account:
        """Current account for credentials, created on first sight."""
        account = self.sessions.resolve_account(credentials)
        metrics.set_accounts(len(self.ledger))
        return account

    def deduct(self, credentials: Credentials, amount: int) -> Account:
        """Manually deduct amount from the caller's balance."""
        amount = validate_amount(amount)
        identity = self.sessions.resolve_identity(credentials)
        self.ledger.resolve(identity)
        account = self.ledger.check_and_deduct(identity, amount)
        if not account.unlimited:
            metrics.record_credits(amount)
        return account

    @staticmethod
    def cancel_key(identity: str, session_key: Optional[str] = None) -> str:
        """Registry key for a run: always scoped to the identity that owns it."""
        return f"{len(identity)}:{identity}:{session_key or ''}"

    def cancel(self, credentials: Credentials, session_key: Optional[str] = None) -> bool:
        """Cancel the caller's in-flight generation for session_key, if any."""
        identity = self.sessions.resolve_identity(credentials)
        return self.cancellations.cancel(self.cancel_key(identity, session_key))

    def history_for(self, credentials: Credentials) -> List[HistoryItem]:
        identity = self.sessions.resolve_identity(credentials)
        return self.history.list(identity)

    def history_audio(self, credentials: Credentials, item_id: str) -> Optional[bytes]:
        identity = self.sessions.resolve_identity(credentials)
        return self.history.audio(identity, item_id)

    async def generate(
        self,
        credentials: Credentials,
        request: GenerationRequest,
        session_key: Optional[str] = None,
    ) -> GenerationOutcome:
        """
        Run one generation end to end.

        Args:
            credentials: Caller credentials.
            request: What to generate.
            session_key: Browser session key for cancellation, scoped to
                the caller's identity; defaults to the identity alone.

        Returns:
            GenerationOutcome; cancelled runs carry no result.

        Raises:
            VoxError: Authentication, validation, credit and upstream
                failures (see services/errors.py).
        """
        identity = self.sessions.resolve_identity(credentials)
        account = self.ledger.resolve(identity)
        metrics.set_accounts(len(self.ledger))

        self.pipeline.check_preconditions(request)
        voice = get_voice(request.voice_id)

        gate = None
        if request.mode is Mode.DIRECT:
            cost = char_cost(request.text)
            if not account.can_afford(cost):
                warn(_LOG, "precheck_insufficient", identity=identity, required=cost, available=account.balance)
                raise InsufficientCreditsError(required=cost, available=account.balance)
        else:
            async def gate(text: str) -> None:
                current = self.ledger.get(identity) or account
                cost = char_cost(text)
                if not current.can_afford(cost):
                    warn(_LOG, "deferred_check_insufficient", identity=identity, required=cost,
                         available=current.balance)
                    raise InsufficientCreditsError(required=cost, available=current.balance)

        key = self.cancel_key(identity, session_key)
        token = self.cancellations.begin(key)
        info(_LOG, "generation_started", identity=identity, mode=request.mode.value, voice=voice.id,
             chars=len(request.text), text=preview(request.text, self.config.logging.text_preview_chars))

        t0 = time.perf_counter()
        try:
            outcome = await self.pipeline.run(request, token=token, gate=gate)
        finally:
            self.cancellations.finish(key, token)
        duration = time.perf_counter() - t0

        if outcome.failed:
            metrics.record_generation(request.mode.value, "failed", duration)
            assert outcome.error is not None
            raise outcome.error

        if outcome.cancelled or token.cancelled:
            metrics.record_generation(request.mode.value, "cancelled", duration)
            metrics.record_cancellation()
            info(_LOG, "generation_cancelled", identity=identity, mode=request.mode.value,
                 state=outcome.state.value)
            return GenerationOutcome(state=PipelineState.CANCELLED, transitions=list(outcome.transitions))

        return self._commit(identity, request, outcome, voice.name, duration)

    def _commit(self, identity, request, outcome, voice_label, duration) -> GenerationOutcome:
        # No awaits from here on: a cancel arriving now cannot interleave with the commit.
        charged = True
        try:
            account = self.ledger.check_and_deduct(identity, outcome.cost)
            if not account.unlimited:
                metrics.record_credits(outcome.cost)
        except InsufficientCreditsError as e:
            if self.config.billing.post_deduct_failure == "discard":
                metrics.record_generation(request.mode.value, "failed", duration)
                warn(_LOG, "result_discarded", identity=identity, required=e.required, available=e.available)
                raise
            charged = False
            account = self.ledger.get(identity) or self.ledger.resolve(identity)
            metrics.record_uncharged_delivery()
            warn(_LOG, "delivered_uncharged", identity=identity, cost=outcome.cost, balance=account.balance)

        item = self.history.record(
            identity,
            text=outcome.text,
            voice_label=voice_label,
            wav=outcome.wav,
            cost=outcome.cost,
            mode=request.mode.value,
            charged=charged,
        )

        metrics.record_generation(request.mode.value, "completed", duration, audio_bytes=len(outcome.wav))
        success(_LOG, "generation_completed", identity=identity, mode=request.mode.value, cost=outcome.cost,
                balance="unlimited" if account.unlimited else account.balance, seconds=round(duration, 3))
        verbose(_LOG, "stage_timings", **{k: round(v, 4) for k, v in outcome.timings.items()})

        result = GenerationResult(
            mode=request.mode,
            voice_id=request.voice_id,
            text=outcome.text,
            wav=outcome.wav,
            sample_rate=outcome.sample_rate,
            cost=outcome.cost,
            charged=charged,
            account=account,
            history_item=item,
            timings=dict(outcome.timings),
        )
        return GenerationOutcome(state=PipelineState.COMPLETED, result=result,
                                 transitions=list(outcome.transitions))

    async def preview_voice(self, credentials: Credentials, voice_id: str) -> bytes:
        """
        WAV of the voice speaking the preview sentence.

        Requires a valid session but is not metered. Results are cached.
        """
        self.sessions.resolve_identity(credentials)
        voice = get_voice(voice_id)
        text = self.config.preview.text
        key = preview_key(voice.id, text, self.model.name)

        cached = self.preview_cache.get(key)
        if cached is not None:
            metrics.record_preview_cache("hit")
            return cached.wav_bytes
        metrics.record_preview_cache("miss")

        _, pcm = await self.pipeline.call_upstream(
            "preview", self.model.synthesize(text, voice.id), CancellationToken()
        )
        if not pcm:
            raise EmptySynthesisError()

        wav = wav_bytes_from_pcm16(pcm, self.model.sample_rate)
        self.preview_cache.set(key, CacheItem(wav_bytes=wav, sample_rate=self.model.sample_rate))
        info(_LOG, "preview_synthesized", voice=voice.id, bytes=len(wav))
        return wav

    def stats(self) -> Dict[str, Any]:
        return {
            "ledger": self.ledger.stats(),
            "history": self.history.stats(),
            "preview_cache": self.preview_cache.stats(),
            "in_flight": self.cancellations.active(),
        }


def build_orchestrator(config: VoxServiceConfig, model: Optional[SpeechModel] = None) -> GenerationOrchestrator:
    """
    Wire up an orchestrator from configuration.

    Args:
        config: Validated configuration.
        model: Speech model to use; built from config.model if omitted.
    """
    if config.auth.jwt_secret == "super-secret-key-for-dev":
        warn(_LOG, "dev_jwt_secret", hint="set VOXAI_JWT_SECRET in production")

    ledger = CreditLedger(
        starting_balance=config.billing.starting_balance,
        privileged_identities=config.billing.privileged_identities,
    )
    sessions = SessionResolver(
        ledger,
        secret=config.auth.jwt_secret,
        algorithm=config.auth.jwt_algorithm,
        session_days=config.auth.session_days,
        allow_preview=config.auth.allow_preview,
    )
    pipeline = GenerationPipeline(
        model or get_speech_model(config.model),
        max_chars=config.billing.max_chars,
        default_target_language=config.model.default_target_language,
    )
    return GenerationOrchestrator(
        config=config,
        sessions=sessions,
        pipeline=pipeline,
        history=HistoryStore(max_items=config.history.max_items, preview_chars=config.history.preview_chars),
        cancellations=CancellationRegistry(),
        preview_cache=TinyLRUCache(
            max_items=config.preview.cache_max_items,
            ttl_seconds=config.preview.cache_ttl_seconds,
        ),
    )
