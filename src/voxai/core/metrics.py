"""
Prometheus metrics for voxai.

Metrics Exposed:
    voxai_generation_requests_total       - Generations by mode and final status
    voxai_generation_duration_seconds     - Histogram of generation latency by mode
    voxai_credits_deducted_total          - Credits taken from metered accounts
    voxai_uncharged_deliveries_total      - Results delivered after a failed deduction
    voxai_cancellations_total             - Cancel requests that hit an in-flight run
    voxai_upstream_errors_total           - Upstream model failures by kind
    voxai_audio_bytes_total               - WAV bytes returned to callers
    voxai_preview_cache_total             - Voice preview cache lookups by result
    voxai_accounts                        - Accounts currently held by the ledger

Usage:
    from voxai.core.metrics import metrics

    metrics.record_generation("direct", "completed", duration=0.8, audio_bytes=48044)
    metrics.record_credits(500)
    content, content_type = metrics.get_metrics_response()

Each VoxMetrics instance owns its own CollectorRegistry, so tests can
create throwaway instances without colliding with the global one.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class VoxMetrics:
    """
    Metric collection for the generation service.

    All Prometheus metric operations are thread-safe.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._generations_total = Counter(
            "voxai_generation_requests_total",
            "Total generation requests",
            ["mode", "status"],
            registry=self._registry,
        )
        self._generation_duration = Histogram(
            "voxai_generation_duration_seconds",
            "Generation duration in seconds",
            ["mode"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._credits_deducted = Counter(
            "voxai_credits_deducted_total",
            "Total credits deducted from metered accounts",
            registry=self._registry,
        )
        self._uncharged_deliveries = Counter(
            "voxai_uncharged_deliveries_total",
            "Results delivered without a successful deduction",
            registry=self._registry,
        )
        self._cancellations = Counter(
            "voxai_cancellations_total",
            "Cancel requests that found an in-flight generation",
            registry=self._registry,
        )
        self._upstream_errors = Counter(
            "voxai_upstream_errors_total",
            "Upstream model failures",
            ["kind"],
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "voxai_audio_bytes_total",
            "Total WAV bytes returned",
            registry=self._registry,
        )
        self._preview_cache = Counter(
            "voxai_preview_cache_total",
            "Voice preview cache lookups",
            ["result"],
            registry=self._registry,
        )
        self._accounts = Gauge(
            "voxai_accounts",
            "Accounts held by the ledger",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_generation(
        self,
        mode: str,
        status: str,
        duration: float,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a finished generation.

        Args:
            mode: "direct", "convert" or "dub".
            status: "completed", "failed" or "cancelled".
            duration: Wall time in seconds.
            audio_bytes: Size of the returned WAV.
        """
        self._generations_total.labels(mode=mode, status=status).inc()
        self._generation_duration.labels(mode=mode).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_credits(self, amount: int) -> None:
        if amount > 0:
            self._credits_deducted.inc(amount)

    def record_uncharged_delivery(self) -> None:
        self._uncharged_deliveries.inc()

    def record_cancellation(self) -> None:
        self._cancellations.inc()

    def record_upstream_error(self, kind: str) -> None:
        self._upstream_errors.labels(kind=kind).inc()

    def record_preview_cache(self, result: str) -> None:
        self._preview_cache.labels(result=result).inc()

    def set_accounts(self, count: int) -> None:
        self._accounts.set(count)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (content, content_type) for the /metrics endpoint."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global instance: from voxai.core.metrics import metrics
metrics = VoxMetrics()
