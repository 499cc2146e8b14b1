"""
Timing utilities.

The pipeline wraps each stage (preprocessing, synthesizing, encoding) in
a timeit block and reports the collected Timings with its outcome.

Example Usage:
    with timeit("synthesizing", meta={"chars": len(text)}) as t:
        pcm = await model.synthesize(text, voice_id)
    print(f"Took {t.timing.seconds:.3f}s")

Uses time.perf_counter() for high-resolution timing.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed (e.g., "synthesizing").
        seconds: Duration in seconds.
        meta: Optional metadata.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The timing is recorded even if the block raises, so a failed stage
    still reports how long it ran. Works inside async functions as long
    as the awaits happen inside the block.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)
