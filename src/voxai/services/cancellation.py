"""
Cooperative cancellation for in-flight generations.

A CancellationToken is handed to the pipeline for each run. Every
upstream call is raced against the token: whichever finishes first
wins. If the token wins, the local task awaiting the upstream call is
cancelled and its eventual result is discarded. The upstream service
itself is not notified.

The CancellationRegistry keeps one current token per browser session
key. Starting a new generation for a key cancels the previous token, so
at most one run per session can commit a result.

Usage:
    token = registry.begin(session_key)
    try:
        won, text = await token.race(model.transcribe_or_translate(...))
        if not won:
            return cancelled
    finally:
        registry.finish(session_key, token)
"""
from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from voxai.core.logging import debug, get_logger, info

_LOG = get_logger("voxai.cancellation")

T = TypeVar("T")


def _consume_result(task: "asyncio.Future[Any]") -> None:
    # Retrieve the outcome of an abandoned task so asyncio does not report it.
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            debug(_LOG, "abandoned_call_failed", error=type(exc).__name__)


class CancellationToken:
    """
    One-shot cancellation flag that async waiters can race against.

    cancel() is thread-safe and idempotent.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._lock = threading.Lock()
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, "asyncio.Future[None]"]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Cancel the token. Returns False if it was already cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            waiters = list(self._waiters)

        for loop, waiter in waiters:
            loop.call_soon_threadsafe(_wake, waiter)
        return True

    async def race(self, awaitable: Awaitable[T]) -> Tuple[bool, Optional[T]]:
        """
        Await `awaitable` unless the token is cancelled first.

        Returns:
            (True, value) if the awaitable finished first, or (False, None)
            if the token was cancelled. A token that is already cancelled
            never starts the call.

        Raises:
            Whatever the awaitable raises, if it finishes first.
        """
        if self._cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return False, None

        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(awaitable)
        waiter: "asyncio.Future[None]" = loop.create_future()

        with self._lock:
            already = self._cancelled
            if not already:
                self._waiters.append((loop, waiter))
        if already:
            _wake(waiter)

        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            with self._lock:
                self._waiters = [(lp, w) for lp, w in self._waiters if w is not waiter]
            if not waiter.done():
                waiter.cancel()
            if not task.done():
                task.cancel()
                task.add_done_callback(_consume_result)

        if task.done() and not task.cancelled() and not self._cancelled:
            return True, task.result()

        if task.done() and not task.cancelled():
            _consume_result(task)
        return False, None


def _wake(waiter: "asyncio.Future[None]") -> None:
    if not waiter.done():
        waiter.set_result(None)


class CancellationRegistry:
    """
    Current cancellation token per session key.

    Thread-safe. Keys are opaque strings; the orchestrator builds them
    from the owning identity plus the optional browser client id.
    """

    def __init__(self) -> None:
        self._tokens: Dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    def begin(self, session_key: str) -> CancellationToken:
        """Start a run: supersede any previous token and return a fresh one."""
        token = CancellationToken()
        with self._lock:
            previous = self._tokens.get(session_key)
            self._tokens[session_key] = token

        if previous is not None and previous.cancel():
            info(_LOG, "superseded", session=session_key)
        return token

    def cancel(self, session_key: str) -> bool:
        """Cancel the current run for session_key. Returns True if one existed."""
        with self._lock:
            token = self._tokens.pop(session_key, None)
        if token is None:
            return False
        cancelled = token.cancel()
        if cancelled:
            info(_LOG, "cancel_requested", session=session_key)
        return cancelled

    def finish(self, session_key: str, token: CancellationToken) -> None:
        """Forget token if it is still the current one for session_key."""
        with self._lock:
            if self._tokens.get(session_key) is token:
                del self._tokens[session_key]

    def active(self) -> int:
        with self._lock:
            return len(self._tokens)
