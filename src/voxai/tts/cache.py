"""
In-memory LRU cache with TTL for voice previews.

Every voice preview speaks the same fixed sentence, so the result only
depends on (voice, preview text, model). Caching it keeps repeated
previews from spending upstream quota.

    - LRU eviction when capacity is reached
    - TTL expiration checked on access
    - Thread-safe
    - hit/miss/expiration statistics

Example:
    >>> cache = TinyLRUCache(max_items=32, ttl_seconds=3600)
    >>> cache.set("Puck", CacheItem(wav_bytes=b"...", sample_rate=24000))
    >>> item = cache.get("Puck")
"""
from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Optional

from voxai.core.config import Defaults
from voxai.core.logging import debug, get_logger, verbose

_LOG = get_logger("voxai.cache")


@dataclass
class CacheItem:
    """
    A cached WAV.

    Attributes:
        wav_bytes: The WAV audio data.
        sample_rate: Audio sample rate.
        created_at: Unix timestamp when item was cached.
    """
    wav_bytes: bytes
    sample_rate: int
    created_at: float = field(default_factory=time.time)


def preview_key(voice_id: str, text: str, model: str) -> str:
    """Stable cache key for a voice preview."""
    raw = f"{model}\x00{voice_id}\x00{text}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


class TinyLRUCache:
    """
    Thread-safe LRU cache with TTL support.

    Attributes:
        max_items: Maximum number of items to store.
        ttl_seconds: Item lifetime in seconds (0 = no TTL).
    """

    def __init__(
        self,
        max_items: int = Defaults.PREVIEW_CACHE_MAX_ITEMS,
        ttl_seconds: int = Defaults.PREVIEW_CACHE_TTL_SECONDS,
    ):
        self.max_items = int(max_items)
        self.ttl_seconds = int(ttl_seconds)

        self._d: "OrderedDict[str, CacheItem]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._expirations = 0

    def get(self, key: str) -> Optional[CacheItem]:
        """Return the item for key, or None if missing or expired."""
        with self._lock:
            item = self._d.get(key)
            if item is None:
                self._misses += 1
                return None

            if self.ttl_seconds > 0:
                age = time.time() - item.created_at
                if age > self.ttl_seconds:
                    del self._d[key]
                    self._expirations += 1
                    self._misses += 1
                    verbose(_LOG, "expired", key=key[:8], age=round(age, 1))
                    return None

            self._d.move_to_end(key)
            self._hits += 1

        debug(_LOG, "hit", key=key[:8])
        return item

    def set(self, key: str, item: CacheItem) -> None:
        """Store item, evicting the least recently used entries when full."""
        with self._lock:
            self._d[key] = item
            self._d.move_to_end(key)
            while len(self._d) > self.max_items:
                self._d.popitem(last=False)

        debug(_LOG, "set", key=key[:8])

    def clear(self) -> int:
        with self._lock:
            count = len(self._d)
            self._d.clear()
            return count

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._d),
                "max_items": self.max_items,
                "ttl_seconds": self.ttl_seconds,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def __contains__(self, key: str) -> bool:
        """Membership without a TTL check."""
        with self._lock:
            return key in self._d
