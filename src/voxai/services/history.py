"""
Generation history.

Each identity has a newest-first, bounded list of HistoryItems. The WAV
audio an item references is kept alongside it and dropped when the item
falls off the end of the list. Items are created exactly once per
committed generation and never modified.
"""
from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

from voxai.core.logging import debug, get_logger
from voxai.utils.text import preview

_LOG = get_logger("voxai.history")


@dataclass(frozen=True)
class HistoryItem:
    """
    One committed generation.

    Attributes:
        id: Short random id.
        text: Preview of the spoken text.
        voice: Display name of the voice used.
        audio_url: Where the stored WAV can be fetched.
        created_at: Epoch milliseconds.
        cost: Credits the generation cost.
        mode: direct, convert or dub.
        charged: False if the result was delivered without a deduction.
    """
    id: str
    text: str
    voice: str
    audio_url: str
    created_at: int
    cost: int
    mode: str
    charged: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "voice": self.voice,
            "audioUrl": self.audio_url,
            "createdAt": self.created_at,
            "cost": self.cost,
            "mode": self.mode,
            "charged": self.charged,
        }


class HistoryStore:
    """
    Thread-safe, per-identity history with audio.

    Args:
        max_items: Items kept per identity; older ones are evicted.
        preview_chars: Characters of spoken text kept in the preview.
    """

    def __init__(self, max_items: int = 50, preview_chars: int = 80):
        self._max_items = max_items
        self._preview_chars = preview_chars
        self._items: Dict[str, Deque[HistoryItem]] = {}
        self._audio: Dict[Tuple[str, str], bytes] = {}
        self._lock = threading.Lock()

    def record(
        self,
        identity: str,
        text: str,
        voice_label: str,
        wav: bytes,
        cost: int,
        mode: str,
        charged: bool = True,
    ) -> HistoryItem:
        """Append a new item for identity and store its audio."""
        item_id = uuid.uuid4().hex[:9]
        item = HistoryItem(
            id=item_id,
            text=preview(text, self._preview_chars),
            voice=voice_label,
            audio_url=f"/api/history/{item_id}/audio",
            created_at=int(time.time() * 1000),
            cost=cost,
            mode=mode,
            charged=charged,
        )

        with self._lock:
            items = self._items.setdefault(identity, deque())
            items.appendleft(item)
            self._audio[(identity, item_id)] = wav
            while len(items) > self._max_items:
                evicted = items.pop()
                self._audio.pop((identity, evicted.id), None)

        debug(_LOG, "recorded", identity=identity, item=item_id, cost=cost)
        return item

    def list(self, identity: str) -> List[HistoryItem]:
        """Items for identity, newest first."""
        with self._lock:
            return list(self._items.get(identity, ()))

    def audio(self, identity: str, item_id: str) -> Optional[bytes]:
        """Stored WAV for one of identity's items, or None."""
        with self._lock:
            return self._audio.get((identity, item_id))

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "identities": len(self._items),
                "items": sum(len(v) for v in self._items.values()),
                "audio_bytes": sum(len(v) for v in self._audio.values()),
            }
