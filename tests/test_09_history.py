"""Tests for per-identity generation history."""
from __future__ import annotations

import time

from voxai.services.history import HistoryStore


def _record(store, identity="a@example.com", text="hello", **kwargs):
    params = {"voice_label": "VoxAI Frank (Friend Style)", "wav": b"RIFF-audio", "cost": len(text),
              "mode": "direct"}
    params.update(kwargs)
    return store.record(identity, text=text, **params)


class TestHistoryStore:
    def test_record_fields(self):
        store = HistoryStore()
        before = int(time.time() * 1000)
        item = _record(store)
        assert len(item.id) == 9
        assert item.audio_url == f"/api/history/{item.id}/audio"
        assert item.created_at >= before
        assert item.charged is True
        assert item.to_dict()["audioUrl"] == item.audio_url
        assert set(item.to_dict()) == {"id", "text", "voice", "audioUrl", "createdAt", "cost", "mode", "charged"}

    def test_newest_first(self):
        store = HistoryStore()
        for text in ("one", "two", "three"):
            _record(store, text=text)
        assert [i.text for i in store.list("a@example.com")] == ["three", "two", "one"]

    def test_eviction_drops_audio(self):
        store = HistoryStore(max_items=2)
        first = _record(store, text="one")
        _record(store, text="two")
        _record(store, text="three")
        items = store.list("a@example.com")
        assert [i.text for i in items] == ["three", "two"]
        assert store.audio("a@example.com", first.id) is None
        assert store.stats()["items"] == 2

    def test_preview_truncated(self):
        store = HistoryStore(preview_chars=10)
        item = _record(store, text="x" * 25)
        assert item.text == "x" * 10 + "..."
        assert item.cost == 25

    def test_audio_scoped_to_identity(self):
        store = HistoryStore()
        item = _record(store, wav=b"mine")
        assert store.audio("a@example.com", item.id) == b"mine"
        assert store.audio("b@example.com", item.id) is None

    def test_unknown_identity(self):
        assert HistoryStore().list("nobody@example.com") == []

    def test_uncharged_flag(self):
        item = _record(HistoryStore(), charged=False)
        assert item.to_dict()["charged"] is False
