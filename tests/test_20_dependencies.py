"""Tests for FastAPI dependency providers."""
from __future__ import annotations

import pytest

from voxai.api import dependencies
from voxai.tts.model import GeminiSpeechModel


@pytest.fixture
def fresh_dependencies(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("billing:\n  starting_balance: 77\n", encoding="utf-8")
    monkeypatch.setenv("VOXAI_SETTINGS", str(path))
    dependencies.reset_orchestrator()
    yield
    dependencies.reset_orchestrator()


class TestOrchestratorSingleton:
    def test_singleton(self, fresh_dependencies):
        first = dependencies.get_orchestrator()
        assert dependencies.get_orchestrator() is first
        assert first.config.billing.starting_balance == 77
        assert isinstance(first.model, GeminiSpeechModel)

    def test_reset(self, fresh_dependencies):
        first = dependencies.get_orchestrator()
        dependencies.reset_orchestrator()
        assert dependencies.get_orchestrator() is not first

    def test_identity_provider_from_config(self, fresh_dependencies, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "cid")
        dependencies.reset_orchestrator()
        provider = dependencies.get_identity_provider(dependencies.get_orchestrator())
        assert provider.configured
        assert provider.client_id == "cid"
