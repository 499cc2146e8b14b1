"""
FastAPI dependency providers.

Hierarchy:
    get_settings()      - settings.yaml, loaded once
    get_config()        - validated VoxServiceConfig, built once
    get_orchestrator()  - process-wide GenerationOrchestrator singleton
    get_identity_provider() - Google OAuth client
    get_credentials()   - session / preview cookies of the current request

The orchestrator owns all in-memory state (ledger, history, caches), so
it must be a single instance per process. Tests replace it through
app.dependency_overrides or reset it with reset_orchestrator().
"""
from __future__ import annotations

import threading
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from voxai.core.config import Settings, VoxServiceConfig, load_settings, settings_path
from voxai.services.identity import GoogleIdentityProvider
from voxai.services.orchestrator import GenerationOrchestrator, build_orchestrator
from voxai.services.sessions import Credentials


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The path comes from VOXAI_SETTINGS (default config/settings.yaml).
    A missing file means all defaults.
    """
    return load_settings(settings_path(), missing_ok=True)


@lru_cache(maxsize=1)
def get_config() -> VoxServiceConfig:
    return get_settings().get_service_config()


_orchestrator: Optional[GenerationOrchestrator] = None
_orchestrator_lock = threading.Lock()


def get_orchestrator() -> GenerationOrchestrator:
    """Get or create the global orchestrator (thread-safe lazy singleton)."""
    global _orchestrator
    if _orchestrator is None:
        with _orchestrator_lock:
            if _orchestrator is None:
                _orchestrator = build_orchestrator(get_config())
    return _orchestrator


def reset_orchestrator() -> None:
    """Drop the global orchestrator and cached config. Used by tests."""
    global _orchestrator
    with _orchestrator_lock:
        _orchestrator = None
    get_config.cache_clear()
    get_settings.cache_clear()


def get_identity_provider(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GoogleIdentityProvider:
    config = orchestrator.config
    return GoogleIdentityProvider(
        client_id=config.auth.google_client_id,
        client_secret=config.auth.google_client_secret,
        auth_url=config.auth.google_auth_url,
        token_url=config.auth.google_token_url,
    )


def get_credentials(
    request: Request,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> Credentials:
    """Read session and preview cookies named by the orchestrator's config."""
    config = orchestrator.config
    return Credentials(
        session_token=request.cookies.get(config.auth.session_cookie) or None,
        preview=request.cookies.get(config.auth.preview_cookie) or None,
    )
