"""
voxai: metered text-to-speech, voice conversion and dubbing service.

A user submits text or an audio clip and receives synthesized speech.
Every generation is charged one credit per spoken character against the
caller's account, and an in-flight generation can be cancelled.

Generation Modes:
    - direct: speak the submitted text
    - convert: transcribe an uploaded clip, then speak the transcript
    - dub: translate an uploaded clip, then speak the translation

Example Usage:
    >>> import asyncio
    >>> from voxai.core.config import Settings
    >>> from voxai.services.orchestrator import build_orchestrator
    >>> from voxai.services.sessions import Credentials
    >>> from voxai.tts.pipeline import GenerationRequest, Mode
    >>>
    >>> orchestrator = build_orchestrator(Settings(raw={}).get_service_config())
    >>> outcome = asyncio.run(orchestrator.generate(
    ...     Credentials(preview="me@example.com"),
    ...     GenerationRequest(mode=Mode.DIRECT, text="Hello there"),
    ... ))
    >>> outcome.result.account.balance
    19989
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
