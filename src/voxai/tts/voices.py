"""
Prebuilt voice catalog.

The speech model ships a fixed set of prebuilt voices; this module maps
them to the display names, descriptions and tags shown to users. The
voice id is the model's prebuilt voice name and is what gets sent
upstream.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from voxai.services.errors import VoiceNotFoundError


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    description: str
    gender: str
    tags: Tuple[str, ...] = ()

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on the name or any tag."""
        q = query.strip().lower()
        if not q:
            return True
        return q in self.name.lower() or any(q in tag.lower() for tag in self.tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "gender": self.gender,
            "tags": list(self.tags),
        }


VOICES: Tuple[Voice, ...] = (
    Voice(
        id="Puck",
        name="VoxAI Frank (Friend Style)",
        description=(
            "A highly realistic, casual, and friendly conversational voice, exactly like an "
            "ElevenLabs Friend Character. Speaks naturally with perfect pacing, warm tone, "
            "and engaging delivery."
        ),
        gender="Male",
        tags=("friendly", "podcast", "casual", "elevenlabs"),
    ),
    Voice(
        id="Charon",
        name="VoxAI Marcus (Corporate)",
        description="Clear, professional, and steady. Perfect for corporate presentations.",
        gender="Male",
        tags=("Corporate", "Normal"),
    ),
    Voice(
        id="Fenrir",
        name="VoxAI Palit (Documentary)",
        description="World-class documentary voice. Deep, emotional, perfect pacing, and highly engaging.",
        gender="Male",
        tags=("Documentary", "Emotional", "Premium"),
    ),
    Voice(
        id="Kore",
        name="VoxAI Sarah (Cheerful)",
        description="Bright, energetic, and friendly. Great for ads and social media.",
        gender="Female",
        tags=("Ad", "Social"),
    ),
    Voice(
        id="Zephyr",
        name="VoxAI Luna (Soft)",
        description="Calm, soothing, and gentle. Perfect for meditation or ASMR.",
        gender="Female",
        tags=("Meditation", "ASMR"),
    ),
)

_BY_ID = {v.id: v for v in VOICES}


def list_voices(query: Optional[str] = None) -> List[Voice]:
    if not query:
        return list(VOICES)
    return [v for v in VOICES if v.matches(query)]


def find_voice(voice_id: str) -> Optional[Voice]:
    return _BY_ID.get(voice_id)


def get_voice(voice_id: str) -> Voice:
    """Look up a voice, raising VoiceNotFoundError for unknown ids."""
    voice = _BY_ID.get(voice_id)
    if voice is None:
        raise VoiceNotFoundError(voice_id)
    return voice


def voice_label(voice_id: str) -> str:
    """Display name for history entries; unknown ids fall back to the id."""
    voice = _BY_ID.get(voice_id)
    return voice.name if voice else voice_id
