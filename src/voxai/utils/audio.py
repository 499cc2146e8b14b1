"""
Audio container utilities.

The speech model returns bare PCM: 16-bit signed little-endian, mono,
at the model's sample rate (24000 Hz for Gemini TTS). Browsers and
players need a container, so every payload is wrapped in a canonical
44-byte RIFF/WAVE header before it leaves the service.

Header layout (all integers little-endian):
    offset  size  field
    0       4     "RIFF"
    4       4     36 + N
    8       4     "WAVE"
    12      4     "fmt "
    16      4     16 (fmt chunk size)
    20      2     1 (PCM)
    22      2     1 (channels)
    24      4     sample rate R
    28      4     byte rate R * 2
    32      2     block align 2
    34      2     bits per sample 16
    36      4     "data"
    40      4     N
    44      N     payload

Example:
    >>> wav = wav_bytes_from_pcm16(b"", 24000)
    >>> len(wav)
    44
"""
from __future__ import annotations

import struct

WAV_HEADER_SIZE = 44
CHANNELS = 1
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


def wav_header(data_size: int, sample_rate: int) -> bytes:
    """Build the 44-byte header for a payload of data_size bytes."""
    block_align = CHANNELS * BYTES_PER_SAMPLE
    return _HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        1,
        CHANNELS,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def wav_bytes_from_pcm16(pcm: bytes, sample_rate: int) -> bytes:
    """
    Wrap raw PCM 16-bit mono samples in a WAV container.

    The payload is copied verbatim and the declared data length is
    exactly len(pcm), including odd lengths. An empty payload yields a
    valid, silent, 44-byte file.

    Args:
        pcm: Raw little-endian 16-bit mono samples.
        sample_rate: Samples per second.

    Returns:
        Header followed by the payload.
    """
    pcm = bytes(pcm)
    return wav_header(len(pcm), sample_rate) + pcm


def pcm16_duration_seconds(num_bytes: int, sample_rate: int) -> float:
    """Duration of a PCM 16-bit mono payload."""
    if sample_rate <= 0:
        return 0.0
    return num_bytes / float(sample_rate * BYTES_PER_SAMPLE * CHANNELS)
