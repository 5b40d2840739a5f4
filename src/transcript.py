"""
src/transcript.py
==================
Transcript Provider — VoiceSentinel

Transcript generation is an external collaborator. The pipeline only needs
a string per analysed file; this module defines that boundary and a static
catalogue stand-in keyed by the file's content seed.

This module does NOT:
    - Perform STT
    - Influence any score
"""

from typing import Protocol, Sequence

from src.risk.signals import content_seed


class TranscriptProvider(Protocol):
    def transcribe(self, audio_bytes: bytes, filename: str) -> str:
        ...


DEFAULT_TRANSCRIPTS: Sequence[str] = (
    "Hello, this is my voice for verification. I am speaking clearly and naturally.",
    "I am speaking for authentication. Please verify my identity with this voice sample.",
    "This is a test of the voice fraud detection system. How do I sound?",
    "I would like to verify my account. My voice is unique and distinctive.",
    "Good morning, I am here for voice verification authentication.",
    "The weather is nice today. I am recording this voice sample for security purposes.",
    "Please process my voice for identification. I am speaking at normal pace.",
    "This voice sample will be used for biometric verification and authentication.",
    "I am providing my voice for fraud detection analysis. Thank you.",
    "Verification in progress. I am speaking clearly for the system to analyze.",
)


class CatalogTranscriptProvider:
    """Picks a canned transcript deterministically from the file bytes."""

    def __init__(self, transcripts: Sequence[str] = DEFAULT_TRANSCRIPTS) -> None:
        if not transcripts:
            raise ValueError("transcripts must not be empty")
        self._transcripts = tuple(transcripts)

    def transcribe(self, audio_bytes: bytes, filename: str) -> str:
        return self._transcripts[content_seed(audio_bytes) % len(self._transcripts)]
