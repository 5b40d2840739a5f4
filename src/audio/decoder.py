"""
src/audio/decoder.py
=====================
PCM Decoder — VoiceSentinel Audio Layer

Responsibility:
    - Locate the ``data`` sub-chunk of a WAV-like container by tag scan
    - Convert signed 16-bit little-endian PCM to floats in [-1.0, 1.0]
    - Accept headerless raw PCM buffers as well
    - Fail with a typed DecodeError on missing data chunk or empty output

This module does NOT:
    - Resample (the sample rate is fixed at 16 kHz)
    - Mix down multi-channel audio
    - Compute any feature or score
"""

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger("voicesentinel.audio.decoder")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SAMPLE_RATE = 16000  # Hz, fixed: no resampling stage
_DATA_TAG = b"data"
_DATA_HEADER_SIZE = 8  # tag (4 bytes) + chunk size (4 bytes)
_PCM_SCALE = 32768.0


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DecodeError(Exception):
    """Raised when an audio buffer cannot be turned into samples."""
    pass


class NoDataChunkError(DecodeError):
    """Raised when the container has no ``data`` sub-chunk."""
    pass


class EmptyBufferError(DecodeError):
    """Raised when decoding produces zero samples."""
    pass


# ---------------------------------------------------------------------------
# Sample buffer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SampleBuffer:
    """Mono float samples at a fixed sample rate. Read-only once built."""

    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE

    def __post_init__(self) -> None:
        self.samples.setflags(write=False)

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return len(self) / self.sample_rate


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode_wav(data: bytes) -> SampleBuffer:
    """
    Decode a WAV-like container holding 16-bit little-endian PCM.

    The header is not parsed: the first ``data`` tag marks the chunk and
    everything after its 8-byte header is read as samples. The declared
    chunk size is ignored.

    Raises:
        NoDataChunkError: If no ``data`` tag is present.
        EmptyBufferError: If the data chunk holds no complete sample.
    """
    if not data:
        raise EmptyBufferError("Audio buffer is empty.")

    tag_index = bytes(data).find(_DATA_TAG)
    if tag_index == -1:
        raise NoDataChunkError("No 'data' chunk found in audio container.")

    return _pcm16_to_buffer(data[tag_index + _DATA_HEADER_SIZE:])


def decode_raw(data: bytes) -> SampleBuffer:
    """
    Decode a headerless buffer of 16-bit little-endian PCM samples.

    Raises:
        EmptyBufferError: If the buffer holds no complete sample.
    """
    return _pcm16_to_buffer(data)


def decode_pcm(data: bytes, raw: bool = False) -> SampleBuffer:
    """Decode ``data`` as a container (default) or as raw PCM."""
    if raw:
        return decode_raw(data)
    return decode_wav(data)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pcm16_to_buffer(payload: bytes) -> SampleBuffer:
    """Convert int16 LE bytes to a SampleBuffer; a trailing odd byte is dropped."""
    n_samples = len(payload) // 2
    if n_samples == 0:
        raise EmptyBufferError("Audio buffer contains no PCM samples.")

    pcm = np.frombuffer(payload, dtype="<i2", count=n_samples)
    samples = pcm.astype(np.float64) / _PCM_SCALE

    logger.debug("Decoded %d samples (%.3fs).", n_samples, n_samples / SAMPLE_RATE)
    return SampleBuffer(samples=samples)
