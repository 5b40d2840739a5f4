"""
src/audio/prosody.py
=====================
Prosody Estimator — VoiceSentinel Audio Layer

Responsibility:
    - Estimate the background noise floor in dBFS from the quietest frames
    - Split the buffer into voiced intervals and the pauses between them
    - Derive pause-timing spread and a speaking-rate proxy (WPM)

These are acoustic stand-ins for the prosodic inputs of the heuristic risk
engine. They are crude by construction: the speaking rate counts voiced
intervals as syllables, it does not recognise words.

This module does NOT:
    - Perform VAD with a model, STT, or any NLP
    - Score risk
"""

import logging
from dataclasses import dataclass

import librosa
import numpy as np

from src.audio.decoder import SampleBuffer
from src.audio.features import FRAME_SIZE

logger = logging.getLogger("voicesentinel.audio.prosody")


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

# Bottom share of frames (by energy) that approximates the noise floor
_NOISE_FLOOR_SHARE: float = 0.20
_MIN_DBFS: float = -100.0
_AMIN: float = 10.0 ** (_MIN_DBFS / 20.0)

# A frame more than this far below the loudest frame is a pause
_SPLIT_TOP_DB: float = 30.0
_SPLIT_HOP: int = FRAME_SIZE // 2

# Below this peak frame RMS the whole buffer is treated as silence
_VOICED_MIN_RMS: float = 0.02

_SYLLABLES_PER_WORD: float = 1.5


@dataclass(frozen=True)
class ProsodyMetrics:
    """Acoustic prosody proxies for one buffer."""

    noise_db: float
    pause_std: float
    wpm: float
    voiced_ratio: float


def estimate_prosody(buffer: SampleBuffer) -> ProsodyMetrics:
    """
    Compute prosody proxies for ``buffer``.

    The buffer must hold at least one FRAME_SIZE frame (extract_features
    enforces this before any feature source runs).

    Returns:
        ProsodyMetrics with finite values.
    """
    y = buffer.samples
    sr = buffer.sample_rate
    n = len(y)

    rms = librosa.feature.rms(y=y, frame_length=FRAME_SIZE, hop_length=FRAME_SIZE, center=False)[0]
    noise_db = _noise_floor_db(rms)

    intervals = _voiced_intervals(y, rms)

    pause_lengths = [length / sr for length in _pause_lengths(intervals, n)]
    pause_std = float(np.std(pause_lengths)) if len(pause_lengths) >= 2 else 0.0

    voiced_samples = int(sum(end - start for start, end in intervals))
    duration = buffer.duration
    wpm = (len(intervals) / duration) * 60.0 / _SYLLABLES_PER_WORD if duration > 0 else 0.0

    metrics = ProsodyMetrics(
        noise_db=round(noise_db, 2),
        pause_std=round(pause_std, 4),
        wpm=round(wpm, 2),
        voiced_ratio=round(voiced_samples / n, 4) if n else 0.0,
    )
    logger.debug("Prosody metrics: %s", metrics)
    return metrics


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _noise_floor_db(rms: np.ndarray) -> float:
    """Mean RMS of the quietest frames, in dBFS, floored at -100 dB."""
    ordered = np.sort(rms)
    count = max(1, int(len(ordered) * _NOISE_FLOOR_SHARE))
    floor_rms = float(np.mean(ordered[:count]))
    db = librosa.amplitude_to_db(np.array([floor_rms]), ref=1.0, amin=_AMIN, top_db=None)
    return max(_MIN_DBFS, float(db[0]))


def _voiced_intervals(y: np.ndarray, rms: np.ndarray) -> list[tuple[int, int]]:
    """Sample intervals of voiced audio; empty for a silent buffer."""
    if len(rms) == 0 or float(np.max(rms)) < _VOICED_MIN_RMS:
        return []
    intervals = librosa.effects.split(
        y, top_db=_SPLIT_TOP_DB, frame_length=FRAME_SIZE, hop_length=_SPLIT_HOP
    )
    return [(int(start), int(end)) for start, end in intervals]


def _pause_lengths(intervals: list[tuple[int, int]], n: int) -> list[int]:
    """Lengths in samples of the gaps around and between voiced intervals."""
    if not intervals:
        return [n] if n else []

    gaps = [intervals[0][0]]
    gaps.extend(nxt[0] - prev[1] for prev, nxt in zip(intervals, intervals[1:]))
    gaps.append(n - intervals[-1][1])
    return [gap for gap in gaps if gap > 0]
