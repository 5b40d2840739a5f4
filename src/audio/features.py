"""
src/audio/features.py
======================
Frame Feature Extractor — VoiceSentinel Audio Layer

Responsibility:
    - Split a SampleBuffer into 512-sample frames (last partial frame kept)
    - Per-frame RMS energy and zero-crossing rate
    - Whole-clip spectral statistics from a radix-2 FFT window
      (centroid, rolloff, entropy, 13-band mel-like summary)
    - Autocorrelation pitch estimate, tempo proxy, pitch stability and
      per-frame pitch variance
    - Loudness variance of the RMS series

Spectral window:
    The first min(2048, N) samples are used, truncated to the largest power
    of two. This is a deliberate approximation: no padding, no windowing.
    The magnitude spectrum covers all N bins (mirrored half included) with
    bin frequency i * sr / N, so centroid and rolloff are fractions of the
    sample rate in [0, 1).

This module does NOT:
    - Decode audio (see decoder.py)
    - Classify artifacts or compute quality/risk scores
    - Keep any state between calls
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from src.audio.decoder import SampleBuffer
from src.audio.fft import fft_radix2, largest_power_of_two

logger = logging.getLogger("voicesentinel.audio.features")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FRAME_SIZE = 512
SPECTRAL_WINDOW = 2048
ROLLOFF_FRACTION = 0.95
N_MEL_BANDS = 13

PITCH_MIN_HZ = 80.0
PITCH_MAX_HZ = 400.0
REFERENCE_PITCH_HZ = 200.0
TEMPO_FACTOR = 1.5


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ExtractionError(Exception):
    """Raised when a buffer is too short to window into a single frame."""
    pass


# ---------------------------------------------------------------------------
# Feature vector
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureVector:
    """Numeric descriptors for one chunk or file. Never mutated."""

    duration: float
    rms_mean: float
    rms_std: float
    rms_max: float
    zcr_mean: float
    zcr_std: float
    spec_centroid_mean: float
    spec_rolloff_mean: float
    spec_entropy: float
    mfcc_mean: float
    mfcc_std: float
    pitch_hz: float
    tempo: float
    pitch_stability: float
    pitch_variance: float
    loudness_variance: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_features(buffer: SampleBuffer) -> FeatureVector:
    """
    Extract the full FeatureVector from a decoded sample buffer.

    Args:
        buffer: Decoded mono samples.

    Returns:
        FeatureVector with finite values only.

    Raises:
        ExtractionError: If the buffer holds fewer than FRAME_SIZE samples.
    """
    samples = buffer.samples
    sr = buffer.sample_rate

    if len(samples) < FRAME_SIZE:
        raise ExtractionError(
            f"Need at least {FRAME_SIZE} samples for one frame, got {len(samples)}."
        )

    rms_values = frame_rms(samples)
    zcr_values = frame_zcr(samples)
    spectral = spectral_summary(samples, sr)
    f0 = estimate_pitch(samples, sr)

    features = FeatureVector(
        duration=len(samples) / sr,
        rms_mean=float(np.mean(rms_values)),
        rms_std=float(np.std(rms_values)),
        rms_max=float(np.max(rms_values)),
        zcr_mean=float(np.mean(zcr_values)),
        zcr_std=float(np.std(zcr_values)),
        spec_centroid_mean=spectral["centroid"],
        spec_rolloff_mean=spectral["rolloff"],
        spec_entropy=spectral["entropy"],
        mfcc_mean=spectral["mfcc_mean"],
        mfcc_std=spectral["mfcc_std"],
        pitch_hz=f0,
        tempo=f0 * TEMPO_FACTOR,
        pitch_stability=pitch_stability(f0),
        pitch_variance=pitch_variance(samples, sr),
        loudness_variance=float(np.var(rms_values)),
    )

    logger.debug("Features extracted: %s", features)
    return features


# ---------------------------------------------------------------------------
# Frame statistics
# ---------------------------------------------------------------------------


def split_frames(samples: np.ndarray, frame_size: int = FRAME_SIZE) -> list[np.ndarray]:
    """Non-overlapping frames; the last partial frame is kept as-is."""
    return [samples[i : i + frame_size] for i in range(0, len(samples), frame_size)]


def frame_rms(samples: np.ndarray, frame_size: int = FRAME_SIZE) -> np.ndarray:
    return np.array(
        [np.sqrt(np.mean(frame * frame)) for frame in split_frames(samples, frame_size)]
    )


def frame_zcr(samples: np.ndarray, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """Fraction of adjacent-sample sign changes (x >= 0 vs x < 0) per frame."""
    rates = []
    for frame in split_frames(samples, frame_size):
        non_negative = frame >= 0
        crossings = np.count_nonzero(non_negative[1:] != non_negative[:-1])
        rates.append(crossings / len(frame))
    return np.array(rates)


# ---------------------------------------------------------------------------
# Spectral statistics
# ---------------------------------------------------------------------------


def spectral_summary(samples: np.ndarray, sample_rate: int) -> dict[str, float]:
    """
    Centroid, rolloff, entropy and mel-band summary of the leading window.

    All-zero spectra (digital silence) produce zeros rather than NaN.
    """
    window_len = largest_power_of_two(min(SPECTRAL_WINDOW, len(samples)))
    spectrum = fft_radix2(samples[:window_len])
    magnitude = np.abs(spectrum)

    peak = float(np.max(magnitude))
    if peak > 0.0:
        normalized = magnitude / peak
    else:
        normalized = np.zeros_like(magnitude)

    n_bins = len(normalized)
    freqs = np.arange(n_bins) * sample_rate / n_bins
    total = float(np.sum(normalized))

    if total > 0.0:
        centroid_hz = float(np.sum(freqs * normalized)) / total
        cumulative = np.cumsum(normalized)
        above = np.nonzero(cumulative > total * ROLLOFF_FRACTION)[0]
        rolloff_hz = float(freqs[above[0]]) if len(above) else 0.0
    else:
        centroid_hz = 0.0
        rolloff_hz = 0.0

    positive = normalized[normalized > 0]
    entropy = float(-np.sum(positive * np.log2(positive)))

    bands = mel_bands(normalized)

    return {
        "centroid": centroid_hz / sample_rate,
        "rolloff": rolloff_hz / sample_rate,
        "entropy": entropy,
        "mfcc_mean": float(np.mean(bands)),
        "mfcc_std": float(np.std(bands)),
    }


def mel_bands(spectrum: np.ndarray, n_bands: int = N_MEL_BANDS) -> np.ndarray:
    """
    Average magnitude over ``n_bands`` equal-width contiguous bands.

    Stands in for MFCCs. Windows narrower than ``n_bands`` bins yield zeros.
    """
    band_size = len(spectrum) // n_bands
    if band_size == 0:
        return np.zeros(n_bands)
    usable = spectrum[: band_size * n_bands].reshape(n_bands, band_size)
    return usable.mean(axis=1)


# ---------------------------------------------------------------------------
# Pitch
# ---------------------------------------------------------------------------


def _lag_range(sample_rate: int) -> tuple[int, int]:
    """(min_lag, max_lag); max_lag exclusive."""
    return int(sample_rate // PITCH_MAX_HZ), int(sample_rate // PITCH_MIN_HZ)


def estimate_pitch(samples: np.ndarray, sample_rate: int) -> float:
    """
    Fundamental frequency from the lag with the largest positive
    unnormalized autocorrelation sum in the 80–400 Hz range.

    No positive correlation (e.g. silence) falls back to the minimum lag,
    i.e. the 400 Hz ceiling.
    """
    min_lag, max_lag = _lag_range(sample_rate)
    best_lag = min_lag
    best_corr = 0.0

    n = len(samples)
    for lag in range(min_lag, min(max_lag, n)):
        corr = float(np.dot(samples[: n - lag], samples[lag:]))
        if corr > best_corr:
            best_corr = corr
            best_lag = lag

    return sample_rate / best_lag


def pitch_stability(f0: float) -> float:
    """1 / (1 + |f0 - 200| / 200): 1.0 at the canonical 200 Hz voice pitch."""
    return 1.0 / (1.0 + abs(f0 - REFERENCE_PITCH_HZ) / REFERENCE_PITCH_HZ)


def pitch_variance(samples: np.ndarray, sample_rate: int) -> float:
    """
    Population variance (Hz^2) of per-frame pitch estimates.

    Only frames longer than the maximum lag contribute; fewer than two
    such frames give 0.0.
    """
    _, max_lag = _lag_range(sample_rate)
    estimates = [
        estimate_pitch(frame, sample_rate)
        for frame in split_frames(samples)
        if len(frame) > max_lag
    ]
    if len(estimates) < 2:
        return 0.0
    return float(np.var(estimates))
