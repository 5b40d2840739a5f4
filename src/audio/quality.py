"""
src/audio/quality.py
=====================
Quality Scorer — VoiceSentinel Audio Layer

Responsibility:
    - Map a FeatureVector to a 0–100 naturalness quality score
    - Report the individual sub-checks behind the score

Scoring (20 points per passed check, additive, at most 100):
    - voice present:     rms_mean > 0.05
    - natural speech:    0.15 < zcr_mean < 0.5
    - frequency health:  spectral rolloff > 0.3 (fraction of sample rate)
    - pitch consistency: pitch_stability > 0.5
    - natural duration:  1 s < duration < 30 s

This module does NOT:
    - Decode audio or extract features
    - Detect artifacts or score risk
"""

from dataclasses import dataclass
from typing import Any

from src.audio.features import FeatureVector


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

_VOICE_RMS_MIN: float = 0.05
_SPEECH_ZCR_LOW: float = 0.15
_SPEECH_ZCR_HIGH: float = 0.5
_ROLLOFF_MIN: float = 0.3
_PITCH_STABILITY_MIN: float = 0.5
_DURATION_MIN_S: float = 1.0
_DURATION_MAX_S: float = 30.0

_POINTS_PER_CHECK: int = 20


@dataclass(frozen=True)
class QualityAssessment:
    """Quality score with its boolean sub-checks."""

    quality_score: int
    has_voice: bool
    natural_speech: bool
    good_frequency: bool
    consistent_pitch: bool
    natural_duration: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "quality_score": self.quality_score,
            "has_voice": self.has_voice,
            "natural_speech": self.natural_speech,
            "good_frequency": self.good_frequency,
            "consistent_pitch": self.consistent_pitch,
            "natural_duration": self.natural_duration,
        }


def assess_quality(features: FeatureVector) -> QualityAssessment:
    """Score the naturalness of ``features``."""
    checks = {
        "has_voice": features.rms_mean > _VOICE_RMS_MIN,
        "natural_speech": _SPEECH_ZCR_LOW < features.zcr_mean < _SPEECH_ZCR_HIGH,
        "good_frequency": features.spec_rolloff_mean > _ROLLOFF_MIN,
        "consistent_pitch": features.pitch_stability > _PITCH_STABILITY_MIN,
        "natural_duration": _DURATION_MIN_S < features.duration < _DURATION_MAX_S,
    }
    score = _POINTS_PER_CHECK * sum(checks.values())
    return QualityAssessment(quality_score=min(100, score), **checks)
