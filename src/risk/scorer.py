"""
src/risk/scorer.py
===================
Risk Scoring Engine — VoiceSentinel Risk Layer

Responsibility:
    - Heuristic-input mode: score cognitive, behavioral and environmental
      dimensions from HeuristicInputs, aggregate with fixed weights, apply
      the intent multiplier, derive confidence and a verdict tier
    - Feature-vector mode: score one FeatureVector + ArtifactSet from
      deviation-based sub-scores and artifact penalties
    - Liveness score from prosodic/environmental inputs
    - Engine fraud-risk scalar and per-chunk recommendation

Scoring philosophy:
    - Every function here is pure and total: given valid inputs it never
      raises, it only clamps
    - Each dimension is scored independently (0–100 sub-score)
    - Both modes are exposed side by side; they are never reconciled

This module does NOT:
    - Decode audio or extract features
    - Keep session history (see monitor.py)
    - Select challenges (see challenge.py)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from src.audio.artifacts import ArtifactSet
from src.audio.decoder import SAMPLE_RATE
from src.audio.features import FeatureVector
from src.audio.quality import QualityAssessment
from src.risk.signals import HeuristicInputs, IntentRisk

logger = logging.getLogger("voicesentinel.risk.scorer")


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------


class Verdict(str, Enum):
    """Verdict tier, ordered by increasing suspicion."""

    FAST_LANE = "FAST_LANE"
    COGNITIVE_TEST = "COGNITIVE_TEST"
    BLOCK_IMMEDIATE = "BLOCK_IMMEDIATE"


class Recommendation(str, Enum):
    """Per-chunk action advice from the feature-vector engine."""

    ALLOW = "ALLOW"
    CHALLENGE_REQUIRED = "CHALLENGE_REQUIRED"
    BLOCK_IMMEDIATE = "BLOCK_IMMEDIATE"


# ---------------------------------------------------------------------------
# Heuristic-mode configuration (weights must sum to 1.0)
# ---------------------------------------------------------------------------

DEFAULT_WEIGHTS: dict[str, float] = {
    "cognitive":     0.30,
    "behavioral":    0.40,
    "environmental": 0.30,
}

INTENT_MULTIPLIERS: dict[IntentRisk, float] = {
    IntentRisk.LOW:    1.0,
    IntentRisk.MEDIUM: 1.4,
    IntentRisk.HIGH:   1.8,
}

VERDICT_FAST_LANE_BELOW: float = 30.0
VERDICT_COGNITIVE_TEST_BELOW: float = 70.0

CONFIDENCE_BASE: float = 90.0
CONFIDENCE_FLOOR: float = 60.0


# ---------------------------------------------------------------------------
# Feature-mode configuration
# ---------------------------------------------------------------------------

REFERENCE_RMS: float = 0.15
REFERENCE_ZCR: float = 0.05
REFERENCE_ROLLOFF_HZ: float = 3500.0
CENTROID_LOW_HZ: float = 800.0
CENTROID_HIGH_HZ: float = 3500.0

ARTIFACT_PENALTIES: dict[str, float] = {
    "robotic_voice":    20.0,
    "fake_audio":       25.0,
    "clipping":         15.0,
    "background_noise": 10.0,
    "echo":              8.0,
}

EXTERNAL_RISK_SHARE: float = 0.10

RECOMMEND_BLOCK_ABOVE: float = 75.0
RECOMMEND_CHALLENGE_ABOVE: float = 50.0


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RiskComponents:
    """Per-dimension scores, each in [0, 100]."""

    cognitive: float
    behavioral: float
    environmental: float
    liveness: float

    def to_dict(self) -> dict[str, float]:
        return {
            "cognitive": self.cognitive,
            "behavioral": self.behavioral,
            "environmental": self.environmental,
            "liveness": self.liveness,
        }


@dataclass(frozen=True)
class RiskAssessment:
    """Heuristic-mode result. Produced fresh per call."""

    score: float
    confidence: float
    verdict: Verdict
    components: RiskComponents

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "verdict": self.verdict.value,
            "components": self.components.to_dict(),
        }


# ---------------------------------------------------------------------------
# Heuristic-mode dimension scorers, each returning a sub-score in [0, 100]
# ---------------------------------------------------------------------------


def _score_cognitive(inputs: HeuristicInputs) -> float:
    """
    Linguistic naturalness.

    No fillers at all reads as scripted; very many reads as unnatural.
    Near-constant pause timing reads as robotic. High latency suggests a
    generation pipeline in the loop.
    """
    score = 0.0
    if inputs.filler_count == 0:
        score += 40.0
    elif inputs.filler_count < 2:
        score += 15.0
    elif inputs.filler_count > 4:
        score += 20.0

    if inputs.pause_std < 0.08:
        score += 30.0
    elif inputs.pause_std > 0.3:
        score += 10.0

    if inputs.latency_ms > 500.0:
        score += 20.0

    return min(score, 100.0)


def _score_behavioral(inputs: HeuristicInputs) -> float:
    """Biometric stability: pitch variance and speaking rate."""
    score = 0.0
    if inputs.pitch_var > 600.0:
        score += 45.0
    elif inputs.pitch_var > 400.0:
        score += 25.0
    elif inputs.pitch_var > 200.0:
        score += 10.0

    if inputs.wpm > 180.0:
        score += 35.0
    elif inputs.wpm > 160.0:
        score += 15.0
    elif inputs.wpm < 100.0:
        score += 15.0

    return min(score, 100.0)


def _score_environmental(inputs: HeuristicInputs) -> float:
    """Acoustic environment: too silent or too noisy, extreme ZCR."""
    score = 0.0
    if inputs.noise_db < -65.0:
        score += 40.0
    elif inputs.noise_db < -55.0:
        score += 15.0
    elif inputs.noise_db > -45.0:
        score += 20.0

    if inputs.zcr < 0.03:
        score += 25.0
    elif inputs.zcr > 0.08:
        score += 15.0

    return min(score, 100.0)


def _compute_confidence(inputs: HeuristicInputs) -> float:
    """Confidence percentage in [60, 90], one decimal."""
    confidence = CONFIDENCE_BASE
    if inputs.noise_db < -50.0:
        confidence -= 15.0
    if inputs.pitch_var > 500.0:
        confidence -= 10.0
    confidence = min(max(confidence, CONFIDENCE_FLOOR), CONFIDENCE_BASE)
    return round(confidence, 1)


def classify_verdict(score: float) -> Verdict:
    if score < VERDICT_FAST_LANE_BELOW:
        return Verdict.FAST_LANE
    if score < VERDICT_COGNITIVE_TEST_BELOW:
        return Verdict.COGNITIVE_TEST
    return Verdict.BLOCK_IMMEDIATE


# ---------------------------------------------------------------------------
# Public API: heuristic-input mode
# ---------------------------------------------------------------------------


def compute_risk(
    inputs: HeuristicInputs,
    weights: Optional[dict[str, float]] = None,
) -> RiskAssessment:
    """
    Compute the heuristic-mode risk assessment.

    Steps:
        1. Score cognitive, behavioral and environmental dimensions
        2. Weighted sum (0.30 / 0.40 / 0.30 by default)
        3. Multiply by the intent sensitivity and cap at 100
        4. Confidence from noise level and pitch variance
        5. Verdict tier from the final score
        6. Attach the liveness score as the fourth component

    Args:
        inputs:  Validated HeuristicInputs.
        weights: Optional custom weights keyed like DEFAULT_WEIGHTS,
                 summing to 1.0.

    Returns:
        RiskAssessment with score rounded to two decimals.

    Raises:
        ValueError: If custom weights are invalid.
    """
    active_weights = _validate_weights(weights or DEFAULT_WEIGHTS)

    sub_scores: dict[str, float] = {
        "cognitive":     _score_cognitive(inputs),
        "behavioral":    _score_behavioral(inputs),
        "environmental": _score_environmental(inputs),
    }

    raw_score = sum(sub_scores[dim] * active_weights[dim] for dim in active_weights)
    final_score = min(raw_score * INTENT_MULTIPLIERS[inputs.intent], 100.0)
    final_score = max(final_score, 0.0)

    liveness = compute_liveness(inputs.pause_std, inputs.wpm, inputs.noise_db)

    assessment = RiskAssessment(
        score=round(final_score, 2),
        confidence=_compute_confidence(inputs),
        verdict=classify_verdict(final_score),
        components=RiskComponents(
            cognitive=round(sub_scores["cognitive"], 2),
            behavioral=round(sub_scores["behavioral"], 2),
            environmental=round(sub_scores["environmental"], 2),
            liveness=liveness,
        ),
    )

    logger.info(
        "Risk calc: cog=%.1f beh=%.1f env=%.1f intent=%s final=%.2f verdict=%s",
        sub_scores["cognitive"], sub_scores["behavioral"], sub_scores["environmental"],
        inputs.intent.value, assessment.score, assessment.verdict.value,
    )
    return assessment


def compute_liveness(pause_std: float, wpm: float, noise_db: float) -> float:
    """
    Average of three bounded naturalness terms:
        pause_std * 100, min(wpm, 150) / 1.5, max(0, 100 - |noise_db + 30| * 2)

    Each term is clamped to [0, 100] before averaging.
    """
    terms = (
        pause_std * 100.0,
        min(wpm, 150.0) / 1.5,
        max(0.0, 100.0 - abs(noise_db + 30.0) * 2.0),
    )
    bounded = [_clamp(term) for term in terms]
    return round(sum(bounded) / len(bounded), 2)


# ---------------------------------------------------------------------------
# Public API: feature-vector mode
# ---------------------------------------------------------------------------


def score_features(
    features: FeatureVector,
    artifacts: ArtifactSet,
    fraud_risk: float = 0.0,
    sample_rate: int = SAMPLE_RATE,
) -> float:
    """
    Score one FeatureVector from deviation-based sub-scores.

    Sub-scores:
        rms deviation from 0.15       (|d| * 100,  at most 20)
        zcr deviation from 0.05       (|d| * 200,  at most 20)
        centroid out of 800–3500 Hz   (15 below, 10 above)
        rolloff deviation from 3.5kHz (|d| / 500,  at most 10)
        tempo out of band             (15 outside 80–200, 8 outside 100–180)
        pitch variance                (var / 40,   at most 15)
        artifact penalties            (see ARTIFACT_PENALTIES)
        external fraud risk           (10 % of the supplied scalar)

    Returns:
        Score in [0, 100], two decimals.
    """
    score = 0.0

    score += min(20.0, abs(features.rms_mean - REFERENCE_RMS) * 100.0)
    score += min(20.0, abs(features.zcr_mean - REFERENCE_ZCR) * 200.0)

    centroid_hz = features.spec_centroid_mean * sample_rate
    if centroid_hz < CENTROID_LOW_HZ:
        score += 15.0
    elif centroid_hz > CENTROID_HIGH_HZ:
        score += 10.0

    rolloff_hz = features.spec_rolloff_mean * sample_rate
    score += min(10.0, abs(rolloff_hz - REFERENCE_ROLLOFF_HZ) / 500.0)

    if features.tempo < 80.0 or features.tempo > 200.0:
        score += 15.0
    elif features.tempo < 100.0 or features.tempo > 180.0:
        score += 8.0

    score += min(15.0, features.pitch_variance / 40.0)

    for name, detected in artifacts.flags().items():
        if detected:
            score += ARTIFACT_PENALTIES[name]

    score += EXTERNAL_RISK_SHARE * _clamp(fraud_risk)

    return round(_clamp(score), 2)


def engine_fraud_risk(
    features: FeatureVector,
    quality: QualityAssessment,
    artifacts: ArtifactSet,
) -> float:
    """
    The streaming engine's own fraud-risk scalar.

    Base 50; +15 for quality below 40; + artifact score; +20 for
    near-constant energy; +15 for a tempo proxy above 300. Clamped.
    """
    risk = 50.0
    if quality.quality_score < 40:
        risk += 15.0
    risk += artifacts.artifact_score
    if features.rms_std < 0.01:
        risk += 20.0
    if features.tempo > 300.0:
        risk += 15.0
    return _clamp(risk)


def recommend(score: float) -> Recommendation:
    """Per-chunk action advice for a 0–100 score."""
    if score > RECOMMEND_BLOCK_ABOVE:
        return Recommendation.BLOCK_IMMEDIATE
    if score > RECOMMEND_CHALLENGE_ABOVE:
        return Recommendation.CHALLENGE_REQUIRED
    return Recommendation.ALLOW


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(max(value, low), high)


def _validate_weights(weights: dict[str, float]) -> dict[str, float]:
    """
    Validate that weights have the correct keys and sum to 1.0.

    Raises:
        ValueError: If keys are wrong or weights don't sum to ~1.0.
    """
    expected_keys = set(DEFAULT_WEIGHTS.keys())
    actual_keys = set(weights.keys())

    if actual_keys != expected_keys:
        missing = expected_keys - actual_keys
        extra = actual_keys - expected_keys
        raise ValueError(
            f"Invalid weight keys. Missing: {missing}, Extra: {extra}"
        )

    total = sum(weights.values())
    if abs(total - 1.0) > 0.001:
        raise ValueError(
            f"Weights must sum to 1.0, got {total:.4f}"
        )

    return weights
