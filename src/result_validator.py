"""
src/result_validator.py
========================
Stage Output Validator — VoiceSentinel Integration Layer

Responsibility:
    - Validate the outputs of each pipeline stage against their contracts
    - FAIL FAST with a clear error naming the stage
    - NO auto-correction: a non-finite feature or an out-of-range score is
      an internal defect, not something to clamp away here

This module does NOT:
    - Execute any stage logic
    - Modify stage outputs
"""

import logging
import math

from src.audio.features import FeatureVector
from src.risk.scorer import RiskAssessment

logger = logging.getLogger("voicesentinel.result_validator")


class ResultVerificationError(Exception):
    """Raised when a stage output fails verification."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"Stage {stage} verification failed: {message}")


def verify_features(features: FeatureVector) -> None:
    """
    Every FeatureVector field must be a finite number; duration positive.

    Raises:
        ResultVerificationError: If any check fails.
    """
    for name, value in features.to_dict().items():
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ResultVerificationError(
                "features", f"{name} is not a finite number: {value!r}"
            )
    if features.duration <= 0.0:
        raise ResultVerificationError(
            "features", f"duration must be positive, got {features.duration}"
        )


def verify_score(stage: str, score: float) -> None:
    """
    A score must be a finite number in [0, 100].

    Raises:
        ResultVerificationError: If the check fails.
    """
    if not isinstance(score, (int, float)) or not math.isfinite(score):
        raise ResultVerificationError(stage, f"score is not a finite number: {score!r}")
    if score < 0.0 or score > 100.0:
        raise ResultVerificationError(stage, f"score out of range: {score}")


def verify_risk_assessment(assessment: RiskAssessment) -> None:
    """
    Score and components in [0, 100], confidence in [60, 90].

    Raises:
        ResultVerificationError: If any check fails.
    """
    verify_score("risk", assessment.score)
    for name, value in assessment.components.to_dict().items():
        verify_score(f"risk.{name}", value)

    if not 60.0 <= assessment.confidence <= 90.0:
        raise ResultVerificationError(
            "risk", f"confidence out of range: {assessment.confidence}"
        )
