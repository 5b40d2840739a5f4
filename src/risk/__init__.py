# src/risk/__init__.py
# =====================
# Risk & Fraud Scoring Engine — VoiceSentinel
#
# Responsibility:
#   - Heuristic-input risk scoring (0–100) with intent multiplier,
#     confidence and verdict tier
#   - Feature-vector risk scoring for streaming chunks
#   - Per-session score history, trend and alerting
#   - Risk tier → challenge category
#
# Public API:
#   - build_heuristic_inputs() : validate and bundle heuristic inputs
#   - compute_risk()           : heuristic-input mode
#   - score_features()         : feature-vector mode
#   - SessionMonitor           : per-session trend / alert state
#   - select_challenge()       : challenge tier + script

from src.risk.signals import (  # noqa: F401
    HeuristicInputs,
    IntentRisk,
    AcousticFeatureSource,
    SimulatedFeatureSource,
    build_heuristic_inputs,
    get_feature_source,
)
from src.risk.scorer import (  # noqa: F401
    RiskAssessment,
    Verdict,
    Recommendation,
    compute_risk,
    compute_liveness,
    score_features,
    engine_fraud_risk,
    recommend,
)
from src.risk.monitor import SessionMonitor, Alert, Trend, Severity  # noqa: F401
from src.risk.challenge import Challenge, ChallengeType, select_challenge  # noqa: F401
