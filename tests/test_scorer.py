"""
tests/test_scorer.py
=====================
Risk Scoring Engine Tests

Test categories:
    1. Dimension sub-scores (cognitive, behavioral, environmental)
    2. Weighted aggregation, intent multiplier and clamping
    3. Verdict threshold classification
    4. Confidence computation
    5. Custom weight validation
    6. Liveness score
    7. Feature-vector mode, engine fraud risk and recommendation
    8. Determinism guarantee (same input → same output)

All tests are offline and audio-free except where a FeatureVector is built
by hand.
"""

import os
import sys
import unittest
from dataclasses import replace

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.audio.artifacts import ArtifactSet, detect_artifacts
from src.audio.features import FeatureVector
from src.audio.quality import assess_quality
from src.risk.scorer import (
    DEFAULT_WEIGHTS,
    Recommendation,
    Verdict,
    _compute_confidence,
    _score_behavioral,
    _score_cognitive,
    _score_environmental,
    _validate_weights,
    classify_verdict,
    compute_liveness,
    compute_risk,
    engine_fraud_risk,
    recommend,
    score_features,
)
from src.risk.signals import HeuristicInputs, IntentRisk


# ===================================================================
# Test fixtures: realistic heuristic inputs
# ===================================================================

def _low_risk_inputs(intent: IntentRisk = IntentRisk.LOW) -> HeuristicInputs:
    """Every dimension inside its natural band."""
    return HeuristicInputs(
        filler_count=2,
        pause_std=0.15,
        latency_ms=200.0,
        pitch_mean=180.0,
        pitch_var=150.0,
        wpm=130.0,
        noise_db=-50.0,
        zcr=0.05,
        intent=intent,
    )


def _high_risk_inputs(intent: IntentRisk = IntentRisk.LOW) -> HeuristicInputs:
    """Scripted, flat, studio-silent delivery."""
    return HeuristicInputs(
        filler_count=0,
        pause_std=0.05,
        latency_ms=600.0,
        pitch_mean=220.0,
        pitch_var=700.0,
        wpm=200.0,
        noise_db=-70.0,
        zcr=0.02,
        intent=intent,
    )


def _features() -> FeatureVector:
    return FeatureVector(
        duration=2.0,
        rms_mean=0.15,
        rms_std=0.05,
        rms_max=0.5,
        zcr_mean=0.05,
        zcr_std=0.01,
        spec_centroid_mean=0.1,      # 1600 Hz
        spec_rolloff_mean=0.21875,   # 3500 Hz
        spec_entropy=100.0,
        mfcc_mean=0.3,
        mfcc_std=0.2,
        pitch_hz=100.0,
        tempo=150.0,
        pitch_stability=0.67,
        pitch_variance=0.0,
        loudness_variance=0.0025,
    )


_NO_ARTIFACTS = ArtifactSet(False, False, False, False, False)


# ===================================================================
# 1. Sub-scores
# ===================================================================

class TestSubScores(unittest.TestCase):

    def test_low_risk_sub_scores_are_zero(self):
        inputs = _low_risk_inputs()
        self.assertEqual(_score_cognitive(inputs), 0.0)
        self.assertEqual(_score_behavioral(inputs), 0.0)
        self.assertEqual(_score_environmental(inputs), 0.0)

    def test_high_risk_sub_scores(self):
        inputs = _high_risk_inputs()
        self.assertEqual(_score_cognitive(inputs), 90.0)
        self.assertEqual(_score_behavioral(inputs), 80.0)
        self.assertEqual(_score_environmental(inputs), 65.0)

    def test_filler_bands(self):
        base = _low_risk_inputs()
        self.assertEqual(_score_cognitive(base.replace(filler_count=0)), 40.0)
        self.assertEqual(_score_cognitive(base.replace(filler_count=1)), 15.0)
        self.assertEqual(_score_cognitive(base.replace(filler_count=5)), 20.0)

    def test_slow_speech_counts(self):
        self.assertEqual(_score_behavioral(_low_risk_inputs().replace(wpm=90.0)), 15.0)

    def test_loud_environment_counts(self):
        self.assertEqual(_score_environmental(_low_risk_inputs().replace(noise_db=-40.0)), 20.0)

    def test_sub_scores_bounded(self):
        for inputs in (_low_risk_inputs(), _high_risk_inputs()):
            for scorer in (_score_cognitive, _score_behavioral, _score_environmental):
                value = scorer(inputs)
                self.assertGreaterEqual(value, 0.0)
                self.assertLessEqual(value, 100.0)


# ===================================================================
# 2. Aggregation and intent
# ===================================================================

class TestAggregation(unittest.TestCase):

    def test_low_risk_is_zero(self):
        assessment = compute_risk(_low_risk_inputs())
        self.assertEqual(assessment.score, 0.0)
        self.assertEqual(assessment.verdict, Verdict.FAST_LANE)

    def test_weighted_sum_low_intent(self):
        # 90*0.3 + 80*0.4 + 65*0.3 = 78.5, multiplier 1.0
        assessment = compute_risk(_high_risk_inputs(IntentRisk.LOW))
        self.assertAlmostEqual(assessment.score, 78.5)
        self.assertEqual(assessment.verdict, Verdict.BLOCK_IMMEDIATE)

    def test_high_intent_capped_at_100(self):
        self.assertEqual(compute_risk(_high_risk_inputs(IntentRisk.HIGH)).score, 100.0)

    def test_medium_intent_multiplier(self):
        # cognitive 40 only → 12 raw → 16.8 at medium
        inputs = _low_risk_inputs(IntentRisk.MEDIUM).replace(filler_count=0)
        self.assertAlmostEqual(compute_risk(inputs).score, 16.8)

    def test_high_intent_never_below_low_intent(self):
        for base in (_low_risk_inputs(), _high_risk_inputs(), _low_risk_inputs().replace(wpm=90.0)):
            low = compute_risk(base.replace(intent=IntentRisk.LOW)).score
            high = compute_risk(base.replace(intent=IntentRisk.HIGH)).score
            self.assertGreaterEqual(high, low)

    def test_components_attached(self):
        assessment = compute_risk(_high_risk_inputs())
        self.assertEqual(assessment.components.cognitive, 90.0)
        self.assertEqual(assessment.components.behavioral, 80.0)
        self.assertEqual(assessment.components.environmental, 65.0)
        self.assertGreaterEqual(assessment.components.liveness, 0.0)
        self.assertEqual(
            set(assessment.to_dict()), {"score", "confidence", "verdict", "components"}
        )


# ===================================================================
# 3. Verdict thresholds
# ===================================================================

class TestVerdict(unittest.TestCase):

    def test_boundaries(self):
        self.assertEqual(classify_verdict(0.0), Verdict.FAST_LANE)
        self.assertEqual(classify_verdict(29.99), Verdict.FAST_LANE)
        self.assertEqual(classify_verdict(30.0), Verdict.COGNITIVE_TEST)
        self.assertEqual(classify_verdict(69.99), Verdict.COGNITIVE_TEST)
        self.assertEqual(classify_verdict(70.0), Verdict.BLOCK_IMMEDIATE)
        self.assertEqual(classify_verdict(100.0), Verdict.BLOCK_IMMEDIATE)


# ===================================================================
# 4. Confidence
# ===================================================================

class TestConfidence(unittest.TestCase):

    def test_clean_inputs_full_confidence(self):
        self.assertEqual(_compute_confidence(_low_risk_inputs()), 90.0)

    def test_quiet_and_unstable_lowers_confidence(self):
        self.assertEqual(_compute_confidence(_high_risk_inputs()), 65.0)

    def test_confidence_always_in_range(self):
        for inputs in (_low_risk_inputs(), _high_risk_inputs()):
            confidence = compute_risk(inputs).confidence
            self.assertGreaterEqual(confidence, 60.0)
            self.assertLessEqual(confidence, 90.0)


# ===================================================================
# 5. Weight validation
# ===================================================================

class TestWeightValidation(unittest.TestCase):

    def test_default_weights_valid(self):
        self.assertEqual(_validate_weights(DEFAULT_WEIGHTS), DEFAULT_WEIGHTS)

    def test_missing_key(self):
        with self.assertRaises(ValueError):
            _validate_weights({"cognitive": 0.5, "behavioral": 0.5})

    def test_extra_key(self):
        with self.assertRaises(ValueError):
            _validate_weights({**DEFAULT_WEIGHTS, "liveness": 0.0})

    def test_bad_sum(self):
        with self.assertRaises(ValueError):
            _validate_weights({"cognitive": 0.5, "behavioral": 0.5, "environmental": 0.5})

    def test_custom_weights_used(self):
        weights = {"cognitive": 1.0, "behavioral": 0.0, "environmental": 0.0}
        assessment = compute_risk(_high_risk_inputs(IntentRisk.LOW), weights=weights)
        self.assertAlmostEqual(assessment.score, 90.0)


# ===================================================================
# 6. Liveness
# ===================================================================

class TestLiveness(unittest.TestCase):

    def test_natural_values(self):
        # 50, 100, 100 → 83.33
        self.assertAlmostEqual(compute_liveness(0.5, 150.0, -30.0), 83.33)

    def test_terms_clamped_individually(self):
        self.assertEqual(compute_liveness(5.0, 150.0, -30.0), 100.0)
        self.assertEqual(compute_liveness(0.0, 0.0, -100.0), 0.0)

    def test_always_in_range(self):
        for args in ((0.0, 0.0, 0.0), (10.0, 1000.0, -200.0), (0.2, 120.0, -45.0)):
            value = compute_liveness(*args)
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 100.0)


# ===================================================================
# 7. Feature-vector mode
# ===================================================================

class TestFeatureMode(unittest.TestCase):

    def test_reference_features_score_zero(self):
        self.assertEqual(score_features(_features(), _NO_ARTIFACTS), 0.0)

    def test_deviation_caps(self):
        features = replace(_features(), rms_mean=0.9, zcr_mean=0.5)
        self.assertEqual(score_features(features, _NO_ARTIFACTS), 40.0)

    def test_centroid_and_tempo_bands(self):
        self.assertEqual(score_features(replace(_features(), spec_centroid_mean=0.01), _NO_ARTIFACTS), 15.0)
        self.assertEqual(score_features(replace(_features(), spec_centroid_mean=0.3), _NO_ARTIFACTS), 10.0)
        self.assertEqual(score_features(replace(_features(), tempo=300.0), _NO_ARTIFACTS), 15.0)
        self.assertEqual(score_features(replace(_features(), tempo=190.0), _NO_ARTIFACTS), 8.0)

    def test_artifact_penalties(self):
        artifacts = ArtifactSet(
            robotic_voice=True, clipping=False, fake_audio=True, echo=False, background_noise=False,
        )
        self.assertEqual(score_features(_features(), artifacts), 45.0)

    def test_external_fraud_risk_share(self):
        self.assertEqual(score_features(_features(), _NO_ARTIFACTS, fraud_risk=80.0), 8.0)
        self.assertEqual(score_features(_features(), _NO_ARTIFACTS, fraud_risk=500.0), 10.0)

    def test_worst_case_clamped(self):
        features = replace(
            _features(), rms_mean=1.0, zcr_mean=0.9, spec_centroid_mean=0.01,
            spec_rolloff_mean=0.9, tempo=600.0, pitch_variance=10000.0,
        )
        artifacts = ArtifactSet(True, True, True, True, True)
        self.assertEqual(score_features(features, artifacts, fraud_risk=100.0), 100.0)

    def test_engine_fraud_risk(self):
        features = _features()
        quality = assess_quality(features)
        self.assertEqual(engine_fraud_risk(features, quality, detect_artifacts(features)), 50.0)

        flat = replace(features, rms_std=0.001, tempo=400.0)
        risk = engine_fraud_risk(flat, assess_quality(flat), detect_artifacts(flat))
        # +25 robotic artifact, +20 flat energy, +15 tempo; quality stays >= 40
        self.assertEqual(risk, 100.0)

    def test_recommendation_thresholds(self):
        self.assertEqual(recommend(50.0), Recommendation.ALLOW)
        self.assertEqual(recommend(50.5), Recommendation.CHALLENGE_REQUIRED)
        self.assertEqual(recommend(75.0), Recommendation.CHALLENGE_REQUIRED)
        self.assertEqual(recommend(75.01), Recommendation.BLOCK_IMMEDIATE)


# ===================================================================
# 8. Determinism
# ===================================================================

class TestDeterminism(unittest.TestCase):

    def test_same_input_same_output(self):
        results = [compute_risk(_high_risk_inputs(IntentRisk.MEDIUM)) for _ in range(5)]
        self.assertTrue(all(result == results[0] for result in results))


if __name__ == "__main__":
    unittest.main()
