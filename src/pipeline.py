"""
src/pipeline.py
================
Pipeline Orchestrator — VoiceSentinel Integration Layer

Responsibility:
    1. Per-chunk analysis: decode → extract → {quality, artifacts} →
       feature-vector score (+ optional heuristic full analysis)
    2. One-shot batch/file analysis: the same stages, heuristic scoring,
       a private monitor, a challenge and the batch result record
    3. Multi-file batch wrapper with per-file failure isolation
    4. Verify each stage's output before it is used downstream

Stage order (per chunk):
    DECODING   → SampleBuffer           (DecodeError aborts the chunk)
    EXTRACTING → FeatureVector          (ExtractionError aborts the chunk)
    SCORING    → quality, artifacts, engine fraud risk, simple score,
                 heuristic RiskAssessment when a full analysis is due

This layer MUST NOT:
    - Keep state between calls (sessions own their monitors)
    - Reconcile the feature-vector score with the heuristic score
"""

import logging
import math
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from src.audio.artifacts import ArtifactSet, detect_artifacts
from src.audio.decoder import DecodeError, SampleBuffer, decode_pcm
from src.audio.features import ExtractionError, FeatureVector, extract_features
from src.audio.quality import QualityAssessment, assess_quality
from src.result_validator import (
    ResultVerificationError,
    verify_features,
    verify_risk_assessment,
    verify_score,
)
from src.risk.challenge import select_challenge
from src.risk.monitor import SessionMonitor
from src.risk.scorer import (
    Recommendation,
    RiskAssessment,
    compute_risk,
    engine_fraud_risk,
    recommend,
    score_features,
)
from src.risk.signals import (
    AcousticFeatureSource,
    FeatureSource,
    HeuristicInputs,
    IntentRisk,
)
from src.transcript import CatalogTranscriptProvider, TranscriptProvider

logger = logging.getLogger("voicesentinel.pipeline")

LIVENESS_LIVE_ABOVE: float = 60.0
MAX_BATCH_FILES: int = 5


class ChunkStage(str, Enum):
    """Per-chunk processing stages, in order."""

    DECODING = "decoding"
    EXTRACTING = "extracting"
    SCORING = "scoring"
    EMITTING = "emitting"


# =====================================================================
# Chunk analysis result
# =====================================================================


@dataclass(frozen=True)
class ChunkAnalysis:
    """Everything computed for one chunk. Never mutated."""

    features: FeatureVector
    quality: QualityAssessment
    artifacts: ArtifactSet
    fraud_risk: float
    simple_score: float
    recommendation: Recommendation
    inputs: Optional[HeuristicInputs] = None
    assessment: Optional[RiskAssessment] = None


# =====================================================================
# Per-chunk analysis
# =====================================================================


def analyze_chunk(
    audio_bytes: bytes,
    feature_source: Optional[FeatureSource] = None,
    intent: IntentRisk = IntentRisk.MEDIUM,
    full_analysis: bool = True,
    raw: bool = False,
    on_stage: Optional[Callable[[ChunkStage], None]] = None,
) -> ChunkAnalysis:
    """
    Run the per-chunk pipeline on one audio chunk.

    Args:
        audio_bytes:    WAV container bytes (or raw PCM when ``raw``).
        feature_source: Producer of heuristic inputs for the full analysis.
        intent:         Declared intent tier for the heuristic mode.
        full_analysis:  Also run the heuristic-input mode.
        raw:            Treat ``audio_bytes`` as headerless PCM.
        on_stage:       Called with each ChunkStage as it starts.

    Returns:
        ChunkAnalysis for the chunk.

    Raises:
        DecodeError:             Malformed container / no samples.
        ExtractionError:         Too few samples for one frame.
        ResultVerificationError: A stage produced an invalid output.
    """
    notify = on_stage or (lambda stage: None)

    notify(ChunkStage.DECODING)
    buffer = decode_pcm(audio_bytes, raw=raw)

    notify(ChunkStage.EXTRACTING)
    features = extract_features(buffer)
    verify_features(features)

    notify(ChunkStage.SCORING)
    quality = assess_quality(features)
    artifacts = detect_artifacts(features)
    fraud_risk = engine_fraud_risk(features, quality, artifacts)
    simple_score = score_features(features, artifacts, fraud_risk=fraud_risk)
    verify_score("feature_score", simple_score)

    inputs: Optional[HeuristicInputs] = None
    assessment: Optional[RiskAssessment] = None
    if full_analysis:
        source = feature_source or AcousticFeatureSource()
        inputs = source.heuristic_inputs(audio_bytes, buffer, features, intent)
        assessment = compute_risk(inputs)
        verify_risk_assessment(assessment)

    logger.debug(
        "Chunk analysed: simple=%.2f full=%s quality=%d artifacts=%d",
        simple_score,
        f"{assessment.score:.2f}" if assessment else "-",
        quality.quality_score,
        artifacts.artifact_count,
    )

    return ChunkAnalysis(
        features=features,
        quality=quality,
        artifacts=artifacts,
        fraud_risk=fraud_risk,
        simple_score=simple_score,
        recommendation=recommend(simple_score),
        inputs=inputs,
        assessment=assessment,
    )


# =====================================================================
# Batch / file analysis
# =====================================================================


def run_batch_analysis(
    audio_bytes: bytes,
    filename: str,
    feature_source: Optional[FeatureSource] = None,
    intent: IntentRisk = IntentRisk.MEDIUM,
    transcript_provider: Optional[TranscriptProvider] = None,
    rng: Optional[random.Random] = None,
) -> dict[str, Any]:
    """
    One-shot analysis of an uploaded file.

    Nothing persists beyond the returned record: the monitor used for the
    alert block is created for this call only.

    Args:
        audio_bytes:         Uploaded file bytes.
        filename:            Original filename (echoed in the record).
        feature_source:      Producer of heuristic inputs (acoustic default).
        intent:              Declared intent tier.
        transcript_provider: External transcript collaborator.
        rng:                 Random source for the challenge script.

    Returns:
        Batch result record (see _assemble_batch_record).

    Raises:
        DecodeError:             Empty or undecodable audio (acoustic source).
        ExtractionError:         Audio too short (acoustic source).
        ResultVerificationError: A stage produced an invalid output.
    """
    source = feature_source or AcousticFeatureSource()
    transcripts = transcript_provider or CatalogTranscriptProvider()

    if not audio_bytes:
        raise DecodeError("Audio file is empty.")

    logger.info("=" * 60)
    logger.info("BATCH: %s (%.2f KB, source=%s)", filename, len(audio_bytes) / 1024, source.name)
    logger.info("=" * 60)

    buffer, features = _decode_for_source(audio_bytes, source)
    artifacts = detect_artifacts(features) if features is not None else None

    inputs = source.heuristic_inputs(audio_bytes, buffer, features, intent)
    assessment = compute_risk(inputs)
    verify_risk_assessment(assessment)

    alert = SessionMonitor().check(assessment.score)
    challenge = select_challenge(assessment.score, rng=rng)
    transcript = transcripts.transcribe(audio_bytes, filename)

    record = _assemble_batch_record(
        filename=filename,
        assessment=assessment,
        inputs=inputs,
        artifacts=artifacts,
        challenge=challenge.to_dict(),
        monitoring=alert.to_dict(),
        transcript=transcript,
    )

    logger.info(
        "BATCH complete: score=%.2f verdict=%s confidence=%.1f",
        assessment.score, assessment.verdict.value, assessment.confidence,
    )
    return record


def run_multi_file_batch(
    files: Iterable[tuple[bytes, str]],
    feature_source: Optional[FeatureSource] = None,
    intent: IntentRisk = IntentRisk.MEDIUM,
    transcript_provider: Optional[TranscriptProvider] = None,
) -> dict[str, Any]:
    """
    Analyse several files; a failing file is reported, never fatal.

    Raises:
        ValueError: If more than MAX_BATCH_FILES files are given.
    """
    files = list(files)
    if len(files) > MAX_BATCH_FILES:
        raise ValueError(f"At most {MAX_BATCH_FILES} files per batch, got {len(files)}")

    results: list[dict[str, Any]] = []
    for audio_bytes, filename in files:
        try:
            record = run_batch_analysis(
                audio_bytes,
                filename,
                feature_source=feature_source,
                intent=intent,
                transcript_provider=transcript_provider,
            )
        except (DecodeError, ExtractionError, ResultVerificationError) as exc:
            logger.warning("Batch file %s failed: %s", filename, exc)
            results.append({"filename": filename, "error": str(exc)})
            continue

        results.append({
            "filename": filename,
            "risk_score": record["analysis_results"]["final_risk_score"],
            "verdict": record["analysis_results"]["verdict"],
            "transcript": record["transcript"],
        })

    return {
        "meta": {
            "batch_id": str(uuid.uuid4()),
            "timestamp": _now_iso(),
            "files_processed": len(results),
            "status": "SUCCESS",
        },
        "results": results,
    }


# =====================================================================
# Shared record builders
# =====================================================================


def build_risk_breakdown(
    assessment: RiskAssessment,
    inputs: HeuristicInputs,
) -> dict[str, Any]:
    """Per-component breakdown with the metrics that support each score."""
    components = assessment.components
    return {
        "cognitive_intelligence": {
            "score": components.cognitive,
            "reason": (
                "Suspiciously perfect speech"
                if inputs.filler_count == 0
                else "Normal linguistic flow"
            ),
        },
        "behavioral_biometrics": {
            "score": components.behavioral,
            "metrics": {
                # consumers read pitch variance under this name
                "pitch_stability": round(inputs.pitch_var, 2),
                "speaking_rate": math.floor(inputs.wpm),
            },
        },
        "environmental_forensics": {
            "score": components.environmental,
            "noise_level": f"{round(inputs.noise_db, 1)} dB",
        },
        "liveness_detection": {
            "score": components.liveness,
            "indicator": "LIVE" if components.liveness > LIVENESS_LIVE_ABOVE else "SUSPICIOUS",
        },
    }


def _assemble_batch_record(
    filename: str,
    assessment: RiskAssessment,
    inputs: HeuristicInputs,
    artifacts: Optional[ArtifactSet],
    challenge: dict[str, str],
    monitoring: dict[str, Any],
    transcript: str,
) -> dict[str, Any]:
    """
    Assemble the batch analysis record.

    This function ONLY assembles; all values come from verified stages.
    """
    return {
        "meta": {
            "call_id": str(uuid.uuid4()),
            "timestamp": _now_iso(),
            "file_processed": filename,
            "status": "SUCCESS",
        },
        "analysis_results": {
            "final_risk_score": assessment.score,
            "detection_confidence": assessment.confidence,
            "verdict": assessment.verdict.value,
        },
        "risk_breakdown": build_risk_breakdown(assessment, inputs),
        "artifact_detection": artifacts.to_dict() if artifacts is not None else None,
        "security_measures": challenge,
        "risk_monitoring": monitoring,
        "transcript": transcript,
    }


# =====================================================================
# Helpers
# =====================================================================


def _decode_for_source(
    audio_bytes: bytes,
    source: FeatureSource,
) -> tuple[Optional[SampleBuffer], Optional[FeatureVector]]:
    """
    Decode and extract for the batch path.

    The acoustic source needs real samples, so failures propagate. Other
    sources do not, and the artifact block is simply omitted on failure.
    """
    try:
        buffer = decode_pcm(audio_bytes)
        features = extract_features(buffer)
        verify_features(features)
    except (DecodeError, ExtractionError, ResultVerificationError) as exc:
        if isinstance(source, AcousticFeatureSource):
            raise
        logger.warning("Acoustic analysis unavailable (%s); continuing with %s source.", exc, source.name)
        return None, None
    return buffer, features


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
