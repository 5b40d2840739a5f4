"""
src/schemas/messages.py
========================
Streaming Message Schemas — VoiceSentinel

Responsibility:
    - Parse and validate client messages:
        {"type": "audio_chunk", "data": <base64 PCM/WAV>}
        {"type": "end_stream"}
    - Build server messages with the field names existing consumers read:
        connected, analysis_result, stream_complete, error

This module does NOT:
    - Send anything over a connection
    - Compute any score
"""

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from src.pipeline import ChunkAnalysis, build_risk_breakdown
from src.risk.challenge import Challenge
from src.risk.monitor import Alert


AUDIO_CHUNK = "audio_chunk"
END_STREAM = "end_stream"


class MessageError(Exception):
    """Raised when a client message envelope is malformed."""
    pass


@dataclass(frozen=True)
class AudioChunkMessage:
    data: bytes


@dataclass(frozen=True)
class EndStreamMessage:
    pass


ClientMessage = Union[AudioChunkMessage, EndStreamMessage]


# ---------------------------------------------------------------------------
# Client messages
# ---------------------------------------------------------------------------


def parse_client_message(text: Union[str, bytes]) -> ClientMessage:
    """
    Parse one client message.

    Raises:
        MessageError: Invalid JSON, unknown type, or undecodable chunk data.
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MessageError(f"Message is not valid JSON: {exc}")

    if not isinstance(raw, dict):
        raise MessageError("Message must be a JSON object.")

    message_type = raw.get("type")
    if message_type == END_STREAM:
        return EndStreamMessage()

    if message_type == AUDIO_CHUNK:
        data = raw.get("data")
        if not isinstance(data, str) or not data:
            raise MessageError("audio_chunk requires a non-empty base64 'data' string.")
        try:
            return AudioChunkMessage(data=base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise MessageError(f"audio_chunk data is not valid base64: {exc}")

    raise MessageError(f"Unknown message type: {message_type!r}")


# ---------------------------------------------------------------------------
# Server messages
# ---------------------------------------------------------------------------


def connected_message(session_id: str) -> dict[str, Any]:
    return {
        "type": "connected",
        "sessionId": session_id,
        "message": "Connected to live stream analyzer",
    }


def error_message(session_id: Optional[str], message: str) -> dict[str, Any]:
    return {"type": "error", "sessionId": session_id, "message": message}


def stream_complete_message(session_id: str, summary: dict[str, Any]) -> dict[str, Any]:
    return {"type": "stream_complete", "sessionId": session_id, "summary": summary}


def analysis_result_message(
    session_id: str,
    analysis_number: int,
    analysis: ChunkAnalysis,
    full: Optional[ChunkAnalysis],
    alert: Alert,
    challenge: Challenge,
    processing_lag_ms: float,
    queue_depth: int,
) -> dict[str, Any]:
    """
    Build an analysis_result message.

    ``analysis`` is the current chunk; ``full`` is the chunk that carries
    the most recent heuristic full analysis (the same chunk when one ran
    now, an earlier one otherwise, None before the first).
    """
    assessment = full.assessment if full is not None else None
    inputs = full.inputs if full is not None else None

    artifacts = analysis.artifacts.to_dict()
    artifacts["fraud_risk"] = analysis.fraud_risk > 50.0

    monitoring = alert.to_dict()
    monitoring["processing_lag_ms"] = round(processing_lag_ms, 1)
    monitoring["queue_depth"] = queue_depth

    return {
        "type": "analysis_result",
        "sessionId": session_id,
        "analysisNumber": analysis_number,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "riskScores": {
            "simple_score": analysis.simple_score,
            "full_analysis_score": assessment.score if assessment else None,
            "confidence": assessment.confidence if assessment else None,
            "verdict": assessment.verdict.value if assessment else None,
            "engine_fraud_risk": analysis.fraud_risk,
        },
        "component_analysis": (
            build_risk_breakdown(assessment, inputs) if assessment and inputs else {}
        ),
        "voice_features": {
            name: round(value, 6) for name, value in analysis.features.to_dict().items()
        },
        "artifacts": artifacts,
        "security": challenge.to_dict(),
        "monitoring": monitoring,
        "quality": analysis.quality.to_dict(),
        "recommendation": analysis.recommendation.value,
    }
