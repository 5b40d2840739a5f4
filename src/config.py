"""
src/config.py
==============
Runtime Configuration — VoiceSentinel

Reads environment variables (optionally from a .env file via python-dotenv)
into a frozen Settings object. Settings are read once at startup and never
mutated; every session shares them by reference.

Environment variables:
    VOICESENTINEL_HOST                  bind host              (127.0.0.1)
    VOICESENTINEL_PORT                  bind port              (8000)
    VOICESENTINEL_LOG_LEVEL             logging level          (INFO)
    VOICESENTINEL_INTENT                low | medium | high    (medium)
    VOICESENTINEL_FEATURE_SOURCE        acoustic | simulated   (acoustic)
    VOICESENTINEL_FULL_ANALYSIS_EVERY   chunks between heuristic runs (1)
    VOICESENTINEL_MAX_UPLOAD_BYTES      upload size limit      (10 MB)
    VOICESENTINEL_ALERT_THRESHOLD       monitor alert score    (70)
    VOICESENTINEL_HISTORY_CAPACITY      monitor history length (10)
    VOICESENTINEL_CHUNK_CADENCE_MS      nominal chunk cadence  (500)
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from src.risk.signals import IntentRisk

logger = logging.getLogger("voicesentinel.config")


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    intent: IntentRisk = IntentRisk.MEDIUM
    feature_source: str = "acoustic"
    full_analysis_interval: int = 1
    max_upload_bytes: int = 10 * 1024 * 1024
    alert_threshold: float = 70.0
    history_capacity: int = 10
    chunk_cadence_ms: float = 500.0


def load_settings() -> Settings:
    """
    Build Settings from the environment (loading .env first).

    Raises:
        ValueError: If a variable holds an invalid value.
    """
    load_dotenv()

    settings = Settings(
        host=os.getenv("VOICESENTINEL_HOST", Settings.host),
        port=_int_env("VOICESENTINEL_PORT", Settings.port),
        log_level=os.getenv("VOICESENTINEL_LOG_LEVEL", Settings.log_level).upper(),
        intent=IntentRisk(os.getenv("VOICESENTINEL_INTENT", Settings.intent.value).lower()),
        feature_source=os.getenv("VOICESENTINEL_FEATURE_SOURCE", Settings.feature_source).lower(),
        full_analysis_interval=max(
            1, _int_env("VOICESENTINEL_FULL_ANALYSIS_EVERY", Settings.full_analysis_interval)
        ),
        max_upload_bytes=_int_env("VOICESENTINEL_MAX_UPLOAD_BYTES", Settings.max_upload_bytes),
        alert_threshold=_float_env("VOICESENTINEL_ALERT_THRESHOLD", Settings.alert_threshold),
        history_capacity=_int_env("VOICESENTINEL_HISTORY_CAPACITY", Settings.history_capacity),
        chunk_cadence_ms=_float_env("VOICESENTINEL_CHUNK_CADENCE_MS", Settings.chunk_cadence_ms),
    )

    logger.debug("Settings loaded: %s", settings)
    return settings


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
