"""
src/risk/signals.py
====================
Risk Signal Definitions — VoiceSentinel Risk Layer

Responsibility:
    - Define the intent sensitivity tiers
    - Define the HeuristicInputs bundle consumed by the heuristic risk mode
    - Validate raw values into a HeuristicInputs bundle
    - Provide pluggable feature sources that produce HeuristicInputs:
        * AcousticFeatureSource:  derived from real DSP features + prosody
        * SimulatedFeatureSource: seeded from the file bytes (stand-in for a
          missing linguistic analyzer; not real signal processing)

This module does NOT:
    - Compute risk scores (that is scorer.py)
    - Decode audio or extract features itself
"""

import logging
import random
from enum import Enum
from typing import Any, Optional, Protocol

from src.audio.decoder import SampleBuffer
from src.audio.features import FeatureVector
from src.audio.prosody import estimate_prosody

logger = logging.getLogger("voicesentinel.risk.signals")


# ---------------------------------------------------------------------------
# Intent tiers
# ---------------------------------------------------------------------------


class IntentRisk(str, Enum):
    """Declared risk context of the call purpose."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_VALID_INTENTS: set[str] = {e.value for e in IntentRisk}


# ---------------------------------------------------------------------------
# Heuristic inputs bundle
# ---------------------------------------------------------------------------


class HeuristicInputs:
    """
    Immutable container for the prosodic, linguistic, biometric and
    environmental inputs of the heuristic risk mode.

    Attributes:
        filler_count: Filler words detected (linguistic)
        pause_std:    Std of pause durations in seconds (prosodic)
        latency_ms:   Response latency in milliseconds (linguistic)
        pitch_mean:   Mean pitch in Hz (biometric)
        pitch_var:    Pitch variance in Hz^2 (biometric)
        wpm:          Speaking rate in words per minute (prosodic)
        noise_db:     Background noise level in dBFS (environmental)
        zcr:          Zero-crossing rate (environmental)
        intent:       Declared intent tier
    """

    __slots__ = (
        "filler_count",
        "pause_std",
        "latency_ms",
        "pitch_mean",
        "pitch_var",
        "wpm",
        "noise_db",
        "zcr",
        "intent",
    )

    def __init__(
        self,
        filler_count: int,
        pause_std: float,
        latency_ms: float,
        pitch_mean: float,
        pitch_var: float,
        wpm: float,
        noise_db: float,
        zcr: float,
        intent: IntentRisk = IntentRisk.MEDIUM,
    ) -> None:
        object.__setattr__(self, "filler_count", filler_count)
        object.__setattr__(self, "pause_std", pause_std)
        object.__setattr__(self, "latency_ms", latency_ms)
        object.__setattr__(self, "pitch_mean", pitch_mean)
        object.__setattr__(self, "pitch_var", pitch_var)
        object.__setattr__(self, "wpm", wpm)
        object.__setattr__(self, "noise_db", noise_db)
        object.__setattr__(self, "zcr", zcr)
        object.__setattr__(self, "intent", IntentRisk(intent))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("HeuristicInputs is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeuristicInputs):
            return NotImplemented
        return all(
            getattr(self, attr) == getattr(other, attr)
            for attr in self.__slots__
        )

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{attr}={getattr(self, attr)!r}" for attr in self.__slots__
        )
        return f"HeuristicInputs({fields})"

    def replace(self, **changes: Any) -> "HeuristicInputs":
        """Return a copy with ``changes`` applied."""
        values = {attr: getattr(self, attr) for attr in self.__slots__}
        values.update(changes)
        return HeuristicInputs(**values)

    def to_dict(self) -> dict[str, Any]:
        values = {attr: getattr(self, attr) for attr in self.__slots__}
        values["intent"] = self.intent.value
        return values


# ---------------------------------------------------------------------------
# Factory / validator
# ---------------------------------------------------------------------------


def build_heuristic_inputs(raw: dict[str, Any]) -> HeuristicInputs:
    """
    Build a validated HeuristicInputs bundle from a raw dict.

    Args:
        raw: Keys matching HeuristicInputs attributes. ``intent`` defaults
             to "medium" when absent.

    Returns:
        Validated HeuristicInputs.

    Raises:
        ValueError: If a value is missing, non-numeric or out of range.
    """
    numeric_fields = (
        "pause_std", "latency_ms", "pitch_mean", "pitch_var", "wpm", "noise_db", "zcr",
    )

    values: dict[str, Any] = {}
    for name in numeric_fields:
        value = raw.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(
                f"{name} must be a number, got {type(value).__name__}"
            )
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError(f"{name} must be finite, got {value}")
        values[name] = float(value)

    for name in ("pause_std", "latency_ms", "pitch_var", "wpm", "zcr"):
        if values[name] < 0.0:
            raise ValueError(f"{name} must be non-negative, got {values[name]}")

    filler_count = raw.get("filler_count")
    if isinstance(filler_count, bool) or not isinstance(filler_count, int):
        raise ValueError(
            f"filler_count must be an integer, got {type(filler_count).__name__}"
        )
    if filler_count < 0:
        raise ValueError(f"filler_count must be non-negative, got {filler_count}")

    intent = raw.get("intent", IntentRisk.MEDIUM.value)
    if isinstance(intent, IntentRisk):
        intent = intent.value
    if intent not in _VALID_INTENTS:
        raise ValueError(
            f"Invalid intent: {intent!r}. Must be one of {sorted(_VALID_INTENTS)}"
        )

    inputs = HeuristicInputs(filler_count=filler_count, intent=IntentRisk(intent), **values)
    logger.debug("HeuristicInputs built: %s", inputs)
    return inputs


# ---------------------------------------------------------------------------
# Feature sources
# ---------------------------------------------------------------------------


class FeatureSource(Protocol):
    """Produces HeuristicInputs for one chunk or file."""

    name: str

    def heuristic_inputs(
        self,
        audio_bytes: bytes,
        buffer: Optional[SampleBuffer],
        features: Optional[FeatureVector],
        intent: IntentRisk,
    ) -> HeuristicInputs:
        ...


class AcousticFeatureSource:
    """
    Heuristic inputs derived from decoded samples and their FeatureVector.

    Linguistic inputs (filler count, response latency) have no acoustic
    counterpart; they are taken from the neutral defaults given at
    construction until a real linguistic analyzer is plugged in.
    """

    name = "acoustic"

    def __init__(self, filler_count: int = 2, latency_ms: float = 0.0) -> None:
        self._filler_count = filler_count
        self._latency_ms = latency_ms

    def heuristic_inputs(
        self,
        audio_bytes: bytes,
        buffer: Optional[SampleBuffer],
        features: Optional[FeatureVector],
        intent: IntentRisk,
    ) -> HeuristicInputs:
        if buffer is None or features is None:
            raise ValueError("AcousticFeatureSource needs decoded samples and features.")

        prosody = estimate_prosody(buffer)
        return build_heuristic_inputs({
            "filler_count": self._filler_count,
            "pause_std": prosody.pause_std,
            "latency_ms": self._latency_ms,
            "pitch_mean": round(float(features.pitch_hz), 2),
            "pitch_var": round(float(features.pitch_variance), 2),
            "wpm": prosody.wpm,
            "noise_db": prosody.noise_db,
            "zcr": round(float(features.zcr_mean), 4),
            "intent": intent,
        })


class SimulatedFeatureSource:
    """
    Deterministic pseudo-features seeded from the first 1000 bytes of the
    file (31-multiplier rolling hash, 32-bit wrap). This is not signal
    processing; it exists for demos and for parity with the legacy upload
    analyzer.

    An optional ``rng`` adds up to +20 WPM of jitter; without one the
    output depends on the bytes alone.
    """

    name = "simulated"

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng

    def heuristic_inputs(
        self,
        audio_bytes: bytes,
        buffer: Optional[SampleBuffer],
        features: Optional[FeatureVector],
        intent: IntentRisk,
    ) -> HeuristicInputs:
        seed = content_seed(audio_bytes)
        jitter = self._rng.random() * 0.5 if self._rng is not None else 0.0

        return build_heuristic_inputs({
            "filler_count": int((seed / 10) * 5),
            "pause_std": 0.05 + (seed / 100) * 0.35,
            "latency_ms": 200.0 + seed * 4,
            "pitch_mean": 100.0 + seed * 1.2,
            "pitch_var": 100.0 + seed * 9,
            "wpm": 80.0 + seed * 1.5 + jitter * 40,
            "noise_db": -70.0 + seed * 0.2,
            "zcr": 0.02 + (seed / 100) * 0.08,
            "intent": intent,
        })


def content_seed(audio_bytes: bytes) -> int:
    """Seed in [0, 100) from a 32-bit rolling hash of the leading bytes."""
    value = 0
    for byte in bytes(audio_bytes[:1000]):
        value = ((value << 5) - value + byte) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value) % 100


def get_feature_source(name: str) -> FeatureSource:
    """Look up a feature source by configuration name."""
    if name == AcousticFeatureSource.name:
        return AcousticFeatureSource()
    if name == SimulatedFeatureSource.name:
        return SimulatedFeatureSource()
    raise ValueError(
        f"Unknown feature source {name!r}. "
        f"Must be one of {sorted([AcousticFeatureSource.name, SimulatedFeatureSource.name])}"
    )
