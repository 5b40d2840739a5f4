"""
src/risk/monitor.py
====================
Session Monitor — VoiceSentinel Risk Layer

Responsibility:
    - Keep a bounded FIFO history of (score, timestamp) for ONE session
    - Raise an alert when a score crosses the alert threshold
    - Classify alert severity and the recent risk trend

Each session owns its own SessionMonitor instance. There is no process-wide
monitor: scores from one session never affect another session's trend.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("voicesentinel.risk.monitor")


DEFAULT_CAPACITY: int = 10
DEFAULT_ALERT_THRESHOLD: float = 70.0
CRITICAL_ABOVE: float = 85.0
HIGH_ABOVE: float = 70.0

TREND_WINDOW: int = 5
TREND_DELTA: float = 5.0


class Trend(str, Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


@dataclass(frozen=True)
class Alert:
    """Alert state after one score was recorded."""

    is_alert: bool
    severity: Severity
    trend: Trend

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_alert": self.is_alert,
            "severity": self.severity.value,
            "trend": self.trend.value,
        }


@dataclass(frozen=True)
class ScoreEntry:
    score: float
    timestamp: datetime


class SessionMonitor:
    """
    Bounded score history with alerting for a single session.

    Usage:
        monitor = SessionMonitor()
        alert = monitor.check(72.5)
        alert.is_alert   # True
        monitor.trend()  # Trend.STABLE
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        threshold: float = DEFAULT_ALERT_THRESHOLD,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._history: deque[ScoreEntry] = deque(maxlen=capacity)
        self._threshold = threshold
        self._analysis_count = 0

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def capacity(self) -> int:
        return self._history.maxlen

    @property
    def analysis_count(self) -> int:
        """Total scores recorded, including evicted ones."""
        return self._analysis_count

    @property
    def history(self) -> list[ScoreEntry]:
        return list(self._history)

    def check(self, score: float, timestamp: Optional[datetime] = None) -> Alert:
        """
        Record ``score`` and return the resulting alert state.

        The oldest entry is evicted once capacity is exceeded. A timestamp
        earlier than the newest entry is clamped to it so the history
        stays time-ordered.
        """
        now = timestamp or datetime.now(timezone.utc)
        if self._history and now < self._history[-1].timestamp:
            now = self._history[-1].timestamp

        self._history.append(ScoreEntry(score=score, timestamp=now))
        self._analysis_count += 1

        alert = Alert(
            is_alert=score > self._threshold,
            severity=classify_severity(score),
            trend=self.trend(),
        )

        if alert.is_alert:
            logger.warning(
                "Risk alert: score=%.2f severity=%s trend=%s",
                score, alert.severity.value, alert.trend.value,
            )
        return alert

    def trend(self) -> Trend:
        """
        Compare the mean of the last 5 scores with the mean of the (up to)
        5 before them. Fewer than 2 scores is STABLE by definition.
        """
        scores = [entry.score for entry in self._history]
        if len(scores) < 2:
            return Trend.STABLE

        recent = scores[-TREND_WINDOW:]
        recent_avg = sum(recent) / len(recent)
        previous = scores[-2 * TREND_WINDOW : -TREND_WINDOW]
        previous_avg = sum(previous) / len(previous) if previous else recent_avg

        if recent_avg > previous_avg + TREND_DELTA:
            return Trend.INCREASING
        if recent_avg < previous_avg - TREND_DELTA:
            return Trend.DECREASING
        return Trend.STABLE

    def snapshot(self) -> dict[str, Any]:
        """Recent scores, threshold and current trend."""
        return {
            "recent_risk_scores": [
                {"score": entry.score, "timestamp": entry.timestamp.isoformat()}
                for entry in self._history
            ],
            "alert_threshold": self._threshold,
            "current_trend": self.trend().value,
            "analysis_count": self._analysis_count,
        }


def classify_severity(score: float) -> Severity:
    if score > CRITICAL_ABOVE:
        return Severity.CRITICAL
    if score > HIGH_ABOVE:
        return Severity.HIGH
    return Severity.MEDIUM
