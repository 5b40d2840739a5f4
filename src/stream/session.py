"""
src/stream/session.py
======================
Stream Session Orchestrator — VoiceSentinel

Responsibility:
    - Own one streaming session: id, private SessionMonitor, chunk queue
    - Process chunks strictly in arrival order on a single worker task
    - Run the CPU-bound chunk pipeline in a thread so other sessions keep
      their own pace
    - Report processing lag and queue depth with every result
    - Summarise the session on end_stream

Lifecycle:
    CREATED → STREAMING → ENDED
    per chunk: DECODING → EXTRACTING → SCORING → EMITTING

This module does NOT:
    - Own the transport (results go through the ``emit`` coroutine)
    - Share any mutable state with other sessions
    - Drop chunks under load (they queue and the lag is reported)
"""

import asyncio
import contextlib
import logging
import random
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from src.audio.decoder import DecodeError
from src.audio.features import ExtractionError
from src.config import Settings
from src.pipeline import ChunkAnalysis, ChunkStage, analyze_chunk
from src.result_validator import ResultVerificationError
from src.risk.challenge import select_challenge
from src.risk.monitor import SessionMonitor
from src.risk.signals import FeatureSource, get_feature_source
from src.schemas.messages import analysis_result_message, error_message

logger = logging.getLogger("voicesentinel.stream.session")

FINAL_BLOCK_ABOVE: float = 70.0

Emitter = Callable[[dict[str, Any]], Awaitable[None]]


class SessionState(str, Enum):
    CREATED = "created"
    STREAMING = "streaming"
    ENDED = "ended"


class SessionClosedError(Exception):
    """Raised when a chunk or end_stream arrives after the session ended."""
    pass


@dataclass(frozen=True)
class _QueuedChunk:
    data: bytes
    enqueued_at: float


# =====================================================================
# Session
# =====================================================================


class StreamSession:
    """
    One live stream. Create it, ``submit_chunk`` as audio arrives, then
    ``end_stream`` for the summary. ``close`` abandons it without one.
    """

    def __init__(
        self,
        emit: Emitter,
        settings: Optional[Settings] = None,
        feature_source: Optional[FeatureSource] = None,
        session_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._settings = settings or Settings()
        self.session_id = session_id or str(uuid.uuid4())
        self.state = SessionState.CREATED
        self.stage: Optional[ChunkStage] = None

        self._emit = emit
        self._source = feature_source or get_feature_source(self._settings.feature_source)
        self._rng = rng
        self._monitor = SessionMonitor(
            capacity=self._settings.history_capacity,
            threshold=self._settings.alert_threshold,
        )
        self._queue: "asyncio.Queue[Optional[_QueuedChunk]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

        self._started_at = time.monotonic()
        self._ended_at: Optional[float] = None
        self._chunks_received = 0
        self._chunks_failed = 0
        self._total_analyses = 0
        self._score_sum = 0.0
        self._last_score: Optional[float] = None
        self._last_full: Optional[ChunkAnalysis] = None
        self._max_lag_ms = 0.0

        logger.info("Session %s created (source=%s)", self.session_id, self._source.name)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    @property
    def monitor(self) -> SessionMonitor:
        return self._monitor

    def start(self) -> None:
        """Start the worker task. Idempotent; requires a running loop."""
        if self._worker is None:
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name=f"stream-session-{self.session_id}"
            )

    async def submit_chunk(self, data: bytes) -> None:
        """
        Queue one chunk for analysis.

        Raises:
            SessionClosedError: If the session has ended.
        """
        if self.state is SessionState.ENDED:
            raise SessionClosedError(f"Session {self.session_id} has ended; chunk rejected.")

        if self.state is SessionState.CREATED:
            self.state = SessionState.STREAMING
            logger.info("Session %s streaming", self.session_id)

        self.start()
        self._chunks_received += 1
        await self._queue.put(
            _QueuedChunk(data=data, enqueued_at=asyncio.get_running_loop().time())
        )

    async def end_stream(self) -> dict[str, Any]:
        """
        Stop accepting chunks, drain the queue and return the summary.

        Raises:
            SessionClosedError: If end_stream was already called.
        """
        if self.state is SessionState.ENDED:
            raise SessionClosedError(f"Session {self.session_id} already ended.")

        self.state = SessionState.ENDED
        if self._worker is not None:
            await self._queue.put(None)
            await self._worker
        self._ended_at = time.monotonic()

        summary = self.summary()
        logger.info(
            "Session %s ended: analyses=%d failed=%d average=%.2f verdict=%s",
            self.session_id,
            summary["total_analyses"],
            summary["chunks_failed"],
            summary["average_score"],
            summary["final_verdict"],
        )
        return summary

    async def close(self) -> None:
        """Abandon the session (connection dropped). Pending chunks are discarded."""
        self.state = SessionState.ENDED
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
        if self._ended_at is None:
            self._ended_at = time.monotonic()
        logger.info("Session %s closed", self.session_id)

    def summary(self) -> dict[str, Any]:
        end = self._ended_at if self._ended_at is not None else time.monotonic()
        average = self._score_sum / self._total_analyses if self._total_analyses else 0.0
        last = self._last_score if self._last_score is not None else 0.0
        return {
            "total_analyses": self._total_analyses,
            "duration_seconds": round(end - self._started_at, 3),
            "average_score": round(average, 2),
            "final_trend": self._monitor.trend().value,
            "final_verdict": "BLOCK" if last > FINAL_BLOCK_ABOVE else "ALLOW",
            "chunks_received": self._chunks_received,
            "chunks_failed": self._chunks_failed,
            "max_lag_ms": round(self._max_lag_ms, 1),
        }

    # -----------------------------------------------------------------
    # Worker
    # -----------------------------------------------------------------

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            item = await self._queue.get()
            if item is None:
                return

            lag_ms = (loop.time() - item.enqueued_at) * 1000.0
            self._max_lag_ms = max(self._max_lag_ms, lag_ms)
            if lag_ms > self._settings.chunk_cadence_ms:
                logger.warning(
                    "Session %s falling behind: lag %.1f ms, %d queued",
                    self.session_id, lag_ms, self._queue.qsize(),
                )

            try:
                await self._process(item.data, lag_ms)
            except (DecodeError, ExtractionError, ResultVerificationError) as exc:
                await self._fail_chunk(f"Chunk analysis failed: {exc}")
            except Exception as exc:
                await self._fail_chunk(f"Chunk processing failed: {exc}", exc_info=True)

    async def _fail_chunk(self, reason: str, exc_info: bool = False) -> None:
        """Count a failed chunk and report it; the worker keeps running."""
        self._chunks_failed += 1
        logger.warning("Session %s chunk failed at %s: %s",
                       self.session_id, self.stage.value if self.stage else "-", reason,
                       exc_info=exc_info)
        try:
            await self._emit(error_message(self.session_id, reason))
        except Exception as exc:
            logger.warning("Session %s could not report chunk failure: %s", self.session_id, exc)

    async def _process(self, data: bytes, lag_ms: float) -> None:
        full_due = (
            self._last_full is None
            or self._total_analyses % self._settings.full_analysis_interval == 0
        )

        analysis = await asyncio.to_thread(
            analyze_chunk,
            data,
            feature_source=self._source,
            intent=self._settings.intent,
            full_analysis=full_due,
            on_stage=self._enter_stage,
        )

        if analysis.assessment is not None:
            self._last_full = analysis

        self._total_analyses += 1
        self._score_sum += analysis.simple_score
        self._last_score = analysis.simple_score

        alert = self._monitor.check(analysis.simple_score)
        challenge = select_challenge(analysis.simple_score, rng=self._rng)

        self._enter_stage(ChunkStage.EMITTING)
        await self._emit(
            analysis_result_message(
                session_id=self.session_id,
                analysis_number=self._total_analyses,
                analysis=analysis,
                full=self._last_full,
                alert=alert,
                challenge=challenge,
                processing_lag_ms=lag_ms,
                queue_depth=self._queue.qsize(),
            )
        )

    def _enter_stage(self, stage: ChunkStage) -> None:
        self.stage = stage
        logger.debug("Session %s chunk %d: %s",
                     self.session_id, self._total_analyses + self._chunks_failed + 1, stage.value)


# =====================================================================
# Registry
# =====================================================================


class SessionRegistry:
    """Active sessions keyed by id."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or Settings()
        self._sessions: dict[str, StreamSession] = {}

    def create(
        self,
        emit: Emitter,
        feature_source: Optional[FeatureSource] = None,
    ) -> StreamSession:
        session = StreamSession(emit, settings=self._settings, feature_source=feature_source)
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[StreamSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
