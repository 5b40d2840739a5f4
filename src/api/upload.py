"""
src/api/upload.py
==================
API Endpoints — VoiceSentinel

Responsibility:
    - GET  /health
    - POST /api/v1/analyze         single audio file (multipart/form-data)
    - POST /api/v1/analyze-batch   up to MAX_BATCH_FILES files
    - GET  /api/v1/sessions/{id}/stats   live session monitor snapshot
    - WS   /ws/stream              streaming session
    - Translate pipeline errors into HTTP status codes (batch) or
      ``error`` messages (stream)

This module does NOT:
    - Compute any score (delegates to src.pipeline / src.stream)
    - Keep state beyond the live session registry
"""

import asyncio
import logging
from typing import Any

from fastapi import FastAPI, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.audio.decoder import DecodeError
from src.audio.features import ExtractionError
from src.config import load_settings
from src.pipeline import MAX_BATCH_FILES, run_batch_analysis, run_multi_file_batch
from src.result_validator import ResultVerificationError
from src.risk.signals import get_feature_source
from src.schemas.messages import (
    AudioChunkMessage,
    EndStreamMessage,
    MessageError,
    connected_message,
    error_message,
    parse_client_message,
    stream_complete_message,
)
from src.stream.session import SessionClosedError, SessionRegistry

logger = logging.getLogger("voicesentinel.api")

settings = load_settings()
registry = SessionRegistry(settings)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="VoiceSentinel",
    description="Voice fraud-risk analysis: batch upload and live streaming.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# HTTP endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": "VoiceSentinel",
        "feature_source": settings.feature_source,
        "active_sessions": len(registry),
    }


@app.post("/api/v1/analyze")
async def analyze(audio: UploadFile = File(...)):
    """
    Analyse one uploaded audio file and return the batch result record.

    Args:
        audio: Uploaded WAV file.
    """
    if audio is None or not audio.filename:
        raise HTTPException(status_code=400, detail="Audio file is required.")

    audio_bytes = await _read_upload(audio)
    logger.info("Audio file received: %s (%.2f KB)", audio.filename, len(audio_bytes) / 1024)

    try:
        record = await asyncio.to_thread(
            run_batch_analysis,
            audio_bytes,
            audio.filename,
            feature_source=get_feature_source(settings.feature_source),
            intent=settings.intent,
        )
    except (DecodeError, ExtractionError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except ResultVerificationError as exc:
        logger.error("Result verification failed: %s", exc)
        raise HTTPException(
            status_code=500,
            detail=f"Pipeline verification error in stage {exc.stage}: {exc.message}",
        )

    return JSONResponse(status_code=200, content=record)


@app.post("/api/v1/analyze-batch")
async def analyze_batch(files: list[UploadFile] = File(...)):
    """Analyse up to MAX_BATCH_FILES files; per-file failures are reported inline."""
    if not files:
        raise HTTPException(status_code=400, detail="At least one audio file is required.")
    if len(files) > MAX_BATCH_FILES:
        raise HTTPException(
            status_code=400,
            detail=f"At most {MAX_BATCH_FILES} files per batch, got {len(files)}.",
        )

    payload = [(await _read_upload(upload), upload.filename or "unnamed") for upload in files]
    logger.info("Batch received: %d files", len(payload))

    result = await asyncio.to_thread(
        run_multi_file_batch,
        payload,
        feature_source=get_feature_source(settings.feature_source),
        intent=settings.intent,
    )
    return JSONResponse(status_code=200, content=result)


@app.get("/api/v1/sessions/{session_id}/stats")
async def session_stats(session_id: str):
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}.")
    return session.monitor.snapshot()


# ---------------------------------------------------------------------------
# Streaming endpoint
# ---------------------------------------------------------------------------


@app.websocket("/ws/stream")
async def stream(websocket: WebSocket):
    await websocket.accept()

    async def emit(message: dict[str, Any]) -> None:
        await websocket.send_json(message)

    session = registry.create(emit)
    await emit(connected_message(session.session_id))

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))

            text = frame.get("text")
            if text is None:
                await emit(error_message(session.session_id, "Expected a JSON text frame."))
                continue

            try:
                message = parse_client_message(text)
            except MessageError as exc:
                await emit(error_message(session.session_id, str(exc)))
                continue

            try:
                if isinstance(message, AudioChunkMessage):
                    await session.submit_chunk(message.data)
                elif isinstance(message, EndStreamMessage):
                    summary = await session.end_stream()
                    await emit(stream_complete_message(session.session_id, summary))
            except SessionClosedError as exc:
                await emit(error_message(session.session_id, str(exc)))
    except WebSocketDisconnect:
        logger.info("Client disconnected: %s", session.session_id)
    finally:
        await session.close()
        registry.remove(session.session_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_upload(upload: UploadFile) -> bytes:
    """Read at most max_upload_bytes; larger uploads are rejected with 413."""
    limit = settings.max_upload_bytes
    too_large = HTTPException(
        status_code=413,
        detail=f"File exceeds the {limit} byte upload limit.",
    )
    if upload.size is not None and upload.size > limit:
        raise too_large

    try:
        data = await upload.read(limit + 1)
    except OSError:
        raise HTTPException(status_code=400, detail="Failed to read uploaded file.")

    if len(data) > limit:
        raise too_large
    return data
