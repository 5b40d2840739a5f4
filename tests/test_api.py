"""
tests/test_api.py
==================
API Endpoint Tests

Test categories:
    1. Health check
    2. Single-file analysis and error mapping
    3. Multi-file batch analysis
    4. WebSocket streaming flow (including non-text frames)
    5. Session stats

Uses fastapi.testclient.TestClient; no server process is started.
"""

import asyncio
import base64
import io
import json
import os
import sys
import unittest
from unittest.mock import patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fastapi import HTTPException, UploadFile
from fastapi.testclient import TestClient

import src.api.upload as upload
from src.config import Settings
from tests.audio_fixtures import sine, speech_like, wav_bytes


def _chunk_message(data: bytes) -> str:
    return json.dumps({"type": "audio_chunk", "data": base64.b64encode(data).decode()})


class _ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(upload.app)


# ===================================================================
# 1. Health
# ===================================================================

class TestHealth(_ApiTestCase):

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")


# ===================================================================
# 2. Single-file analysis
# ===================================================================

class TestAnalyze(_ApiTestCase):

    def test_analyze_wav(self):
        response = self.client.post(
            "/api/v1/analyze",
            files={"audio": ("call.wav", wav_bytes(speech_like(2.0)), "audio/wav")},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["meta"]["file_processed"], "call.wav")
        self.assertIn("final_risk_score", body["analysis_results"])

    def test_missing_file(self):
        self.assertEqual(self.client.post("/api/v1/analyze").status_code, 422)

    def test_undecodable_file(self):
        response = self.client.post(
            "/api/v1/analyze",
            files={"audio": ("notes.txt", b"just some text", "text/plain")},
        )
        self.assertEqual(response.status_code, 422)

    def test_too_short_file(self):
        response = self.client.post(
            "/api/v1/analyze",
            files={"audio": ("short.wav", wav_bytes(sine(seconds=0.01)), "audio/wav")},
        )
        self.assertEqual(response.status_code, 422)

    def test_upload_limit(self):
        with patch.object(upload, "settings", Settings(max_upload_bytes=100)):
            response = self.client.post(
                "/api/v1/analyze",
                files={"audio": ("call.wav", wav_bytes(speech_like(1.0)), "audio/wav")},
            )
        self.assertEqual(response.status_code, 413)

    def test_upload_read_is_bounded(self):
        source = io.BytesIO(b"\x00" * 10_000)
        unsized = UploadFile(file=source, filename="big.wav")
        with patch.object(upload, "settings", Settings(max_upload_bytes=100)):
            with self.assertRaises(HTTPException) as ctx:
                asyncio.run(upload._read_upload(unsized))
        self.assertEqual(ctx.exception.status_code, 413)
        # never read past limit + 1
        self.assertEqual(source.tell(), 101)

    def test_declared_size_rejected_before_read(self):
        source = io.BytesIO(b"\x00" * 10_000)
        sized = UploadFile(file=source, filename="big.wav", size=10_000)
        with patch.object(upload, "settings", Settings(max_upload_bytes=100)):
            with self.assertRaises(HTTPException) as ctx:
                asyncio.run(upload._read_upload(sized))
        self.assertEqual(ctx.exception.status_code, 413)
        self.assertEqual(source.tell(), 0)


# ===================================================================
# 3. Multi-file batch
# ===================================================================

class TestAnalyzeBatch(_ApiTestCase):

    def test_two_files(self):
        response = self.client.post(
            "/api/v1/analyze-batch",
            files=[
                ("files", ("a.wav", wav_bytes(speech_like(1.0)), "audio/wav")),
                ("files", ("b.txt", b"nope", "text/plain")),
            ],
        )
        self.assertEqual(response.status_code, 200)
        results = response.json()["results"]
        self.assertEqual([r["filename"] for r in results], ["a.wav", "b.txt"])
        self.assertIn("risk_score", results[0])
        self.assertIn("error", results[1])

    def test_too_many_files(self):
        data = wav_bytes(speech_like(0.5))
        files = [("files", (f"{i}.wav", data, "audio/wav")) for i in range(6)]
        self.assertEqual(self.client.post("/api/v1/analyze-batch", files=files).status_code, 400)


# ===================================================================
# 4. Streaming
# ===================================================================

class TestStream(_ApiTestCase):

    def test_stream_flow(self):
        with self.client.websocket_connect("/ws/stream") as ws:
            connected = ws.receive_json()
            self.assertEqual(connected["type"], "connected")
            session_id = connected["sessionId"]

            ws.send_text(_chunk_message(wav_bytes(speech_like(0.5))))
            result = ws.receive_json()
            self.assertEqual(result["type"], "analysis_result")
            self.assertEqual(result["sessionId"], session_id)
            self.assertEqual(result["analysisNumber"], 1)

            ws.send_text(json.dumps({"type": "end_stream"}))
            complete = ws.receive_json()
            self.assertEqual(complete["type"], "stream_complete")
            self.assertEqual(complete["summary"]["total_analyses"], 1)

            ws.send_text(json.dumps({"type": "end_stream"}))
            self.assertEqual(ws.receive_json()["type"], "error")

            ws.send_text(_chunk_message(wav_bytes(speech_like(0.5))))
            self.assertEqual(ws.receive_json()["type"], "error")

    def test_malformed_message_keeps_session(self):
        with self.client.websocket_connect("/ws/stream") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            self.assertEqual(ws.receive_json()["type"], "error")

            ws.send_text(_chunk_message(b"no header here"))
            self.assertEqual(ws.receive_json()["type"], "error")

            ws.send_text(_chunk_message(wav_bytes(speech_like(0.5))))
            self.assertEqual(ws.receive_json()["type"], "analysis_result")

    def test_binary_frame_keeps_session(self):
        with self.client.websocket_connect("/ws/stream") as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01garbage")
            error = ws.receive_json()
            self.assertEqual(error["type"], "error")
            self.assertIn("text frame", error["message"])

            ws.send_text(_chunk_message(wav_bytes(speech_like(0.5))))
            self.assertEqual(ws.receive_json()["type"], "analysis_result")

            ws.send_text(json.dumps({"type": "end_stream"}))
            complete = ws.receive_json()
            self.assertEqual(complete["type"], "stream_complete")
            self.assertEqual(complete["summary"]["total_analyses"], 1)

    def test_session_removed_after_disconnect(self):
        with self.client.websocket_connect("/ws/stream") as ws:
            session_id = ws.receive_json()["sessionId"]
            ws.send_text(json.dumps({"type": "end_stream"}))
            ws.receive_json()
        self.assertEqual(self.client.get(f"/api/v1/sessions/{session_id}/stats").status_code, 404)


# ===================================================================
# 5. Session stats
# ===================================================================

class TestSessionStats(_ApiTestCase):

    def test_live_session_stats(self):
        with self.client.websocket_connect("/ws/stream") as ws:
            session_id = ws.receive_json()["sessionId"]
            ws.send_text(_chunk_message(wav_bytes(speech_like(0.5))))
            ws.receive_json()

            response = self.client.get(f"/api/v1/sessions/{session_id}/stats")
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.json()["analysis_count"], 1)

    def test_unknown_session(self):
        self.assertEqual(self.client.get("/api/v1/sessions/nope/stats").status_code, 404)


if __name__ == "__main__":
    unittest.main()
