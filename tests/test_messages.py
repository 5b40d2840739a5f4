"""
tests/test_messages.py
=======================
Streaming Message Schema Tests

Test categories:
    1. Client message parsing and MessageError cases
    2. Server message field names
"""

import base64
import json
import os
import sys
import unittest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.pipeline import analyze_chunk
from src.risk.challenge import select_challenge
from src.risk.monitor import SessionMonitor
from src.schemas.messages import (
    AudioChunkMessage,
    EndStreamMessage,
    MessageError,
    analysis_result_message,
    connected_message,
    error_message,
    parse_client_message,
    stream_complete_message,
)
from tests.audio_fixtures import speech_like, wav_bytes


# ===================================================================
# 1. Client messages
# ===================================================================

class TestParseClientMessage(unittest.TestCase):

    def test_audio_chunk(self):
        payload = b"\x01\x02\x03\x04"
        message = parse_client_message(
            json.dumps({"type": "audio_chunk", "data": base64.b64encode(payload).decode()})
        )
        self.assertEqual(message, AudioChunkMessage(data=payload))

    def test_end_stream(self):
        self.assertIsInstance(parse_client_message('{"type": "end_stream"}'), EndStreamMessage)

    def test_invalid_json(self):
        with self.assertRaises(MessageError):
            parse_client_message("{not json")

    def test_not_an_object(self):
        with self.assertRaises(MessageError):
            parse_client_message('["audio_chunk"]')

    def test_unknown_type(self):
        with self.assertRaises(MessageError):
            parse_client_message('{"type": "pause"}')

    def test_missing_data(self):
        with self.assertRaises(MessageError):
            parse_client_message('{"type": "audio_chunk"}')

    def test_bad_base64(self):
        with self.assertRaises(MessageError):
            parse_client_message('{"type": "audio_chunk", "data": "@@not-base64@@"}')


# ===================================================================
# 2. Server messages
# ===================================================================

class TestServerMessages(unittest.TestCase):

    def test_simple_envelopes(self):
        self.assertEqual(connected_message("s1")["type"], "connected")
        self.assertEqual(error_message("s1", "boom"), {"type": "error", "sessionId": "s1", "message": "boom"})
        complete = stream_complete_message("s1", {"total_analyses": 0})
        self.assertEqual(complete["summary"], {"total_analyses": 0})

    def test_analysis_result_fields(self):
        analysis = analyze_chunk(wav_bytes(speech_like(1.0)))
        alert = SessionMonitor().check(analysis.simple_score)
        message = analysis_result_message(
            session_id="s1",
            analysis_number=1,
            analysis=analysis,
            full=analysis,
            alert=alert,
            challenge=select_challenge(analysis.simple_score),
            processing_lag_ms=12.34,
            queue_depth=2,
        )

        self.assertEqual(message["type"], "analysis_result")
        self.assertEqual(message["analysisNumber"], 1)
        scores = message["riskScores"]
        self.assertEqual(scores["simple_score"], analysis.simple_score)
        self.assertEqual(scores["full_analysis_score"], analysis.assessment.score)
        self.assertEqual(scores["verdict"], analysis.assessment.verdict.value)
        self.assertEqual(
            set(message["component_analysis"]),
            {"cognitive_intelligence", "behavioral_biometrics",
             "environmental_forensics", "liveness_detection"},
        )
        self.assertIsInstance(message["artifacts"]["fraud_risk"], bool)
        self.assertEqual(message["monitoring"]["processing_lag_ms"], 12.3)
        self.assertEqual(message["monitoring"]["queue_depth"], 2)
        self.assertEqual(message["recommendation"], analysis.recommendation.value)
        self.assertIn("quality_score", message["quality"])
        self.assertIn("rms_mean", message["voice_features"])
        json.dumps(message)

    def test_before_first_full_analysis(self):
        analysis = analyze_chunk(wav_bytes(speech_like(0.5)), full_analysis=False)
        message = analysis_result_message(
            "s1", 1, analysis, None, SessionMonitor().check(analysis.simple_score),
            select_challenge(analysis.simple_score), 0.0, 0,
        )
        self.assertIsNone(message["riskScores"]["full_analysis_score"])
        self.assertIsNone(message["riskScores"]["confidence"])
        self.assertEqual(message["component_analysis"], {})


if __name__ == "__main__":
    unittest.main()
