# src/schemas/__init__.py
# ========================
# Message Schemas — VoiceSentinel
#
# Responsibility:
#   - Parse client streaming messages (audio_chunk, end_stream)
#   - Build server streaming messages (connected, analysis_result,
#     stream_complete, error) with the field names consumers rely on
