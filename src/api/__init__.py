# src/api/__init__.py
# =====================
# API Layer — VoiceSentinel
#
# Responsibility:
#   - Expose POST /api/v1/analyze and /api/v1/analyze-batch for uploads
#   - Expose the /ws/stream WebSocket for live chunk streaming
#   - Translate core errors into HTTP errors / error messages
#
# This layer owns no scoring logic.
