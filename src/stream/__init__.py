# src/stream/__init__.py
# =======================
# Stream Session Orchestration — VoiceSentinel
#
# Responsibility:
#   - One StreamSession per connection: ordered chunk queue, one worker,
#     private SessionMonitor, end-of-stream summary
#   - SessionRegistry keyed by session id (no shared mutable state)

from src.stream.session import (  # noqa: F401
    SessionClosedError,
    SessionRegistry,
    SessionState,
    StreamSession,
)
