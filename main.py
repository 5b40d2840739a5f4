"""
main.py
========
Central entry point for the VoiceSentinel application.

Run with:
    uvicorn main:app --reload
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

# Configure logging for the entire application
logging.basicConfig(
    level=os.getenv("VOICESENTINEL_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Keep per-request transport logs out of the analysis output.
for _transport_logger_name in (
    "uvicorn.access",
    "websockets",
    "websockets.server",
    "websockets.protocol",
):
    logging.getLogger(_transport_logger_name).setLevel(logging.WARNING)

from src.api.upload import app, settings  # noqa: F401, E402

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=True)
