"""
Process configuration read from the environment.

Values are resolved once at import time; index.py overrides some of them from
command line flags before any controller is built.
"""

import os
from typing import List

DEFAULT_ICE_SERVERS = "stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302"


def _parse_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _parse_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def parse_url_list(value: str) -> List[str]:
    """Split a comma separated list, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


## Coordinator
COORDINATOR_HOST = os.getenv("COORDINATOR_HOST", "0.0.0.0")
COORDINATOR_PORT = _parse_int_env("COORDINATOR_PORT", 3001)
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "*")

## Clients
SIGNALING_SERVER_URL = os.getenv("SIGNALING_SERVER_URL", "http://localhost:3001")
ICE_SERVERS = parse_url_list(os.getenv("ICE_SERVERS", DEFAULT_ICE_SERVERS))
ICE_USERNAME = os.getenv("ICE_USERNAME")
ICE_CREDENTIAL = os.getenv("ICE_CREDENTIAL")

## Lifecycle timings (seconds)
TEARDOWN_DELAY_SECONDS = _parse_float_env("TEARDOWN_DELAY_SECONDS", 3.0)
RETURN_TO_DASHBOARD_DELAY_SECONDS = _parse_float_env(
    "RETURN_TO_DASHBOARD_DELAY_SECONDS", 2.0
)
NEXT_CANDIDATE_TIMEOUT_SECONDS = _parse_float_env("NEXT_CANDIDATE_TIMEOUT_SECONDS", 10.0)
INSPECTION_READY_TIMEOUT_SECONDS = _parse_float_env("INSPECTION_READY_TIMEOUT_SECONDS", 10.0)
MAX_RENEGOTIATION_ATTEMPTS = _parse_int_env("MAX_RENEGOTIATION_ATTEMPTS", 3)

## Media capture (ffmpeg input formats)
VIDEO_CAPTURE_FORMAT = os.getenv("VIDEO_CAPTURE_FORMAT", "v4l2")
AUDIO_CAPTURE_FORMAT = os.getenv("AUDIO_CAPTURE_FORMAT", "alsa")

## Logging
LOG_DIR = os.getenv("LOG_DIR")
