"""Configuration for the clinician console.

Everything environment-specific is read here once; components receive the
values through ConsoleContext so tests can override them.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str):
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return float(value)


# Backend
BACKEND_URL = os.getenv("CONSOLE_BACKEND_URL", "https://production.up.railway.app")
REQUEST_TIMEOUT = _optional_float("CONSOLE_REQUEST_TIMEOUT")  # None = wait forever

# Durable client state (the only persisted value is the bearer token)
STORAGE_PATH = Path(
    os.getenv(
        "CONSOLE_STORAGE_PATH",
        str(Path.home() / ".clinician_console" / "storage.json"),
    )
)
CREDENTIAL_KEY = "jwt"

# Logging
LOG_LEVEL = os.getenv("CONSOLE_LOG_LEVEL", "INFO")

# UX delays (seconds)
AUTH_REDIRECT_DELAY = 1.5
UNAUTHORIZED_REDIRECT_DELAY = 0.5
SETUP_COMPLETE_REDIRECT_DELAY = 1.2

# Weekly schedule
DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"
TIME_STEP_MINUTES = 15

# In-memory histories (navigation, notices) keep only the most recent entries
HISTORY_LIMIT = 100
