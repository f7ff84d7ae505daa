"""
Shared configuration for the Rekognition bot.

Centralizes paths, AWS settings and request limits so the bot, the
vision pipeline and the maintenance scripts all resolve the same values
without hardcoded relative paths.

Everything can be overridden from the environment (or a .env file next
to the project):

    DATA_DIR=/data                 # persistent volume on Railway
    AWS_REGION=eu-west-1
    MAX_IMAGE_BYTES=5242880
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_number(name: str, default, cast=float, environ=None):
    """Read a numeric env var, falling back to the default if it won't parse."""
    raw = (os.environ if environ is None else environ).get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


# ---------------------------------------------------------------------------
# Directory layout
# ---------------------------------------------------------------------------

# Root of the monorepo (parent of common/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

DATA_DIR = Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT / "data")))

# Downloaded images and generated JSON reports. Files here are short-lived:
# they only need to survive long enough to be attached to a Discord reply.
TEMP_DIR = Path(os.environ.get("TEMP_DIR", str(DATA_DIR / "temp")))

# ---------------------------------------------------------------------------
# Discord
# ---------------------------------------------------------------------------

BOT_TOKEN: Optional[str] = os.environ.get("REKOGNITION_BOT_TOKEN")

# Leave unset to register the commands globally
GUILD_ID: Optional[str] = os.environ.get("GUILD_ID") or None

# ---------------------------------------------------------------------------
# Limits and timings
# ---------------------------------------------------------------------------

MAX_IMAGE_BYTES = _env_number("MAX_IMAGE_BYTES", 10 * 1024 * 1024, int)
DOWNLOAD_TIMEOUT = _env_number("DOWNLOAD_TIMEOUT", 15.0)
ANALYSIS_TIMEOUT = _env_number("ANALYSIS_TIMEOUT", 60.0)

TEMP_FILE_MAX_AGE = _env_number("TEMP_FILE_MAX_AGE", 60.0)
TEMP_SWEEP_DELAY = _env_number("TEMP_SWEEP_DELAY", 10.0)

DEFAULT_SIMILARITY = _env_number("DEFAULT_SIMILARITY", 80.0)

# ---------------------------------------------------------------------------
# AWS Rekognition
# ---------------------------------------------------------------------------

DEFAULT_AWS_REGION = "us-east-1"


@dataclass(frozen=True)
class RekognitionSettings:
    """Everything needed to construct a Rekognition client."""
    access_key_id: str
    secret_access_key: str
    region: str = DEFAULT_AWS_REGION
    session_token: Optional[str] = None
    max_attempts: int = 3
    connect_timeout: float = 10.0
    read_timeout: float = 30.0


def load_rekognition_settings(environ=None) -> RekognitionSettings:
    """
    Build RekognitionSettings from the environment.

    Raises:
        ConfigurationError: if either credential variable is missing.
    """
    from vision.errors import ConfigurationError

    env = os.environ if environ is None else environ
    missing = [
        name for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY")
        if not env.get(name)
    ]
    if missing:
        raise ConfigurationError(
            "AWS credentials are not configured. Missing: " + ", ".join(missing)
        )

    max_attempts = _env_number("REKOGNITION_MAX_ATTEMPTS", 3, int, environ=env)

    return RekognitionSettings(
        access_key_id=env["AWS_ACCESS_KEY_ID"],
        secret_access_key=env["AWS_SECRET_ACCESS_KEY"],
        region=env.get("AWS_REGION") or DEFAULT_AWS_REGION,
        session_token=env.get("AWS_SESSION_TOKEN") or None,
        max_attempts=max_attempts,
    )
