"""
Temp file handling for downloaded images and generated reports.

Every request writes into the same TEMP_DIR, so names carry a random
hex suffix. Cleanup is age based: sweep_temp_dir() only removes files
whose mtime is older than the threshold, which keeps it safe to run
while other requests are still writing newer files.
"""

import asyncio
import logging
import re
import secrets
import time
from pathlib import Path
from typing import List, Optional, Union

from .config import TEMP_DIR, TEMP_FILE_MAX_AGE

logger = logging.getLogger("TempFiles")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def ensure_temp_dir(directory: Union[str, Path, None] = None) -> Path:
    path = Path(directory or TEMP_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def unique_name(stem: str, suffix: str = "", prefix: str = "") -> str:
    """
    Build a collision-free file name, e.g. unique_name("image", ".png", "source")
    -> "source_image_3f9a0c1b2d4e.png".
    """
    stem = _UNSAFE_CHARS.sub("_", stem).strip("._") or "file"
    if suffix and not suffix.startswith("."):
        suffix = "." + suffix
    suffix = _UNSAFE_CHARS.sub("", suffix)
    name = f"{stem}_{secrets.token_hex(6)}{suffix}"
    return f"{prefix}_{name}" if prefix else name


def sweep_temp_dir(
        directory: Union[str, Path, None] = None,
        max_age: float = TEMP_FILE_MAX_AGE,
        now: Optional[float] = None,
) -> List[Path]:
    """
    Delete files in the temp directory older than max_age seconds.

    Args:
        directory: Directory to sweep. Defaults to TEMP_DIR.
        max_age: Age threshold in seconds, compared against mtime.
        now: Override the current time (epoch seconds).

    Returns:
        Paths that were removed.
    """
    path = Path(directory or TEMP_DIR)
    if not path.is_dir():
        return []

    now = time.time() if now is None else now
    removed = []

    for entry in path.iterdir():
        try:
            if not entry.is_file():
                continue
            age = now - entry.stat().st_mtime
            if age > max_age:
                entry.unlink()
                removed.append(entry)
        except FileNotFoundError:
            # Another sweep got there first
            continue
        except OSError as e:
            logger.warning(f"Could not remove temp file {entry.name}: {e}")

    if removed:
        logger.info(f"Swept {len(removed)} temp file(s) from {path}")
    else:
        logger.debug(f"Nothing to sweep in {path}")
    return removed


async def sweep_later(
        delay: float,
        directory: Union[str, Path, None] = None,
        max_age: float = TEMP_FILE_MAX_AGE,
) -> List[Path]:
    """Wait `delay` seconds, then sweep off the event loop."""
    await asyncio.sleep(delay)
    return await asyncio.to_thread(sweep_temp_dir, directory, max_age)
