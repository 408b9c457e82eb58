"""Small helpers: home directory, clock, time formatting and random strings."""

from __future__ import annotations

import os
import random
import string
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

_CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits


def home_dir() -> Path | None:
    """Return the user's home directory, or None when it is not known."""
    variable = "USERPROFILE" if os.name == "nt" else "HOME"
    value = os.environ.get(variable)
    return Path(value) if value is not None else None


def now_duration() -> timedelta:
    """Return the time elapsed since the Unix epoch."""
    nanos = time.time_ns()
    if nanos < 0:
        raise ValueError("system clock is before the Unix epoch")
    return timedelta(microseconds=nanos // 1000)


def format_time_to_rfc3339(timestamp: int) -> str:
    """Format a Unix timestamp in seconds as an RFC 3339 UTC time."""
    try:
        moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"timestamp out of range: {timestamp}") from exc
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def generate_random_string(length: int) -> str:
    """Return a random alphanumeric string of the given length."""
    return "".join(random.choices(_CHARSET, k=length))