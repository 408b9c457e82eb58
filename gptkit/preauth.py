"""A file-backed store of preauth device-check cookies."""

from __future__ import annotations

import logging
import random
import re
import threading
from pathlib import Path

from cachetools import TTLCache

from .util import home_dir, now_duration

logger = logging.getLogger(__name__)

_COOKIE_NAME = "_preauth_devicecheck"
_MAX_ENTRIES = 1000
_TTL_SECONDS = 3600 * 24
_FRESH_SECONDS = 3600 * 24 - 60
_U64_MAX = 2**64 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_u64(text: str) -> int:
    if not _UNSIGNED.fullmatch(text):
        return 0
    value = int(text)
    return value if value <= _U64_MAX else 0


def is_fresh(entry: str, now: int | None = None) -> bool:
    """Tell whether an entry of the form ``device:timestamp-suffix`` is still usable.

    An entry is fresh when its timestamp lies less than a day (less one minute)
    before ``now``, given in seconds since the epoch.
    """
    parts = entry.split(":")
    if len(parts) != 2:
        return False
    timestamp_parts = parts[1].split("-")
    if len(timestamp_parts) != 2:
        return False
    timestamp = _parse_u64(timestamp_parts[0])
    if now is None:
        now = int(now_duration().total_seconds())
    if timestamp > now:
        return False
    return now - timestamp < _FRESH_SECONDS


def _device_id(entry: str) -> str | None:
    index = entry.find(":")
    return entry[:index] if index >= 0 else None


class PreauthCookieProvider:
    """Keeps preauth cookies by device id, mirrored to a file."""

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            path = (home_dir() or Path(".")) / ".preauth_cookies"
        self.path = Path(path)
        self._lock = threading.Lock()
        self._cache: TTLCache[str, str] = TTLCache(maxsize=_MAX_ENTRIES, ttl=_TTL_SECONDS)

        try:
            raw = self.path.read_bytes()
        except OSError:
            raw = b""
        entries = [
            line.decode("utf-8", errors="replace")
            for line in raw.split(b"\n")
            if line
        ]
        entries = [entry for entry in entries if is_fresh(entry)]

        for entry in entries:
            logger.info("Load preauth cookie from file: %s, value: %s", self.path, entry)
            device_id = _device_id(entry)
            if device_id is not None:
                self._cache[device_id] = entry

        try:
            self.path.write_bytes("\n".join(entries).encode("utf-8"))
        except OSError as exc:
            logger.warning("Failed to write preauth cookie to file: %s", exc)

    def push(self, value: str) -> None:
        """Store the device-check cookie found in a Cookie or Set-Cookie value."""
        part = next((p for p in value.split(";") if _COOKIE_NAME in p), None)
        if part is None:
            return
        cookie = part.strip()
        prefix = f"{_COOKIE_NAME}="
        while cookie.startswith(prefix):
            cookie = cookie[len(prefix):]
        device_id = _device_id(cookie)
        if device_id is None:
            return
        logger.info("Push PreAuth Cookie: %s", cookie)
        with self._lock:
            self._cache[device_id] = cookie
            self._sync_to_file()

    def get(self) -> str | None:
        """Return a random fresh cookie, or None when there is none."""
        fresh = [entry for entry in self.values() if is_fresh(entry)]
        return random.choice(fresh) if fresh else None

    def values(self) -> list[str]:
        """Return every stored cookie."""
        with self._lock:
            return list(self._cache.values())

    def _sync_to_file(self) -> None:
        data = "\n".join(self._cache.values())
        try:
            self.path.write_text(data, encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write preauth cookie to file: %s", exc)