"""Reconnection delay policies for event streams. Durations are in seconds."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

LastRetry = Optional[Tuple[int, float]]


class RetryPolicy(ABC):
    """Decides how long to wait before reconnecting after an error."""

    @abstractmethod
    def retry(self, error: BaseException, last_retry: LastRetry) -> float | None:
        """Return the next delay, or None to give up."""

    @abstractmethod
    def set_reconnection_time(self, duration: float) -> None:
        """Adopt a reconnection time announced by the server."""


@dataclass
class ExponentialBackoff(RetryPolicy):
    """Backs off exponentially from a starting delay."""

    start: float
    factor: float
    max_duration: float | None = None
    max_retries: int | None = None

    def retry(self, error: BaseException, last_retry: LastRetry) -> float | None:
        if last_retry is None:
            return self.start
        retry_num, last_duration = last_retry
        if self.max_retries is not None and retry_num >= self.max_retries:
            return None
        duration = last_duration * self.factor
        if self.max_duration is not None:
            duration = min(duration, self.max_duration)
        return duration

    def set_reconnection_time(self, duration: float) -> None:
        self.start = duration
        if self.max_duration is not None:
            self.max_duration = max(self.max_duration, duration)


@dataclass
class Constant(RetryPolicy):
    """Always waits the same delay."""

    delay: float
    max_retries: int | None = None

    def retry(self, error: BaseException, last_retry: LastRetry) -> float | None:
        if last_retry is not None:
            retry_num, _ = last_retry
            if self.max_retries is not None and retry_num >= self.max_retries:
                return None
        return self.delay

    def set_reconnection_time(self, duration: float) -> None:
        self.delay = duration


@dataclass
class Never(RetryPolicy):
    """Never retries."""

    def retry(self, error: BaseException, last_retry: LastRetry) -> float | None:
        return None

    def set_reconnection_time(self, duration: float) -> None:
        pass


def default_retry() -> ExponentialBackoff:
    """Return a fresh copy of the default policy: 300 ms doubling up to 5 s."""
    return ExponentialBackoff(start=0.3, factor=2.0, max_duration=5.0, max_retries=None)