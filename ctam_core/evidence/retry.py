# ctam_core/evidence/retry.py
"""
Cancellable exponential backoff for transient backend failures.

delay(attempt) = min(max_delay, base_delay * 2**attempt) + U(0, jitter)

The policy object owns its sleep function and random source so tests can
drive it without real waiting, and callers pass a threading.Event to stop
pending retries once nobody is waiting for the result.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from django.conf import settings
from django.db import InterfaceError, OperationalError

from ctam_core.evidence.storage import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryCancelled(Exception):
    pass


class RetryExhausted(Exception):
    def __init__(self, *, attempts: int, last_error: BaseException):
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, BackendError):
        return exc.is_retriable
    # lost/refused DB connection
    return isinstance(exc, (OperationalError, InterfaceError))


@dataclass
class RetryPolicy:
    base_delay: float = 0.8
    max_delay: float = 6.0
    jitter: float = 0.25
    max_attempts: int = 6
    sleep: Optional[Callable[[float], None]] = None
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def from_settings(cls, **overrides) -> "RetryPolicy":
        values = {
            "base_delay": float(getattr(settings, "CTAM_RETRY_BASE_DELAY", 0.8)),
            "max_delay": float(getattr(settings, "CTAM_RETRY_MAX_DELAY", 6.0)),
            "jitter": float(getattr(settings, "CTAM_RETRY_JITTER", 0.25)),
            "max_attempts": int(getattr(settings, "CTAM_RETRY_MAX_ATTEMPTS", 6)),
        }
        values.update(overrides)
        return cls(**values)

    def delay_for(self, attempt: int) -> float:
        """attempt is 0-based: the wait after the first failure is delay_for(0)."""
        backoff = min(self.max_delay, self.base_delay * (2 ** attempt))
        return backoff + self.rng.random() * self.jitter

    def _wait(self, delay: float, cancel: Optional[threading.Event]) -> None:
        if self.sleep is not None:
            self.sleep(delay)
        elif cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)

    def run(self, fn: Callable[[], T], *, cancel: Optional[threading.Event] = None, label: str = "") -> T:
        """
        Call `fn` until it succeeds, fails with a non-transient error (re-raised
        as is), attempts run out (RetryExhausted) or `cancel` is set
        (RetryCancelled). Only use with operations that are safe to repeat.
        """
        label = label or getattr(fn, "__name__", "operation")
        attempts = max(1, int(self.max_attempts))

        for attempt in range(attempts):
            if cancel is not None and cancel.is_set():
                raise RetryCancelled(label)

            try:
                return fn()
            except Exception as exc:
                if not is_transient(exc):
                    raise

                if attempt + 1 >= attempts:
                    logger.warning("Retries exhausted for %s after %d attempts: %s", label, attempts, exc)
                    raise RetryExhausted(attempts=attempts, last_error=exc) from exc

                delay = self.delay_for(attempt)
                logger.warning(
                    "Transient failure in %s (attempt %d/%d): %s; retrying in %.2fs",
                    label,
                    attempt + 1,
                    attempts,
                    exc,
                    delay,
                )
                self._wait(delay, cancel)

        raise RetryCancelled(label)  # pragma: no cover
