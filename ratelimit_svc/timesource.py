"""Time and randomness sources used for cache windows and expiration jitter."""

from __future__ import annotations

import random
import threading
import time
from abc import ABC, abstractmethod


class TimeSource(ABC):
    """Something that knows the current unix time in seconds."""

    @abstractmethod
    def unix_now(self) -> int:
        """Return the current unix time in whole seconds."""


class SystemTimeSource(TimeSource):
    """Time source backed by the system clock."""

    def unix_now(self) -> int:
        return int(time.time())


class LockedSource:
    """Thread-safe pseudo-random source producing non-negative 63-bit integers."""

    def __init__(self, seed: int) -> None:
        self._lock = threading.Lock()
        self._rng = random.Random(seed)

    def int63(self) -> int:
        """Return a pseudo-random integer in ``[0, 2**63)``."""
        with self._lock:
            return self._rng.getrandbits(63)

    def seed(self, seed: int) -> None:
        """Reset the generator to a deterministic state."""
        with self._lock:
            self._rng.seed(seed)