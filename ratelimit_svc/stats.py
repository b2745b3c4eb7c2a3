"""Counters and the stat structures the rate limiter reports through."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Mapping

from .utilities import sanitize_stat_name

logger = logging.getLogger(__name__)


class Counter:
    """A monotonically increasing, thread-safe counter."""

    def __init__(self, name: str, tags: Mapping[str, str] | None = None) -> None:
        self.name = name
        self.tags = dict(tags or {})
        self._value = 0
        self._lock = threading.Lock()

    def inc(self) -> None:
        self.add(1)

    def add(self, amount: int) -> None:
        if amount < 0:
            raise ValueError("counter amount must not be negative")
        with self._lock:
            self._value += amount

    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"Counter({self.name!r}, tags={self.tags!r}, value={self.value()})"


class Store:
    """Registry of named counters; asking twice for a name gives the same counter."""

    def __init__(self) -> None:
        self._counters: dict[tuple[str, tuple[tuple[str, str], ...]], Counter] = {}
        self._lock = threading.Lock()

    def scope(self, name: str) -> Scope:
        return Scope(self, name)

    def scope_with_tags(self, name: str, tags: Mapping[str, str] | None) -> Scope:
        return Scope(self, name, tags)

    def counter(self, name: str) -> Counter:
        return self._counter(name, {})

    def counters(self) -> list[Counter]:
        """Return all counters ordered by name and tags."""
        with self._lock:
            found = list(self._counters.values())
        return sorted(found, key=lambda c: (c.name, sorted(c.tags.items())))

    def _counter(self, name: str, tags: Mapping[str, str]) -> Counter:
        key = (name, tuple(sorted(tags.items())))
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                counter = self._counters[key] = Counter(name, tags)
            return counter


class Scope:
    """A dotted name prefix, with tags, over a store."""

    def __init__(self, store: Store, name: str, tags: Mapping[str, str] | None = None) -> None:
        self.store = store
        self.name = name
        self.tags = dict(tags or {})

    def scope(self, name: str) -> Scope:
        return Scope(self.store, f"{self.name}.{name}", self.tags)

    def counter(self, name: str) -> Counter:
        return self.store._counter(f"{self.name}.{name}", self.tags)


@dataclass
class RateLimitStats:
    """Stats for an individual rate limit config entry."""

    key: str
    total_hits: Counter
    over_limit: Counter
    near_limit: Counter
    over_limit_with_local_cache: Counter
    within_limit: Counter
    shadow_mode: Counter


@dataclass
class ShouldRateLimitStats:
    """Stats for recovered errors while handling a request."""

    redis_error: Counter
    service_error: Counter


@dataclass
class ServiceStats:
    """Stats for configuration loads and request handling."""

    config_load_success: Counter
    config_load_error: Counter
    should_rate_limit: ShouldRateLimitStats
    global_shadow_mode: Counter


class StatManager:
    """Creates the service's stat structures under the ``ratelimit.service`` scope."""

    def __init__(self, store: Store, extra_tags: Mapping[str, str] | None = None) -> None:
        self.store = store
        service_scope = store.scope_with_tags("ratelimit", extra_tags or {}).scope("service")
        self._service_scope = service_scope
        self._rate_limit_scope = service_scope.scope("rate_limit")
        self._should_rate_limit_scope = service_scope.scope("call.should_rate_limit")

    def new_stats(self, key: str) -> RateLimitStats:
        """Return stats for a fully resolved descriptor key; same key, same counters."""
        logger.debug("Creating stats for key: '%s'", key)
        name = sanitize_stat_name(key)
        scope = self._rate_limit_scope
        return RateLimitStats(
            key=key,
            total_hits=scope.counter(f"{name}.total_hits"),
            over_limit=scope.counter(f"{name}.over_limit"),
            near_limit=scope.counter(f"{name}.near_limit"),
            over_limit_with_local_cache=scope.counter(f"{name}.over_limit_with_local_cache"),
            within_limit=scope.counter(f"{name}.within_limit"),
            shadow_mode=scope.counter(f"{name}.shadow_mode"),
        )

    def new_should_rate_limit_stats(self) -> ShouldRateLimitStats:
        scope = self._should_rate_limit_scope
        return ShouldRateLimitStats(
            redis_error=scope.counter("redis_error"),
            service_error=scope.counter("service_error"),
        )

    def new_service_stats(self) -> ServiceStats:
        scope = self._service_scope
        return ServiceStats(
            config_load_success=scope.counter("config_load_success"),
            config_load_error=scope.counter("config_load_error"),
            should_rate_limit=self.new_should_rate_limit_stats(),
            global_shadow_mode=scope.counter("global_shadow_mode"),
        )