"""
Resilience primitives: per-provider rate limiting with a throttle cooldown,
a rate-limit observation channel, and TTL caching.

Each provider owns one RateLimiter and one TTLCache. Nothing here is a module
level singleton; the chain factory builds the instances and passes them in.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_S = 60
DEFAULT_CACHE_TTL_S = 300.0


@dataclass(frozen=True)
class RateLimitState:
    """Snapshot of one provider's throttle status, as shown to a UI."""

    source: str
    is_waiting: bool = False
    seconds_remaining: int = 0
    message: Optional[str] = None

    @classmethod
    def idle(cls, source: str) -> "RateLimitState":
        return cls(source=source)

    @classmethod
    def waiting(cls, source: str, seconds: int) -> "RateLimitState":
        return cls(
            source=source,
            is_waiting=True,
            seconds_remaining=seconds,
            message=f"{source} rate limited, waiting {seconds}s...",
        )


Listener = Callable[[RateLimitState], None]


class RateLimitNotifier:
    """
    Fan-out channel for RateLimitState transitions.

    Usage:
        notifier = RateLimitNotifier()
        unsubscribe = notifier.subscribe(lambda s: print(s.message))
        ...
        unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._states: Dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def publish(self, state: RateLimitState) -> None:
        with self._lock:
            self._states[state.source] = state
            listeners = list(self._listeners)
        for cb in listeners:
            try:
                cb(state)
            except Exception:
                logger.exception("Rate-limit listener failed for %s", state.source)

    def get_state(self, source: str) -> RateLimitState:
        with self._lock:
            return self._states.get(source, RateLimitState.idle(source))

    def get_states(self) -> Dict[str, RateLimitState]:
        with self._lock:
            return dict(self._states)


class RateLimiter:
    """
    Minimum spacing between requests to one provider, plus a cooldown after throttling.

    - acquire() blocks until `min_interval_s` has passed since the previous grant.
    - report_throttled() enters the waiting state; the next acquire() counts the
      cooldown down one second at a time, publishing every tick, then returns
      to idle and resets the spacing clock.

    `clock` and `sleep` are injectable so tests can run without real waiting.
    """

    def __init__(
        self,
        source: str,
        min_interval_s: float,
        *,
        cooldown_s: int = DEFAULT_COOLDOWN_S,
        notifier: Optional[RateLimitNotifier] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.min_interval_s = float(min_interval_s)
        self.cooldown_s = int(cooldown_s)
        self.notifier = notifier if notifier is not None else RateLimitNotifier()
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.RLock()
        self._last_granted: Optional[float] = None
        self._cooldown_remaining = 0
        self.notifier.publish(RateLimitState.idle(source))

    @property
    def state(self) -> RateLimitState:
        return self.notifier.get_state(self.source)

    @property
    def is_cooling_down(self) -> bool:
        return self._cooldown_remaining > 0

    def acquire(self) -> None:
        with self._lock:
            self._wait_out_cooldown()
            if self._last_granted is not None:
                elapsed = self._clock() - self._last_granted
                if elapsed < self.min_interval_s:
                    self._sleep(self.min_interval_s - elapsed)
            self._last_granted = self._clock()

    def report_throttled(self, cooldown_s: Optional[int] = None) -> None:
        seconds = int(cooldown_s if cooldown_s is not None else self.cooldown_s)
        with self._lock:
            self._cooldown_remaining = seconds
        logger.warning("%s rate limited, waiting %ds...", self.source, seconds)
        self.notifier.publish(RateLimitState.waiting(self.source, seconds))

    def reset(self) -> None:
        with self._lock:
            self._cooldown_remaining = 0
            self._last_granted = None
        self.notifier.publish(RateLimitState.idle(self.source))

    def _wait_out_cooldown(self) -> None:
        if self._cooldown_remaining <= 0:
            return
        while self._cooldown_remaining > 0:
            self._sleep(1.0)
            self._cooldown_remaining -= 1
            self.notifier.publish(RateLimitState.waiting(self.source, self._cooldown_remaining))
        self._last_granted = None
        self.notifier.publish(RateLimitState.idle(self.source))
        logger.info("%s cooldown finished", self.source)


class TTLCache:
    """
    Time-bounded memoization. An entry is live while `now - stored_at < ttl_s`.

    Entries are never updated in place; set() replaces the whole entry.
    """

    def __init__(
        self,
        ttl_s: float = DEFAULT_CACHE_TTL_S,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = float(ttl_s)
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if (self._clock() - stored_at) >= self._ttl_s:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = (value, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
