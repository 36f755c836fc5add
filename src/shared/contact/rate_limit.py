"""In-memory rate limiting for contact form submissions.

Counters live in process memory: a restart resets every limit and each worker
process keeps its own counters.
"""

import logging
import math
import time
from dataclasses import dataclass, replace
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple

from src.shared.contact.errors import RateLimited

HOUR = 3600
DAY = 24 * HOUR


@dataclass
class RateLimitCounter:
    """Remaining allowance for one key within one limiter."""
    key: str
    points: int
    window_start: float
    window_duration_seconds: int
    blocked_until: Optional[float] = None

    @property
    def window_end(self) -> float:
        return self.window_start + self.window_duration_seconds

    def is_blocked(self, now: float) -> bool:
        return self.blocked_until is not None and now < self.blocked_until


class RateLimitExceeded(Exception):
    """Raised when a key has no points left or is blocked."""

    def __init__(self, limiter: str, key: str, ms_before_next: int):
        super().__init__(f"{limiter} limit exceeded for {key}")
        self.limiter = limiter
        self.key = key
        self.ms_before_next = ms_before_next


def _ms_until(moment: float, now: float) -> int:
    return max(int(math.ceil((moment - now) * 1000)), 0)


class MemoryRateLimiter:
    """
    Fixed-window counter per key with an optional block period.

    A key gets `points` consumptions per `duration` seconds, counted from its first
    consumption. A rejected attempt on a limiter with `block_duration` blocks the key
    for that long; while blocked every attempt fails, and the key starts over with a
    fresh window once the block ends.

    Dead counters are dropped when next touched, and at most every `sweep_interval`
    seconds the whole store is swept so keys that never return do not pile up.
    """

    def __init__(self, name: str, points: int, duration: int, block_duration: int = 0,
                 clock: Callable[[], float] = time.time, sweep_interval: int = 60):
        self.name = name
        self.points = points
        self.duration = duration
        self.block_duration = block_duration
        self._clock = clock
        self._store: Dict[str, RateLimitCounter] = {}
        self.sweep_interval = sweep_interval
        self._lock = Lock()
        self._last_sweep = clock()

    def _expired(self, counter: RateLimitCounter, now: float) -> bool:
        if counter.blocked_until is not None:
            return now >= counter.blocked_until
        return now >= counter.window_end

    def _sweep_locked(self, now: float) -> int:
        dead = [key for key, counter in self._store.items() if self._expired(counter, now)]
        for key in dead:
            del self._store[key]
        self._last_sweep = now
        return len(dead)

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep >= self.sweep_interval:
            removed = self._sweep_locked(now)
            if removed:
                logging.info(f"Rate limiter {self.name} swept {removed} expired keys")

    def sweep(self) -> int:
        """Drop every counter whose window or block has run out. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            return self._sweep_locked(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _live(self, key: str, now: float) -> Optional[RateLimitCounter]:
        """Current counter for key, dropping it once its window or block has run out. Caller holds the lock."""
        counter = self._store.get(key)
        if counter is None:
            return None
        if self._expired(counter, now):
            del self._store[key]
            return None
        return counter

    def _ms_before_next(self, counter: Optional[RateLimitCounter], now: float) -> Optional[int]:
        """Milliseconds until key may consume again, or None if it can consume now."""
        if counter is None:
            return None
        if counter.is_blocked(now):
            return _ms_until(counter.blocked_until, now)
        if counter.points <= 0:
            return _ms_until(counter.window_end, now)
        return None

    def check(self, key: str) -> Optional[int]:
        """Peek: None if one point could be consumed now, else milliseconds to wait."""
        now = self._clock()
        with self._lock:
            return self._ms_before_next(self._live(key, now), now)

    def reject(self, key: str) -> int:
        """Register a refused attempt on key, starting its block if this limiter blocks. Returns ms to wait."""
        now = self._clock()
        with self._lock:
            counter = self._live(key, now)
            if counter is None:
                return 0
            if counter.is_blocked(now):
                return _ms_until(counter.blocked_until, now)
            if counter.points <= 0 and self.block_duration:
                counter.blocked_until = now + self.block_duration
                return self.block_duration * 1000
            return _ms_until(counter.window_end, now)

    def consume(self, key: str) -> RateLimitCounter:
        """
        Take one point from key.

        Returns:
            Snapshot of the counter after consumption

        Raises:
            RateLimitExceeded when the key is exhausted or blocked; points never go negative
        """
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            counter = self._live(key, now)
            wait_ms = self._ms_before_next(counter, now)
            if wait_ms is None:
                if counter is None:
                    counter = RateLimitCounter(key=key, points=self.points, window_start=now,
                                               window_duration_seconds=self.duration)
                    self._store[key] = counter
                counter.points -= 1
                return replace(counter)

        wait_ms = self.reject(key)
        raise RateLimitExceeded(self.name, key, wait_ms)

    def get(self, key: str) -> Optional[RateLimitCounter]:
        """Snapshot of the live counter for key, if any."""
        now = self._clock()
        with self._lock:
            counter = self._live(key, now)
            return replace(counter) if counter else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


class ContactRateLimiters:
    """The five contact form limiters: per IP, per email, per phone, global, and the suspicious-IP tracker."""

    GLOBAL_KEY = "global"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.per_ip = MemoryRateLimiter("per_ip", points=3, duration=HOUR, block_duration=HOUR, clock=clock)
        self.per_email = MemoryRateLimiter("per_email", points=2, duration=HOUR, block_duration=30 * 60, clock=clock)
        self.per_phone = MemoryRateLimiter("per_phone", points=2, duration=HOUR, block_duration=30 * 60, clock=clock)
        self.global_limit = MemoryRateLimiter("global", points=50, duration=HOUR, clock=clock)
        self.suspicious = MemoryRateLimiter("suspicious_ip", points=10, duration=DAY, block_duration=DAY, clock=clock)
        self._submission_lock = Lock()

    def _submission_keys(self, ip: str, email: Optional[str], phone: Optional[str]) -> List[Tuple[MemoryRateLimiter, str]]:
        return [
            (self.per_ip, ip),
            (self.per_email, email.lower() if email else ip),
            (self.per_phone, phone or ip),
            (self.global_limit, self.GLOBAL_KEY),
        ]

    def consume_submission(self, ip: str, email: Optional[str] = None, phone: Optional[str] = None) -> None:
        """
        Take one point from each submission limiter, or from none of them.

        Raises:
            RateLimited with the longest wait among the refusing limiters
        """
        pairs = self._submission_keys(ip, email, phone)
        with self._submission_lock:
            refused = [(limiter, key) for limiter, key in pairs if limiter.check(key) is not None]
            if refused:
                waits = [(limiter.reject(key), limiter.name) for limiter, key in refused]
                ms_before_next, scope = max(waits)
                logging.warning(f"Contact rate limit exceeded from IP: {ip} (scope: {scope}, retry in {ms_before_next}ms)")
                raise RateLimited(ms_before_next=ms_before_next, scope=scope, now=self._clock())

            for limiter, key in pairs:
                limiter.consume(key)

    def record_suspicious(self, ip: str) -> Optional[RateLimitCounter]:
        """Charge one point of suspicious activity against ip. Never raises."""
        try:
            return self.suspicious.consume(ip)
        except RateLimitExceeded as e:
            logging.warning(f"IP {ip} is blocked for suspicious contact activity ({e.ms_before_next}ms remaining)")
            return self.suspicious.get(ip)
