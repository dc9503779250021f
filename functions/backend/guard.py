"""
Submission guard that keeps one submit per user in flight.

Supports an in-memory lock for tests/single-process runs and a Redis-backed
implementation shared by every API worker.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Protocol
from uuid import uuid4

import redis
from redis import exceptions as redis_exceptions

from shared.errors import SubmissionInProgressError

# Deletes the key only while it still holds the caller's token.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class SubmissionGuard(Protocol):
    """Minimal lock interface keyed by an arbitrary string."""

    def acquire(self, key: str) -> Optional[str]:
        """Returns an ownership token, or None if `key` is already held."""
        ...

    def release(self, key: str, token: str) -> None:
        ...


@dataclass
class InMemorySubmissionGuard:
    """Process-local guard for tests/dev."""

    held: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def acquire(self, key: str) -> Optional[str]:
        with self._lock:
            if key in self.held:
                return None
            token = uuid4().hex
            self.held[key] = token
            return token

    def release(self, key: str, token: str) -> None:
        with self._lock:
            if self.held.get(key) == token:
                del self.held[key]


@dataclass
class RedisSubmissionGuard:
    """Redis-backed guard using SET NX with an expiry.

    The expiry frees the key if a worker dies mid-submit. Each holder stores
    its own token, so a submit that outlived the expiry cannot release a
    lock taken after it.
    """

    url: str
    ttl_seconds: int = 120
    key_prefix: str = "stemcom:submit:"

    def __post_init__(self):
        self._connect()

    def _connect(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)
        self._release = self.client.register_script(_RELEASE_SCRIPT)

    def _set(self, key: str, token: str) -> bool:
        return bool(
            self.client.set(self.key_prefix + key, token, nx=True, ex=self.ttl_seconds)
        )

    def acquire(self, key: str) -> Optional[str]:
        token = uuid4().hex
        try:
            acquired = self._set(key, token)
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis; reconnect once.
            self._connect()
            acquired = self._set(key, token)
        return token if acquired else None

    def release(self, key: str, token: str) -> None:
        self._release(keys=[self.key_prefix + key], args=[token])


@contextmanager
def hold(guard: SubmissionGuard, key: str) -> Iterator[None]:
    """
    Holds `key` for the duration of the block.

    Raises:
        SubmissionInProgressError: If `key` is already held.
    """
    token = guard.acquire(key)
    if token is None:
        raise SubmissionInProgressError("A submission is already in progress.")
    try:
        yield
    finally:
        guard.release(key, token)
