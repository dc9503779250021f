"""
Edit sessions that own the images attached while writing an article.

An edit session is the scope of the image reference map: images attached to
it can be referenced by placeholder in the Markdown submitted with the same
session. The session is discarded after a successful submit, or when the
client leaves the editor, and kept intact when a submit fails. Sessions the
client abandons expire after `ttl_seconds` without activity.

Supports an in-memory store for tests/single-process runs and a Redis-backed
store shared by every API worker.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Literal, Optional, Protocol, Tuple

import redis
from redis import exceptions as redis_exceptions

from image_pipeline.placeholders import ImageEntry
from shared import ids
from shared.errors import NotFoundError, PermissionDeniedError
from shared.json_utils import from_document, to_document

SessionMode = Literal["create", "edit"]

DEFAULT_SESSION_TTL = 6 * 60 * 60


@dataclass
class EditSession:
    session_id: str
    owner_uid: str
    mode: SessionMode = "create"
    # Article being edited; None while writing a new article.
    article_id: Optional[str] = None
    images: Dict[str, ImageEntry] = field(default_factory=dict)
    created_at: float = field(default_factory=lambda: time.time())
    last_active_at: float = field(default_factory=lambda: time.time())


class EditSessionStore(Protocol):
    def create(
        self, owner_uid: str, mode: SessionMode = "create", article_id: Optional[str] = None
    ) -> EditSession:
        ...

    def get(self, session_id: str, owner_uid: str) -> EditSession:
        ...

    def attach_image(self, session_id: str, owner_uid: str, entry: ImageEntry) -> str:
        ...

    def discard(self, session_id: str) -> None:
        ...


def _check_owner(session: EditSession, owner_uid: str) -> None:
    if session.owner_uid != owner_uid:
        raise PermissionDeniedError("This edit session belongs to another user.")


class InMemoryEditSessionStore:
    """Keeps edit sessions in process memory."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._sessions: Dict[str, EditSession] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def _expire(self, now: float) -> None:
        # Caller holds self._lock.
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_active_at >= self.ttl_seconds
        ]
        for session_id in expired:
            del self._sessions[session_id]

    def create(
        self, owner_uid: str, mode: SessionMode = "create", article_id: Optional[str] = None
    ) -> EditSession:
        now = self.clock()
        session = EditSession(
            session_id=ids.short_id(),
            owner_uid=owner_uid,
            mode=mode,
            article_id=article_id,
            created_at=now,
            last_active_at=now,
        )
        with self._lock:
            self._expire(now)
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str, owner_uid: str) -> EditSession:
        with self._lock:
            self._expire(self.clock())
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Edit session {session_id} not found")
        _check_owner(session, owner_uid)
        return session

    def attach_image(self, session_id: str, owner_uid: str, entry: ImageEntry) -> str:
        """Stores `entry` under a new placeholder id and returns the id."""
        session = self.get(session_id, owner_uid)
        with self._lock:
            image_id = ids.placeholder_id()
            while image_id in session.images:
                image_id = ids.placeholder_id()
            session.images[image_id] = entry
            session.last_active_at = self.clock()
        return image_id

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


@dataclass
class RedisEditSessionStore:
    """Redis-backed store shared by every API worker.

    Each session is a JSON record plus a hash of its images. Both keys expire
    `ttl_seconds` after the session was created or last received an image.
    """

    url: str
    ttl_seconds: int = DEFAULT_SESSION_TTL
    key_prefix: str = "stemcom:session:"

    def __post_init__(self):
        self._connect()

    def _connect(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def _keys(self, session_id: str) -> Tuple[str, str]:
        record_key = self.key_prefix + session_id
        return record_key, record_key + ":images"

    def create(
        self, owner_uid: str, mode: SessionMode = "create", article_id: Optional[str] = None
    ) -> EditSession:
        session = EditSession(
            session_id=ids.short_id(), owner_uid=owner_uid, mode=mode, article_id=article_id
        )
        record = to_document(session)
        record.pop("images")
        record_key, _ = self._keys(session.session_id)
        payload = json.dumps(record)
        try:
            self.client.set(record_key, payload, ex=self.ttl_seconds)
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis; reconnect once.
            self._connect()
            self.client.set(record_key, payload, ex=self.ttl_seconds)
        return session

    def get(self, session_id: str, owner_uid: str) -> EditSession:
        record_key, images_key = self._keys(session_id)
        raw = self.client.get(record_key)
        if raw is None:
            raise NotFoundError(f"Edit session {session_id} not found")
        session = from_document(EditSession, json.loads(raw))
        _check_owner(session, owner_uid)
        session.images = {
            image_id: from_document(ImageEntry, json.loads(value))
            for image_id, value in self.client.hgetall(images_key).items()
        }
        return session

    def attach_image(self, session_id: str, owner_uid: str, entry: ImageEntry) -> str:
        """Stores `entry` under a new placeholder id and returns the id."""
        self.get(session_id, owner_uid)
        record_key, images_key = self._keys(session_id)
        payload = json.dumps(to_document(entry))
        image_id = ids.placeholder_id()
        while not self.client.hsetnx(images_key, image_id, payload):
            image_id = ids.placeholder_id()
        pipeline = self.client.pipeline()
        pipeline.expire(record_key, self.ttl_seconds)
        pipeline.expire(images_key, self.ttl_seconds)
        pipeline.execute()
        return image_id

    def discard(self, session_id: str) -> None:
        self.client.delete(*self._keys(session_id))
