"""
Firestore-backed document store.

Collections follow the hosted layout: `articles`, `users`, `tags` (keyed by
tag name), `series`, `compositeDocuments`, `keys` and `authSessions`.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from google.api_core import exceptions
from google.cloud.firestore_v1 import ArrayUnion, Query

from shared.errors import NotFoundError
from shared.json_utils import from_document, to_document
from shared.types import (
    Article,
    CompositeDocument,
    Series,
    SeriesEntry,
    UserProfile,
)

ARTICLES_COLLECTION = "articles"
USERS_COLLECTION = "users"
TAGS_COLLECTION = "tags"
SERIES_COLLECTION = "series"
COMPOSITE_DOCUMENTS_COLLECTION = "compositeDocuments"
KEYS_COLLECTION = "keys"
AUTH_SESSIONS_COLLECTION = "authSessions"


def _read(data: dict) -> dict:
    # Documents written with serverTimestamp() hold a datetime, not a float.
    created_at = data.get("created_at")
    if isinstance(created_at, datetime):
        data["created_at"] = created_at.timestamp()
    return data


class FirestoreDbClient:
    """Document store on top of a `google.cloud.firestore.Client`."""

    def __init__(self, client):
        self.client = client

    def _doc(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    def _get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._doc(collection, doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def _stream(self, collection: str):
        for snapshot in self.client.collection(collection).stream():
            yield snapshot.to_dict()

    def save_article(self, article: Article) -> None:
        self._doc(ARTICLES_COLLECTION, article.id).set(to_document(article))

    def get_article(self, article_id: str) -> Optional[Article]:
        data = self._get(ARTICLES_COLLECTION, article_id)
        return from_document(Article, _read(data)) if data else None

    def list_articles(self, limit: Optional[int] = 100) -> List[Article]:
        query = (
            self.client.collection(ARTICLES_COLLECTION)
            .order_by("created_at", direction=Query.DESCENDING)
        )
        if limit is not None:
            query = query.limit(limit)
        return [from_document(Article, _read(snapshot.to_dict())) for snapshot in query.stream()]

    def get_user(self, uid: str) -> Optional[UserProfile]:
        data = self._get(USERS_COLLECTION, uid)
        if not data:
            return None
        data.setdefault("uid", uid)
        return from_document(UserProfile, data)

    def save_user(self, user: UserProfile) -> None:
        self._doc(USERS_COLLECTION, user.uid).set(to_document(user))

    def create_user_if_absent(self, user: UserProfile) -> bool:
        try:
            self._doc(USERS_COLLECTION, user.uid).create(to_document(user))
        except exceptions.Conflict:
            return False
        return True

    def list_users(self) -> List[UserProfile]:
        users = []
        for snapshot in self.client.collection(USERS_COLLECTION).stream():
            data = snapshot.to_dict()
            data.setdefault("uid", snapshot.id)
            users.append(from_document(UserProfile, data))
        return users

    def list_tag_names(self) -> List[str]:
        return [data["name"] for data in self._stream(TAGS_COLLECTION) if data.get("name")]

    def add_tag(self, name: str) -> bool:
        # create() fails on an existing document, which keeps tag names unique.
        try:
            self._doc(TAGS_COLLECTION, name).create({"name": name})
        except exceptions.Conflict:
            return False
        return True

    def save_series(self, series: Series) -> None:
        self._doc(SERIES_COLLECTION, series.id).set(to_document(series))

    def get_series(self, series_id: str) -> Optional[Series]:
        data = self._get(SERIES_COLLECTION, series_id)
        return from_document(Series, _read(data)) if data else None

    def list_series(self) -> List[Series]:
        return [from_document(Series, _read(data)) for data in self._stream(SERIES_COLLECTION)]

    def append_series_entry(self, series_id: str, entry: SeriesEntry) -> None:
        try:
            self._doc(SERIES_COLLECTION, series_id).update(
                {"articles": ArrayUnion([to_document(entry)])}
            )
        except exceptions.NotFound as e:
            raise NotFoundError(f"Series {series_id} not found") from e

    def save_composite_document(self, document: CompositeDocument) -> None:
        self._doc(COMPOSITE_DOCUMENTS_COLLECTION, document.id).set(to_document(document))

    def get_composite_document(self, document_id: str) -> Optional[CompositeDocument]:
        data = self._get(COMPOSITE_DOCUMENTS_COLLECTION, document_id)
        return from_document(CompositeDocument, _read(data)) if data else None

    def get_key(self, key_id: str) -> Optional[dict]:
        return self._get(KEYS_COLLECTION, key_id)

    def save_key(self, key_id: str, data: dict) -> None:
        self._doc(KEYS_COLLECTION, key_id).set(data)

    def save_auth_session(self, token: str, uid: str) -> None:
        self._doc(AUTH_SESSIONS_COLLECTION, token).set({"uid": uid})

    def get_auth_session_uid(self, token: str) -> Optional[str]:
        data = self._get(AUTH_SESSIONS_COLLECTION, token)
        return data.get("uid") if data else None

    def delete_auth_session(self, token: str) -> None:
        self._doc(AUTH_SESSIONS_COLLECTION, token).delete()
