"""
Document store abstraction with SQL and in-memory implementations.

Documents are the dataclasses in `shared.types`. The SQL client keeps each
document as a camelCase JSON payload, mirroring the hosted document store the
Firestore client talks to.
"""

from __future__ import annotations

import copy
import time
from typing import Dict, List, Optional, Protocol

from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.errors import NotFoundError
from shared.json_utils import from_document, to_document
from shared.types import (
    Article,
    CompositeDocument,
    Series,
    SeriesEntry,
    UserProfile,
)


class DbClient(Protocol):
    """Interface for document store access."""

    def save_article(self, article: Article) -> None:
        ...

    def get_article(self, article_id: str) -> Optional[Article]:
        ...

    def list_articles(self, limit: Optional[int] = 100) -> List[Article]:
        ...

    def get_user(self, uid: str) -> Optional[UserProfile]:
        ...

    def save_user(self, user: UserProfile) -> None:
        ...

    def create_user_if_absent(self, user: UserProfile) -> bool:
        ...

    def list_users(self) -> List[UserProfile]:
        ...

    def list_tag_names(self) -> List[str]:
        ...

    def add_tag(self, name: str) -> bool:
        ...

    def save_series(self, series: Series) -> None:
        ...

    def get_series(self, series_id: str) -> Optional[Series]:
        ...

    def list_series(self) -> List[Series]:
        ...

    def append_series_entry(self, series_id: str, entry: SeriesEntry) -> None:
        ...

    def save_composite_document(self, document: CompositeDocument) -> None:
        ...

    def get_composite_document(self, document_id: str) -> Optional[CompositeDocument]:
        ...

    def get_key(self, key_id: str) -> Optional[dict]:
        ...

    def save_key(self, key_id: str, data: dict) -> None:
        ...

    def save_auth_session(self, token: str, uid: str) -> None:
        ...

    def get_auth_session_uid(self, token: str) -> Optional[str]:
        ...

    def delete_auth_session(self, token: str) -> None:
        ...


def _newest_first(articles: List[Article]) -> List[Article]:
    return sorted(articles, key=lambda a: a.created_at or 0.0, reverse=True)


class InMemoryDbClient:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.articles: Dict[str, Article] = {}
        self.users: Dict[str, UserProfile] = {}
        self.tags: Dict[str, dict] = {}
        self.series: Dict[str, Series] = {}
        self.composite_documents: Dict[str, CompositeDocument] = {}
        self.keys: Dict[str, dict] = {}
        self.auth_sessions: Dict[str, str] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.articles.clear()
        self.users.clear()
        self.tags.clear()
        self.series.clear()
        self.composite_documents.clear()
        self.keys.clear()
        self.auth_sessions.clear()

    # Stored objects are copied in and out so callers never share state
    # with the store, as with a real database.

    def save_article(self, article: Article) -> None:
        self.articles[article.id] = copy.deepcopy(article)

    def get_article(self, article_id: str) -> Optional[Article]:
        return copy.deepcopy(self.articles.get(article_id))

    def list_articles(self, limit: Optional[int] = 100) -> List[Article]:
        return copy.deepcopy(_newest_first(list(self.articles.values()))[:limit])

    def get_user(self, uid: str) -> Optional[UserProfile]:
        return copy.deepcopy(self.users.get(uid))

    def save_user(self, user: UserProfile) -> None:
        self.users[user.uid] = copy.deepcopy(user)

    def create_user_if_absent(self, user: UserProfile) -> bool:
        if user.uid in self.users:
            return False
        self.save_user(user)
        return True

    def list_users(self) -> List[UserProfile]:
        return copy.deepcopy(list(self.users.values()))

    def list_tag_names(self) -> List[str]:
        return list(self.tags)

    def add_tag(self, name: str) -> bool:
        if name in self.tags:
            return False
        self.tags[name] = {"name": name}
        return True

    def save_series(self, series: Series) -> None:
        self.series[series.id] = copy.deepcopy(series)

    def get_series(self, series_id: str) -> Optional[Series]:
        return copy.deepcopy(self.series.get(series_id))

    def list_series(self) -> List[Series]:
        return copy.deepcopy(list(self.series.values()))

    def append_series_entry(self, series_id: str, entry: SeriesEntry) -> None:
        series = self.series.get(series_id)
        if series is None:
            raise NotFoundError(f"Series {series_id} not found")
        if entry not in series.articles:
            series.articles.append(copy.deepcopy(entry))

    def save_composite_document(self, document: CompositeDocument) -> None:
        self.composite_documents[document.id] = copy.deepcopy(document)

    def get_composite_document(self, document_id: str) -> Optional[CompositeDocument]:
        return copy.deepcopy(self.composite_documents.get(document_id))

    def get_key(self, key_id: str) -> Optional[dict]:
        data = self.keys.get(key_id)
        return dict(data) if data is not None else None

    def save_key(self, key_id: str, data: dict) -> None:
        self.keys[key_id] = dict(data)

    def save_auth_session(self, token: str, uid: str) -> None:
        self.auth_sessions[token] = uid

    def get_auth_session_uid(self, token: str) -> Optional[str]:
        return self.auth_sessions.get(token)

    def delete_auth_session(self, token: str) -> None:
        self.auth_sessions.pop(token, None)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _upsert(self, row_class, primary_key: str, **values) -> None:
        with self.Session() as session:
            row = session.get(row_class, primary_key)
            if row:
                for name, value in values.items():
                    setattr(row, name, value)
            else:
                session.add(row_class(**values))
            session.commit()

    def _get_data(self, row_class, primary_key: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(row_class, primary_key)
            return row.data if row else None

    def save_article(self, article: Article) -> None:
        self._upsert(
            ArticleRow,
            article.id,
            id=article.id,
            created_at=article.created_at or time.time(),
            data=to_document(article),
        )

    def get_article(self, article_id: str) -> Optional[Article]:
        data = self._get_data(ArticleRow, article_id)
        return from_document(Article, data) if data else None

    def list_articles(self, limit: Optional[int] = 100) -> List[Article]:
        with self.Session() as session:
            stmt = select(ArticleRow).order_by(ArticleRow.created_at.desc()).limit(limit)
            rows = session.execute(stmt).scalars().all()
            return [from_document(Article, row.data) for row in rows]

    def get_user(self, uid: str) -> Optional[UserProfile]:
        data = self._get_data(UserRow, uid)
        return from_document(UserProfile, data) if data else None

    def save_user(self, user: UserProfile) -> None:
        self._upsert(UserRow, user.uid, uid=user.uid, data=to_document(user))

    def create_user_if_absent(self, user: UserProfile) -> bool:
        with self.Session() as session:
            if session.get(UserRow, user.uid):
                return False
            session.add(UserRow(uid=user.uid, data=to_document(user)))
            session.commit()
            return True

    def list_users(self) -> List[UserProfile]:
        with self.Session() as session:
            rows = session.execute(select(UserRow)).scalars().all()
            return [from_document(UserProfile, row.data) for row in rows]

    def list_tag_names(self) -> List[str]:
        with self.Session() as session:
            return list(session.execute(select(TagRow.name)).scalars().all())

    def add_tag(self, name: str) -> bool:
        with self.Session() as session:
            if session.get(TagRow, name):
                return False
            session.add(TagRow(name=name))
            session.commit()
            return True

    def save_series(self, series: Series) -> None:
        self._upsert(SeriesRow, series.id, id=series.id, data=to_document(series))

    def get_series(self, series_id: str) -> Optional[Series]:
        data = self._get_data(SeriesRow, series_id)
        return from_document(Series, data) if data else None

    def list_series(self) -> List[Series]:
        with self.Session() as session:
            rows = session.execute(select(SeriesRow)).scalars().all()
            return [from_document(Series, row.data) for row in rows]

    def append_series_entry(self, series_id: str, entry: SeriesEntry) -> None:
        with self.Session() as session:
            row = session.get(SeriesRow, series_id)
            if not row:
                raise NotFoundError(f"Series {series_id} not found")
            series = from_document(Series, row.data)
            if entry not in series.articles:
                series.articles.append(entry)
                # Reassign so SQLAlchemy sees the JSON column change.
                row.data = to_document(series)
                session.commit()

    def save_composite_document(self, document: CompositeDocument) -> None:
        self._upsert(
            CompositeDocumentRow, document.id, id=document.id, data=to_document(document)
        )

    def get_composite_document(self, document_id: str) -> Optional[CompositeDocument]:
        data = self._get_data(CompositeDocumentRow, document_id)
        return from_document(CompositeDocument, data) if data else None

    def get_key(self, key_id: str) -> Optional[dict]:
        return self._get_data(KeyRow, key_id)

    def save_key(self, key_id: str, data: dict) -> None:
        self._upsert(KeyRow, key_id, id=key_id, data=data)

    def save_auth_session(self, token: str, uid: str) -> None:
        self._upsert(AuthSessionRow, token, token=token, uid=uid, created_at=time.time())

    def get_auth_session_uid(self, token: str) -> Optional[str]:
        with self.Session() as session:
            row = session.get(AuthSessionRow, token)
            return row.uid if row else None

    def delete_auth_session(self, token: str) -> None:
        with self.Session() as session:
            row = session.get(AuthSessionRow, token)
            if row:
                session.delete(row)
                session.commit()


Base = declarative_base()


class ArticleRow(Base):
    __tablename__ = "articles"

    id = Column(String, primary_key=True)
    created_at = Column(Float, nullable=False, index=True)
    data = Column(JSON, nullable=False)


class UserRow(Base):
    __tablename__ = "users"

    uid = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class TagRow(Base):
    __tablename__ = "tags"

    name = Column(String, primary_key=True)


class SeriesRow(Base):
    __tablename__ = "series"

    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class CompositeDocumentRow(Base):
    __tablename__ = "composite_documents"

    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class KeyRow(Base):
    __tablename__ = "keys"

    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class AuthSessionRow(Base):
    __tablename__ = "auth_sessions"

    token = Column(String, primary_key=True)
    uid = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
