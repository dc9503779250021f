"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

import firebase_admin
from fastapi import Depends, Header, HTTPException
from firebase_admin import firestore

from backend import accounts
from backend.accounts import GitHubIdentityProvider, IdentityProvider
from backend.config import get_settings
from backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from backend.firestore_db import FirestoreDbClient
from backend.guard import InMemorySubmissionGuard, RedisSubmissionGuard, SubmissionGuard
from backend.publishing import credential_provider_for
from backend.sessions import (
    EditSessionStore,
    InMemoryEditSessionStore,
    RedisEditSessionStore,
)
from image_pipeline.hosts import CosImageHost, GitHubContentsHost, ImageHost, InMemoryImageHost
from image_pipeline.uploader import Uploader
from shared.errors import AuthenticationError
from shared.types import UserProfile

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_image_host: ImageHost | None = None
_identity_provider: IdentityProvider | None = None
_submission_guard: SubmissionGuard | None = None
_session_store: EditSessionStore | None = None


def _firestore_client():
    try:
        firebase_admin.get_app()
    except ValueError:
        firebase_admin.initialize_app()
    return firestore.client()


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so documents persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif settings.use_firestore:
        _db_client = FirestoreDbClient(_firestore_client())
    elif settings.database_url:
        _db_client = PostgresDbClient(settings.database_url)
    else:
        logger.warning("No document store configured; using in-memory storage")
        _db_client = InMemoryDbClient()
    return _db_client


def get_image_host() -> ImageHost:
    global _image_host
    if _image_host:
        return _image_host

    settings = get_settings()
    if settings.use_in_memory_backends:
        _image_host = InMemoryImageHost()
    elif settings.image_host == "cos":
        _image_host = CosImageHost(
            bucket=settings.cos_bucket or "",
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.cos_public_base_url or "",
            prefix=settings.image_repo_dir,
        )
    else:
        _image_host = GitHubContentsHost(
            owner=settings.image_repo_owner,
            repo=settings.image_repo_name,
            directory=settings.image_repo_dir,
            branch=settings.image_repo_branch,
            api_url=settings.github_api_url,
            timeout=settings.request_timeout,
        )
    return _image_host


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    if _identity_provider:
        return _identity_provider
    settings = get_settings()
    _identity_provider = GitHubIdentityProvider(
        api_url=settings.github_api_url, timeout=settings.request_timeout
    )
    return _identity_provider


def get_submission_guard() -> SubmissionGuard:
    """
    Return a singleton guard; Redis when configured so all workers share it.
    """
    global _submission_guard
    if _submission_guard:
        return _submission_guard

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _submission_guard = RedisSubmissionGuard(
            url=settings.redis_url, ttl_seconds=settings.submission_lock_ttl
        )
    else:
        _submission_guard = InMemorySubmissionGuard()
    return _submission_guard


def get_session_store() -> EditSessionStore:
    global _session_store
    if _session_store is not None:
        return _session_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _session_store = RedisEditSessionStore(
            url=settings.redis_url, ttl_seconds=settings.edit_session_ttl
        )
    else:
        _session_store = InMemoryEditSessionStore(ttl_seconds=settings.edit_session_ttl)
    return _session_store


def get_uploader(
    db: DbClient = Depends(get_db_client),
    host: ImageHost = Depends(get_image_host),
) -> Uploader:
    settings = get_settings()
    # The bucket host authenticates with its own keys from settings.
    credentials = (
        None
        if isinstance(host, CosImageHost)
        else credential_provider_for(db, settings.image_token_doc_id)
    )
    return Uploader(
        host=host,
        credential_provider=credentials,
        max_workers=settings.upload_max_workers,
    )


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    token: Optional[str] = Depends(bearer_token),
    db: DbClient = Depends(get_db_client),
) -> UserProfile:
    try:
        return accounts.resolve_session(db, token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"}
        ) from e


def get_optional_user(
    token: Optional[str] = Depends(bearer_token),
    db: DbClient = Depends(get_db_client),
) -> Optional[UserProfile]:
    if not token:
        return None
    try:
        return accounts.resolve_session(db, token)
    except AuthenticationError:
        return None
