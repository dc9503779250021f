"""
HTTP routes for the content service API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from backend import accounts, publishing
from backend.accounts import IdentityProvider
from backend.config import get_settings
from backend.db import DbClient
from backend.dependencies import (
    bearer_token,
    get_current_user,
    get_db_client,
    get_identity_provider,
    get_optional_user,
    get_session_store,
    get_submission_guard,
    get_uploader,
)
from backend.guard import SubmissionGuard
from backend.publishing import ArticleDraft, ArticleView, PublishResult, SeriesSelection
from backend.schemas import (
    ArticleListResponse,
    ArticlePayload,
    ArticleResponse,
    AttachImageResponse,
    AuthorResponse,
    CompositeDocumentResponse,
    CreateSeriesRequest,
    CreateSessionRequest,
    GitHubSignInRequest,
    PublishResponse,
    SeriesEntryResponse,
    SeriesListResponse,
    SeriesResponse,
    SessionResponse,
    SignInResponse,
    StatusResponse,
    TagListResponse,
    UpdateProfileRequest,
    UserListResponse,
    UserResponse,
)
from backend.sessions import EditSession, EditSessionStore
from image_pipeline.attachments import image_markdown, load_image_entry
from image_pipeline.pipeline import CREATE_PROFILE, EDIT_PROFILE
from image_pipeline.placeholders import placeholder_target
from image_pipeline.uploader import CredentialMissingError, ImageUploadError, Uploader
from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ContentServiceError,
    InvalidImageError,
    NotFoundError,
    PermissionDeniedError,
    SubmissionInProgressError,
)
from shared.experience import progress_percent
from shared.types import Article, Series, UserProfile

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_CODES = (
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (SubmissionInProgressError, 409),
    (InvalidImageError, 400),
)


def _http_error(error: ContentServiceError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    logger.error("Unmapped service error: %s", error)
    return HTTPException(status_code=500, detail=str(error))


def _user_response(user: UserProfile) -> UserResponse:
    return UserResponse(
        uid=user.uid,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        bio=user.bio,
        xp=user.xp,
        level=user.level,
        progress_percent=progress_percent(user.xp),
    )


def _article_response(
    article: Article, view: Optional[ArticleView] = None
) -> ArticleResponse:
    response = ArticleResponse(
        id=article.id,
        title=article.title,
        content=article.content,
        author_id=article.author_id,
        author_avatar_url=article.author_avatar_url,
        editors=article.editors,
        tags=article.tags,
        created_at=article.created_at,
        discord=article.discord,
    )
    if view is not None:
        response.author = AuthorResponse(**vars(view.author))
        response.editor_profiles = [AuthorResponse(**vars(e)) for e in view.editors]
        response.can_edit = view.can_edit
    return response


def _series_response(series: Series) -> SeriesResponse:
    return SeriesResponse(
        id=series.id,
        title=series.title,
        created_at=series.created_at,
        articles=[SeriesEntryResponse(**vars(entry)) for entry in series.articles],
    )


def _session_response(session: EditSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        mode=session.mode,
        article_id=session.article_id,
        image_ids=list(session.images),
    )


def _publish_response(result: PublishResult) -> PublishResponse:
    return PublishResponse(
        article=_article_response(result.article),
        xp_gained=result.xp_gained,
        uploaded=result.uploaded,
        unresolved=result.unresolved,
        user=_user_response(result.user) if result.user else None,
    )


def _draft(payload: ArticlePayload) -> ArticleDraft:
    return ArticleDraft(
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
        editors=payload.editors,
        discord=payload.discord,
        series=(
            SeriesSelection(
                series_id=payload.series.series_id, order=payload.series.order
            )
            if payload.series
            else None
        ),
    )


def _open_session(
    store: EditSessionStore,
    session_id: Optional[str],
    user: UserProfile,
    mode: str,
) -> Optional[EditSession]:
    if not session_id:
        return None
    try:
        session = store.get(session_id, user.uid)
    except ContentServiceError as e:
        raise _http_error(e) from e
    if session.mode != mode:
        raise HTTPException(
            status_code=400, detail=f"Edit session {session_id} is not a {mode} session"
        )
    return session


def _run_submit(submit, store: EditSessionStore, session: Optional[EditSession]):
    """Runs a submit and maps its failures; the session survives a failure."""
    try:
        result = submit(session.images if session else None)
    except ImageUploadError as e:
        logger.error("Submit failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail={
                "message": "Image upload failed. Nothing was saved; please retry.",
                "failures": [vars(f) for f in e.failures],
            },
        ) from e
    except CredentialMissingError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    except ContentServiceError as e:
        raise _http_error(e) from e
    if session:
        store.discard(session.session_id)
    return result


@router.post("/auth/github", response_model=SignInResponse)
def sign_in_with_github(
    payload: GitHubSignInRequest,
    db: DbClient = Depends(get_db_client),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    try:
        result = accounts.sign_in(
            db, provider, payload.access_token, organization=get_settings().github_org
        )
    except ContentServiceError as e:
        raise _http_error(e) from e
    return SignInResponse(
        token=result.token, user=_user_response(result.user), created=result.created
    )


@router.post("/auth/logout", response_model=StatusResponse)
def sign_out(
    token: Optional[str] = Depends(bearer_token),
    db: DbClient = Depends(get_db_client),
):
    if token:
        accounts.sign_out(db, token)
    return StatusResponse(status="ok")


@router.get("/me", response_model=UserResponse)
def get_me(user: UserProfile = Depends(get_current_user)):
    return _user_response(user)


@router.patch("/me", response_model=UserResponse)
def update_me(
    payload: UpdateProfileRequest,
    user: UserProfile = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    updated = accounts.update_profile(
        db, user.uid, display_name=payload.display_name, bio=payload.bio
    )
    return _user_response(updated)


@router.get("/users", response_model=UserListResponse)
def search_users(
    q: str = Query(""),
    user: UserProfile = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    users = accounts.search_users(db, q, exclude=[user.uid])
    return UserListResponse(users=[_user_response(u) for u in users])


@router.get("/users/{uid}", response_model=UserResponse)
def get_user(uid: str, db: DbClient = Depends(get_db_client)):
    try:
        return _user_response(accounts.get_profile(db, uid))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="User not found") from e


@router.get("/ranking", response_model=UserListResponse)
def get_ranking(
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    return UserListResponse(
        users=[_user_response(u) for u in accounts.ranking(db, limit=limit)]
    )


@router.get("/tags", response_model=TagListResponse)
def list_tags(db: DbClient = Depends(get_db_client)):
    return TagListResponse(tags=publishing.list_tags(db))


@router.get("/articles", response_model=ArticleListResponse)
def list_articles(
    q: str = Query(""),
    limit: int = Query(100, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
    viewer: Optional[UserProfile] = Depends(get_optional_user),
):
    views = publishing.list_articles(
        db, q, viewer_uid=viewer.uid if viewer else None, limit=limit
    )
    return ArticleListResponse(
        articles=[_article_response(v.article, v) for v in views]
    )


@router.get("/articles/{article_id}", response_model=ArticleResponse)
def get_article(
    article_id: str,
    db: DbClient = Depends(get_db_client),
    viewer: Optional[UserProfile] = Depends(get_optional_user),
):
    try:
        view = publishing.get_article_view(
            db, article_id, viewer_uid=viewer.uid if viewer else None
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Article not found") from e
    return _article_response(view.article, view)


@router.post("/articles", response_model=PublishResponse, status_code=201)
def create_article(
    payload: ArticlePayload,
    user: UserProfile = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    guard: SubmissionGuard = Depends(get_submission_guard),
    uploader: Uploader = Depends(get_uploader),
    store: EditSessionStore = Depends(get_session_store),
):
    session = _open_session(store, payload.session_id, user, CREATE_PROFILE.name)
    result = _run_submit(
        lambda images: publishing.publish_article(
            db, guard, uploader, user, _draft(payload), images
        ),
        store,
        session,
    )
    return _publish_response(result)


@router.put("/articles/{article_id}", response_model=PublishResponse)
def edit_article(
    article_id: str,
    payload: ArticlePayload,
    user: UserProfile = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    guard: SubmissionGuard = Depends(get_submission_guard),
    uploader: Uploader = Depends(get_uploader),
    store: EditSessionStore = Depends(get_session_store),
):
    session = _open_session(store, payload.session_id, user, EDIT_PROFILE.name)
    result = _run_submit(
        lambda images: publishing.update_article(
            db, guard, uploader, user, article_id, _draft(payload), images
        ),
        store,
        session,
    )
    return _publish_response(result)


@router.get("/series", response_model=SeriesListResponse)
def list_series(db: DbClient = Depends(get_db_client)):
    return SeriesListResponse(
        series=[_series_response(s) for s in publishing.list_series(db)]
    )


@router.post("/series", response_model=SeriesResponse, status_code=201)
def create_series(
    payload: CreateSeriesRequest,
    user: UserProfile = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return _series_response(publishing.create_series(db, payload.title))


@router.get("/series/{series_id}", response_model=SeriesResponse)
def get_series(series_id: str, db: DbClient = Depends(get_db_client)):
    try:
        return _series_response(publishing.get_series(db, series_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Series not found") from e


@router.get(
    "/composite-documents/{document_id}", response_model=CompositeDocumentResponse
)
def get_composite_document(document_id: str, db: DbClient = Depends(get_db_client)):
    try:
        document, articles = publishing.get_composite_document(db, document_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Document not found") from e
    return CompositeDocumentResponse(
        id=document.id,
        title=document.title,
        articles=[_article_response(a) for a in articles],
    )


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(
    payload: CreateSessionRequest,
    user: UserProfile = Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    session = store.create(user.uid, mode=payload.mode, article_id=payload.article_id)
    return _session_response(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str,
    user: UserProfile = Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    try:
        return _session_response(store.get(session_id, user.uid))
    except ContentServiceError as e:
        raise _http_error(e) from e


@router.delete("/sessions/{session_id}", response_model=StatusResponse)
def discard_session(
    session_id: str,
    user: UserProfile = Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    try:
        store.get(session_id, user.uid)
    except NotFoundError:
        return StatusResponse(status="ok")
    except PermissionDeniedError as e:
        raise _http_error(e) from e
    store.discard(session_id)
    return StatusResponse(status="ok")


@router.post(
    "/sessions/{session_id}/images", response_model=AttachImageResponse, status_code=201
)
def attach_image(
    session_id: str,
    file: UploadFile = File(...),
    user: UserProfile = Depends(get_current_user),
    store: EditSessionStore = Depends(get_session_store),
):
    max_bytes = get_settings().max_image_bytes
    # One byte past the limit is enough to reject an oversized file.
    data = file.file.read(max_bytes + 1)
    filename = file.filename or "image"
    try:
        session = store.get(session_id, user.uid)
        entry = load_image_entry(data, filename, max_bytes=max_bytes)
        image_id = store.attach_image(session_id, user.uid, entry)
    except ContentServiceError as e:
        raise _http_error(e) from e
    profile = EDIT_PROFILE if session.mode == EDIT_PROFILE.name else CREATE_PROFILE
    return AttachImageResponse(
        image_id=image_id,
        placeholder=placeholder_target(profile.placeholder_prefix, image_id),
        markdown=image_markdown(filename, profile.placeholder_prefix, image_id),
    )
