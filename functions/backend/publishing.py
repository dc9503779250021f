"""
Article publishing and reads.

Create and edit run the same submit flow, parameterized by a `SubmitProfile`:
hold the per-user submission guard, externalize images, persist the article,
then apply the series, tag and experience side effects.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from backend.db import DbClient
from backend.guard import SubmissionGuard, hold
from image_pipeline.pipeline import (
    CREATE_PROFILE,
    EDIT_PROFILE,
    SubmitProfile,
    externalize_images,
)
from image_pipeline.placeholders import ImageEntry
from image_pipeline.uploader import CredentialMissingError, Uploader
from shared import ids
from shared.errors import NotFoundError, PermissionDeniedError
from shared.experience import apply_gain
from shared.types import Article, CompositeDocument, Series, SeriesEntry, UserProfile

logger = logging.getLogger(__name__)

CREDENTIAL_FIELD = "key"
FALLBACK_DISPLAY_NAME = "User"


def fetch_image_host_token(db: DbClient, doc_id: str) -> str:
    """
    Reads the image repository token from the `keys` collection.

    Raises:
        CredentialMissingError: If the document or its `key` field is missing.
    """
    data = db.get_key(doc_id)
    token = (data or {}).get(CREDENTIAL_FIELD)
    if not token:
        logger.error("Image host credential missing from keys/%s", doc_id)
        raise CredentialMissingError("The image host credential is not configured.")
    return token


def credential_provider_for(db: DbClient, doc_id: str) -> Callable[[], str]:
    return lambda: fetch_image_host_token(db, doc_id)


@dataclass
class SeriesSelection:
    series_id: str
    order: int = 1


@dataclass
class ArticleDraft:
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    editors: List[str] = field(default_factory=list)
    discord: bool = False
    series: Optional[SeriesSelection] = None


@dataclass
class PublishResult:
    article: Article
    xp_gained: int
    uploaded: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)
    user: Optional[UserProfile] = None


def normalize_tags(tags: List[str]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        name = tag.strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def normalize_editors(editors: List[str], author_id: str) -> List[str]:
    seen: List[str] = []
    for uid in editors:
        if uid and uid != author_id and uid not in seen:
            seen.append(uid)
    return seen


def award_experience(db: DbClient, uid: str, gain: int) -> Optional[UserProfile]:
    """Adds `gain` xp to the user and recomputes the level."""
    user = db.get_user(uid)
    if user is None:
        logger.warning("Skipping xp award: user %s has no profile document", uid)
        return None
    user.xp, user.level = apply_gain(user.xp, gain)
    db.save_user(user)
    logger.info("Awarded %d xp to %s (xp=%d, level=%d)", gain, uid, user.xp, user.level)
    return user


def _register_tags(db: DbClient, tags: List[str]) -> None:
    for tag in tags:
        if db.add_tag(tag):
            logger.info("Created tag %s", tag)


def _submit(
    db: DbClient,
    guard: SubmissionGuard,
    uploader: Uploader,
    profile: SubmitProfile,
    user: UserProfile,
    draft: ArticleDraft,
    image_map: Optional[Mapping[str, ImageEntry]],
    existing: Optional[Article],
) -> PublishResult:
    with hold(guard, user.uid):
        if draft.series and db.get_series(draft.series.series_id) is None:
            raise NotFoundError(f"Series {draft.series.series_id} not found")

        externalized = externalize_images(
            draft.content,
            image_map,
            grammars=profile.grammars,
            uploader=uploader,
        )
        tags = normalize_tags(draft.tags)

        if existing is None:
            article = Article(
                id=ids.short_id(),
                title=draft.title,
                content=externalized.markdown,
                author_id=user.uid,
                author_avatar_url=user.avatar_url or None,
                editors=normalize_editors(draft.editors, user.uid),
                tags=tags,
                created_at=time.time(),
                discord=draft.discord,
            )
        else:
            article = existing
            article.title = draft.title
            article.content = externalized.markdown
            article.editors = normalize_editors(draft.editors, article.author_id)
            article.tags = tags
            article.discord = draft.discord
        db.save_article(article)
        logger.info("Saved article %s (%s) for %s", article.id, profile.name, user.uid)

        if draft.series:
            db.append_series_entry(
                draft.series.series_id,
                SeriesEntry(
                    article_id=article.id,
                    order=draft.series.order,
                    title=article.title,
                ),
            )
        _register_tags(db, tags)

        # Scored on the rewritten Markdown, not the inline image data.
        gain = profile.xp_rule.gain(article.content)
        updated_user = award_experience(db, user.uid, gain)

    return PublishResult(
        article=article,
        xp_gained=gain,
        uploaded=externalized.uploaded,
        unresolved=externalized.unresolved,
        user=updated_user,
    )


def publish_article(
    db: DbClient,
    guard: SubmissionGuard,
    uploader: Uploader,
    author: UserProfile,
    draft: ArticleDraft,
    image_map: Optional[Mapping[str, ImageEntry]] = None,
) -> PublishResult:
    """
    Creates an article authored by `author`.

    Raises:
        SubmissionInProgressError: If the author already has a submit running.
        NotFoundError: If the selected series does not exist.
        CredentialMissingError: If images need uploading and no credential is set.
        ImageUploadError: If any image upload fails. Nothing is saved then.
    """
    return _submit(db, guard, uploader, CREATE_PROFILE, author, draft, image_map, None)


def update_article(
    db: DbClient,
    guard: SubmissionGuard,
    uploader: Uploader,
    editor: UserProfile,
    article_id: str,
    draft: ArticleDraft,
    image_map: Optional[Mapping[str, ImageEntry]] = None,
) -> PublishResult:
    """
    Updates an article in place. Only the author or a listed editor may edit;
    the editing user receives the xp.
    """
    existing = db.get_article(article_id)
    if existing is None:
        raise NotFoundError(f"Article {article_id} not found")
    if not existing.can_be_edited_by(editor.uid):
        raise PermissionDeniedError("You are not allowed to edit this article.")
    return _submit(db, guard, uploader, EDIT_PROFILE, editor, draft, image_map, existing)


@dataclass
class AuthorSummary:
    uid: str
    display_name: str
    avatar_url: str = ""


@dataclass
class ArticleView:
    article: Article
    author: AuthorSummary
    editors: List[AuthorSummary] = field(default_factory=list)
    can_edit: bool = False


def _summaries(db: DbClient, uids: List[str]) -> Dict[str, AuthorSummary]:
    summaries: Dict[str, AuthorSummary] = {}
    for uid in uids:
        if uid in summaries:
            continue
        user = db.get_user(uid)
        if user is None:
            summaries[uid] = AuthorSummary(uid=uid, display_name=FALLBACK_DISPLAY_NAME)
        else:
            summaries[uid] = AuthorSummary(
                uid=uid,
                display_name=user.display_name or FALLBACK_DISPLAY_NAME,
                avatar_url=user.avatar_url,
            )
    return summaries


def _view(
    article: Article, summaries: Dict[str, AuthorSummary], viewer_uid: Optional[str]
) -> ArticleView:
    return ArticleView(
        article=article,
        author=summaries[article.author_id],
        editors=[summaries[uid] for uid in article.editors],
        can_edit=article.can_be_edited_by(viewer_uid),
    )


def list_articles(
    db: DbClient,
    query: str = "",
    viewer_uid: Optional[str] = None,
    limit: int = 100,
) -> List[ArticleView]:
    """Newest first; `query` matches title or any tag, case-insensitively."""
    needle = query.strip().lower()
    if needle:
        articles = [
            a
            for a in db.list_articles(limit=None)
            if needle in a.title.lower() or any(needle in t.lower() for t in a.tags)
        ][:limit]
    else:
        articles = db.list_articles(limit=limit)
    uids = [uid for a in articles for uid in [a.author_id, *a.editors]]
    summaries = _summaries(db, uids)
    return [_view(a, summaries, viewer_uid) for a in articles]


def get_article_view(
    db: DbClient, article_id: str, viewer_uid: Optional[str] = None
) -> ArticleView:
    article = db.get_article(article_id)
    if article is None:
        raise NotFoundError(f"Article {article_id} not found")
    summaries = _summaries(db, [article.author_id, *article.editors])
    return _view(article, summaries, viewer_uid)


def list_tags(db: DbClient) -> List[str]:
    return sorted(db.list_tag_names())


def create_series(db: DbClient, title: str) -> Series:
    series = Series(id=ids.short_id(), title=title.strip(), created_at=time.time())
    db.save_series(series)
    logger.info("Created series %s", series.id)
    return series


def list_series(db: DbClient) -> List[Series]:
    return sorted(db.list_series(), key=lambda s: s.created_at or 0.0, reverse=True)


def get_series(db: DbClient, series_id: str) -> Series:
    series = db.get_series(series_id)
    if series is None:
        raise NotFoundError(f"Series {series_id} not found")
    series.articles = series.sorted_articles()
    return series


def get_composite_document(db: DbClient, document_id: str) -> tuple[CompositeDocument, List[Article]]:
    """Returns the document and its articles that still exist, in listed order."""
    document = db.get_composite_document(document_id)
    if document is None:
        raise NotFoundError(f"Composite document {document_id} not found")
    articles = []
    for article_id in document.article_ids:
        article = db.get_article(article_id)
        if article is None:
            logger.warning(
                "Composite document %s references missing article %s",
                document_id,
                article_id,
            )
            continue
        articles.append(article)
    return document, articles
