"""
Pydantic schemas for the content service API.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class GitHubSignInRequest(BaseModel):
    access_token: Optional[str] = None


class UserResponse(BaseModel):
    uid: str
    display_name: str
    avatar_url: str = ""
    bio: str = ""
    xp: int = 0
    level: int = 1
    progress_percent: int = 0


class SignInResponse(BaseModel):
    token: str
    user: UserResponse
    created: bool


class StatusResponse(BaseModel):
    status: str


class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)


class UserListResponse(BaseModel):
    users: List[UserResponse]


class TagListResponse(BaseModel):
    tags: List[str]


class AuthorResponse(BaseModel):
    uid: str
    display_name: str
    avatar_url: str = ""


class ArticleResponse(BaseModel):
    id: str
    title: str
    content: str
    author_id: str
    author_avatar_url: Optional[str] = None
    editors: List[str] = []
    tags: List[str] = []
    created_at: Optional[float] = None
    discord: bool = False
    author: Optional[AuthorResponse] = None
    editor_profiles: List[AuthorResponse] = []
    can_edit: bool = False


class ArticleListResponse(BaseModel):
    articles: List[ArticleResponse]


class SeriesSelectionPayload(BaseModel):
    series_id: str
    order: int = Field(1, ge=0)


class ArticlePayload(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    tags: List[str] = []
    editors: List[str] = []
    discord: bool = False
    series: Optional[SeriesSelectionPayload] = None
    # Edit session whose attached images the content may reference.
    session_id: Optional[str] = None


class PublishResponse(BaseModel):
    article: ArticleResponse
    xp_gained: int
    uploaded: dict = {}
    unresolved: List[str] = []
    user: Optional[UserResponse] = None


class CreateSeriesRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class SeriesEntryResponse(BaseModel):
    article_id: str
    order: int
    title: str


class SeriesResponse(BaseModel):
    id: str
    title: str
    created_at: Optional[float] = None
    articles: List[SeriesEntryResponse] = []


class SeriesListResponse(BaseModel):
    series: List[SeriesResponse]


class CompositeDocumentResponse(BaseModel):
    id: str
    title: str
    articles: List[ArticleResponse]


class CreateSessionRequest(BaseModel):
    mode: Literal["create", "edit"] = "create"
    article_id: Optional[str] = None


class SessionResponse(BaseModel):
    session_id: str
    mode: str
    article_id: Optional[str] = None
    image_ids: List[str] = []


class AttachImageResponse(BaseModel):
    image_id: str
    placeholder: str
    markdown: str
