"""
Configuration and settings for the content service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Document store: SQLAlchemy URL, Firestore, or in-memory when neither is set.
    database_url: Optional[str] = Field(default=None)
    use_firestore: bool = Field(default=False)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Submission guard and edit sessions (Redis); fall back to process memory.
    redis_url: Optional[str] = Field(default=None)
    submission_lock_ttl: int = Field(default=120, ge=1)
    # Edit sessions expire this many seconds after their last activity.
    edit_session_ttl: int = Field(default=6 * 60 * 60, ge=1)

    # Identity provider
    github_api_url: str = Field(default="https://api.github.com")
    github_org: str = Field(default="ASK-STEM-official")

    # Image hosting
    image_host: Literal["github", "cos"] = Field(default="github")
    image_repo_owner: str = Field(default="ASK-STEM-official")
    image_repo_name: str = Field(default="Image-Storage")
    image_repo_branch: str = Field(default="main")
    image_repo_dir: str = Field(default="static/images")
    # Document id in the `keys` collection holding the repository token.
    image_token_doc_id: str = Field(default="AjZSjYVj4CZSk1O7s8zG")
    upload_max_workers: int = Field(default=4, ge=1)
    max_image_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    request_timeout: float = Field(default=30.0, gt=0)

    # S3-compatible storage (Tencent COS), used when image_host == "cos"
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    cos_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
