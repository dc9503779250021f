"""
Sign-in gated by organization membership, plus profile and ranking reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol
from uuid import uuid4

import requests

from backend.db import DbClient
from shared.errors import AuthenticationError, AuthorizationError, NotFoundError
from shared.types import UserProfile

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_ORGANIZATION = "ASK-STEM-official"


@dataclass
class ProviderUser:
    uid: str
    login: str
    name: Optional[str] = None
    avatar_url: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.login or ""


class IdentityProvider(Protocol):
    def list_organizations(self, access_token: str) -> List[str]:
        ...

    def get_user(self, access_token: str) -> ProviderUser:
        ...


class GitHubIdentityProvider:
    """Reads the signed-in account from the GitHub REST API."""

    def __init__(self, api_url: str = DEFAULT_GITHUB_API_URL, timeout: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str, access_token: str):
        try:
            response = requests.get(
                f"{self.api_url}{path}",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"Identity provider request failed: {e}") from e
        if not response.ok:
            raise AuthenticationError(
                f"Identity provider rejected the request to {path} "
                f"(HTTP {response.status_code})."
            )
        return response.json()

    def list_organizations(self, access_token: str) -> List[str]:
        return [org.get("login", "") for org in self._get("/user/orgs", access_token)]

    def get_user(self, access_token: str) -> ProviderUser:
        data = self._get("/user", access_token)
        return ProviderUser(
            uid=str(data["id"]),
            login=data.get("login") or "",
            name=data.get("name"),
            avatar_url=data.get("avatar_url") or "",
        )


@dataclass
class SignInResult:
    token: str
    user: UserProfile
    created: bool


def sign_in(
    db: DbClient,
    provider: IdentityProvider,
    access_token: Optional[str],
    organization: str = DEFAULT_ORGANIZATION,
) -> SignInResult:
    """
    Admits members of `organization` and issues a session token.

    The user document is created on first sign-in only; an existing document
    is left untouched. Non-members are rejected before anything is written.

    Raises:
        AuthenticationError: If the token is missing or rejected.
        AuthorizationError: If the account is not a member of `organization`.
    """
    if not access_token:
        raise AuthenticationError("No access token was provided.")

    organizations = provider.list_organizations(access_token)
    if organization not in organizations:
        logger.info("Rejected sign-in: not a member of %s", organization)
        raise AuthorizationError(
            f"Sign-in is restricted to members of the {organization} organization."
        )

    account = provider.get_user(access_token)
    profile = UserProfile(
        uid=account.uid,
        display_name=account.display_name,
        avatar_url=account.avatar_url,
        bio="",
    )
    created = db.create_user_if_absent(profile)
    if created:
        logger.info("Created user %s on first sign-in", account.uid)

    token = uuid4().hex
    db.save_auth_session(token, account.uid)
    user = db.get_user(account.uid) or profile
    return SignInResult(token=token, user=user, created=created)


def sign_out(db: DbClient, token: str) -> None:
    db.delete_auth_session(token)


def resolve_session(db: DbClient, token: Optional[str]) -> UserProfile:
    """
    Returns the user owning `token`.

    Raises:
        AuthenticationError: If the token is unknown or its user is gone.
    """
    if not token:
        raise AuthenticationError("Sign-in required.")
    uid = db.get_auth_session_uid(token)
    if not uid:
        raise AuthenticationError("The session has expired. Please sign in again.")
    user = db.get_user(uid)
    if user is None:
        raise AuthenticationError("The signed-in user no longer exists.")
    return user


def get_profile(db: DbClient, uid: str) -> UserProfile:
    user = db.get_user(uid)
    if user is None:
        raise NotFoundError(f"User {uid} not found")
    return user


def update_profile(
    db: DbClient,
    uid: str,
    display_name: Optional[str] = None,
    bio: Optional[str] = None,
) -> UserProfile:
    """Merges the given fields into the profile; xp and level are untouched."""
    user = get_profile(db, uid)
    if display_name is not None:
        user.display_name = display_name.strip()
    if bio is not None:
        user.bio = bio
    db.save_user(user)
    return user


def ranking(db: DbClient, limit: Optional[int] = None) -> List[UserProfile]:
    users = sorted(db.list_users(), key=lambda u: (u.level, u.xp), reverse=True)
    return users[:limit] if limit else users


def search_users(
    db: DbClient, query: str = "", exclude: Iterable[str] = ()
) -> List[UserProfile]:
    """Case-insensitive display name match, used to pick co-editors."""
    needle = query.strip().lower()
    excluded = set(exclude)
    return [
        user
        for user in db.list_users()
        if user.uid not in excluded and needle in (user.display_name or "").lower()
    ]
