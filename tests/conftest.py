"""
Pytest config.

Puts the repo root on sys.path so `import shop` works without installing, and provides
in-memory stores so API tests run without Postgres.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import bcrypt
import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from fastapi.testclient import TestClient  # noqa: E402

from shop.api.app import create_app  # noqa: E402
from shop.auth.config import AuthConfig, OAuthProviderConfig, callback_url  # noqa: E402
from shop.auth.models import OAuthProfile, User  # noqa: E402
from shop.auth.strategies import build_strategy_registry  # noqa: E402
from shop.exceptions import EmailTakenError  # noqa: E402

BASE_URL = "http://shop.test"
SESSION_SECRET = "test-secret-key-for-testing-purposes-only"


def fast_hash(password: str) -> str:
    # Low cost factor keeps the suite fast; verification is cost-agnostic.
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


class FakeUserStore:
    def __init__(self) -> None:
        self.users: Dict[int, User] = {}
        self.error: Optional[Exception] = None
        self.lookups: List[Any] = []
        self._next_id = 1

    def add(self, email: str, password: Optional[str] = None, **fields: Any) -> User:
        return self.create_user(email=email, password_hash=fast_hash(password) if password else None, **fields)

    def delete(self, user_id: int) -> None:
        self.users.pop(user_id, None)

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        self.lookups.append(user_id)
        self._check()
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        self.lookups.append(email)
        self._check()
        for u in self.users.values():
            if u.email == email:
                return u
        return None

    def create_user(
        self,
        *,
        email: str,
        password_hash: Optional[str],
        name: Optional[str] = None,
        description: Optional[str] = None,
        url: Optional[str] = None,
    ) -> User:
        self._check()
        if any(u.email == email for u in self.users.values()):
            raise EmailTakenError(email)
        user = User(
            id=self._next_id,
            email=email,
            password_hash=password_hash,
            name=name,
            description=description,
            url=url,
        )
        self.users[user.id] = user
        self._next_id += 1
        return user


class FakeOrderStore:
    def __init__(self) -> None:
        self.carts: Dict[int, Dict[str, Any]] = {}

    def find_cart(self, user_id: int) -> Optional[Dict[str, Any]]:
        return self.carts.get(user_id)


class FakeOAuthLinkStore:
    def __init__(self, users: FakeUserStore) -> None:
        self._users = users
        self.links: Dict[tuple, int] = {}

    def find_or_create_oauth_user(self, profile: OAuthProfile) -> User:
        user_id = self.links.get((profile.provider, profile.uid))
        if user_id is not None:
            return self._users.users[user_id]
        user = self._users.get_user_by_email(profile.email) if profile.email else None
        if user is None:
            user = self._users.create_user(
                email=profile.email or f"{profile.provider}-{profile.uid}@users.noreply",
                password_hash=None,
                name=profile.name,
            )
        self.links[(profile.provider, profile.uid)] = user.id
        return user


def make_auth_config(**overrides: Any) -> AuthConfig:
    providers = (
        OAuthProviderConfig("facebook", "fb-id", "fb-secret", callback_url(BASE_URL, "facebook")),
        OAuthProviderConfig("google", "g-id", "g-secret", callback_url(BASE_URL, "google")),
        OAuthProviderConfig("github", None, None, callback_url(BASE_URL, "github")),
    )
    values: Dict[str, Any] = {
        "base_url": BASE_URL,
        "session_secret": SESSION_SECRET,
        "session_ttl_seconds": 3600,
        "cookie_secure": False,
        "oauth_providers": providers,
    }
    values.update(overrides)
    return AuthConfig(**values)


@pytest.fixture
def auth_cfg() -> AuthConfig:
    return make_auth_config()


@pytest.fixture
def users() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def orders() -> FakeOrderStore:
    return FakeOrderStore()


@pytest.fixture
def oauth_links(users: FakeUserStore) -> FakeOAuthLinkStore:
    return FakeOAuthLinkStore(users)


@pytest.fixture
def app(auth_cfg, users, orders, oauth_links):  # type: ignore[no-untyped-def]
    registry = build_strategy_registry(auth_cfg, users=users, oauth_links=oauth_links)
    return create_app(auth_cfg, users=users, orders=orders, registry=registry)


@pytest.fixture
def client(app) -> TestClient:  # type: ignore[no-untyped-def]
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_cfg():  # type: ignore[no-untyped-def]
    return make_auth_config
