from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

OAUTH_PROVIDERS = ("facebook", "google", "github")


@dataclass(frozen=True)
class OAuthProviderConfig:
    provider: str
    client_id: Optional[str]
    client_secret: Optional[str]
    callback_url: str

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class AuthConfig:
    base_url: str

    # Session configuration
    session_secret: Optional[str]  # Required for session signing
    session_ttl_seconds: int
    cookie_secure: bool

    oauth_providers: Tuple[OAuthProviderConfig, ...]

    def provider(self, name: str) -> Optional[OAuthProviderConfig]:
        for p in self.oauth_providers:
            if p.provider == name:
                return p
        return None


def _env(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def callback_url(base_url: str, provider: str) -> str:
    return f"{base_url.rstrip('/')}/api/auth/login/{provider}"


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    Provider credentials are read as-is; a provider with no client id/secret is still
    registered and only fails when someone tries to log in with it.
    """
    base_url = (_env("APP_BASE_URL") or "http://localhost:1337").rstrip("/")

    cookie_secure_env = (os.getenv("SESSION_COOKIE_SECURE", "") or "").strip().lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        cookie_secure = base_url.startswith("https://")

    ttl = int(float((os.getenv("SESSION_TTL_SECONDS", "") or "1209600").strip() or "1209600"))  # 14d default
    if ttl <= 60:
        ttl = 60

    providers = tuple(
        OAuthProviderConfig(
            provider=name,
            client_id=_env(f"{name.upper()}_CLIENT_ID"),
            client_secret=_env(f"{name.upper()}_CLIENT_SECRET"),
            callback_url=callback_url(base_url, name),
        )
        for name in OAUTH_PROVIDERS
    )

    return AuthConfig(
        base_url=base_url,
        session_secret=_env("SESSION_SECRET"),
        session_ttl_seconds=ttl,
        cookie_secure=cookie_secure,
        oauth_providers=providers,
    )
