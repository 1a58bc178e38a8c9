from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from shop.auth.config import AuthConfig

SESSION_SALT = "shop-session-v1"


def session_cookie_name(cfg: AuthConfig) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-shop_session" if cfg.cookie_secure else "shop_session"


@dataclass
class SessionData:
    """Everything the server keeps per browser: the principal id and the guest cart."""

    user_id: Optional[int] = None
    cart: List[Dict[str, Any]] = field(default_factory=list)
    # Only while a provider login is in flight.
    oauth_state: Optional[str] = None
    oauth_provider: Optional[str] = None


def _serializer(cfg: AuthConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session(cfg: AuthConfig, data: SessionData) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    return s.dumps(asdict(data))


def decode_session(cfg: AuthConfig, value: str | None) -> SessionData:
    """Decode a session cookie; anything missing, tampered or expired is an empty session."""
    if not value:
        return SessionData()
    s = _serializer(cfg)
    if s is None:
        return SessionData()
    try:
        data = s.loads(value, max_age=cfg.session_ttl_seconds)
    except (BadSignature, BadTimeSignature, ValueError):
        return SessionData()
    if not isinstance(data, dict):
        return SessionData()

    user_id = data.get("user_id")
    cart = data.get("cart")
    state = data.get("oauth_state")
    provider = data.get("oauth_provider")
    return SessionData(
        user_id=user_id if isinstance(user_id, int) and not isinstance(user_id, bool) else None,
        cart=[x for x in cart if isinstance(x, dict)] if isinstance(cart, list) else [],
        oauth_state=str(state) if state else None,
        oauth_provider=str(provider) if provider else None,
    )


def session_cookie_kwargs(cfg: AuthConfig, value: str) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }
