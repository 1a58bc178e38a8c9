from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union


@dataclass
class User:
    """Storefront user stored in PostgreSQL."""

    id: int
    email: str
    password_hash: Optional[str]  # None for accounts created through OAuth
    name: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        """JSON-safe view of the user; never includes the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class OAuthProfile:
    """Normalized profile returned by an OAuth provider."""

    provider: str
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class AuthSuccess:
    user: User
    ok = True


@dataclass(frozen=True)
class AuthFailure:
    message: str
    ok = False


AuthResult = Union[AuthSuccess, AuthFailure]

LOGIN_INCORRECT = "Login incorrect"
