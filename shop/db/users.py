from __future__ import annotations

from typing import Optional, Protocol

import psycopg

from shop.auth.models import User
from shop.db.config import connect
from shop.exceptions import EmailTakenError

_USER_COLUMNS = "id, email, password_hash, name, description, url, created_at"


class UserStore(Protocol):
    def get_user_by_id(self, user_id: int) -> Optional[User]: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def create_user(
        self,
        *,
        email: str,
        password_hash: Optional[str],
        name: Optional[str] = None,
        description: Optional[str] = None,
        url: Optional[str] = None,
    ) -> User: ...


def row_to_user(row) -> User:
    user_id, email, password_hash, name, description, url, created_at = row
    return User(
        id=user_id,
        email=email,
        password_hash=password_hash,
        name=name,
        description=description,
        url=url,
        created_at=created_at,
    )


class PostgresUserStore:
    """Users table access; one short-lived connection per call."""

    def __init__(self, dsn: str):
        self._dsn = dsn

    def _fetch_one(self, where: str, param) -> Optional[User]:
        with connect(self._dsn) as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE {where} = %s", (param,)).fetchone()
        return row_to_user(row) if row else None

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self._fetch_one("id", user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        # Matched exactly as stored; no case folding.
        return self._fetch_one("email", email)

    def create_user(
        self,
        *,
        email: str,
        password_hash: Optional[str],
        name: Optional[str] = None,
        description: Optional[str] = None,
        url: Optional[str] = None,
    ) -> User:
        """
        Insert a new user.

        Raises:
            EmailTakenError: If the email already exists
        """
        try:
            with connect(self._dsn) as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO users (email, password_hash, name, description, url)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}
                    """,
                    (email, password_hash, name, description, url),
                ).fetchone()
        except psycopg.errors.UniqueViolation:
            raise EmailTakenError(email)
        if not row:
            raise ValueError("Failed to create user")
        return row_to_user(row)
