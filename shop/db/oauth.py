from __future__ import annotations

import logging
from typing import Protocol

from shop.auth.models import OAuthProfile, User
from shop.db.config import connect
from shop.db.users import _USER_COLUMNS, row_to_user

logger = logging.getLogger(__name__)


class OAuthLinkStore(Protocol):
    def find_or_create_oauth_user(self, profile: OAuthProfile) -> User: ...


class PostgresOAuthLinkStore:
    """
    Links provider accounts to users.

    Resolution order for a provider profile:
    1. an existing (provider, uid) link
    2. an existing user with the profile email (the link is attached to it)
    3. a new password-less user
    """

    def __init__(self, dsn: str):
        self._dsn = dsn

    def find_or_create_oauth_user(self, profile: OAuthProfile) -> User:
        with connect(self._dsn) as conn:
            with conn.transaction():
                row = conn.execute(
                    """
                    SELECT u.id, u.email, u.password_hash, u.name, u.description, u.url, u.created_at
                    FROM oauths o JOIN users u ON u.id = o.user_id
                    WHERE o.provider = %s AND o.uid = %s
                    """,
                    (profile.provider, profile.uid),
                ).fetchone()
                if row:
                    return row_to_user(row)

                row = None
                if profile.email:
                    row = conn.execute(
                        f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s",
                        (profile.email,),
                    ).fetchone()
                if row is None:
                    # Providers may withhold the email; fall back to a stable placeholder.
                    email = profile.email or f"{profile.provider}-{profile.uid}@users.noreply"
                    row = conn.execute(
                        f"""
                        INSERT INTO users (email, password_hash, name)
                        VALUES (%s, NULL, %s)
                        RETURNING {_USER_COLUMNS}
                        """,
                        (email, profile.name),
                    ).fetchone()
                    logger.info("Created user id=%s from %s login", row[0], profile.provider)

                user = row_to_user(row)
                conn.execute(
                    """
                    INSERT INTO oauths (provider, uid, user_id)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (provider, uid) DO UPDATE SET user_id = EXCLUDED.user_id
                    """,
                    (profile.provider, profile.uid, user.id),
                )
                return user
