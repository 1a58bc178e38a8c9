from __future__ import annotations

import asyncio
import logging
from typing import Mapping

import bcrypt

from shop.auth.models import LOGIN_INCORRECT, AuthFailure, AuthResult, AuthSuccess
from shop.db.users import UserStore

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """
    Hash password with bcrypt (cost factor 12).

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash with constant-time comparison.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class LocalStrategy:
    """Email + password login against the users table."""

    name = "local"

    def __init__(self, users: UserStore):
        self._users = users

    async def authenticate(self, credentials: Mapping[str, str]) -> AuthResult:
        """
        Verify an email/password pair.

        Unknown email and wrong password produce the same failure message; only the
        debug log tells them apart. Store errors propagate.
        """
        email = credentials.get("email") or ""
        password = credentials.get("password") or ""
        logger.debug('will authenticate user(email: "%s")', email)

        user = await asyncio.to_thread(self._users.get_user_by_email, email)
        if user is None or not user.password_hash:
            logger.debug('authenticate user(email: "%s") did fail: no such user', email)
            return AuthFailure(message=LOGIN_INCORRECT)

        ok = await asyncio.to_thread(verify_password, password, user.password_hash)
        if not ok:
            logger.debug('authenticate user(email: "%s") did fail: bad password', email)
            return AuthFailure(message=LOGIN_INCORRECT)

        logger.debug('authenticate user(email: "%s") did ok: user.id=%d', email, user.id)
        return AuthSuccess(user=user)
