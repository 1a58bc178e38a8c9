"""
Session principal mapping.

Only the user id goes into the session. Every request re-reads the user from the
store, so profile edits and deletions take effect on the next request.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from shop.auth.models import User
from shop.db.users import UserStore

logger = logging.getLogger(__name__)


def serialize_user(user: User) -> int:
    return user.id


async def deserialize_user(users: UserStore, user_id: int) -> Optional[User]:
    """
    Expand a session principal back into a user.

    A user that no longer exists yields None (the request continues as a guest);
    a failing lookup is re-raised.
    """
    logger.debug("will deserialize user.id=%d", user_id)
    try:
        user = await asyncio.to_thread(users.get_user_by_id, user_id)
    except Exception as e:
        logger.debug("deserialize did fail err=%s", e)
        raise
    if user is None:
        logger.debug("deserialize retrieved null user for id=%d", user_id)
    else:
        logger.debug("deserialize did ok user.id=%d", user_id)
    return user
