from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from shop.auth.local import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users")


class CreateUserRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None


@router.post("", status_code=201)
async def create_user(request: Request, req: CreateUserRequest) -> Dict[str, Any]:
    """Register a local account. The email must be unused."""
    email = req.email.strip()
    if "@" not in email:
        raise HTTPException(status_code=400, detail="Invalid email")
    if not req.password:
        raise HTTPException(status_code=400, detail="Missing password")

    users = request.app.state.users
    password_hash = await asyncio.to_thread(hash_password, req.password)
    user = await asyncio.to_thread(
        users.create_user,
        email=email,
        password_hash=password_hash,
        name=req.name,
        description=req.description,
        url=req.url,
    )
    logger.info("Registered user id=%d", user.id)
    return user.to_public()
