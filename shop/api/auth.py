from __future__ import annotations

import asyncio
import json
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from shop.auth.principal import serialize_user
from shop.auth.session import SessionData, encode_session, session_cookie_kwargs, session_cookie_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth")

LOGIN_SUCCESS_REDIRECT = "/"
LOGIN_FAILURE_REDIRECT = "/login"
LOGOUT_REDIRECT = "/api/auth/whoami"


def _redirect(url: str) -> RedirectResponse:
    resp = RedirectResponse(url=url, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _store_session(request: Request, resp: RedirectResponse, session: SessionData) -> RedirectResponse:
    cfg = request.app.state.auth_config
    value = encode_session(cfg, session)
    if not value:
        raise HTTPException(status_code=500, detail="Session signing is not configured (SESSION_SECRET)")
    resp.set_cookie(**session_cookie_kwargs(cfg, value))
    return resp


async def _read_credentials(request: Request) -> Dict[str, Any]:
    """Login fields from a JSON object or an urlencoded form; any other body yields none."""
    body = await request.body()
    if not body:
        return {}
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(body.decode("utf-8", errors="replace")))
    try:
        data = json.loads(body)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@router.get("/whoami")
async def whoami(request: Request) -> Dict[str, Any]:
    """Current user and their open cart, or the guest cart held in the session."""
    user = getattr(request.state, "user", None)
    if user is not None:
        orders = request.app.state.orders
        logger.debug("get cart for user.id=%d", user.id)
        cart = await asyncio.to_thread(orders.find_cart, user.id)
        return {"user": user.to_public(), "cart": cart}

    session: SessionData = request.state.session
    logger.debug("get guest cart items=%d", len(session.cart))
    return {"cart": {"order_items": session.cart}}


@router.post("/login/local")
async def login_local(request: Request) -> RedirectResponse:
    """
    Email/password login, as JSON or a form post.

    Success stores the user id in the session and redirects to `/`; any failure
    redirects to `/login` without saying why.
    """
    credentials = await _read_credentials(request)
    strategy = request.app.state.registry.get("local")
    email = str(credentials.get("email") or credentials.get("username") or "")
    password = str(credentials.get("password") or "")
    if not email or not password:
        logger.debug("local login did fail: missing credentials")
        return _redirect(LOGIN_FAILURE_REDIRECT)

    result = await strategy.authenticate({"email": email, "password": password})
    if not result.ok:
        logger.info("local login failed: %s", result.message)
        return _redirect(LOGIN_FAILURE_REDIRECT)

    session: SessionData = request.state.session
    session.user_id = serialize_user(result.user)
    logger.info("local login ok: user.id=%d", result.user.id)
    return _store_session(request, _redirect(LOGIN_SUCCESS_REDIRECT), session)


@router.get("/login/{strategy}")
async def login_oauth(
    request: Request,
    strategy: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
) -> RedirectResponse:
    """
    OAuth login; this URL is also the callback registered with the provider.

    Without `code` it starts the flow (redirect to the provider, scope `email`).
    With `code` it finishes it and signs the user in.
    """
    oauth = request.app.state.registry.oauth(strategy)
    session: SessionData = request.state.session

    if not code and not error:
        oauth_state = secrets.token_urlsafe(24)
        url = oauth.authorize_url(oauth_state)
        session.oauth_state = oauth_state
        session.oauth_provider = oauth.name
        return _store_session(request, _redirect(url), session)

    expected_state, expected_provider = session.oauth_state, session.oauth_provider
    session.oauth_state = session.oauth_provider = None
    if not expected_state or expected_state != (state or "").strip() or expected_provider != oauth.name:
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    result = await oauth.authenticate(dict(request.query_params))
    if not result.ok:
        logger.info("%s login failed: %s", strategy, result.message)
        return _store_session(request, _redirect(LOGIN_FAILURE_REDIRECT), session)

    session.user_id = serialize_user(result.user)
    logger.info("%s login ok: user.id=%d", strategy, result.user.id)
    return _store_session(request, _redirect(LOGIN_SUCCESS_REDIRECT), session)


@router.post("/logout")
async def logout(request: Request) -> RedirectResponse:
    """Drop the principal from the session (the guest cart stays) and show whoami."""
    cfg = request.app.state.auth_config
    session: SessionData = request.state.session
    session.user_id = None

    resp = _redirect(LOGOUT_REDIRECT)
    value = encode_session(cfg, session)
    if value:
        resp.set_cookie(**session_cookie_kwargs(cfg, value))
    else:
        resp.delete_cookie(session_cookie_name(cfg), path="/")
    return resp
