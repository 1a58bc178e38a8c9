"""
Storefront HTTP application.

`create_app` takes every collaborator explicitly (config, stores, strategy registry);
`app_from_env` builds the Postgres-backed production wiring.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shop.api.auth import router as auth_router
from shop.api.users import router as users_router
from shop.auth.config import AuthConfig, load_auth_config
from shop.auth.principal import deserialize_user
from shop.auth.session import decode_session, session_cookie_name
from shop.auth.strategies import StrategyRegistry, build_strategy_registry
from shop.db.orders import OrderStore
from shop.db.users import UserStore
from shop.exceptions import ShopError

logger = logging.getLogger(__name__)


def create_app(
    cfg: AuthConfig,
    *,
    users: UserStore,
    orders: OrderStore,
    registry: StrategyRegistry,
) -> FastAPI:
    app = FastAPI(title="Storefront API")
    app.state.auth_config = cfg
    app.state.users = users
    app.state.orders = orders
    app.state.registry = registry

    @app.exception_handler(ShopError)
    async def _shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s - %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.middleware("http")
    async def load_session(request: Request, call_next):
        """Decode the session cookie and expand its principal into request.state.user."""
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)
        try:
            session = decode_session(cfg, request.cookies.get(session_cookie_name(cfg)))
            request.state.session = session
            request.state.user = None
            if session.user_id is not None:
                request.state.user = await deserialize_user(users, session.user_id)

            response = await call_next(request)
            process_time = time.time() - start_time
            logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    app.include_router(auth_router)
    app.include_router(users_router)
    return app


def app_from_env(cfg: Optional[AuthConfig] = None) -> FastAPI:
    from shop.db.config import load_db_config
    from shop.db.oauth import PostgresOAuthLinkStore
    from shop.db.orders import PostgresOrderStore
    from shop.db.users import PostgresUserStore

    cfg = cfg or load_auth_config()
    db_cfg = load_db_config()
    dsn = db_cfg.dsn
    if not dsn:
        raise RuntimeError("Postgres not configured (set POSTGRES_DSN or POSTGRES_* env vars)")

    users = PostgresUserStore(dsn)
    registry = build_strategy_registry(cfg, users=users, oauth_links=PostgresOAuthLinkStore(dsn))
    app = create_app(cfg, users=users, orders=PostgresOrderStore(dsn), registry=registry)

    @app.on_event("startup")
    def _startup_maybe_migrate_db() -> None:
        """
        Auto-apply DB migrations when DB_AUTO_MIGRATE=1.

        Failures are logged; the server still starts.
        """
        from shop.db.migrate import auto_migrate

        try:
            versions = auto_migrate(db_cfg)
            if versions is not None:
                logger.info("DB migrations: applied %d (%s)", len(versions), ", ".join(versions) or "none pending")
        except Exception as e:
            logger.warning("DB migrations: startup auto-migrate failed: %s", str(e))

    if not cfg.session_secret:
        logger.warning("SESSION_SECRET is not set; logins will fail until it is configured")
    return app


def run(host: str = "0.0.0.0", port: int = 1337) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = app_from_env()
    logger.info("Starting storefront server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
