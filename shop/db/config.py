"""Postgres settings shared by the stores, the migration runner and the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_PORT = 5432


@dataclass(frozen=True)
class DbConfig:
    dsn: Optional[str]
    auto_migrate: bool = False


def _env(name: str) -> str:
    return (os.getenv(name) or "").strip()


def _dsn_from_env() -> Optional[str]:
    """POSTGRES_DSN wins; otherwise host, db, user and password must all be set."""
    if _env("POSTGRES_DSN"):
        return _env("POSTGRES_DSN")
    host, dbname, user, password = (
        _env(n) for n in ("POSTGRES_HOST", "POSTGRES_DB", "POSTGRES_USER", "POSTGRES_PASSWORD")
    )
    if not (host and dbname and user and password):
        return None
    port = _env("POSTGRES_PORT")
    # make_conninfo quotes special characters in the password.
    from psycopg.conninfo import make_conninfo

    return make_conninfo(
        host=host,
        port=int(port) if port.isdigit() else DEFAULT_PORT,
        dbname=dbname,
        user=user,
        password=password,
    )


def load_db_config() -> DbConfig:
    return DbConfig(
        dsn=_dsn_from_env(),
        auto_migrate=_env("DB_AUTO_MIGRATE").lower() in ("1", "true", "yes", "on"),
    )


def connect(dsn: str):
    import psycopg

    return psycopg.connect(dsn)
