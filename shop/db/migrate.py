"""
Storefront schema migrations.

Files in `migrations/` are named `<version>_<label>.sql` and applied in name order.
Every pending file runs inside one transaction that holds an advisory lock, so two
servers starting together cannot both create the catalog and order tables; a failing
file leaves the schema exactly as it was.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Collection, List, Optional

from shop.db.config import DbConfig, connect, load_db_config

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

SCHEMA_LOCK_KEY = 4410235871


def pending_migrations(applied: Collection[str], directory: Path = MIGRATIONS_DIR) -> List[Path]:
    return [p for p in sorted(directory.glob("*.sql")) if p.stem not in applied]


def migrate(dsn: str, directory: Path = MIGRATIONS_DIR) -> List[str]:
    """Apply pending migrations and return their versions, oldest first."""
    applied_now: List[str] = []
    with connect(dsn) as conn:
        with conn.transaction():
            conn.execute("SELECT pg_advisory_xact_lock(%s)", (SCHEMA_LOCK_KEY,))
            conn.execute(
                "CREATE TABLE IF NOT EXISTS schema_migrations ("
                " version text PRIMARY KEY,"
                " applied_at timestamptz NOT NULL DEFAULT now())"
            )
            applied = {str(row[0]) for row in conn.execute("SELECT version FROM schema_migrations").fetchall()}
            for path in pending_migrations(applied, directory):
                conn.execute(path.read_text(encoding="utf-8"))
                conn.execute("INSERT INTO schema_migrations (version) VALUES (%s)", (path.stem,))
                logger.info("Applied migration %s", path.stem)
                applied_now.append(path.stem)
    return applied_now


def auto_migrate(cfg: Optional[DbConfig] = None) -> Optional[List[str]]:
    """Migrate on startup when DB_AUTO_MIGRATE is on; None when it is off or Postgres is unset."""
    cfg = cfg or load_db_config()
    if not (cfg.auto_migrate and cfg.dsn):
        return None
    return migrate(cfg.dsn)
