from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # schema.sql holds DDL only: no ';' inside literals.
    lines = [ln for ln in sql.splitlines() if not ln.strip().startswith("--")]
    for stmt in "\n".join(lines).split(";"):
        if stmt.strip():
            yield stmt.strip()


def apply_schema(db_config: dict, *, schema_path: Path) -> int:
    """Apply ``schema.sql`` (idempotent: CREATE TABLE IF NOT EXISTS)."""

    config = DBConfig.from_dict(db_config)
    sql = schema_path.read_text(encoding="utf-8")
    conn = mysql.connector.connect(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        database=config.database,
        connection_timeout=config.connect_timeout,
    )
    applied = 0
    try:
        cur = conn.cursor()
        try:
            for stmt in _iter_sql_statements(sql):
                cur.execute(stmt)
                applied += 1
            conn.commit()
        finally:
            cur.close()
    finally:
        conn.close()

    logger.info("schema applied (%d statements) to %s", applied, config.database)
    return applied
