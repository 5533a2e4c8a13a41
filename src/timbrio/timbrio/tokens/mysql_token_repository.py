from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import PunchToken
from .repository import TokenRepository


class MySQLTokenRepository(TokenRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, token: PunchToken) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO punch_tokens(token_id, issued_at, expires_at, used) VALUES(%s,%s,%s,%s)",
                (token.token_id, token.issued_at, token.expires_at, int(token.used)),
            )

    def get(self, token_id: str) -> Optional[PunchToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT token_id, issued_at, expires_at, used FROM punch_tokens WHERE token_id=%s",
                (token_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return PunchToken(
                token_id=r["token_id"],
                issued_at=r["issued_at"],
                expires_at=r["expires_at"],
                used=bool(r["used"]),
            )

    def consume(self, token_id: str, *, now: datetime) -> bool:
        # Single conditional UPDATE: InnoDB row lock makes the check-and-set indivisible.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE punch_tokens SET used=1 WHERE token_id=%s AND used=0 AND expires_at > %s",
                (token_id, now),
            )
            return cur.rowcount == 1

    def release(self, token_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE punch_tokens SET used=0 WHERE token_id=%s AND used=1", (token_id,))
            return cur.rowcount == 1

    def delete_expired(self, *, before: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM punch_tokens WHERE expires_at <= %s", (before,))
            return int(cur.rowcount)
