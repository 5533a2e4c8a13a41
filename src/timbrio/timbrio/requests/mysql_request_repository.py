from __future__ import annotations

import json
from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import RequestKind, RequestStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ApprovalRequest, Payload, payload_from_json
from .repository import RequestRepository

_COLUMNS = "request_id, user_id, kind, payload, status, created_at, decided_by, decided_at, admin_note"


def _to_request(r: dict) -> ApprovalRequest:
    kind = RequestKind(r["kind"])
    raw = r["payload"]
    data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    return ApprovalRequest(
        request_id=int(r["request_id"]),
        user_id=int(r["user_id"]),
        kind=kind,
        payload=payload_from_json(kind, data),
        status=RequestStatus(r["status"]),
        created_at=r["created_at"],
        decided_by=r.get("decided_by"),
        decided_at=r.get("decided_at"),
        admin_note=r.get("admin_note"),
    )


class MySQLRequestRepository(RequestRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        user_id: int,
        kind: RequestKind,
        payload: Payload,
        created_at: datetime,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO approval_requests(user_id, kind, payload, status, created_at)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    kind.value,
                    json.dumps(payload.to_json()),
                    RequestStatus.IN_ATTESA.value,
                    created_at,
                ),
            )
            return int(cur.lastrowid)

    def get(self, request_id: int) -> Optional[ApprovalRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM approval_requests WHERE request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _to_request(r) if r else None

    def decide(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        decided_by: int,
        decided_at: datetime,
        admin_note: Optional[str] = None,
        payload: Optional[Payload] = None,
    ) -> bool:
        # Optimistic: the WHERE on status rejects a concurrent second decision.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE approval_requests
                SET status=%s, decided_by=%s, decided_at=%s, admin_note=%s,
                    payload=COALESCE(%s, payload)
                WHERE request_id=%s AND status=%s
                """,
                (
                    status.value,
                    int(decided_by),
                    decided_at,
                    admin_note,
                    json.dumps(payload.to_json()) if payload is not None else None,
                    int(request_id),
                    RequestStatus.IN_ATTESA.value,
                ),
            )
            return cur.rowcount == 1

    def reopen(self, *, request_id: int, decided_by: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE approval_requests
                SET status=%s, decided_by=NULL, decided_at=NULL, admin_note=NULL
                WHERE request_id=%s AND status=%s AND decided_by=%s
                """,
                (
                    RequestStatus.IN_ATTESA.value,
                    int(request_id),
                    RequestStatus.APPROVATA.value,
                    int(decided_by),
                ),
            )
            return cur.rowcount == 1

    def list(
        self,
        *,
        status: Optional[RequestStatus] = None,
        user_id: Optional[int] = None,
        kind: Optional[RequestKind] = None,
        limit: int = 200,
    ) -> Sequence[ApprovalRequest]:
        clauses = ["1=1"]
        params: list[object] = []

        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if user_id is not None:
            clauses.append("user_id=%s")
            params.append(int(user_id))
        if kind is not None:
            clauses.append("kind=%s")
            params.append(kind.value)

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM approval_requests
                WHERE {where}
                ORDER BY created_at DESC, request_id DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_to_request(r) for r in fetchall(cur)]
