from __future__ import annotations

from typing import Iterable, Mapping, Optional

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..shifts.model import ShiftSchedule
from .model import Employee
from .repository import EmployeeRepository

_COLUMNS = "user_id, nome, cognome, badge, ruolo, turno_entrata, turno_uscita, turno_pausa, attivo"


def _to_employee(r: dict) -> Employee:
    shift = None
    if r.get("turno_entrata") and r.get("turno_uscita"):
        shift = ShiftSchedule.from_strings(r["turno_entrata"], r["turno_uscita"], r.get("turno_pausa"))
    return Employee(
        user_id=int(r["user_id"]),
        nome=r["nome"],
        cognome=r["cognome"],
        badge=r["badge"],
        role=Role(r["ruolo"]),
        shift=shift,
        is_active=bool(r.get("attivo", 1)),
    )


class MySQLEmployeeRepository(EmployeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            r = fetchone(cur)
            return _to_employee(r) if r else None

    def get_by_badge(self, badge: str) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE badge=%s AND attivo=1", (badge,))
            r = fetchone(cur)
            return _to_employee(r) if r else None

    def get_many(self, user_ids: Iterable[int]) -> Mapping[int, Employee]:
        ids = sorted({int(u) for u in user_ids})
        if not ids:
            return {}
        placeholders = ",".join(["%s"] * len(ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id IN ({placeholders})", tuple(ids))
            return {e.user_id: e for e in (_to_employee(r) for r in fetchall(cur))}
