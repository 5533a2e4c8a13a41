from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import PunchMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Timbratura
from .repository import TimbraturaRepository

_COLUMNS = """
    timbratura_id, user_id, data, entrata, uscita, pausa_inizio, pausa_fine,
    ore_totali, ore_straordinario, minuti_ritardo, metodo, commessa, note,
    approvata, approvata_da, data_approvazione, created_at, updated_at
"""


def _opt_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _to_record(r: dict) -> Timbratura:
    return Timbratura(
        timbratura_id=int(r["timbratura_id"]),
        user_id=int(r["user_id"]),
        data=r["data"],
        entrata=r["entrata"],
        uscita=r.get("uscita"),
        pausa_inizio=r.get("pausa_inizio"),
        pausa_fine=r.get("pausa_fine"),
        ore_totali=_opt_float(r.get("ore_totali")),
        ore_straordinario=_opt_float(r.get("ore_straordinario")),
        minuti_ritardo=r.get("minuti_ritardo"),
        metodo=PunchMethod(r["metodo"]),
        commessa=r.get("commessa"),
        note=r.get("note"),
        approvata=bool(r.get("approvata")),
        approvata_da=r.get("approvata_da"),
        data_approvazione=r.get("data_approvazione"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLTimbraturaRepository(TimbraturaRepository):
    """MySQL storage; state-advancing updates are conditional single statements.

    The unique key (user_id, data) backs the one-record-per-day rule across
    multiple application instances.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, timbratura_id: int) -> Optional[Timbratura]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM timbrature WHERE timbratura_id=%s", (int(timbratura_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[Timbratura]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timbrature WHERE user_id=%s AND data=%s",
                (int(user_id), work_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def create_entrata(
        self,
        *,
        user_id: int,
        work_date: date,
        entrata: datetime,
        metodo: PunchMethod,
        commessa: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO timbrature(user_id, data, entrata, metodo, commessa, note)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(user_id), work_date, entrata, metodo.value, commessa, note),
            )
            return int(cur.lastrowid)

    def start_break(self, *, timbratura_id: int, pausa_inizio: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timbrature SET pausa_inizio=%s
                WHERE timbratura_id=%s AND uscita IS NULL AND pausa_inizio IS NULL
                """,
                (pausa_inizio, int(timbratura_id)),
            )
            return cur.rowcount == 1

    def end_break(self, *, timbratura_id: int, pausa_fine: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timbrature SET pausa_fine=%s
                WHERE timbratura_id=%s AND uscita IS NULL
                  AND pausa_inizio IS NOT NULL AND pausa_fine IS NULL
                """,
                (pausa_fine, int(timbratura_id)),
            )
            return cur.rowcount == 1

    def complete(
        self,
        *,
        timbratura_id: int,
        uscita: datetime,
        pausa_fine: Optional[datetime],
        ore_totali: float,
        ore_straordinario: float,
        minuti_ritardo: int,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timbrature
                SET uscita=%s, pausa_fine=COALESCE(pausa_fine, %s),
                    ore_totali=%s, ore_straordinario=%s, minuti_ritardo=%s
                WHERE timbratura_id=%s AND uscita IS NULL
                """,
                (uscita, pausa_fine, ore_totali, ore_straordinario, int(minuti_ritardo), int(timbratura_id)),
            )
            return cur.rowcount == 1

    def amend(
        self,
        *,
        timbratura_id: int,
        expected_uscita: Optional[datetime],
        entrata: datetime,
        uscita: datetime,
        pausa_inizio: Optional[datetime],
        pausa_fine: Optional[datetime],
        ore_totali: float,
        ore_straordinario: float,
        minuti_ritardo: int,
        note: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timbrature
                SET entrata=%s, uscita=%s, pausa_inizio=%s, pausa_fine=%s,
                    ore_totali=%s, ore_straordinario=%s, minuti_ritardo=%s,
                    note=COALESCE(%s, note)
                WHERE timbratura_id=%s AND uscita <=> %s
                """,
                (
                    entrata,
                    uscita,
                    pausa_inizio,
                    pausa_fine,
                    ore_totali,
                    ore_straordinario,
                    int(minuti_ritardo),
                    note,
                    int(timbratura_id),
                    expected_uscita,
                ),
            )
            return cur.rowcount == 1

    def create_completed(
        self,
        *,
        user_id: int,
        work_date: date,
        entrata: datetime,
        uscita: datetime,
        ore_totali: float,
        ore_straordinario: float,
        minuti_ritardo: int,
        note: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO timbrature(
                    user_id, data, entrata, uscita, ore_totali, ore_straordinario,
                    minuti_ritardo, metodo, note
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    work_date,
                    entrata,
                    uscita,
                    ore_totali,
                    ore_straordinario,
                    int(minuti_ritardo),
                    PunchMethod.MANUAL.value,
                    note,
                ),
            )
            return int(cur.lastrowid)

    def set_approved(self, *, timbratura_id: int, approved_by: int, approved_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timbrature SET approvata=1, approvata_da=%s, data_approvazione=%s
                WHERE timbratura_id=%s AND approvata=0
                """,
                (int(approved_by), approved_at, int(timbratura_id)),
            )
            return cur.rowcount == 1

    def list_completed(
        self,
        *,
        start_date: date,
        end_date: date,
        user_id: Optional[int] = None,
    ) -> Sequence[Timbratura]:
        clauses = ["data >= %s", "data < %s", "uscita IS NOT NULL"]
        params: list[object] = [start_date, end_date]
        if user_id is not None:
            clauses.append("user_id=%s")
            params.append(int(user_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timbrature WHERE {where} ORDER BY data, entrata",
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[Timbratura]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timbrature WHERE user_id=%s ORDER BY data DESC LIMIT %s",
                (int(user_id), int(limit)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_by_period(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        user_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[Timbratura]:
        clauses = ["1=1"]
        params: list[object] = []
        if start_date is not None:
            clauses.append("data >= %s")
            params.append(start_date)
        if end_date is not None:
            clauses.append("data < %s")
            params.append(end_date)
        if user_id is not None:
            clauses.append("user_id=%s")
            params.append(int(user_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timbrature WHERE {where} ORDER BY data DESC, entrata DESC LIMIT %s",
                tuple(params + [int(limit)]),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_date(self, work_date: date) -> Sequence[Timbratura]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timbrature WHERE data=%s ORDER BY entrata DESC",
                (work_date,),
            )
            return [_to_record(r) for r in fetchall(cur)]
