from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import pytest

from src.timbrio.timbrio.attendance.model import Timbratura
from src.timbrio.timbrio.container import wire_services
from src.timbrio.timbrio.core.enums import ClockState, PunchMethod, RequestStatus, Role
from src.timbrio.timbrio.core.exceptions import ConflictError
from src.timbrio.timbrio.requests.model import ApprovalRequest
from src.timbrio.timbrio.shifts.model import ShiftSchedule
from src.timbrio.timbrio.tokens.model import PunchToken
from src.timbrio.timbrio.users.model import Employee, Identity


class FixedClock:
    def __init__(self, now: datetime):
        self._now = now
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, now: datetime) -> None:
        with self._lock:
            self._now = now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(**kwargs)
            return self._now


class InMemoryEmployees:
    def __init__(self, employees: Iterable[Employee] = ()):
        self._by_id = {e.user_id: e for e in employees}

    def add(self, employee: Employee) -> None:
        self._by_id[employee.user_id] = employee

    def get_by_id(self, user_id: int) -> Optional[Employee]:
        return self._by_id.get(user_id)

    def get_by_badge(self, badge: str) -> Optional[Employee]:
        for e in self._by_id.values():
            if e.badge == badge and e.is_active:
                return e
        return None

    def get_many(self, user_ids):
        return {uid: self._by_id[uid] for uid in user_ids if uid in self._by_id}


class InMemoryTimbrature:
    """Mirrors the MySQL repository: unique (user_id, data) and conditional updates."""

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[int, Timbratura] = {}
        self._next_id = 1

    def add(self, record: Timbratura) -> Timbratura:
        with self._lock:
            record = replace(record, timbratura_id=self._next_id)
            self._rows[record.timbratura_id] = record
            self._next_id += 1
            return record

    def get_by_id(self, timbratura_id: int) -> Optional[Timbratura]:
        return self._rows.get(timbratura_id)

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[Timbratura]:
        for r in list(self._rows.values()):
            if r.user_id == user_id and r.data == work_date:
                return r
        return None

    def _insert(self, **fields) -> int:
        with self._lock:
            if any(r.user_id == fields["user_id"] and r.data == fields["data"] for r in self._rows.values()):
                raise ConflictError("a concurrent request already wrote this record")
            rid = self._next_id
            self._next_id += 1
            self._rows[rid] = Timbratura(timbratura_id=rid, **fields)
            return rid

    def create_entrata(self, *, user_id, work_date, entrata, metodo, commessa=None, note=None) -> int:
        return self._insert(
            user_id=user_id,
            data=work_date,
            entrata=entrata,
            metodo=metodo,
            commessa=commessa,
            note=note,
        )

    def create_completed(
        self, *, user_id, work_date, entrata, uscita, ore_totali, ore_straordinario, minuti_ritardo, note=None
    ) -> int:
        return self._insert(
            user_id=user_id,
            data=work_date,
            entrata=entrata,
            uscita=uscita,
            ore_totali=ore_totali,
            ore_straordinario=ore_straordinario,
            minuti_ritardo=minuti_ritardo,
            metodo=PunchMethod.MANUAL,
            note=note,
        )

    def _update_if(self, timbratura_id, condition, **changes) -> bool:
        with self._lock:
            r = self._rows.get(timbratura_id)
            if r is None or not condition(r):
                return False
            self._rows[timbratura_id] = replace(r, **changes)
            return True

    def start_break(self, *, timbratura_id, pausa_inizio) -> bool:
        return self._update_if(
            timbratura_id,
            lambda r: r.uscita is None and r.pausa_inizio is None,
            pausa_inizio=pausa_inizio,
        )

    def end_break(self, *, timbratura_id, pausa_fine) -> bool:
        return self._update_if(
            timbratura_id,
            lambda r: r.uscita is None and r.pausa_inizio is not None and r.pausa_fine is None,
            pausa_fine=pausa_fine,
        )

    def complete(self, *, timbratura_id, uscita, pausa_fine, ore_totali, ore_straordinario, minuti_ritardo) -> bool:
        return self._update_if(
            timbratura_id,
            lambda r: r.uscita is None,
            uscita=uscita,
            pausa_fine=pausa_fine,
            ore_totali=ore_totali,
            ore_straordinario=ore_straordinario,
            minuti_ritardo=minuti_ritardo,
        )

    def amend(
        self,
        *,
        timbratura_id,
        expected_uscita,
        entrata,
        uscita,
        pausa_inizio,
        pausa_fine,
        ore_totali,
        ore_straordinario,
        minuti_ritardo,
        note=None,
    ) -> bool:
        changes = dict(
            entrata=entrata,
            uscita=uscita,
            pausa_inizio=pausa_inizio,
            pausa_fine=pausa_fine,
            ore_totali=ore_totali,
            ore_straordinario=ore_straordinario,
            minuti_ritardo=minuti_ritardo,
        )
        if note is not None:
            changes["note"] = note
        return self._update_if(timbratura_id, lambda r: r.uscita == expected_uscita, **changes)

    def set_approved(self, *, timbratura_id, approved_by, approved_at) -> bool:
        return self._update_if(
            timbratura_id,
            lambda r: not r.approvata,
            approvata=True,
            approvata_da=approved_by,
            data_approvazione=approved_at,
        )

    def list_completed(self, *, start_date, end_date, user_id=None):
        return [
            r
            for r in self._rows.values()
            if r.state == ClockState.COMPLETED
            and start_date <= r.data < end_date
            and (user_id is None or r.user_id == user_id)
        ]

    def list_for_user(self, user_id, *, limit=200):
        items = [r for r in self._rows.values() if r.user_id == user_id]
        items.sort(key=lambda r: r.data, reverse=True)
        return items[:limit]

    def list_by_period(self, *, start_date=None, end_date=None, user_id=None, limit=200):
        items = [
            r
            for r in self._rows.values()
            if (start_date is None or r.data >= start_date)
            and (end_date is None or r.data < end_date)
            and (user_id is None or r.user_id == user_id)
        ]
        items.sort(key=lambda r: (r.data, r.entrata), reverse=True)
        return items[:limit]

    def list_for_date(self, work_date):
        items = [r for r in self._rows.values() if r.data == work_date]
        items.sort(key=lambda r: r.entrata, reverse=True)
        return items


class InMemoryTokens:
    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: dict[str, PunchToken] = {}

    def create(self, token: PunchToken) -> None:
        with self._lock:
            self._tokens[token.token_id] = token

    def get(self, token_id: str) -> Optional[PunchToken]:
        return self._tokens.get(token_id)

    def consume(self, token_id: str, *, now: datetime) -> bool:
        with self._lock:
            token = self._tokens.get(token_id)
            if token is None or token.used or token.is_expired(now):
                return False
            self._tokens[token_id] = replace(token, used=True)
            return True

    def release(self, token_id: str) -> bool:
        with self._lock:
            token = self._tokens.get(token_id)
            if token is None or not token.used:
                return False
            self._tokens[token_id] = replace(token, used=False)
            return True

    def delete_expired(self, *, before: datetime) -> int:
        with self._lock:
            expired = [k for k, t in self._tokens.items() if t.expires_at <= before]
            for k in expired:
                del self._tokens[k]
            return len(expired)


class InMemoryRequests:
    def __init__(self):
        self._lock = threading.Lock()
        self._rows: dict[int, ApprovalRequest] = {}
        self._next_id = 1

    def create(self, *, user_id, kind, payload, created_at) -> int:
        with self._lock:
            rid = self._next_id
            self._next_id += 1
            self._rows[rid] = ApprovalRequest(
                request_id=rid,
                user_id=user_id,
                kind=kind,
                payload=payload,
                status=RequestStatus.IN_ATTESA,
                created_at=created_at,
            )
            return rid

    def get(self, request_id: int) -> Optional[ApprovalRequest]:
        return self._rows.get(request_id)

    def decide(self, *, request_id, status, decided_by, decided_at, admin_note=None, payload=None) -> bool:
        with self._lock:
            req = self._rows.get(request_id)
            if req is None or req.status != RequestStatus.IN_ATTESA:
                return False
            self._rows[request_id] = replace(
                req,
                status=status,
                decided_by=decided_by,
                decided_at=decided_at,
                admin_note=admin_note,
                payload=payload or req.payload,
            )
            return True

    def reopen(self, *, request_id, decided_by) -> bool:
        with self._lock:
            req = self._rows.get(request_id)
            if req is None or req.status != RequestStatus.APPROVATA or req.decided_by != decided_by:
                return False
            self._rows[request_id] = replace(
                req, status=RequestStatus.IN_ATTESA, decided_by=None, decided_at=None, admin_note=None
            )
            return True

    def list(self, *, status=None, user_id=None, kind=None, limit=200):
        items = [
            r
            for r in self._rows.values()
            if (status is None or r.status == status)
            and (user_id is None or r.user_id == user_id)
            and (kind is None or r.kind == kind)
        ]
        items.sort(key=lambda r: r.created_at, reverse=True)
        return items[:limit]


OFFICE_SHIFT = ShiftSchedule(entrata=time(8, 30), uscita=time(17, 30), pausa_minuti=60)


@pytest.fixture
def fixed_now() -> datetime:
    # Monday
    return datetime(2026, 3, 2, 8, 30, 0)


@pytest.fixture
def clock(fixed_now) -> FixedClock:
    return FixedClock(fixed_now)


@pytest.fixture
def employees() -> InMemoryEmployees:
    return InMemoryEmployees(
        [
            Employee(1, "Mario", "Rossi", "B001", Role.DIPENDENTE, shift=OFFICE_SHIFT),
            Employee(2, "Anna", "Bianchi", "B002", Role.MANAGER, shift=OFFICE_SHIFT),
            Employee(3, "Luca", "Verdi", "B003", Role.RECEPTIONIST),
            Employee(4, "Sara", "Neri", "B004", Role.ADMIN),
            Employee(5, "Paolo", "rossi", "B005", Role.DIPENDENTE, shift=OFFICE_SHIFT),
        ]
    )


@pytest.fixture
def timbrature() -> InMemoryTimbrature:
    return InMemoryTimbrature()


@pytest.fixture
def tokens() -> InMemoryTokens:
    return InMemoryTokens()


@pytest.fixture
def requests_repo() -> InMemoryRequests:
    return InMemoryRequests()


@pytest.fixture
def container(employees, timbrature, tokens, requests_repo, clock):
    return wire_services(
        employees_repo=employees,
        timbrature_repo=timbrature,
        tokens_repo=tokens,
        requests_repo=requests_repo,
        clock=clock,
    )


@pytest.fixture
def employee() -> Identity:
    return Identity(user_id=1, role=Role.DIPENDENTE)


@pytest.fixture
def manager() -> Identity:
    return Identity(user_id=2, role=Role.MANAGER)


@pytest.fixture
def receptionist() -> Identity:
    return Identity(user_id=3, role=Role.RECEPTIONIST)


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id=4, role=Role.ADMIN)
