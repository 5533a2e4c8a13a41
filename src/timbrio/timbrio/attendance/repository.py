from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import PunchMethod
from .model import Timbratura


class TimbraturaRepository(Protocol):
    """Persistence for Timbratura records.

    Writes that advance the clock state are conditional on the state they
    expect and return False when another writer got there first. ``create_entrata``
    raises ConflictError when a record for (user_id, data) already exists.
    """

    def get_by_id(self, timbratura_id: int) -> Optional[Timbratura]:
        raise NotImplementedError

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[Timbratura]:
        raise NotImplementedError

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
        raise NotImplementedError

    def start_break(self, *, timbratura_id: int, pausa_inizio: datetime) -> bool:
        """Set pausa_inizio only if no break was taken and the record is open."""

        raise NotImplementedError

    def end_break(self, *, timbratura_id: int, pausa_fine: datetime) -> bool:
        """Set pausa_fine only if a break is in progress and the record is open."""

        raise NotImplementedError

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
        """Close an open record (uscita IS NULL) with its computed figures."""

        raise NotImplementedError

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
        """Override times after an approved justification.

        Applies only while uscita still equals ``expected_uscita``.
        """

        raise NotImplementedError

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
        """Insert a closed manual record (missed punches justified afterwards)."""

        raise NotImplementedError

    def set_approved(self, *, timbratura_id: int, approved_by: int, approved_at: datetime) -> bool:
        """Flip approvata to true only if it is still false."""

        raise NotImplementedError

    def list_completed(
        self,
        *,
        start_date: date,
        end_date: date,
        user_id: Optional[int] = None,
    ) -> Sequence[Timbratura]:
        """Completed records with start_date <= data < end_date."""

        raise NotImplementedError

    def list_for_user(self, user_id: int, *, limit: int = 200) -> Sequence[Timbratura]:
        """Most recent first, open records included."""

        raise NotImplementedError

    def list_by_period(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        user_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[Timbratura]:
        """All records with start_date <= data < end_date (either bound optional), newest first."""

        raise NotImplementedError

    def list_for_date(self, work_date: date) -> Sequence[Timbratura]:
        """Every employee's record for one day, latest entrata first."""

        raise NotImplementedError
