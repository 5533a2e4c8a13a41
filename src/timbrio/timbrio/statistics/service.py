from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ..attendance.model import Timbratura
from ..attendance.repository import TimbraturaRepository
from ..common.datetime_utils import Clock, SystemClock, iso_week_key, month_bounds, month_key, week_bounds
from ..core.enums import ClockState, StatsPeriod
from ..core.policy import Action, require
from ..payroll.calculator.base import TimeCalculator
from ..payroll.calculator.standard_calculator import StandardTimeCalculator, round_hours
from ..users.model import Identity
from .model import PeriodStats


def _dec(value: Optional[float]) -> Decimal:
    # Stored hours carry one decimal: str() keeps them exact.
    return Decimal(str(value)) if value is not None else Decimal(0)


def period_bounds(period: StatsPeriod, reference: date) -> tuple[date, date]:
    if StatsPeriod(period) == StatsPeriod.SETTIMANA:
        return week_bounds(reference)
    return month_bounds(reference)


def period_key(period: StatsPeriod, value: date) -> str:
    if StatsPeriod(period) == StatsPeriod.SETTIMANA:
        return iso_week_key(value)
    return month_key(value)


class StatisticsService:
    """Week/month roll-ups over completed Timbratura records.

    Reads are snapshot based and take no locks; the result does not depend on
    input ordering.
    """

    def __init__(
        self,
        timbrature: TimbraturaRepository,
        *,
        calculator: Optional[TimeCalculator] = None,
        clock: Optional[Clock] = None,
    ):
        self._timbrature = timbrature
        self._calculator = calculator or StandardTimeCalculator()
        self._clock = clock or SystemClock()

    def aggregate(self, records: Iterable[Timbratura], start: date, end: date) -> PeriodStats:
        selected = [
            r for r in records
            if r.state == ClockState.COMPLETED and start <= r.data < end
        ]

        totale = sum((_dec(r.ore_totali) for r in selected), Decimal(0))
        straordinari = sum((_dec(r.ore_straordinario) for r in selected), Decimal(0))
        ritardi = sum(1 for r in selected if self._calculator.is_late(r.minuti_ritardo))
        days = len(selected)
        media = round_hours(totale / days) if days else Decimal(0)

        return PeriodStats(
            start=start,
            end=end,
            totale_ore=float(totale),
            totale_days=days,
            straordinari=float(straordinari),
            ritardi=ritardi,
            media_ore_giorno=float(media),
        )

    def rollup(self, records: Iterable[Timbratura], period: StatsPeriod) -> dict[str, PeriodStats]:
        """Group completed records by ISO week (``YYYY-Www``) or month (``YYYY-MM``)."""

        groups: dict[str, list[Timbratura]] = defaultdict(list)
        for r in records:
            if r.state == ClockState.COMPLETED:
                groups[period_key(period, r.data)].append(r)

        out: dict[str, PeriodStats] = {}
        for key in sorted(groups):
            items = groups[key]
            start, end = period_bounds(period, items[0].data)
            out[key] = self.aggregate(items, start, end)
        return out

    def get_statistics(
        self,
        actor: Identity,
        *,
        user_id: Optional[int] = None,
        period: StatsPeriod = StatsPeriod.MESE,
        reference: Optional[date] = None,
    ) -> PeriodStats:
        target = int(user_id) if user_id is not None else int(actor.user_id)
        if target == int(actor.user_id):
            require(Action.VIEW_OWN_STATISTICS, actor.role)
        else:
            require(Action.VIEW_ANY_STATISTICS, actor.role)

        reference = reference or self._clock.now().date()
        start, end = period_bounds(period, reference)
        records = self._timbrature.list_completed(start_date=start, end_date=end, user_id=target)
        return self.aggregate(records, start, end)
