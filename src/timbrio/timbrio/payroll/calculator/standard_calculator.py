from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...core.constants import DEFAULT_LATE_TOLERANCE_MINUTES, DEFAULT_SCHEDULED_HOURS
from ...core.exceptions import ValidationError
from ...shifts.model import ShiftSchedule
from .base import TimeCalculator, TimeFigures

_TENTH = Decimal("0.1")


def round_hours(value: Decimal) -> Decimal:
    """Round half-up to the nearest 0.1 h (display granularity)."""
    return value.quantize(_TENTH, rounding=ROUND_HALF_UP)


class StandardTimeCalculator(TimeCalculator):
    """Standard rule: (uscita - entrata) - break, not below 0.

    Overtime is measured against the shift's scheduled hours (or the default
    when no shift is configured); lateness against the scheduled entrata.
    A Timbratura covers one calendar day: overnight spans are rejected.
    """

    def __init__(
        self,
        *,
        tolerance_minutes: int = DEFAULT_LATE_TOLERANCE_MINUTES,
        default_scheduled_hours: float = DEFAULT_SCHEDULED_HOURS,
    ):
        self._tolerance_minutes = int(tolerance_minutes)
        self._default_scheduled_hours = Decimal(str(default_scheduled_hours))

    @property
    def tolerance_minutes(self) -> int:
        return self._tolerance_minutes

    def compute(
        self,
        *,
        entrata: datetime,
        uscita: datetime,
        pausa_inizio: Optional[datetime],
        pausa_fine: Optional[datetime],
        shift: Optional[ShiftSchedule],
    ) -> TimeFigures:
        if entrata is None or uscita is None:
            raise ValidationError("entrata and uscita are both required")
        if uscita.date() != entrata.date():
            raise ValidationError("uscita must fall on the same calendar day as entrata")
        if uscita <= entrata:
            raise ValidationError("uscita must be later than entrata")

        break_seconds = self._break_seconds(entrata, uscita, pausa_inizio, pausa_fine)
        worked_seconds = max(int((uscita - entrata).total_seconds()) - break_seconds, 0)
        worked = round_hours(Decimal(worked_seconds) / Decimal(3600))

        scheduled = self._scheduled_hours(shift)
        overtime = max(worked - scheduled, Decimal(0))

        lateness = 0
        if shift is not None:
            delta = entrata - shift.scheduled_entrata_on(entrata.date())
            lateness = max(int(delta.total_seconds() // 60), 0)

        return TimeFigures(
            worked_hours=float(worked),
            overtime_hours=float(round_hours(overtime)),
            lateness_minutes=lateness,
            late=self.is_late(lateness),
            break_minutes=break_seconds // 60,
        )

    def is_late(self, lateness_minutes: Optional[int]) -> bool:
        return int(lateness_minutes or 0) > self._tolerance_minutes

    def _scheduled_hours(self, shift: Optional[ShiftSchedule]) -> Decimal:
        if shift is None:
            return self._default_scheduled_hours
        return Decimal(shift.scheduled_minutes) / Decimal(60)

    @staticmethod
    def _break_seconds(
        entrata: datetime,
        uscita: datetime,
        pausa_inizio: Optional[datetime],
        pausa_fine: Optional[datetime],
    ) -> int:
        if pausa_inizio is None:
            if pausa_fine is not None:
                raise ValidationError("pausa_fine recorded without pausa_inizio")
            return 0
        # An open break counts up to uscita.
        end = pausa_fine or uscita
        if not (entrata <= pausa_inizio < end <= uscita):
            raise ValidationError("break must lie inside the shift and end after it starts")
        return int((end - pausa_inizio).total_seconds())
