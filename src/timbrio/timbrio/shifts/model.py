from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from ..common.datetime_utils import parse_hhmm
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class ShiftSchedule:
    """An employee's configured working hours (orario turno)."""

    entrata: time
    uscita: time
    pausa_minuti: int = 0

    def __post_init__(self):
        if self.uscita <= self.entrata:
            raise ValidationError("shift end must be later than shift start")
        if self.pausa_minuti < 0:
            raise ValidationError("shift break cannot be negative")

    @classmethod
    def from_strings(cls, entrata: str, uscita: str, pausa_pranzo: str | None = None) -> "ShiftSchedule":
        """Build from the account service strings.

        ``pausa_pranzo`` is either a minute count ("60") or an interval
        ("12:30-13:30").
        """

        return cls(
            entrata=parse_hhmm(entrata),
            uscita=parse_hhmm(uscita),
            pausa_minuti=_parse_break_minutes(pausa_pranzo),
        )

    @property
    def scheduled_minutes(self) -> int:
        span = datetime.combine(date.min, self.uscita) - datetime.combine(date.min, self.entrata)
        return max(int(span.total_seconds() // 60) - self.pausa_minuti, 0)

    @property
    def scheduled_hours(self) -> float:
        return self.scheduled_minutes / 60

    def scheduled_entrata_on(self, work_date: date) -> datetime:
        return datetime.combine(work_date, self.entrata)


def _parse_break_minutes(value: str | None) -> int:
    v = (value or "").strip()
    if not v:
        return 0
    if "-" in v:
        start_s, end_s = v.split("-", 1)
        start, end = parse_hhmm(start_s), parse_hhmm(end_s)
        if end <= start:
            raise ValidationError(f"invalid break interval {value!r}")
        span = datetime.combine(date.min, end) - datetime.combine(date.min, start)
        return int(span.total_seconds() // 60)
    try:
        return int(v)
    except ValueError:
        raise ValidationError(f"invalid break duration {value!r}")
