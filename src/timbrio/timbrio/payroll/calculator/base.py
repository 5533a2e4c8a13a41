from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...shifts.model import ShiftSchedule


@dataclass(frozen=True)
class TimeFigures:
    """Result of one shift computation (hours carry one decimal)."""

    worked_hours: float
    overtime_hours: float
    lateness_minutes: int
    late: bool
    break_minutes: int


class TimeCalculator(ABC):
    """Calculator interface (Strategy Pattern for worked time rules)."""

    @abstractmethod
    def compute(
        self,
        *,
        entrata: datetime,
        uscita: datetime,
        pausa_inizio: Optional[datetime],
        pausa_fine: Optional[datetime],
        shift: Optional[ShiftSchedule],
    ) -> TimeFigures:
        raise NotImplementedError

    @abstractmethod
    def is_late(self, lateness_minutes: Optional[int]) -> bool:
        raise NotImplementedError
