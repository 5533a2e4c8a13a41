from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class PeriodStats:
    """Rolled-up figures for one user over [start, end)."""

    start: date
    end: date
    totale_ore: float
    totale_days: int
    straordinari: float
    ritardi: int
    media_ore_giorno: float

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "totaleOre": self.totale_ore,
            "totaleDays": self.totale_days,
            "straordinari": self.straordinari,
            "ritardi": self.ritardi,
            "mediaOreGiorno": self.media_ore_giorno,
        }
