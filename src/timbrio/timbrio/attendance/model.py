from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import ClockState, PunchMethod


@dataclass(frozen=True)
class Timbratura:
    """Domain entity: one day's attendance record for a user."""

    timbratura_id: int
    user_id: int
    data: date
    entrata: datetime
    uscita: Optional[datetime] = None
    pausa_inizio: Optional[datetime] = None
    pausa_fine: Optional[datetime] = None
    ore_totali: Optional[float] = None
    ore_straordinario: Optional[float] = None
    minuti_ritardo: Optional[int] = None
    metodo: PunchMethod = PunchMethod.MANUAL
    commessa: Optional[str] = None
    note: Optional[str] = None
    approvata: bool = False
    approvata_da: Optional[int] = None
    data_approvazione: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.uscita is None

    @property
    def state(self) -> ClockState:
        if self.uscita is not None:
            return ClockState.COMPLETED
        if self.pausa_inizio is not None and self.pausa_fine is None:
            return ClockState.ON_BREAK
        return ClockState.ENTERED

    def to_dict(self) -> dict:
        def ts(v: Optional[datetime]) -> Optional[str]:
            return v.isoformat(timespec="seconds") if v else None

        return {
            "id": self.timbratura_id,
            "user_id": self.user_id,
            "data": self.data.isoformat(),
            "entrata": ts(self.entrata),
            "uscita": ts(self.uscita),
            "pausa_inizio": ts(self.pausa_inizio),
            "pausa_fine": ts(self.pausa_fine),
            "ore_totali": self.ore_totali,
            "ore_straordinario": self.ore_straordinario,
            "minuti_ritardo": self.minuti_ritardo,
            "metodo": self.metodo.value,
            "commessa": self.commessa,
            "note": self.note,
            "approvata": self.approvata,
            "approvata_da": self.approvata_da,
            "data_approvazione": ts(self.data_approvazione),
            "stato": self.state.value,
        }


def state_of(record: Optional[Timbratura]) -> ClockState:
    return record.state if record is not None else ClockState.NOT_STARTED
