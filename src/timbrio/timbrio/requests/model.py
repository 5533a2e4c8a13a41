from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from typing import Optional, Union

from ..common.datetime_utils import parse_iso_date, parse_optional_hhmm
from ..core.enums import JustificationCategory, LeaveType, RequestKind, RequestStatus


@dataclass(frozen=True)
class LeavePayload:
    tipo: LeaveType
    data_inizio: date
    data_fine: date
    motivo: str
    giorni: int

    def to_json(self) -> dict:
        return {
            "tipo": self.tipo.value,
            "data_inizio": self.data_inizio.isoformat(),
            "data_fine": self.data_fine.isoformat(),
            "motivo": self.motivo,
            "giorni": self.giorni,
        }

    @classmethod
    def from_json(cls, data: dict) -> "LeavePayload":
        return cls(
            tipo=LeaveType(data["tipo"]),
            data_inizio=parse_iso_date(data["data_inizio"]),
            data_fine=parse_iso_date(data["data_fine"]),
            motivo=data["motivo"],
            giorni=int(data["giorni"]),
        )


@dataclass(frozen=True)
class JustificationPayload:
    data: date
    categoria: JustificationCategory
    spiegazione: str
    entrata_corretta: Optional[time] = None
    uscita_corretta: Optional[time] = None

    @property
    def has_corrections(self) -> bool:
        return self.entrata_corretta is not None or self.uscita_corretta is not None

    def to_json(self) -> dict:
        return {
            "data": self.data.isoformat(),
            "categoria": self.categoria.value,
            "spiegazione": self.spiegazione,
            "entrata_corretta": self.entrata_corretta.strftime("%H:%M") if self.entrata_corretta else None,
            "uscita_corretta": self.uscita_corretta.strftime("%H:%M") if self.uscita_corretta else None,
        }

    @classmethod
    def from_json(cls, data: dict) -> "JustificationPayload":
        return cls(
            data=parse_iso_date(data["data"]),
            categoria=JustificationCategory(data["categoria"]),
            spiegazione=data["spiegazione"],
            entrata_corretta=parse_optional_hhmm(data.get("entrata_corretta")),
            uscita_corretta=parse_optional_hhmm(data.get("uscita_corretta")),
        )


Payload = Union[LeavePayload, JustificationPayload]

_PAYLOAD_TYPES = {
    RequestKind.FERIE: LeavePayload,
    RequestKind.GIUSTIFICAZIONE: JustificationPayload,
}


def payload_from_json(kind: RequestKind, data: dict) -> Payload:
    return _PAYLOAD_TYPES[RequestKind(kind)].from_json(data)


@dataclass(frozen=True)
class ApprovalRequest:
    """Shared shape of leave requests and justifications."""

    request_id: int
    user_id: int
    kind: RequestKind
    payload: Payload
    status: RequestStatus
    created_at: datetime
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    admin_note: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.IN_ATTESA

    def to_dict(self) -> dict:
        out = asdict(self)
        out.update(
            {
                "kind": self.kind.value,
                "status": self.status.value,
                "payload": self.payload.to_json(),
                "created_at": self.created_at.isoformat(timespec="seconds"),
                "decided_at": self.decided_at.isoformat(timespec="seconds") if self.decided_at else None,
            }
        )
        return out
