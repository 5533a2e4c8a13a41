from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role, resolved by the auth layer before a call reaches the core."""

    DIPENDENTE = "dipendente"
    MANAGER = "manager"
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"


class PunchMethod(str, Enum):
    QR = "qr"
    MANUAL = "manual"


class ClockState(str, Enum):
    """Per (user, date) clock state derived from the Timbratura columns."""

    NOT_STARTED = "NOT_STARTED"
    ENTERED = "ENTERED"
    ON_BREAK = "ON_BREAK"
    COMPLETED = "COMPLETED"


class Direction(str, Enum):
    ENTRATA = "entrata"
    USCITA = "uscita"


class RequestStatus(str, Enum):
    """Approval workflow state (leave requests and justifications)."""

    IN_ATTESA = "in_attesa"
    APPROVATA = "approvata"
    RIFIUTATA = "rifiutata"


class RequestKind(str, Enum):
    FERIE = "ferie"
    GIUSTIFICAZIONE = "giustificazione"


class LeaveType(str, Enum):
    FERIE = "ferie"
    PERMESSO = "permesso"


class JustificationCategory(str, Enum):
    MANCATA_TIMBRATURA = "mancata_timbratura"
    RITARDO = "ritardo"
    USCITA_ANTICIPATA = "uscita_anticipata"
    ALTRO = "altro"


class StatsPeriod(str, Enum):
    SETTIMANA = "settimana"
    MESE = "mese"


class ExportFormat(str, Enum):
    TXT = "txt"
    CSV = "csv"
