from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role
from ..shifts.model import ShiftSchedule


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, resolved by the auth layer before reaching the core."""

    user_id: int
    role: Role


@dataclass(frozen=True)
class Employee:
    """Domain entity: employee as seen by the attendance core.

    Note: Accounts are managed elsewhere; this is a read-only projection.
    """

    user_id: int
    nome: str
    cognome: str
    badge: str
    role: Role
    shift: Optional[ShiftSchedule] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.nome} {self.cognome}"
