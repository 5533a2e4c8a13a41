from __future__ import annotations

from typing import Iterable, Mapping, Optional, Protocol

from .model import Employee


class EmployeeRepository(Protocol):
    """Read-only view over the account service.

    Note (DIP): services depend on this interface, never on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[Employee]:
        raise NotImplementedError

    def get_by_badge(self, badge: str) -> Optional[Employee]:
        raise NotImplementedError

    def get_many(self, user_ids: Iterable[int]) -> Mapping[int, Employee]:
        raise NotImplementedError
