from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import RequestKind, RequestStatus
from .model import ApprovalRequest, Payload


class RequestRepository(Protocol):
    def create(
        self,
        *,
        user_id: int,
        kind: RequestKind,
        payload: Payload,
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def get(self, request_id: int) -> Optional[ApprovalRequest]:
        raise NotImplementedError

    def decide(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        decided_by: int,
        decided_at: datetime,
        admin_note: Optional[str] = None,
        payload: Optional[Payload] = None,
    ) -> bool:
        """Apply a decision only while the request is still in_attesa.

        ``payload`` replaces the stored payload (approver overrides). Returns
        False when the request was already decided.
        """

        raise NotImplementedError

    def reopen(self, *, request_id: int, decided_by: int) -> bool:
        """Undo an approval by ``decided_by`` whose side effect could not be applied."""

        raise NotImplementedError

    def list(
        self,
        *,
        status: Optional[RequestStatus] = None,
        user_id: Optional[int] = None,
        kind: Optional[RequestKind] = None,
        limit: int = 200,
    ) -> Sequence[ApprovalRequest]:
        raise NotImplementedError
