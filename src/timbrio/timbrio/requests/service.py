from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from ..attendance.service import ClockService
from ..common.datetime_utils import Clock, SystemClock, parse_optional_hhmm
from ..common.validators import optional_text, require_date_range, require_non_empty
from ..core.constants import DEFAULT_REQUEST_LIST_LIMIT
from ..core.enums import JustificationCategory, LeaveType, RequestKind, RequestStatus
from ..core.exceptions import ConflictError, InvalidTransition, NotFoundError, ValidationError
from ..core.policy import Action, require
from ..users.model import Identity
from .model import ApprovalRequest, JustificationPayload, LeavePayload
from .repository import RequestRepository

logger = logging.getLogger(__name__)

_OUTCOMES = {RequestStatus.APPROVATA, RequestStatus.RIFIUTATA}


def inclusive_days(start: date, end: date) -> int:
    """Calendar days in [start, end]; weekends are not excluded."""
    return (end - start).days + 1


class ApprovalService:
    """Generic in_attesa -> approvata | rifiutata workflow.

    Both outcomes are terminal. Decisions are written with an optimistic check
    on the current status, so of two concurrent approvers only one wins.
    """

    def __init__(
        self,
        requests: RequestRepository,
        clock_service: ClockService,
        *,
        clock: Optional[Clock] = None,
    ):
        self._requests = requests
        self._clock_service = clock_service
        self._clock = clock or SystemClock()

    def submit_leave_request(
        self,
        actor: Identity,
        *,
        tipo: LeaveType | str,
        data_inizio: date,
        data_fine: date,
        motivo: str,
    ) -> ApprovalRequest:
        require(Action.SUBMIT_REQUEST, actor.role)
        require_date_range(data_inizio, data_fine)
        payload = LeavePayload(
            tipo=_parse_enum(LeaveType, tipo, "leave type"),
            data_inizio=data_inizio,
            data_fine=data_fine,
            motivo=require_non_empty(motivo, "reason"),
            giorni=inclusive_days(data_inizio, data_fine),
        )
        return self._create(actor, RequestKind.FERIE, payload)

    def submit_justification(
        self,
        actor: Identity,
        *,
        data: date,
        categoria: JustificationCategory | str,
        spiegazione: str,
        entrata_corretta: Optional[str] = None,
        uscita_corretta: Optional[str] = None,
    ) -> ApprovalRequest:
        require(Action.SUBMIT_REQUEST, actor.role)
        if data is None:
            raise ValidationError("anomaly date is required")

        entrata = parse_optional_hhmm(entrata_corretta)
        uscita = parse_optional_hhmm(uscita_corretta)
        if entrata and uscita and uscita <= entrata:
            raise ValidationError("corrected uscita must be later than corrected entrata")

        payload = JustificationPayload(
            data=data,
            categoria=_parse_enum(JustificationCategory, categoria, "justification category"),
            spiegazione=require_non_empty(spiegazione, "explanation"),
            entrata_corretta=entrata,
            uscita_corretta=uscita,
        )
        return self._create(actor, RequestKind.GIUSTIFICAZIONE, payload)

    def decide_request(
        self,
        actor: Identity,
        request_id: int,
        outcome: RequestStatus | str,
        *,
        admin_note: Optional[str] = None,
        giorni: Optional[int] = None,
    ) -> ApprovalRequest:
        require(Action.DECIDE_REQUEST, actor.role)
        outcome = _parse_enum(RequestStatus, outcome, "outcome")
        if outcome not in _OUTCOMES:
            raise ValidationError("outcome must be approvata or rifiutata")

        req = self.get(request_id)
        if not req.is_pending:
            raise InvalidTransition(f"request already {req.status.value}")

        payload = None
        if giorni is not None:
            if req.kind != RequestKind.FERIE or outcome != RequestStatus.APPROVATA:
                raise ValidationError("day count can only be overridden when approving a leave request")
            if int(giorni) < 0:
                raise ValidationError("day count cannot be negative")
            payload = replace(req.payload, giorni=int(giorni))

        amend = (
            outcome == RequestStatus.APPROVATA
            and req.kind == RequestKind.GIUSTIFICAZIONE
            and req.payload.has_corrections
        )
        decision = dict(
            request_id=req.request_id,
            status=outcome,
            decided_by=int(actor.user_id),
            decided_at=self._clock.now(),
            admin_note=optional_text(admin_note),
            payload=payload,
        )
        if amend:
            self._approve_with_amendment(req, decision)
        else:
            self._commit_decision(decision)

        logger.info("request %s %s by %s", req.request_id, outcome.value, actor.user_id)
        return self.get(req.request_id)

    def get(self, request_id: int) -> ApprovalRequest:
        req = self._requests.get(int(request_id))
        if req is None:
            raise NotFoundError("request not found")
        return req

    def list_my_requests(self, actor: Identity, *, limit: int = DEFAULT_REQUEST_LIST_LIMIT) -> Sequence[ApprovalRequest]:
        return self._requests.list(user_id=int(actor.user_id), limit=limit)

    def list_pending(
        self,
        actor: Identity,
        *,
        kind: Optional[RequestKind] = None,
        limit: int = DEFAULT_REQUEST_LIST_LIMIT,
    ) -> Sequence[ApprovalRequest]:
        require(Action.LIST_PENDING_REQUESTS, actor.role)
        return self._requests.list(status=RequestStatus.IN_ATTESA, kind=kind, limit=limit)

    def _create(self, actor: Identity, kind: RequestKind, payload) -> ApprovalRequest:
        request_id = self._requests.create(
            user_id=int(actor.user_id),
            kind=kind,
            payload=payload,
            created_at=self._clock.now(),
        )
        logger.info("user %s submitted %s request %s", actor.user_id, kind.value, request_id)
        return self.get(request_id)

    def _commit_decision(self, decision: dict) -> None:
        if not self._requests.decide(**decision):
            logger.warning("request %s lost a concurrent decision", decision["request_id"])
            raise InvalidTransition("request was already decided by another approver")

    def _approve_with_amendment(self, req: ApprovalRequest, decision: dict) -> None:
        """Amend the Timbratura and record the approval as one step.

        The decision is written only after the correction validated under the
        (user, date) lock; if the amendment write then loses a race, the
        request goes back to in_attesa.
        """

        committed: list[bool] = []

        def commit() -> None:
            self._commit_decision(decision)
            committed.append(True)

        p = req.payload
        try:
            self._clock_service.amend_times(
                req.user_id,
                p.data,
                entrata=p.entrata_corretta,
                uscita=p.uscita_corretta,
                note=f"giustificazione #{req.request_id}: {p.categoria.value}",
                on_validated=commit,
            )
        except ConflictError:
            if committed and self._requests.reopen(
                request_id=req.request_id,
                decided_by=decision["decided_by"],
            ):
                logger.warning("request %s reopened: attendance record changed during approval", req.request_id)
            raise


def _parse_enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"invalid {label}: {value!r}")
