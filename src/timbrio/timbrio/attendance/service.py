from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import Clock, SystemClock
from ..common.locks import KeyedLock
from ..common.validators import optional_text, require_date_range
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import ClockState, Direction, PunchMethod
from ..core.exceptions import ConflictError, InvalidTransition, NotFoundError, ValidationError
from ..core.policy import Action, require
from ..payroll.calculator.base import TimeCalculator, TimeFigures
from ..payroll.calculator.standard_calculator import StandardTimeCalculator
from ..tokens.model import extract_token_id
from ..tokens.service import TokenIssuer
from ..users.model import Employee, Identity
from ..users.repository import EmployeeRepository
from .model import Timbratura, state_of
from .repository import TimbraturaRepository

logger = logging.getLogger(__name__)

_NOT_STARTED_MESSAGES = {
    ClockState.ENTERED: "already clocked in today",
    ClockState.ON_BREAK: "already clocked in today",
    ClockState.COMPLETED: "attendance for today is already completed",
}


class ClockService:
    """Per (user, date) clock state machine.

    NOT_STARTED -> ENTERED -> ON_BREAK -> ENTERED -> COMPLETED. Transitions for
    the same key run under a keyed lock; repository writes are conditional so a
    second application instance cannot apply a duplicate transition either.
    """

    def __init__(
        self,
        timbrature: TimbraturaRepository,
        employees: EmployeeRepository,
        tokens: TokenIssuer,
        *,
        calculator: Optional[TimeCalculator] = None,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self._timbrature = timbrature
        self._employees = employees
        self._tokens = tokens
        self._calculator = calculator or StandardTimeCalculator()
        self._clock = clock or SystemClock()
        self._locks = locks or KeyedLock()

    # ----- queries -----

    def current(self, user_id: int) -> Optional[Timbratura]:
        return self._timbrature.get_for_user_and_date(int(user_id), self._clock.now().date())

    def record_for(self, user_id: int, work_date: date) -> Optional[Timbratura]:
        return self._timbrature.get_for_user_and_date(int(user_id), work_date)

    def state_of(self, user_id: int, work_date: Optional[date] = None) -> ClockState:
        work_date = work_date or self._clock.now().date()
        return state_of(self._timbrature.get_for_user_and_date(int(user_id), work_date))

    def my_history(self, actor: Identity, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[Timbratura]:
        require(Action.VIEW_OWN_TIMBRATURE, actor.role)
        return self._timbrature.list_for_user(int(actor.user_id), limit=limit)

    def list_timbrature(
        self,
        actor: Identity,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        user_id: Optional[int] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> Sequence[Timbratura]:
        """Manager view: optionally filtered by [start, end) and/or employee."""

        require(Action.VIEW_ALL_TIMBRATURE, actor.role)
        if (start is None) != (end is None):
            raise ValidationError("start and end must be given together")
        if start is not None:
            require_date_range(start, end)
        return self._timbrature.list_by_period(
            start_date=start,
            end_date=end,
            user_id=int(user_id) if user_id is not None else None,
            limit=limit,
        )

    def today_entries(self, actor: Identity) -> Sequence[Timbratura]:
        require(Action.VIEW_TODAY_TIMBRATURE, actor.role)
        return self._timbrature.list_for_date(self._clock.now().date())


    # ----- punches -----

    def punch_in(
        self,
        user_id: int,
        *,
        work_date: Optional[date] = None,
        method: PunchMethod = PunchMethod.MANUAL,
        token_id: Optional[str] = None,
        commessa: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Timbratura:
        now = self._clock.now()
        today = self._require_today(work_date, now)
        with self._locks.hold((int(user_id), today)):
            record = self._timbrature.get_for_user_and_date(int(user_id), today)
            self._require_state(record, {ClockState.NOT_STARTED}, _NOT_STARTED_MESSAGES)
            if method == PunchMethod.QR:
                if not token_id:
                    raise ValidationError("a QR punch requires a token")
                token = self._tokens.validate_and_consume(extract_token_id(token_id))
                with self._tokens.released_on_conflict(token):
                    return self._create_entrata(user_id, today, now, method, commessa, note)
            return self._create_entrata(user_id, today, now, method, commessa, note)

    def punch_break_start(self, user_id: int) -> Timbratura:
        now = self._clock.now()
        today = now.date()
        with self._locks.hold((int(user_id), today)):
            record = self._timbrature.get_for_user_and_date(int(user_id), today)
            self._require_state(
                record,
                {ClockState.ENTERED},
                {
                    ClockState.NOT_STARTED: "not clocked in today",
                    ClockState.ON_BREAK: "break already in progress",
                    ClockState.COMPLETED: "attendance for today is already completed",
                },
            )
            if record.pausa_inizio is not None:
                raise InvalidTransition("break already taken today")
            if now < record.entrata:
                raise ValidationError("break cannot start before the clock-in time")

            if not self._timbrature.start_break(timbratura_id=record.timbratura_id, pausa_inizio=now):
                raise ConflictError("attendance record changed concurrently, retry")
            logger.info("user %s started break at %s", user_id, now.isoformat())
            return self._reload(record.timbratura_id)

    def punch_break_end(self, user_id: int) -> Timbratura:
        now = self._clock.now()
        today = now.date()
        with self._locks.hold((int(user_id), today)):
            record = self._timbrature.get_for_user_and_date(int(user_id), today)
            self._require_state(
                record,
                {ClockState.ON_BREAK},
                {
                    ClockState.NOT_STARTED: "not clocked in today",
                    ClockState.ENTERED: "no break in progress",
                    ClockState.COMPLETED: "attendance for today is already completed",
                },
            )
            if now <= record.pausa_inizio:
                raise ValidationError("break end must be later than break start")

            if not self._timbrature.end_break(timbratura_id=record.timbratura_id, pausa_fine=now):
                raise ConflictError("attendance record changed concurrently, retry")
            logger.info("user %s ended break at %s", user_id, now.isoformat())
            return self._reload(record.timbratura_id)

    def punch_out(self, user_id: int) -> Timbratura:
        now = self._clock.now()
        today = now.date()
        with self._locks.hold((int(user_id), today)):
            record = self._timbrature.get_for_user_and_date(int(user_id), today)
            self._require_state(
                record,
                {ClockState.ENTERED, ClockState.ON_BREAK},
                {
                    ClockState.NOT_STARTED: "not clocked in today",
                    ClockState.COMPLETED: "already clocked out today",
                },
            )
            return self._complete(record, now)

    def punch_via_token(self, user_id: int, token: str) -> tuple[Direction, Timbratura]:
        """Kiosk scan: clock in when not started, otherwise clock out.

        The token is consumed only when the transition is allowed.
        """

        token_id = extract_token_id(token)
        now = self._clock.now()
        today = now.date()
        with self._locks.hold((int(user_id), today)):
            record = self._timbrature.get_for_user_and_date(int(user_id), today)
            state = state_of(record)
            if state == ClockState.COMPLETED:
                raise InvalidTransition("attendance for today is already completed")

            token = self._tokens.validate_and_consume(token_id)
            with self._tokens.released_on_conflict(token):
                if state == ClockState.NOT_STARTED:
                    return Direction.ENTRATA, self._create_entrata(user_id, today, now, PunchMethod.QR, None, None)
                return Direction.USCITA, self._complete(record, now)

    def punch_by_badge(self, actor: Identity, badge: str, direction: Direction) -> tuple[Employee, Timbratura]:
        """Front-desk punch on behalf of an employee identified by badge."""

        require(Action.PUNCH_FOR_OTHERS, actor.role)
        employee = self._employees.get_by_badge((badge or "").strip())
        if employee is None:
            raise NotFoundError("no employee with this badge")

        if Direction(direction) == Direction.ENTRATA:
            record = self.punch_in(employee.user_id, method=PunchMethod.MANUAL)
        else:
            record = self.punch_out(employee.user_id)
        logger.info("user %s punched %s for badge %s", actor.user_id, Direction(direction).value, badge)
        return employee, record

    # ----- approval and amendments -----

    def approve_timbratura(self, actor: Identity, timbratura_id: int) -> Timbratura:
        require(Action.APPROVE_TIMBRATURA, actor.role)
        record = self._timbrature.get_by_id(int(timbratura_id))
        if record is None:
            raise NotFoundError("attendance record not found")
        if record.approvata:
            raise InvalidTransition("attendance record is already approved")

        now = self._clock.now()
        if not self._timbrature.set_approved(
            timbratura_id=record.timbratura_id,
            approved_by=int(actor.user_id),
            approved_at=now,
        ):
            raise InvalidTransition("attendance record is already approved")
        logger.info("timbratura %s approved by %s", record.timbratura_id, actor.user_id)
        return self._reload(record.timbratura_id)

    def figures_for(
        self,
        user_id: int,
        *,
        entrata: datetime,
        uscita: datetime,
        pausa_inizio: Optional[datetime] = None,
        pausa_fine: Optional[datetime] = None,
    ) -> TimeFigures:
        return self._calculator.compute(
            entrata=entrata,
            uscita=uscita,
            pausa_inizio=pausa_inizio,
            pausa_fine=pausa_fine,
            shift=self._shift_for(user_id),
        )

    def amend_times(
        self,
        user_id: int,
        work_date: date,
        *,
        entrata: Optional[time],
        uscita: Optional[time],
        note: Optional[str] = None,
        on_validated: Optional[Callable[[], None]] = None,
    ) -> Timbratura:
        """Apply corrected times from an approved justification.

        Validation and the write run under the (user, date) lock. ``on_validated``
        is called under the same lock once the correction is known to be
        applicable, before anything is written; an exception from it aborts the
        amendment. Missing records are created as closed manual records when both
        times are known.
        """

        with self._locks.hold((int(user_id), work_date)):
            now = self._clock.now()
            if work_date > now.date():
                raise ValidationError("cannot amend attendance in the future")

            record = self._timbrature.get_for_user_and_date(int(user_id), work_date)
            if record is not None and record.is_open and work_date == now.date():
                raise ValidationError("attendance for today is still open: punch out before amending it")

            if record is None:
                if entrata is None or uscita is None:
                    raise ValidationError("no attendance record for this day: both entrata and uscita are required")
                new_in = datetime.combine(work_date, entrata)
                new_out = datetime.combine(work_date, uscita)
                pausa_inizio, pausa_fine = None, None
            else:
                new_in = datetime.combine(work_date, entrata) if entrata else record.entrata
                new_out = datetime.combine(work_date, uscita) if uscita else record.uscita
                if new_out is None:
                    raise ValidationError("record is still open: a corrected uscita is required")
                pausa_inizio, pausa_fine = record.pausa_inizio, record.pausa_fine
                if pausa_inizio is not None and not (new_in <= pausa_inizio < (pausa_fine or new_out) <= new_out):
                    # Break no longer fits inside the corrected shift.
                    pausa_inizio, pausa_fine = None, None
                elif pausa_inizio is not None and pausa_fine is None:
                    pausa_fine = new_out

            if new_out > now:
                raise ValidationError("corrected uscita is later than the current time")

            figures = self.figures_for(
                user_id,
                entrata=new_in,
                uscita=new_out,
                pausa_inizio=pausa_inizio,
                pausa_fine=pausa_fine,
            )
            if on_validated is not None:
                on_validated()

            if record is None:
                new_id = self._timbrature.create_completed(
                    user_id=int(user_id),
                    work_date=work_date,
                    entrata=new_in,
                    uscita=new_out,
                    ore_totali=figures.worked_hours,
                    ore_straordinario=figures.overtime_hours,
                    minuti_ritardo=figures.lateness_minutes,
                    note=optional_text(note),
                )
                logger.info("timbratura %s created from justification", new_id)
                return self._reload(new_id)

            if not self._timbrature.amend(
                timbratura_id=record.timbratura_id,
                expected_uscita=record.uscita,
                entrata=new_in,
                uscita=new_out,
                pausa_inizio=pausa_inizio,
                pausa_fine=pausa_fine,
                ore_totali=figures.worked_hours,
                ore_straordinario=figures.overtime_hours,
                minuti_ritardo=figures.lateness_minutes,
                note=optional_text(note),
            ):
                raise ConflictError("attendance record changed concurrently, retry")
            logger.info("timbratura %s amended after justification", record.timbratura_id)
            return self._reload(record.timbratura_id)

    # ----- internals -----

    def _create_entrata(
        self,
        user_id: int,
        today: date,
        now: datetime,
        method: PunchMethod,
        commessa: Optional[str],
        note: Optional[str],
    ) -> Timbratura:
        new_id = self._timbrature.create_entrata(
            user_id=int(user_id),
            work_date=today,
            entrata=now,
            metodo=method,
            commessa=optional_text(commessa),
            note=optional_text(note),
        )
        logger.info("user %s clocked in at %s via %s", user_id, now.isoformat(), method.value)
        return self._reload(new_id)

    def _complete(self, record: Timbratura, now: datetime) -> Timbratura:
        pausa_fine = record.pausa_fine
        if record.pausa_inizio is not None and pausa_fine is None:
            if now <= record.pausa_inizio:
                raise ValidationError("clock-out must be later than break start")
            pausa_fine = now

        figures = self.figures_for(
            record.user_id,
            entrata=record.entrata,
            uscita=now,
            pausa_inizio=record.pausa_inizio,
            pausa_fine=pausa_fine,
        )
        if not self._timbrature.complete(
            timbratura_id=record.timbratura_id,
            uscita=now,
            pausa_fine=pausa_fine,
            ore_totali=figures.worked_hours,
            ore_straordinario=figures.overtime_hours,
            minuti_ritardo=figures.lateness_minutes,
        ):
            raise ConflictError("attendance record changed concurrently, retry")
        logger.info(
            "user %s clocked out at %s: %.1fh worked, %.1fh overtime",
            record.user_id,
            now.isoformat(),
            figures.worked_hours,
            figures.overtime_hours,
        )
        return self._reload(record.timbratura_id)

    def _shift_for(self, user_id: int):
        employee = self._employees.get_by_id(int(user_id))
        return employee.shift if employee else None

    def _reload(self, timbratura_id: int) -> Timbratura:
        record = self._timbrature.get_by_id(timbratura_id)
        if record is None:
            raise NotFoundError("attendance record not found")
        return record

    @staticmethod
    def _require_today(work_date: Optional[date], now: datetime) -> date:
        today = now.date()
        if work_date is not None and work_date != today:
            raise ValidationError("punch date must be today")
        return today

    @staticmethod
    def _require_state(
        record: Optional[Timbratura],
        allowed: set[ClockState],
        messages: dict[ClockState, str],
    ) -> None:
        state = state_of(record)
        if state not in allowed:
            raise InvalidTransition(messages.get(state, f"punch not allowed from {state.value}"))
