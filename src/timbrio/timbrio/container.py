from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .attendance.mysql_attendance_repository import MySQLTimbraturaRepository
from .attendance.repository import TimbraturaRepository
from .attendance.service import ClockService
from .common.datetime_utils import Clock, SystemClock
from .common.locks import KeyedLock
from .core.constants import DEFAULT_LATE_TOLERANCE_MINUTES, DEFAULT_SCHEDULED_HOURS, DEFAULT_TOKEN_TTL_SECONDS
from .database.connection import DatabaseConnection, DBConfig
from .payroll.calculator.standard_calculator import StandardTimeCalculator
from .payroll.service import PayrollExportService
from .requests.mysql_request_repository import MySQLRequestRepository
from .requests.repository import RequestRepository
from .requests.service import ApprovalService
from .statistics.service import StatisticsService
from .tokens.mysql_token_repository import MySQLTokenRepository
from .tokens.repository import TokenRepository
from .tokens.service import TokenIssuer
from .users.mysql_user_repository import MySQLEmployeeRepository
from .users.repository import EmployeeRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    employees_repo: EmployeeRepository
    timbrature_repo: TimbraturaRepository
    tokens_repo: TokenRepository
    requests_repo: RequestRepository

    token_issuer: TokenIssuer
    clock_service: ClockService
    approval_service: ApprovalService
    statistics_service: StatisticsService
    payroll_export_service: PayrollExportService


def wire_services(
    *,
    employees_repo: EmployeeRepository,
    timbrature_repo: TimbraturaRepository,
    tokens_repo: TokenRepository,
    requests_repo: RequestRepository,
    clock: Optional[Clock] = None,
    settings: Any = None,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    """Build services over the given repositories (MySQL in production, fakes in tests)."""

    clock = clock or SystemClock()
    calculator = StandardTimeCalculator(
        tolerance_minutes=int(getattr(settings, "LATE_TOLERANCE_MINUTES", DEFAULT_LATE_TOLERANCE_MINUTES)),
        default_scheduled_hours=float(getattr(settings, "DEFAULT_SCHEDULED_HOURS", DEFAULT_SCHEDULED_HOURS)),
    )

    token_issuer = TokenIssuer(
        tokens_repo,
        clock=clock,
        ttl_seconds=int(getattr(settings, "TOKEN_TTL_SECONDS", DEFAULT_TOKEN_TTL_SECONDS)),
    )
    clock_service = ClockService(
        timbrature_repo,
        employees_repo,
        token_issuer,
        calculator=calculator,
        clock=clock,
        locks=KeyedLock(),
    )
    approval_service = ApprovalService(requests_repo, clock_service, clock=clock)
    statistics_service = StatisticsService(timbrature_repo, calculator=calculator, clock=clock)
    payroll_export_service = PayrollExportService(timbrature_repo, employees_repo)

    return Container(
        conn=conn,
        employees_repo=employees_repo,
        timbrature_repo=timbrature_repo,
        tokens_repo=tokens_repo,
        requests_repo=requests_repo,
        token_issuer=token_issuer,
        clock_service=clock_service,
        approval_service=approval_service,
        statistics_service=statistics_service,
        payroll_export_service=payroll_export_service,
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection(DBConfig.from_dict(db_config))
    return wire_services(
        employees_repo=MySQLEmployeeRepository(conn),
        timbrature_repo=MySQLTimbraturaRepository(conn),
        tokens_repo=MySQLTokenRepository(conn),
        requests_repo=MySQLRequestRepository(conn),
        settings=settings,
        conn=conn,
    )
