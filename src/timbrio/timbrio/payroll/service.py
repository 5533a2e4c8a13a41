from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence

from ..attendance.model import Timbratura
from ..attendance.repository import TimbraturaRepository
from ..common.datetime_utils import iso_timestamp
from ..common.validators import require_date_range
from ..core.constants import EXPORT_FIELDS
from ..core.enums import ClockState, Direction, ExportFormat
from ..core.exceptions import ValidationError
from ..core.policy import Action, require
from ..users.model import Employee, Identity
from ..users.repository import EmployeeRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PunchLine:
    """One exported punch event."""

    badge: str
    timestamp: datetime
    direction: Direction
    commessa: str

    def fields(self) -> tuple[str, str, str, str]:
        return (self.badge, iso_timestamp(self.timestamp), self.direction.value, self.commessa)


@dataclass(frozen=True)
class ExportResult:
    content: str
    filename: str
    mimetype: str
    lines: int


def _sort_key(record: Timbratura, employee: Optional[Employee]):
    cognome = employee.cognome if employee else ""
    nome = employee.nome if employee else ""
    return (cognome.casefold(), nome.casefold(), record.data, record.entrata, record.user_id)


def build_punch_lines(
    records: Iterable[Timbratura],
    employees: Mapping[int, Employee],
) -> list[PunchLine]:
    """Sorted punch events: surname, first name (case-insensitive), date, entrata."""

    completed = [r for r in records if r.state == ClockState.COMPLETED]
    completed.sort(key=lambda r: _sort_key(r, employees.get(r.user_id)))

    out: list[PunchLine] = []
    for r in completed:
        employee = employees.get(r.user_id)
        badge = employee.badge if employee else str(r.user_id)
        commessa = r.commessa or ""
        out.append(PunchLine(badge, r.entrata, Direction.ENTRATA, commessa))
        out.append(PunchLine(badge, r.uscita, Direction.USCITA, commessa))
    return out


def _txt_field(value: str) -> str:
    return value.replace("\t", " ").replace("\r", " ").replace("\n", " ")


def render_txt(lines: Sequence[PunchLine]) -> str:
    """Tab-separated, no header."""
    return "".join("\t".join(_txt_field(f) for f in line.fields()) + "\n" for line in lines)


def render_csv(lines: Sequence[PunchLine]) -> str:
    """Comma-separated with header, RFC 4180 quoting and CRLF line ends."""
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(EXPORT_FIELDS)
    for line in lines:
        writer.writerow(line.fields())
    return out.getvalue()


_RENDERERS = {
    ExportFormat.TXT: (render_txt, "text/plain"),
    ExportFormat.CSV: (render_csv, "text/csv"),
}


class PayrollExportService:
    """Deterministic payroll export of completed records for a period.

    Approval state is not filtered here: callers needing approved-only data
    filter before exporting.
    """

    def __init__(self, timbrature: TimbraturaRepository, employees: EmployeeRepository):
        self._timbrature = timbrature
        self._employees = employees

    def export_period(
        self,
        actor: Identity,
        start: date,
        end: date,
        fmt: ExportFormat | str = ExportFormat.CSV,
    ) -> ExportResult:
        require(Action.EXPORT_PERIOD, actor.role)
        require_date_range(start, end)
        fmt = _parse_format(fmt)

        records = list(self._timbrature.list_completed(start_date=start, end_date=end))
        employees = self._employees.get_many({r.user_id for r in records})
        lines = build_punch_lines(records, employees)
        render, mimetype = _RENDERERS[fmt]

        logger.info(
            "payroll export %s..%s (%s): %d records, %d lines",
            start.isoformat(),
            end.isoformat(),
            fmt.value,
            len(records),
            len(lines),
        )
        return ExportResult(
            content=render(lines),
            filename=f"timbrature_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.{fmt.value}",
            mimetype=mimetype,
            lines=len(lines),
        )


def _parse_format(fmt) -> ExportFormat:
    try:
        return ExportFormat(fmt)
    except ValueError:
        raise ValidationError(f"unsupported export format {fmt!r}, use txt or csv")
