from datetime import datetime, time

import pytest

from src.timbrio.timbrio.core.exceptions import ValidationError
from src.timbrio.timbrio.payroll.calculator.standard_calculator import StandardTimeCalculator
from src.timbrio.timbrio.shifts.model import ShiftSchedule


def _dt(h, m=0, day=2):
    return datetime(2026, 3, day, h, m)


def test_regular_day_with_lunch_break():
    shift = ShiftSchedule.from_strings("08:30", "17:30", "12:30-13:30")
    figures = StandardTimeCalculator().compute(
        entrata=_dt(8, 30),
        uscita=_dt(17, 30),
        pausa_inizio=_dt(12, 30),
        pausa_fine=_dt(13, 30),
        shift=shift,
    )

    assert figures.worked_hours == 8.0
    assert figures.overtime_hours == 0.0
    assert figures.lateness_minutes == 0
    assert figures.late is False
    assert figures.break_minutes == 60


def test_lateness_measured_against_shift_start():
    shift = ShiftSchedule(entrata=time(8, 0), uscita=time(17, 0), pausa_minuti=60)
    figures = StandardTimeCalculator().compute(
        entrata=_dt(9, 0),
        uscita=_dt(17, 0),
        pausa_inizio=None,
        pausa_fine=None,
        shift=shift,
    )

    assert figures.lateness_minutes == 60
    assert figures.late is True


def test_tolerance_is_inclusive():
    calc = StandardTimeCalculator(tolerance_minutes=5)
    assert calc.is_late(5) is False
    assert calc.is_late(6) is True
    assert calc.is_late(None) is False


def test_overtime_against_default_hours_without_shift():
    figures = StandardTimeCalculator(default_scheduled_hours=8.0).compute(
        entrata=_dt(8),
        uscita=_dt(18),
        pausa_inizio=None,
        pausa_fine=None,
        shift=None,
    )

    assert figures.worked_hours == 10.0
    assert figures.overtime_hours == 2.0
    assert figures.lateness_minutes == 0


def test_open_break_counts_until_uscita():
    figures = StandardTimeCalculator().compute(
        entrata=_dt(8),
        uscita=_dt(17),
        pausa_inizio=_dt(16),
        pausa_fine=None,
        shift=None,
    )

    assert figures.worked_hours == 8.0
    assert figures.break_minutes == 60


@pytest.mark.parametrize(
    "uscita, expected",
    [
        (_dt(16, 20), 8.3),
        (_dt(16, 3), 8.1),
        (_dt(16, 2), 8.0),
    ],
)
def test_hours_round_half_up_to_one_decimal(uscita, expected):
    figures = StandardTimeCalculator().compute(
        entrata=_dt(8),
        uscita=uscita,
        pausa_inizio=None,
        pausa_fine=None,
        shift=None,
    )
    assert figures.worked_hours == expected


def test_overnight_span_rejected():
    with pytest.raises(ValidationError):
        StandardTimeCalculator().compute(
            entrata=_dt(22),
            uscita=_dt(6, day=3),
            pausa_inizio=None,
            pausa_fine=None,
            shift=None,
        )


def test_uscita_before_entrata_rejected():
    with pytest.raises(ValidationError):
        StandardTimeCalculator().compute(
            entrata=_dt(10),
            uscita=_dt(9),
            pausa_inizio=None,
            pausa_fine=None,
            shift=None,
        )


def test_break_outside_shift_rejected():
    with pytest.raises(ValidationError):
        StandardTimeCalculator().compute(
            entrata=_dt(9),
            uscita=_dt(17),
            pausa_inizio=_dt(8),
            pausa_fine=_dt(8, 30),
            shift=None,
        )


def test_shift_break_as_minutes_or_interval():
    assert ShiftSchedule.from_strings("08:30", "17:30", "45").pausa_minuti == 45
    assert ShiftSchedule.from_strings("08:30", "17:30", "12:30-13:30").scheduled_hours == 8.0
    assert ShiftSchedule.from_strings("08:30", "17:30").pausa_minuti == 0

    with pytest.raises(ValidationError):
        ShiftSchedule.from_strings("08:30", "17:30", "lunch")
    with pytest.raises(ValidationError):
        ShiftSchedule.from_strings("17:30", "08:30")
