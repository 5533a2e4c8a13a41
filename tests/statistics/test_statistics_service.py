from __future__ import annotations

import random
from datetime import date, datetime

import pytest

from src.timbrio.timbrio.attendance.model import Timbratura
from src.timbrio.timbrio.core.enums import StatsPeriod
from src.timbrio.timbrio.core.exceptions import AuthorizationError
from src.timbrio.timbrio.statistics.service import StatisticsService, period_bounds, period_key


def _completed(user_id, d: date, ore, straordinario=0.0, ritardo=0):
    return Timbratura(
        timbratura_id=0,
        user_id=user_id,
        data=d,
        entrata=datetime.combine(d, datetime.min.time()).replace(hour=8),
        uscita=datetime.combine(d, datetime.min.time()).replace(hour=17),
        ore_totali=ore,
        ore_straordinario=straordinario,
        minuti_ritardo=ritardo,
    )


RECORDS = [
    _completed(1, date(2026, 3, 2), 8.1, 0.1, 0),
    _completed(1, date(2026, 3, 3), 7.9, 0.0, 12),
    _completed(1, date(2026, 3, 4), 9.3, 1.3, 5),
    _completed(1, date(2026, 3, 5), 8.2, 0.2, 6),
    _completed(1, date(2026, 3, 9), 8.0, 0.0, 0),
]


def test_period_bounds_are_half_open():
    assert period_bounds(StatsPeriod.SETTIMANA, date(2026, 3, 4)) == (date(2026, 3, 2), date(2026, 3, 9))
    assert period_bounds(StatsPeriod.MESE, date(2026, 12, 15)) == (date(2026, 12, 1), date(2027, 1, 1))
    assert period_key(StatsPeriod.SETTIMANA, date(2026, 3, 4)) == "2026-W10"
    assert period_key(StatsPeriod.MESE, date(2026, 3, 4)) == "2026-03"


def test_aggregate_week():
    stats = StatisticsService(timbrature=None).aggregate(RECORDS, date(2026, 3, 2), date(2026, 3, 9))

    assert stats.totale_days == 4
    assert stats.totale_ore == 33.5
    assert stats.straordinari == 1.6
    assert stats.ritardi == 2
    assert stats.media_ore_giorno == 8.4


def test_aggregate_ignores_open_records():
    open_record = Timbratura(
        timbratura_id=0, user_id=1, data=date(2026, 3, 6), entrata=datetime(2026, 3, 6, 8)
    )
    stats = StatisticsService(timbrature=None).aggregate(
        RECORDS + [open_record], date(2026, 3, 2), date(2026, 3, 9)
    )
    assert stats.totale_days == 4


def test_aggregate_empty_period():
    stats = StatisticsService(timbrature=None).aggregate([], date(2026, 3, 2), date(2026, 3, 9))
    assert stats.totale_ore == 0.0
    assert stats.media_ore_giorno == 0.0
    assert stats.ritardi == 0


def test_aggregate_does_not_depend_on_order():
    svc = StatisticsService(timbrature=None)
    many = [_completed(1, date(2026, 3, 1 + i % 28), 0.1 * (i % 7) + 7.1) for i in range(60)]
    expected = svc.aggregate(many, date(2026, 3, 1), date(2026, 4, 1))

    for seed in range(10):
        shuffled = many[:]
        random.Random(seed).shuffle(shuffled)
        assert svc.aggregate(shuffled, date(2026, 3, 1), date(2026, 4, 1)) == expected


def test_rollup_by_week():
    out = StatisticsService(timbrature=None).rollup(RECORDS, StatsPeriod.SETTIMANA)

    assert list(out) == ["2026-W10", "2026-W11"]
    assert out["2026-W10"].totale_days == 4
    assert out["2026-W11"].totale_ore == 8.0


def test_get_statistics_for_self_and_others(container, timbrature, employee, manager):
    for r in RECORDS:
        timbrature.add(r)
    timbrature.add(_completed(5, date(2026, 3, 3), 6.0))

    mine = container.statistics_service.get_statistics(employee, period=StatsPeriod.SETTIMANA)
    assert mine.totale_days == 4
    assert mine.to_dict()["totaleOre"] == 33.5

    month = container.statistics_service.get_statistics(manager, user_id=1, period=StatsPeriod.MESE)
    assert month.totale_days == 5
    assert month.to_dict()["mediaOreGiorno"] == 8.3

    with pytest.raises(AuthorizationError):
        container.statistics_service.get_statistics(employee, user_id=5)
