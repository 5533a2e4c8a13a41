from __future__ import annotations

import threading

from src.timbrio.timbrio.attendance.service import ClockService
from src.timbrio.timbrio.common.locks import KeyedLock
from src.timbrio.timbrio.core.enums import ClockState
from src.timbrio.timbrio.core.exceptions import ConflictError, InvalidTransition
from src.timbrio.timbrio.tokens.service import TokenIssuer


def _race(n, target):
    barrier = threading.Barrier(n)
    results: list = []
    lock = threading.Lock()

    def run():
        barrier.wait()
        try:
            out = target()
        except (InvalidTransition, ConflictError) as exc:
            out = exc
        with lock:
            results.append(out)

    threads = [threading.Thread(target=run) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_punch_in_creates_one_record(container):
    svc = container.clock_service
    results = _race(8, lambda: svc.punch_in(1))

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert all(isinstance(r, InvalidTransition) for r in results if isinstance(r, Exception))
    assert svc.state_of(1) == ClockState.ENTERED


def test_instances_without_shared_lock_still_write_once(timbrature, employees, tokens, clock):
    # Two application instances: separate in-process locks, shared storage.
    issuer = TokenIssuer(tokens, clock=clock)
    services = [ClockService(timbrature, employees, issuer, clock=clock) for _ in range(2)]

    pick = iter(services)
    pick_lock = threading.Lock()

    def punch():
        with pick_lock:
            service = next(pick)
        return service.punch_in(1)

    results = _race(2, punch)

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert timbrature.get_for_user_and_date(1, clock.now().date()).timbratura_id == successes[0].timbratura_id


def test_concurrent_punch_out_completes_once(container, clock):
    svc = container.clock_service
    svc.punch_in(1)
    clock.advance(hours=8)

    results = _race(6, lambda: svc.punch_out(1))

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert successes[0].state == ClockState.COMPLETED


def test_different_users_do_not_block_each_other(container):
    svc = container.clock_service
    user_ids = [1, 2, 3, 4, 5]
    barrier = threading.Barrier(len(user_ids))
    errors: list = []

    def run(uid):
        barrier.wait()
        try:
            svc.punch_in(uid)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run, args=(uid,)) for uid in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert all(svc.state_of(uid) == ClockState.ENTERED for uid in user_ids)


def test_keyed_lock_releases_entries():
    locks = KeyedLock()
    with locks.hold((1, "2026-03-02")):
        with locks.hold((2, "2026-03-02")):
            assert len(locks) == 2
    assert len(locks) == 0
