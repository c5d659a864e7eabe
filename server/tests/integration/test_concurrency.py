import threading

import pytest
from sqlalchemy import func, select

from alert_engine.infrastructure.persistence.database.models import Alert, AlertClaim, DeliveryLog

pytestmark = pytest.mark.integration

N_THREADS = 8


def _concurrently(n, fn):
    barrier = threading.Barrier(n)
    results, errors = [], []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            out = fn()
        except Exception as exc:  # noqa: BLE001
            with lock:
                errors.append(exc)
            return
        with lock:
            results.append(out)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def test_parallel_create_and_route_yields_one_alert(file_engine, file_seed, providers):
    v = file_seed.vessel()
    file_seed.contact(v.id, email=None)
    e = file_seed.event()

    results, errors = _concurrently(
        N_THREADS,
        lambda: file_engine.lifecycle.create_and_route(
            v.id, e.id, "earthquake", "critical", 55.6, (35.5, 140.0), "Earthquake near MV Aurora"
        ),
    )

    assert errors == []
    assert len(results) == N_THREADS
    created = [r for r in results if not r.is_duplicate]
    assert len(created) == 1
    assert {r.alert.id for r in results} == {created[0].alert.id}

    with file_engine.session_factory() as s:
        assert s.scalar(select(func.count()).select_from(Alert)) == 1
        assert s.scalar(select(func.count()).select_from(AlertClaim)) == 1
        assert s.scalar(select(func.count()).select_from(DeliveryLog)) == 1
    assert len(providers.sent) == 1


def test_parallel_sweeps_do_not_duplicate(file_engine, file_seed):
    file_engine.monitor.workers = 4
    for i in range(6):
        file_seed.vessel(name=f"V{i}", lat=35.0 + i * 0.2, lon=140.0)
    file_seed.event()

    results, errors = _concurrently(3, file_engine.monitor.sweep)

    assert errors == []
    assert sum(r.created for r in results) == 6
    assert sum(r.duplicates for r in results) == 12
    assert sum(r.errors for r in results) == 0
