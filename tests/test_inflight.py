# ViewBridge test scripts
from __future__ import annotations

import threading
from concurrent.futures import Future

import pytest

from vb_platform.inflight import InFlight, Lease, _Entry


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _run_in_thread(fn) -> tuple[threading.Thread, dict]:
    box: dict = {}

    def _target() -> None:
        try:
            box["result"] = fn()
        except BaseException as e:  # collected for the assertion
            box["error"] = e

    t = threading.Thread(target=_target, daemon=True)
    t.start()
    return t, box


def test_second_acquire_waits_for_owner_result() -> None:
    inf = InFlight("t")
    first = inf.acquire("k")
    second = inf.acquire("k")
    assert first.owner is True
    assert second.owner is False
    assert inf.pending() == ["k"]

    inf.release(first, {"n": 1})
    assert second.wait(timeout=1) == {"n": 1}
    assert inf.pending() == []


def test_waiters_observe_owner_error() -> None:
    inf = InFlight("t")
    first = inf.acquire("k")
    second = inf.acquire("k")
    inf.release(first, error=ValueError("boom"))
    with pytest.raises(ValueError, match="boom"):
        second.wait(timeout=1)
    # key is free again
    assert inf.acquire("k").owner is True


def test_release_by_non_owner_or_twice_is_noop() -> None:
    inf = InFlight("t")
    first = inf.acquire("k")
    second = inf.acquire("k")
    inf.release(second, "ignored")
    assert not first.future.done()
    inf.release(first, 1)
    inf.release(first, 2)
    assert second.wait(timeout=1) == 1


def test_run_shares_in_flight_outcome() -> None:
    inf = InFlight("t")
    calls: list[int] = []
    owner = inf.acquire("sync")

    t, box = _run_in_thread(lambda: inf.run("sync", lambda: calls.append(1) or "mine"))
    t.join(0.05)
    assert t.is_alive()

    inf.release(owner, "shared")
    t.join(2)
    assert box == {"result": "shared"}
    assert calls == []


def test_run_releases_on_failure() -> None:
    inf = InFlight("t")

    def boom() -> None:
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        inf.run("k", boom)
    assert inf.pending() == []
    assert inf.run("k", lambda: 7) == 7


def test_different_keys_do_not_block_each_other() -> None:
    inf = InFlight("t")
    a = inf.acquire("a")
    b = inf.acquire("b")
    assert a.owner and b.owner


def test_debounce_reuses_result_inside_window() -> None:
    clock = FakeClock()
    inf = InFlight("sync", debounce_s=5.0, clock=clock)
    calls: list[int] = []

    def work() -> dict:
        calls.append(1)
        return {"run": len(calls)}

    r1 = inf.run("push", work)
    clock.now += 4.9
    r2 = inf.run("push", work)
    assert calls == [1]
    assert r1 is r2

    clock.now += 0.2
    r3 = inf.run("push", work)
    assert calls == [1, 1]
    assert r3 == {"run": 2}


def test_debounce_caches_errors_too() -> None:
    clock = FakeClock()
    inf = InFlight("sync", debounce_s=5.0, clock=clock)
    calls: list[int] = []

    def work() -> None:
        calls.append(1)
        raise RuntimeError("upstream down")

    for _ in range(2):
        with pytest.raises(RuntimeError):
            inf.run("pull", work)
    assert calls == [1]


def test_abandoned_owner_hands_off_to_waiter() -> None:
    sleeps: list[float] = []
    inf = InFlight("t", handoff_wait_s=0.01, sleep=sleeps.append)
    owner = inf.acquire("k")

    t, box = _run_in_thread(lambda: inf.run("k", lambda: "recovered"))
    t.join(0.05)
    inf.release(owner, error=KeyboardInterrupt())
    t.join(2)

    assert owner.future.cancelled()
    assert box == {"result": "recovered"}
    assert inf.pending() == []


def test_handoff_retries_are_bounded() -> None:
    sleeps: list[float] = []
    inf = InFlight("t", handoff_wait_s=0.1, handoff_retries=3, sleep=sleeps.append)
    dead: Future = Future()
    dead.cancel()
    inf.acquire = lambda key, **kw: Lease(key=key, owner=False, entry=_Entry(future=dead, started=0.0))  # type: ignore[method-assign]

    assert inf.run("k", lambda: "unguarded") == "unguarded"
    assert sleeps == [0.1, 0.1, 0.1, 0.1]


def test_clear_drops_entries() -> None:
    inf = InFlight("t", debounce_s=60)
    inf.run("a", lambda: 1)
    assert inf.pending() == ["a"]
    inf.clear()
    assert inf.pending() == []


def test_without_debounce_each_finished_run_is_forgotten() -> None:
    inf = InFlight("increment")
    calls: list[int] = []
    assert inf.run("slug", lambda: calls.append(1) or len(calls)) == 1
    assert inf.run("slug", lambda: calls.append(1) or len(calls)) == 2
    assert inf.pending() == []
