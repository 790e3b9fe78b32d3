import threading
import time
from collections import Counter

import pytest

from app.services.verification import (
    CodeExpired,
    CodeMismatch,
    CodeNotFound,
    VerificationStatus,
    VerificationStore,
)


def test_match_consumes_code(store):
    store.put("a@b.com", "482913")
    store.verify("a@b.com", "482913")
    with pytest.raises(CodeNotFound):
        store.verify("a@b.com", "482913")
    assert len(store) == 0


def test_unknown_identity_is_not_found(store):
    with pytest.raises(CodeNotFound) as exc_info:
        store.verify("nobody@example.com", "123456")
    assert exc_info.value.status is VerificationStatus.NOT_FOUND


def test_mismatch_keeps_entry_for_retry(store, clock):
    store.put("a@b.com", "482913")
    clock.advance(5)
    with pytest.raises(CodeMismatch):
        store.verify("a@b.com", "000000")
    clock.advance(5)
    store.verify("a@b.com", "482913")
    clock.advance(1)
    with pytest.raises(CodeNotFound):
        store.verify("a@b.com", "482913")


def test_identity_is_case_insensitive(store):
    store.put("User@Example.com", "123456")
    store.verify("user@example.com", "123456")


def test_second_put_invalidates_previous_code(store):
    store.put("a@b.com", "111111")
    store.put("A@B.com", "222222")
    assert len(store) == 1
    with pytest.raises(CodeMismatch):
        store.verify("a@b.com", "111111")
    store.verify("a@b.com", "222222")


def test_put_resets_deadline(store, clock):
    store.put("a@b.com", "111111")
    clock.advance(500)
    store.put("a@b.com", "222222")
    clock.advance(500)
    store.verify("a@b.com", "222222")


def test_valid_until_just_before_ttl(store, clock):
    store.put("a@b.com", "111111")
    clock.advance(599.999)
    store.verify("a@b.com", "111111")


def test_expired_exactly_at_ttl(store, clock):
    store.put("a@b.com", "111111")
    clock.advance(600)
    with pytest.raises(CodeExpired):
        store.verify("a@b.com", "111111")


def test_expired_entry_removed_on_lookup_without_sweep(store, clock):
    store.put("a@b.com", "111111")
    clock.advance(601)
    with pytest.raises(CodeExpired) as exc_info:
        store.verify("a@b.com", "111111")
    assert exc_info.value.status is VerificationStatus.EXPIRED
    assert len(store) == 0
    assert store.time_remaining("a@b.com") is None
    with pytest.raises(CodeNotFound):
        store.verify("a@b.com", "111111")


def test_expired_even_with_wrong_code(store, clock):
    store.put("a@b.com", "111111")
    clock.advance(700)
    with pytest.raises(CodeExpired):
        store.verify("a@b.com", "999999")


def test_time_remaining(store, clock):
    assert store.time_remaining("a@b.com") is None
    store.put("a@b.com", "111111")
    assert store.time_remaining("A@b.com") == 600
    clock.advance(10.5)
    # округление вверх
    assert store.time_remaining("a@b.com") == 590
    clock.advance(1000)
    assert store.time_remaining("a@b.com") == 0
    # только чтение, запись остается до проверки или очистки
    assert len(store) == 1


def test_sweep_removes_only_expired(store, clock):
    store.put("old@b.com", "111111")
    clock.advance(300)
    store.put("new@b.com", "222222")
    clock.advance(300)

    assert store.sweep() == 1
    assert store.time_remaining("old@b.com") is None
    store.verify("new@b.com", "222222")


def test_sweep_is_idempotent(store, clock):
    store.put("a@b.com", "111111")
    clock.advance(601)
    assert store.sweep() == 1
    assert store.sweep() == 0
    with pytest.raises(CodeNotFound):
        store.verify("a@b.com", "111111")


def test_concurrent_verify_succeeds_once():
    store = VerificationStore(ttl_seconds=600)
    store.put("a@b.com", "123456")
    successes = []
    barrier = threading.Barrier(8)

    def attempt():
        barrier.wait()
        try:
            store.verify("a@b.com", "123456")
        except CodeNotFound:
            return
        successes.append(1)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(successes) == 1


def test_sweep_during_traffic_keeps_live_entries():
    store = VerificationStore(ttl_seconds=600)
    stop = threading.Event()
    errors = []

    def sweeper():
        while not stop.is_set():
            store.sweep()

    def worker(n):
        try:
            for i in range(200):
                identity = f"user{n}-{i}@example.com"
                code = f"{100000 + i}"
                store.put(identity, code)
                store.verify(identity, code)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    sweep_thread = threading.Thread(target=sweeper)
    sweep_thread.start()
    workers = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in workers:
        thread.start()
    for thread in workers:
        thread.join()
    stop.set()
    sweep_thread.join()

    assert errors == []
    assert len(store) == 0


def test_put_reads_clock_under_lock():
    seen = []
    store = None

    def clock():
        seen.append(store._lock.locked())
        return 0.0

    store = VerificationStore(clock=clock)
    store.put("a@b.com", "123456")
    assert seen == [True]


def test_sweep_verify_and_put_race_across_expiry(clock):
    store = VerificationStore(ttl_seconds=600, clock=clock)
    stale = {f"stale{i}@example.com": f"{100000 + i}" for i in range(50)}
    for address, code in stale.items():
        store.put(address, code)
    clock.advance(300)
    live = {f"live{i}@example.com": f"{200000 + i}" for i in range(50)}
    for address, code in live.items():
        store.put(address, code)
    shared = [f"shared{i}@example.com" for i in range(4)]

    accepted = []
    unexpected = []
    stop = threading.Event()

    def advance_clock():
        # +500 с: stale истекают (t0+600), live живут до t0+900
        for _ in range(500):
            clock.advance(1)
            time.sleep(0.001)
        stop.set()

    def sweep_loop():
        while not stop.is_set():
            store.sweep()

    def redeem_stale():
        for address, code in stale.items():
            try:
                store.verify(address, code)
            except (CodeExpired, CodeNotFound):
                pass
            except Exception as exc:  # noqa: BLE001
                unexpected.append(exc)
            else:
                accepted.append(code)
            time.sleep(0.005)

    def churn_shared(worker):
        n = 0
        while not stop.is_set() and n < 9999:
            address = shared[n % len(shared)]
            code = f"{300000 + worker * 10000 + n}"
            store.put(address, code)
            try:
                store.verify(address, code)
            except (CodeMismatch, CodeNotFound):
                # код успел заменить или погасить другой поток
                pass
            except Exception as exc:  # noqa: BLE001
                unexpected.append(exc)
            else:
                accepted.append(code)
            n += 1

    threads = [
        threading.Thread(target=advance_clock),
        threading.Thread(target=sweep_loop),
        threading.Thread(target=redeem_stale),
        threading.Thread(target=redeem_stale),
    ] + [threading.Thread(target=churn_shared, args=(w,)) for w in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert unexpected == []
    assert all(count == 1 for count in Counter(accepted).values())

    # живые записи очистка не трогала
    for address, code in live.items():
        store.verify(address, code)

    store.sweep()
    assert all(store.time_remaining(address) is None for address in stale)
