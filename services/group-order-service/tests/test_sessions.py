from __future__ import annotations

import threading

from group_order_service.sessions import InMemorySessionStore
from group_order_service.states import Expecting, SessionState


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_set_get_clear():
    store = InMemorySessionStore()
    state = SessionState(Expecting.NAME, {"role": "worker"})
    store.set(1, state)
    assert store.get(1) == state
    store.clear(1)
    assert store.get(1) is None


def test_entries_expire_after_ttl():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    store.set(1, SessionState(Expecting.PHONE))
    clock.now = 59
    assert store.get(1) is not None
    clock.now = 61
    assert store.get(1) is None


def test_expired_entries_are_purged_on_write():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=10, clock=clock)
    store.set(1, SessionState(Expecting.NAME))
    clock.now = 20
    store.set(2, SessionState(Expecting.NAME))
    assert len(store) == 1


def test_take_hands_the_state_to_exactly_one_caller():
    store = InMemorySessionStore()
    store.set(7, SessionState(Expecting.ORDER_LINES, {"group_order_id": "GO-1"}))
    taken = []
    barrier = threading.Barrier(4)

    def consume():
        barrier.wait()
        taken.append(store.take(7))

    threads = [threading.Thread(target=consume) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(1 for state in taken if state is not None) == 1
    assert store.get(7) is None


def test_advance_merges_data():
    state = SessionState(Expecting.ROLE_CHOICE).advance(Expecting.NAME, role="admin")
    state = state.advance(Expecting.PHONE, name="Alice")
    assert state.expecting is Expecting.PHONE
    assert dict(state.data) == {"role": "admin", "name": "Alice"}
