from aurorael.gate import InFlightGate
from aurorael.sessions import SessionStore


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_get_or_create_without_id_allocates_new_session():
    store = SessionStore(ttl_sec=60)
    a = store.get_or_create(None)
    b = store.get_or_create("")
    assert a.id != b.id
    assert a.history == [] and a.last_location is None
    assert len(store) == 2


def test_unknown_id_gets_fresh_id():
    store = SessionStore(ttl_sec=60)
    session = store.get_or_create("client-made-up")
    assert session.id != "client-made-up"
    assert session.id in store


def test_existing_session_is_reused_with_state():
    store = SessionStore(ttl_sec=60)
    first = store.get_or_create()
    first.last_location = "Madrid, España"
    store.push_history(first, "user", "hola")

    again = store.get_or_create(first.id)
    assert again is first
    assert again.last_location == "Madrid, España"
    assert [(t.role, t.content) for t in again.history] == [("user", "hola")]


def test_expired_session_is_evicted_and_replaced():
    clock = FakeClock()
    store = SessionStore(ttl_sec=60, clock=clock)
    old = store.get_or_create()
    old.last_location = "Paris, France"

    clock.now += 60
    fresh = store.get_or_create(old.id)
    assert fresh.id != old.id
    assert fresh.last_location is None
    assert old.id not in store


def test_session_just_before_ttl_is_alive():
    clock = FakeClock()
    store = SessionStore(ttl_sec=60, clock=clock)
    session = store.get_or_create()
    clock.now += 59.9
    assert store.get_or_create(session.id) is session


def test_push_history_has_no_cap():
    store = SessionStore(ttl_sec=60)
    session = store.get_or_create()
    for i in range(200):
        store.push_history(session, "user", str(i))
    assert len(session.history) == 200
    assert session.last_user_turn().content == "199"


def test_in_flight_gate():
    gate = InFlightGate(2)
    assert gate.try_enter()
    assert gate.try_enter()
    assert not gate.try_enter()
    gate.leave()
    assert gate.try_enter()
    gate.leave()
    gate.leave()
    gate.leave()
    assert gate.in_flight == 0
