"""
Registration, challenge and session store tests

- Atomic check-and-insert under concurrent registration
- Single-use take under concurrent verification
- Expiry and background reaping of abandoned challenges
- Session id uniqueness
"""
import pytest
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from challenge_store import ChallengeStore
from keyed_store import ShardedMap
from session_issuer import SessionIssuer
from user_store import RegistrationStatus, RegistrationStore


class FakeClock:
    """Manually advanced time source"""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def challenges(clock):
    return ChallengeStore(ttl_sec=60, clock=clock)


# ==================== SHARDED MAP ====================

def test_sharded_map_operations():
    m = ShardedMap(shards=4)

    assert m.insert_if_absent("a", 1) == (True, 1)
    assert m.insert_if_absent("a", 2) == (False, 1)
    assert m.get("a") == 1
    assert len(m) == 1

    assert m.pop_if("a", lambda v: v > 5) is None
    assert m.pop_if("a", lambda v: v == 1) == 1
    assert m.pop("a") is None
    assert len(m) == 0


def test_sharded_map_snapshot():
    m = ShardedMap(shards=3)
    for i in range(20):
        m.insert_if_absent(f"k{i}", i)
    assert sorted(m.keys_snapshot()) == sorted(f"k{i}" for i in range(20))


def test_sharded_map_rejects_zero_shards():
    with pytest.raises(ValueError):
        ShardedMap(shards=0)


# ==================== REGISTRATION STORE ====================

def test_register_then_repeat():
    users = RegistrationStore()

    assert users.register("Bob", 11, 22) is RegistrationStatus.REGISTERED
    assert users.register("Bob", 33, 44) is RegistrationStatus.ALREADY_REGISTERED

    record = users.lookup("Bob")
    assert (record.y1, record.y2) == (11, 22)
    assert users.count() == 1


def test_lookup_unknown():
    assert RegistrationStore().lookup("nobody") is None


def test_concurrent_registration_single_winner():
    users = RegistrationStore()
    n = 32
    barrier = threading.Barrier(n)

    def attempt(i):
        barrier.wait()
        return users.register("alice", i, i)

    with ThreadPoolExecutor(max_workers=n) as pool:
        results = list(pool.map(attempt, range(n)))

    assert results.count(RegistrationStatus.REGISTERED) == 1
    assert results.count(RegistrationStatus.ALREADY_REGISTERED) == n - 1

    winner = results.index(RegistrationStatus.REGISTERED)
    record = users.lookup("alice")
    assert (record.y1, record.y2) == (winner, winner)


def test_status_wire_values():
    assert RegistrationStatus.REGISTERED.value == "registered"
    assert RegistrationStatus.ALREADY_REGISTERED.value == "already_registered"


# ==================== CHALLENGE STORE ====================

def test_create_and_take_once(challenges, clock):
    auth_id, c = challenges.create("Bob", 5, 6)

    assert 0 <= c < 2 ** 128
    assert challenges.pending_count() == 1

    record = challenges.take(auth_id)
    assert record.username == "Bob"
    assert (record.r1, record.r2, record.c) == (5, 6, c)
    assert record.created_at == clock.now

    assert challenges.take(auth_id) is None
    assert challenges.pending_count() == 0


def test_take_unknown(challenges):
    assert challenges.take("does-not-exist") is None


def test_auth_ids_unique(challenges):
    ids = {challenges.create("Bob", 1, 1)[0] for _ in range(200)}
    assert len(ids) == 200
    assert challenges.pending_count() == 200


def test_concurrent_take_single_winner(challenges):
    auth_id, _ = challenges.create("Bob", 1, 2)
    n = 16
    barrier = threading.Barrier(n)

    def attempt(_):
        barrier.wait()
        return challenges.take(auth_id)

    with ThreadPoolExecutor(max_workers=n) as pool:
        results = list(pool.map(attempt, range(n)))

    assert sum(r is not None for r in results) == 1


def _race_take_and_reap(store, auth_ids):
    """Take every auth_id in one thread while reap() sweeps in another"""
    barrier = threading.Barrier(2)

    def take_all():
        barrier.wait()
        return [store.take(auth_id) for auth_id in auth_ids]

    def reap():
        barrier.wait()
        return store.reap()

    with ThreadPoolExecutor(max_workers=2) as pool:
        taken = pool.submit(take_all)
        reaped = pool.submit(reap)
        return taken.result(), reaped.result()


def test_reap_racing_take_never_hands_out_expired(challenges, clock):
    auth_ids = [challenges.create("Bob", i, i)[0] for i in range(2000)]
    clock.advance(61)

    taken, reaped = _race_take_and_reap(challenges, auth_ids)

    assert all(record is None for record in taken)
    assert 0 <= reaped <= 2000
    assert challenges.reaped_total == reaped
    assert challenges.pending_count() == 0


def test_reap_racing_take_leaves_live_challenges(challenges, clock):
    auth_ids = [challenges.create("Bob", i, i)[0] for i in range(2000)]
    clock.advance(30)

    taken, reaped = _race_take_and_reap(challenges, auth_ids)

    assert reaped == 0
    assert [record.auth_id for record in taken] == auth_ids
    assert challenges.pending_count() == 0


def test_expired_challenge_not_taken(challenges, clock):
    auth_id, _ = challenges.create("Bob", 1, 2)
    clock.advance(61)

    assert challenges.take(auth_id) is None
    assert challenges.pending_count() == 0


def test_reap_removes_only_expired(challenges, clock):
    old_id, _ = challenges.create("Bob", 1, 2)
    clock.advance(45)
    live_id, _ = challenges.create("Bob", 3, 4)
    clock.advance(20)

    assert challenges.reap() == 1
    assert challenges.reaped_total == 1
    assert challenges.take(old_id) is None
    assert challenges.take(live_id) is not None


def test_reap_empty(challenges):
    assert challenges.reap() == 0


def test_reaper_thread():
    store = ChallengeStore(ttl_sec=0.05)
    store.create("Bob", 1, 2)

    store.start_reaper(interval_sec=0.02)
    try:
        deadline = time.time() + 5
        while store.pending_count() and time.time() < deadline:
            time.sleep(0.02)
    finally:
        store.stop_reaper()

    assert store.pending_count() == 0
    assert store.reaped_total == 1


@pytest.mark.parametrize("interval", [0, -1])
def test_reaper_rejects_non_positive_interval(challenges, interval):
    with pytest.raises(ValueError):
        challenges.start_reaper(interval_sec=interval)
    # No thread left behind
    challenges.stop_reaper()


def test_invalid_ttl():
    with pytest.raises(ValueError):
        ChallengeStore(ttl_sec=0)


# ==================== SESSIONS ====================

def test_session_issuer():
    sessions = SessionIssuer()

    s1 = sessions.issue("Bob")
    s2 = sessions.issue("Bob")

    assert s1.session_id != s2.session_id
    assert len(s1.session_id) >= 43
    assert sessions.lookup(s1.session_id).username == "Bob"
    assert sessions.lookup("nope") is None
    assert sessions.count() == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
