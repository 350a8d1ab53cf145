"""
CHALLENGE_STORE.PY - Single-use Authentication Challenge Store

Pending logins keyed by auth_id:
- create() draws a fresh auth_id and challenge c
- take() removes the record atomically, so an auth_id verifies at most once
- reap() drops challenges abandoned past the liveness window

Expired records are never handed out by take(), whether or not the reaper
has swept them yet.
"""
import time
import secrets
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from keyed_store import ShardedMap
from zk_group import GroupParameters, DEFAULT_GROUP
from zk_math import random_in_range

logger = logging.getLogger("ZKP-STORE")


# ==================== CONSTANTS ====================

DEFAULT_CHALLENGE_TTL = 120  # seconds
DEFAULT_REAP_INTERVAL = 30  # seconds
AUTH_ID_BYTES = 16


@dataclass(frozen=True)
class AuthChallenge:
    """Pending login attempt"""
    auth_id: str
    username: str
    r1: int
    r2: int
    c: int
    created_at: float

    def is_expired(self, now: float, ttl: float) -> bool:
        return (now - self.created_at) > ttl


class ChallengeStore:
    """Concurrent auth_id -> AuthChallenge map with atomic take"""

    def __init__(self,
                 group: GroupParameters = DEFAULT_GROUP,
                 ttl_sec: float = DEFAULT_CHALLENGE_TTL,
                 shards: int = 64,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            group: Group parameters (challenge size)
            ttl_sec: Liveness window of a pending challenge
            shards: Lock shards of the underlying map
            clock: Time source (seconds)
        """
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")

        self.group = group
        self.ttl = ttl_sec
        self._clock = clock
        self._pending = ShardedMap(shards)

        self._reaper_thread: Optional[threading.Thread] = None
        self._reaper_stop = threading.Event()
        self._stats_lock = threading.Lock()
        self.reaped_total = 0

        logger.info(f"[CHALLENGES] Store initialized (ttl={ttl_sec}s)")

    def create(self, username: str, r1: int, r2: int) -> Tuple[str, int]:
        """
        Register a pending login

        Returns:
            (auth_id, c)
        """
        c = random_in_range(0, self.group.challenge_bound)

        while True:
            auth_id = secrets.token_hex(AUTH_ID_BYTES)
            record = AuthChallenge(auth_id, username, r1, r2, c, self._clock())
            inserted, _ = self._pending.insert_if_absent(auth_id, record)
            if inserted:
                break
            logger.warning("[CHALLENGES] auth_id collision, drawing again")

        logger.debug(f"[CHALLENGES] Created challenge {auth_id[:8]}... for '{username}'")
        return auth_id, c

    def take(self, auth_id: str) -> Optional[AuthChallenge]:
        """
        Remove and return the pending challenge

        Returns:
            The record, or None if unknown, already taken or expired
        """
        record = self._pending.pop(auth_id)
        if record is None:
            return None

        if record.is_expired(self._clock(), self.ttl):
            logger.info(f"[CHALLENGES] Challenge {auth_id[:8]}... expired before verification")
            return None

        return record

    def reap(self, now: Optional[float] = None) -> int:
        """
        Drop challenges older than the liveness window

        Returns:
            Number of challenges removed
        """
        now = self._clock() if now is None else now
        removed = 0

        for auth_id in self._pending.keys_snapshot():
            if self._pending.pop_if(auth_id, lambda rec: rec.is_expired(now, self.ttl)) is not None:
                removed += 1

        if removed:
            with self._stats_lock:
                self.reaped_total += removed
            logger.info(f"[CHALLENGES] Reaped {removed} expired challenges")

        return removed

    def pending_count(self) -> int:
        return len(self._pending)

    def _reap_loop(self, interval: float):
        """Background thread body"""
        while not self._reaper_stop.wait(interval):
            try:
                self.reap()
            except Exception as e:
                logger.error(f"[CHALLENGES] Reap failed: {e}")

    def start_reaper(self, interval_sec: float = DEFAULT_REAP_INTERVAL):
        """Start background reaping"""
        if interval_sec <= 0:
            raise ValueError(f"Reap interval must be positive, got {interval_sec}")

        if self._reaper_thread is not None:
            return

        self._reaper_stop.clear()
        self._reaper_thread = threading.Thread(
            target=self._reap_loop,
            args=(interval_sec,),
            name="challenge_reaper",
            daemon=True
        )
        self._reaper_thread.start()
        logger.info(f"[CHALLENGES] Reaper started ({interval_sec}s interval)")

    def stop_reaper(self):
        """Stop background reaping and wait for the thread"""
        if self._reaper_thread is None:
            return

        self._reaper_stop.set()
        self._reaper_thread.join()
        self._reaper_thread = None
        logger.info("[CHALLENGES] Reaper stopped")
