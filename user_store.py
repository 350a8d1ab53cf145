"""
USER_STORE.PY - In-memory Registration Store

username -> public commitment (y1, y2). Records are written once and never
mutated; a repeat registration leaves the first commitment in place.
"""
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from keyed_store import ShardedMap

logger = logging.getLogger("ZKP-STORE")


class RegistrationStatus(str, Enum):
    """Outcome of a Register call"""
    REGISTERED = "registered"
    ALREADY_REGISTERED = "already_registered"


@dataclass(frozen=True)
class UserRecord:
    """Registered user and its public commitment"""
    username: str
    y1: int
    y2: int
    registered_at: float = field(default_factory=time.time)


class RegistrationStore:
    """Concurrent username -> UserRecord map with atomic check-and-insert"""

    def __init__(self, shards: int = 64):
        self._users = ShardedMap(shards)
        logger.info("[USERS] Registration store initialized (in-memory backend)")

    def register(self, username: str, y1: int, y2: int) -> RegistrationStatus:
        """
        Register username with commitment (y1, y2)

        Exactly one of several concurrent first registrations wins; the
        others, and every later call, get ALREADY_REGISTERED.
        """
        inserted, _ = self._users.insert_if_absent(username, UserRecord(username, y1, y2))

        if inserted:
            logger.info(f"[USERS] Registered user '{username}'")
            return RegistrationStatus.REGISTERED

        logger.info(f"[USERS] User '{username}' already registered")
        return RegistrationStatus.ALREADY_REGISTERED

    def lookup(self, username: str) -> Optional[UserRecord]:
        """Return the user's record, or None if never registered"""
        return self._users.get(username)

    def count(self) -> int:
        """Number of registered users"""
        return len(self._users)
