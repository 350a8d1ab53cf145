"""
SESSION_ISSUER.PY - Session identifiers for authenticated users

Sessions are minted only after a successful proof. No expiry or
revocation: they live as long as the process.

The issuer keeps the record of every session it minted so a gateway in
front of the service can resolve a session id to its user with lookup().
No route of the auth server reads it back.
"""
import time
import secrets
import logging
from dataclasses import dataclass
from typing import Optional

from keyed_store import ShardedMap

logger = logging.getLogger("ZKP-STORE")

# 256-bit tokens
SESSION_TOKEN_BYTES = 32


@dataclass(frozen=True)
class Session:
    session_id: str
    username: str
    issued_at: float


class SessionIssuer:
    """Mints unpredictable session ids and remembers who they belong to"""

    def __init__(self, shards: int = 64):
        self._sessions = ShardedMap(shards)

    def issue(self, username: str) -> Session:
        while True:
            session = Session(
                session_id=secrets.token_urlsafe(SESSION_TOKEN_BYTES),
                username=username,
                issued_at=time.time()
            )
            inserted, _ = self._sessions.insert_if_absent(session.session_id, session)
            if inserted:
                break

        logger.info(f"[SESSIONS] Issued session {session.session_id[:8]}... for '{username}'")
        return session

    def lookup(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def count(self) -> int:
        return len(self._sessions)
