"""
ZK_AUTH_CLIENT.PY - Chaum-Pedersen Authentication Client (prover)

Flows:
- register: commit to the password, one Register call
- login:    fresh nonce commitment, CreateAuthenticationChallenge,
            response s = k - c*x, VerifyAuthentication

The password itself never leaves the process. Each flow opens its own
HTTP client and keeps nothing afterwards.

Usage:
    python zk_auth_client.py register --user Bob --password 42
    python zk_auth_client.py login --user Bob --password 42 --server http://localhost:9999
"""
import sys
import asyncio
import logging
import argparse
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from user_store import RegistrationStatus
from zk_authentication import ChaumPedersenProver
from zk_config import LOG_FORMAT, ClientConfig
from zk_errors import (
    MalformedNumber,
    TransportFailure,
    UnknownChallenge,
    UnknownUser,
    ZKAuthError,
)
from zk_group import GroupParameters, DEFAULT_GROUP
from zk_math import decode_int, encode_int, parse_secret

# Suppress httpx request logging
logging.getLogger('httpx').setLevel(logging.WARNING)

logger = logging.getLogger("ZKP-CLIENT")


class LoginStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    NOT_AUTHENTICATED = "not_authenticated"


@dataclass(frozen=True)
class RegistrationOutcome:
    user: str
    status: RegistrationStatus


@dataclass(frozen=True)
class LoginOutcome:
    user: str
    status: LoginStatus
    session_id: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.status is LoginStatus.AUTHENTICATED


class ZKAuthClient:
    """Prover side of the protocol, talking to the auth server over HTTP"""

    def __init__(self,
                 server_url: str = "http://localhost:9999",
                 timeout_s: float = 5.0,
                 group: GroupParameters = DEFAULT_GROUP,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            server_url: Base URL of the auth server
            timeout_s: Per-request timeout
            group: Group parameters, must match the server's
            transport: Optional httpx transport (tests, custom channels)
        """
        self.server_url = server_url
        self.timeout_s = timeout_s
        self.group = group
        self.transport = transport

    @classmethod
    def from_config(cls, config: ClientConfig) -> "ZKAuthClient":
        return cls(
            server_url=config.server_url,
            timeout_s=config.request_timeout_s,
            group=config.group
        )

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.server_url,
            timeout=httpx.Timeout(self.timeout_s),
            transport=self.transport
        )

    async def _call(self, http: httpx.AsyncClient, path: str,
                    payload: Dict[str, Any], username: str) -> Dict[str, Any]:
        """
        POST one remote operation

        Raises:
            TransportFailure: channel error or unintelligible reply
            UnknownUser, UnknownChallenge, MalformedNumber: server-side errors
        """
        try:
            resp = await http.post(path, json=payload)
        except httpx.HTTPError as e:
            raise TransportFailure(f"{path}: {e.__class__.__name__}: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            raise TransportFailure(f"{path}: non-JSON reply (HTTP {resp.status_code})",
                                   status_code=resp.status_code)

        if resp.status_code == 200:
            return body

        code = body.get("error")
        detail = body.get("detail", "")

        if code == UnknownUser.code:
            raise UnknownUser(username)
        if code == UnknownChallenge.code:
            raise UnknownChallenge(detail or "Unknown authentication challenge")
        if code == MalformedNumber.code:
            raise MalformedNumber(body.get("field", "unknown"), detail or None)

        raise TransportFailure(f"{path}: HTTP {resp.status_code}: {detail}",
                               status_code=resp.status_code)

    async def register(self, username: str, password: str) -> RegistrationOutcome:
        """
        Register flow

        Raises:
            MalformedNumber: password is not an integer
            TransportFailure: server unreachable or bad reply
        """
        prover = ChaumPedersenProver(parse_secret(password), self.group)
        y1, y2 = prover.public_commitment()

        async with self._http() as http:
            body = await self._call(http, "/auth/register", {
                "user": username,
                "y1": encode_int(y1),
                "y2": encode_int(y2)
            }, username)

        try:
            status = RegistrationStatus(body.get("status"))
        except ValueError:
            raise TransportFailure(f"Unexpected register status: {body.get('status')!r}") from None

        logger.info(f"[REGISTER] {username}: {status.value}")
        return RegistrationOutcome(user=username, status=status)

    async def login(self, username: str, password: str) -> LoginOutcome:
        """
        Login flow

        Raises:
            MalformedNumber: password (or a server value) is not an integer
            UnknownUser: username not registered
            UnknownChallenge: challenge consumed or expired before verification
            TransportFailure: server unreachable or bad reply
        """
        prover = ChaumPedersenProver(parse_secret(password), self.group)

        # Commitment
        (r1, r2), k = prover.generate_commitment()

        async with self._http() as http:
            # Challenge request
            body = await self._call(http, "/auth/challenge", {
                "user": username,
                "r1": encode_int(r1),
                "r2": encode_int(r2)
            }, username)

            auth_id = body.get("auth_id")
            if not isinstance(auth_id, str) or not auth_id:
                raise TransportFailure("Challenge reply carries no auth_id")
            c = decode_int(body.get("c"), "c")

            # Challenge response
            s = prover.generate_response(c, k)
            body = await self._call(http, "/auth/verify", {
                "auth_id": auth_id,
                "s": encode_int(s)
            }, username)

        # Authentication status
        try:
            status = LoginStatus(body.get("status"))
        except ValueError:
            raise TransportFailure(f"Unexpected verify status: {body.get('status')!r}") from None

        session_id = body.get("session_id")
        if status is LoginStatus.AUTHENTICATED:
            if not isinstance(session_id, str) or not session_id:
                raise TransportFailure("Authenticated reply carries no session_id")
        else:
            session_id = None

        logger.info(f"[LOGIN] {username}: {status.value}")
        return LoginOutcome(user=username, status=status, session_id=session_id)


def main(argv=None) -> int:
    """Main entry point"""
    config = ClientConfig.from_env()

    parser = argparse.ArgumentParser(description="ZKP Auth Client")
    parser.add_argument("flow", choices=["register", "login"])
    parser.add_argument("--user", required=True, help="Username")
    parser.add_argument("--password", required=True, help="Numeric password")
    parser.add_argument("--server", default=config.server_url,
                        help=f"Auth server URL (default: {config.server_url})")
    parser.add_argument("--timeout", type=float, default=config.request_timeout_s,
                        help=f"Request timeout in seconds (default: {config.request_timeout_s})")
    parser.add_argument("--log-level", default=config.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format=LOG_FORMAT)

    client = ZKAuthClient(server_url=args.server, timeout_s=args.timeout, group=config.group)

    try:
        if args.flow == "register":
            outcome = asyncio.run(client.register(args.user, args.password))
            print(f"{outcome.user}: {outcome.status.value}")
            return 0

        outcome = asyncio.run(client.login(args.user, args.password))
        if outcome.authenticated:
            print(f"{outcome.user}: {outcome.status.value} (session {outcome.session_id})")
            return 0
        print(f"{outcome.user}: {outcome.status.value}")
        return 1

    except ZKAuthError as e:
        logger.error(f"{args.flow} failed: {e.code} - {e.message}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
