"""
ZK_AUTH_SERVER.PY - Chaum-Pedersen Authentication Server (verifier)

Remote operations:
- Register(user, y1, y2)                       -> registered | already_registered
- CreateAuthenticationChallenge(user, r1, r2)  -> (auth_id, c)
- VerifyAuthentication(auth_id, s)             -> authenticated + session_id | not_authenticated

Per-login state: Pending -> Verified | Rejected. Both outcomes consume the
challenge. Big integers travel as decimal strings.

Usage:
    python zk_auth_server.py --port 9999
    python zk_auth_server.py --host 127.0.0.1 --challenge-ttl 60
"""
import time
import logging
import argparse
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from auth_metrics import AuthMetricsExporter
from challenge_store import ChallengeStore
from session_issuer import SessionIssuer
from user_store import RegistrationStatus, RegistrationStore
from zk_authentication import verify
from zk_config import LOG_FORMAT, ServerConfig
from zk_errors import MalformedNumber, UnknownChallenge, UnknownUser, ZKAuthError
from zk_group import GroupParameters, DEFAULT_GROUP
from zk_math import decode_int, encode_int

logger = logging.getLogger("ZKP-SERVER")

# Error kind -> HTTP status
ERROR_STATUS = {
    UnknownUser.code: 404,
    UnknownChallenge.code: 404,
    MalformedNumber.code: 400,
}


@dataclass(frozen=True)
class VerificationResult:
    """Terminal outcome of a login attempt"""
    authenticated: bool
    session_id: Optional[str] = None


# ==================== PROTOCOL HANDLER ====================

class AuthProtocolHandler:
    """Verifier side of the protocol: registration, challenge, verification"""

    def __init__(self,
                 users: Optional[RegistrationStore] = None,
                 challenges: Optional[ChallengeStore] = None,
                 sessions: Optional[SessionIssuer] = None,
                 group: GroupParameters = DEFAULT_GROUP,
                 metrics: Optional[AuthMetricsExporter] = None):
        self.group = group
        self.users = users or RegistrationStore()
        self.challenges = challenges or ChallengeStore(group=group)
        self.sessions = sessions or SessionIssuer()
        self.metrics = metrics or AuthMetricsExporter()

        self.metrics.pending_challenges_fn = self.challenges.pending_count
        self.metrics.registered_users_fn = self.users.count
        self.metrics.reaped_total_fn = lambda: self.challenges.reaped_total

    def register(self, username: str, y1: int, y2: int) -> RegistrationStatus:
        """
        Store the user's public commitment

        The server only ever sees (y1, y2); it performs no check on them.
        """
        logger.debug(f"[REGISTER] user={username} y1={y1} y2={y2}")

        status = self.users.register(username, y1, y2)
        self.metrics.record_registration(status.value)
        return status

    def create_authentication_challenge(self, username: str, r1: int, r2: int) -> Tuple[str, int]:
        """
        Open a login attempt

        Returns:
            (auth_id, c)

        Raises:
            UnknownUser: username was never registered
        """
        if self.users.lookup(username) is None:
            logger.info(f"[CHALLENGE] Rejected challenge for unknown user '{username}'")
            raise UnknownUser(username)

        auth_id, c = self.challenges.create(username, r1, r2)
        self.metrics.record_challenge()

        logger.debug(f"[CHALLENGE] user={username} r1={r1} r2={r2} c={c}")
        return auth_id, c

    def verify_authentication(self, auth_id: str, s: int) -> VerificationResult:
        """
        Check the prover's response and close the attempt

        Raises:
            UnknownChallenge: auth_id never existed, was already used, or expired
        """
        start = time.time()

        challenge = self.challenges.take(auth_id)
        if challenge is None:
            raise UnknownChallenge()

        user = self.users.lookup(challenge.username)
        if user is None:
            raise UnknownUser(challenge.username)

        ok = verify(challenge.r1, challenge.r2, s, challenge.c, user.y1, user.y2, self.group)
        self.metrics.record_verification(ok, (time.time() - start) * 1000)

        if not ok:
            logger.info(f"[VERIFY] Proof rejected for '{user.username}'")
            return VerificationResult(authenticated=False)

        session = self.sessions.issue(user.username)
        logger.info(f"[VERIFY] User '{user.username}' authenticated")
        return VerificationResult(authenticated=True, session_id=session.session_id)


# ==================== WIRE SCHEMA ====================

class RegisterRequest(BaseModel):
    user: str = Field(min_length=1)
    y1: str
    y2: str


class RegisterResponse(BaseModel):
    status: RegistrationStatus


class ChallengeRequest(BaseModel):
    user: str = Field(min_length=1)
    r1: str
    r2: str


class ChallengeResponse(BaseModel):
    auth_id: str
    c: str


class VerifyRequest(BaseModel):
    auth_id: str
    s: str


class VerifyResponse(BaseModel):
    status: str
    session_id: Optional[str] = None


# Request fields carrying big integers as decimal strings
WIRE_INT_FIELDS = ("y1", "y2", "r1", "r2", "s")


# ==================== HTTP APP ====================

def create_app(handler: Optional[AuthProtocolHandler] = None,
               config: Optional[ServerConfig] = None) -> FastAPI:
    """
    Build the FastAPI app exposing the three remote operations

    Args:
        handler: Protocol handler (default: fresh in-memory stores)
        config: Server configuration (reaper interval)
    """
    config = config or ServerConfig()
    if handler is None:
        handler = AuthProtocolHandler(
            challenges=ChallengeStore(group=config.group, ttl_sec=config.challenge_ttl_s),
            group=config.group
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        handler.challenges.start_reaper(config.reap_interval_s)
        try:
            yield
        finally:
            handler.challenges.stop_reaper()

    app = FastAPI(title="ZKP Auth Server", lifespan=lifespan)
    app.state.handler = handler

    @app.exception_handler(ZKAuthError)
    async def zk_error_handler(request: Request, exc: ZKAuthError):
        handler.metrics.record_error(exc.code)
        logger.warning(f"{request.url.path} failed: {exc.code} - {exc.message}")
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.code, 500),
            content=exc.to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # Big-integer fields that are missing or not strings are malformed numbers
        for err in exc.errors():
            loc = tuple(err.get("loc", ()))
            if len(loc) == 2 and loc[0] == "body" and loc[1] in WIRE_INT_FIELDS:
                field = loc[1]
                return await zk_error_handler(
                    request,
                    MalformedNumber(field, f"Field '{field}' must be a decimal string")
                )
        return await request_validation_exception_handler(request, exc)

    @app.post("/auth/register", response_model=RegisterResponse)
    def register(req: RegisterRequest):
        """Register endpoint"""
        y1 = decode_int(req.y1, "y1")
        y2 = decode_int(req.y2, "y2")
        return RegisterResponse(status=handler.register(req.user, y1, y2))

    @app.post("/auth/challenge", response_model=ChallengeResponse)
    def create_challenge(req: ChallengeRequest):
        """CreateAuthenticationChallenge endpoint"""
        r1 = decode_int(req.r1, "r1")
        r2 = decode_int(req.r2, "r2")
        auth_id, c = handler.create_authentication_challenge(req.user, r1, r2)
        return ChallengeResponse(auth_id=auth_id, c=encode_int(c))

    @app.post("/auth/verify", response_model=VerifyResponse)
    def verify_authentication(req: VerifyRequest):
        """VerifyAuthentication endpoint"""
        s = decode_int(req.s, "s", signed=True)
        result = handler.verify_authentication(req.auth_id, s)
        if result.authenticated:
            return VerifyResponse(status="authenticated", session_id=result.session_id)
        return VerifyResponse(status="not_authenticated")

    @app.get("/metrics")
    def metrics():
        return PlainTextResponse(
            handler.metrics.get_metrics_text(),
            media_type="text/plain; version=0.0.4"
        )

    @app.get("/health")
    def health():
        """Health check"""
        return {
            "status": "healthy",
            "users": handler.users.count(),
            "pending_challenges": handler.challenges.pending_count()
        }

    return app


def main():
    """Main entry point"""
    config = ServerConfig.from_env()

    parser = argparse.ArgumentParser(description="ZKP Auth Server")
    parser.add_argument("--host", default=config.host,
                        help=f"Listen host (default: {config.host})")
    parser.add_argument("--port", type=int, default=config.port,
                        help=f"Listen port (default: {config.port})")
    parser.add_argument("--challenge-ttl", type=float, default=config.challenge_ttl_s,
                        help=f"Pending challenge lifetime in seconds (default: {config.challenge_ttl_s})")
    parser.add_argument("--reap-interval", type=float, default=config.reap_interval_s,
                        help=f"Expired challenge sweep interval in seconds (default: {config.reap_interval_s})")
    parser.add_argument("--log-level", default=config.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()
    if args.reap_interval <= 0:
        parser.error("--reap-interval must be positive")

    config.host = args.host
    config.port = args.port
    config.challenge_ttl_s = args.challenge_ttl
    config.reap_interval_s = args.reap_interval
    config.log_level = args.log_level

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    app = create_app(config=config)

    logger.info("=" * 70)
    logger.info("ZKP AUTH SERVER")
    logger.info("=" * 70)
    logger.info(f"  Listen: http://{config.host}:{config.port}")
    logger.info(f"  Group: {config.group.p.bit_length()}-bit p, g={config.group.g}, h={config.group.h}")
    logger.info(f"  Challenge TTL: {config.challenge_ttl_s}s (sweep every {config.reap_interval_s}s)")
    logger.info("=" * 70)

    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
