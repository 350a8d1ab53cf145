"""
ZK_CONFIG.PY - Server and client configuration

Values come from ZKP_* environment variables, falling back to the defaults
below. DOCKER_MODE points the client at the compose service name.
"""
import os
from dataclasses import dataclass, field

from zk_group import GroupParameters, DEFAULT_GROUP


LOG_FORMAT = '[%(asctime)s] [%(name)s] %(levelname)s - %(message)s'


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_group() -> GroupParameters:
    mode = os.getenv("ZKP_RESPONSE_MODULUS", "order")
    return DEFAULT_GROUP.with_response_modulus(mode)


def _default_server_url() -> str:
    host = "zkp_server" if os.getenv("DOCKER_MODE") is not None else "localhost"
    return f"http://{host}:9999"


@dataclass
class ServerConfig:
    """Auth server configuration"""
    host: str = "0.0.0.0"
    port: int = 9999
    challenge_ttl_s: float = 120.0
    reap_interval_s: float = 30.0
    log_level: str = "INFO"
    group: GroupParameters = field(default_factory=lambda: DEFAULT_GROUP)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        port = os.getenv("ZKP_PORT", "9999")
        if not port.isdigit():
            raise ValueError(f"ZKP_PORT must be an integer, got {port!r}")

        return cls(
            host=os.getenv("ZKP_HOST", "0.0.0.0"),
            port=int(port),
            challenge_ttl_s=_env_float("ZKP_CHALLENGE_TTL_S", 120.0),
            reap_interval_s=_env_float("ZKP_REAP_INTERVAL_S", 30.0),
            log_level=os.getenv("ZKP_LOG_LEVEL", "INFO").upper(),
            group=_env_group()
        )


@dataclass
class ClientConfig:
    """Auth client configuration"""
    server_url: str = "http://localhost:9999"
    request_timeout_s: float = 5.0
    log_level: str = "INFO"
    group: GroupParameters = field(default_factory=lambda: DEFAULT_GROUP)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            server_url=os.getenv("ZKP_SERVER_URL") or _default_server_url(),
            request_timeout_s=_env_float("ZKP_REQUEST_TIMEOUT_S", 5.0),
            log_level=os.getenv("ZKP_LOG_LEVEL", "INFO").upper(),
            group=_env_group()
        )
