"""
ZK_ERRORS.PY - Error kinds of the ZKP authentication protocol

A wrong password is not an error: it is a completed protocol run whose
outcome is "not authenticated". Everything here is protocol misuse or a
broken channel.
"""
from typing import Optional


class ZKAuthError(Exception):
    """Base class for protocol errors"""
    code = "zk_auth_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class UnknownUser(ZKAuthError):
    """Challenge requested for a username that was never registered"""
    code = "unknown_user"

    def __init__(self, username: str):
        super().__init__(f"User is not registered: {username}")
        self.username = username


class UnknownChallenge(ZKAuthError):
    """Verify on a missing, expired or already consumed auth_id"""
    code = "unknown_challenge"

    def __init__(self, message: str = "Unknown authentication challenge"):
        super().__init__(message)


class MalformedNumber(ZKAuthError):
    """A wire or password value is not a valid decimal integer"""
    code = "malformed_number"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(message or f"Malformed integer in field '{field}'")
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["field"] = self.field
        return body


class TransportFailure(ZKAuthError):
    """Remote call channel error"""
    code = "transport_failure"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    'ZKAuthError',
    'UnknownUser',
    'UnknownChallenge',
    'MalformedNumber',
    'TransportFailure'
]
