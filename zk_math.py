"""
=======================================================
ZK_MATH.PY - Big-Integer Arithmetic and Wire Codec
=======================================================
Modular arithmetic over arbitrary-precision integers, CSPRNG sampling,
and the decimal-string encoding used for every big integer on the wire.
"""
import re
import secrets

from zk_errors import MalformedNumber


# ==================== CONSTANTS ====================

# Upper bound on the length of a decimal wire value
MAX_WIRE_DIGITS = 1024

_UNSIGNED_RE = re.compile(r"[0-9]+")
_SIGNED_RE = re.compile(r"-?[0-9]+")


# ==================== ARITHMETIC ====================

def modpow(base: int, exponent: int, modulus: int) -> int:
    """
    Modular exponentiation base^exponent mod modulus

    A negative exponent is evaluated as the inverse of base raised to
    -exponent.

    Raises:
        ValueError: modulus <= 1, or base not invertible for a negative exponent
    """
    if modulus <= 1:
        raise ValueError(f"Modulus must exceed 1, got {modulus}")

    if exponent == 0:
        return 1

    return pow(base, exponent, modulus)


def mod_sub(a: int, b: int, modulus: int) -> int:
    """(a - b) mod modulus, always in [0, modulus)"""
    if modulus <= 0:
        raise ValueError(f"Modulus must be positive, got {modulus}")
    return (a - b) % modulus


def random_in_range(lower: int, upper_exclusive: int) -> int:
    """
    Uniform sample from [lower, upper_exclusive) using the OS CSPRNG

    Raises:
        ValueError: empty range
    """
    if upper_exclusive <= lower:
        raise ValueError(f"Empty range [{lower}, {upper_exclusive})")
    return lower + secrets.randbelow(upper_exclusive - lower)


# ==================== WIRE CODEC ====================

def encode_int(value: int) -> str:
    """Encode an integer as a decimal string"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected int, got {type(value).__name__}")
    return str(value)


def decode_int(text: str, field: str, signed: bool = False) -> int:
    """
    Decode a decimal wire string

    Only ASCII digits are accepted (with a leading '-' when signed):
    no whitespace, '+', underscores or empty strings.

    Args:
        text: Wire value
        field: Field name reported in the error
        signed: Allow negative values

    Raises:
        MalformedNumber: text is not a valid decimal integer
    """
    if not isinstance(text, str):
        raise MalformedNumber(field, f"Field '{field}' must be a decimal string")

    pattern = _SIGNED_RE if signed else _UNSIGNED_RE
    if pattern.fullmatch(text) is None:
        raise MalformedNumber(field)

    if len(text.lstrip("-")) > MAX_WIRE_DIGITS:
        raise MalformedNumber(field, f"Field '{field}' exceeds {MAX_WIRE_DIGITS} digits")

    return int(text, 10)


def parse_secret(password: str) -> int:
    """
    Interpret a password as a non-negative integer secret

    Raises:
        MalformedNumber: password is not a decimal integer
    """
    return decode_int(password, "password")


__all__ = [
    'MAX_WIRE_DIGITS',
    'modpow',
    'mod_sub',
    'random_in_range',
    'encode_int',
    'decode_int',
    'parse_secret'
]
