"""
ZK_GROUP.PY - Chaum-Pedersen Group Parameters

Prime modulus p and the two generators g, h shared by prover and verifier.
Constant for the lifetime of the process.
"""
from dataclasses import dataclass


# ==================== CONSTANTS ====================

# 2^255 - 19
P = 2 ** 255 - 19

# Generators
G = 5
H = 3

# Challenge size (bits)
CHALLENGE_BITS = 128


@dataclass(frozen=True)
class GroupParameters:
    """
    Group parameters for the Chaum-Pedersen protocol

    response_modulus is the modulus the prover reduces s = k - c*x with.
    Any multiple of the order of g and h keeps the protocol complete; p - 1
    is the default. Reducing modulo p itself is kept available for
    compatibility with older provers, but then a proof only verifies while
    k >= c*x.
    """
    p: int = P
    g: int = G
    h: int = H
    challenge_bits: int = CHALLENGE_BITS
    response_modulus: int = P - 1

    def __post_init__(self):
        if self.p <= 2:
            raise ValueError(f"Group modulus must exceed 2, got {self.p}")
        if not (1 < self.g < self.p and 1 < self.h < self.p):
            raise ValueError("Generators must lie in (1, p)")
        if self.challenge_bits <= 0:
            raise ValueError("challenge_bits must be positive")
        if self.response_modulus <= 1:
            raise ValueError("response_modulus must exceed 1")

    @property
    def challenge_bound(self) -> int:
        """Exclusive upper bound for challenge values"""
        return 2 ** self.challenge_bits

    def with_response_modulus(self, mode: str) -> "GroupParameters":
        """
        Select the response reduction modulus by name

        Args:
            mode: "order" (p - 1) or "p"
        """
        if mode == "order":
            modulus = self.p - 1
        elif mode == "p":
            modulus = self.p
        else:
            raise ValueError(f"Unknown response modulus mode: {mode!r}")

        return GroupParameters(
            p=self.p,
            g=self.g,
            h=self.h,
            challenge_bits=self.challenge_bits,
            response_modulus=modulus
        )


DEFAULT_GROUP = GroupParameters()
