"""
=======================================================
ZK_AUTHENTICATION.PY - Chaum-Pedersen Commitment Engine
=======================================================
Prove knowledge of a password without revealing it
Chaum-Pedersen protocol over two generators of the same group
"""
from typing import Tuple

from zk_group import GroupParameters, DEFAULT_GROUP
from zk_math import modpow, mod_sub, random_in_range


# ==================== COMMITMENT MATH ====================

def commit(secret: int, group: GroupParameters = DEFAULT_GROUP) -> Tuple[int, int]:
    """
    Commit to a secret

    Returns:
        (y1, y2) = (g^secret mod p, h^secret mod p)
    """
    return (
        modpow(group.g, secret, group.p),
        modpow(group.h, secret, group.p)
    )


def response(k: int, c: int, secret: int, modulus: int) -> int:
    """
    Prover's answer to challenge c

    s = (k - c*secret) mod modulus
    """
    return mod_sub(k, c * secret, modulus)


def verify(r1: int, r2: int, s: int, c: int, y1: int, y2: int,
           group: GroupParameters = DEFAULT_GROUP) -> bool:
    """
    Verify a Chaum-Pedersen response

    Check: r1 == g^s * y1^c mod p  and  r2 == h^s * y2^c mod p

    Returns:
        True if both equations hold
    """
    p = group.p

    r1_prime = (modpow(group.g, s, p) * modpow(y1, c, p)) % p
    r2_prime = (modpow(group.h, s, p) * modpow(y2, c, p)) % p

    return r1 == r1_prime and r2 == r2_prime


# ==================== CHAUM-PEDERSEN PROTOCOL ====================

class ChaumPedersenProver:
    """
    Chaum-Pedersen protocol prover

    Proves that log_g(y1) == log_h(y2) == x without revealing x
    Protocol:
    1. Prover commits: (r1, r2) = (g^k, h^k) mod p (random k)
    2. Verifier challenges: c (random)
    3. Prover responds: s = k - c*x mod q
    4. Verifier checks: r1 == g^s * y1^c, r2 == h^s * y2^c mod p
    """

    def __init__(self, secret: int, group: GroupParameters = DEFAULT_GROUP):
        """
        Initialize with secret

        Args:
            secret: Private value (x)
            group: Group parameters
        """
        self.secret = secret
        self.group = group

    def public_commitment(self) -> Tuple[int, int]:
        """(y1, y2) sent once at registration"""
        return commit(self.secret, self.group)

    def generate_commitment(self) -> Tuple[Tuple[int, int], int]:
        """
        Generate per-attempt commitment (step 1)

        Returns:
            ((r1, r2), nonce)
        """
        k = random_in_range(1, self.group.response_modulus)
        return commit(k, self.group), k

    def generate_response(self, challenge: int, nonce: int) -> int:
        """
        Generate response to challenge (step 3)

        Args:
            challenge: c from verifier
            nonce: k from commitment phase
        """
        return response(nonce, challenge, self.secret, self.group.response_modulus)


class ChaumPedersenVerifier:
    """Chaum-Pedersen protocol verifier"""

    def __init__(self, y1: int, y2: int, group: GroupParameters = DEFAULT_GROUP):
        self.y1 = y1
        self.y2 = y2
        self.group = group

    def generate_challenge(self) -> int:
        """Random challenge c (step 2)"""
        return random_in_range(0, self.group.challenge_bound)

    def verify_response(self, r1: int, r2: int, challenge: int, s: int) -> bool:
        """Verify prover's response (step 4)"""
        return verify(r1, r2, s, challenge, self.y1, self.y2, self.group)


# ==================== EXPORT ====================

__all__ = [
    'commit',
    'response',
    'verify',
    'ChaumPedersenProver',
    'ChaumPedersenVerifier'
]


if __name__ == "__main__":
    print("=== CHAUM-PEDERSEN SELF-TEST ===")

    prover = ChaumPedersenProver(42)
    y1, y2 = prover.public_commitment()
    verifier = ChaumPedersenVerifier(y1, y2)

    (r1, r2), k = prover.generate_commitment()
    c = verifier.generate_challenge()
    s = prover.generate_response(c, k)
    print(f"   Honest prover: {'VALID' if verifier.verify_response(r1, r2, c, s) else 'INVALID'}")

    forged = ChaumPedersenProver(43).generate_response(c, k)
    print(f"   Wrong secret: {'VALID' if verifier.verify_response(r1, r2, c, forged) else 'INVALID'}")
