"""
Chaum-Pedersen commitment engine tests

- Completeness for random secrets, nonces and challenges
- Soundness spot check with a wrong secret
- Legacy reduction modulo p
- Prover / verifier wrappers
"""
import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from zk_authentication import (
    ChaumPedersenProver,
    ChaumPedersenVerifier,
    commit,
    response,
    verify,
)
from zk_group import DEFAULT_GROUP, GroupParameters, P
from zk_math import random_in_range


def _prove(x, k, c, modulus=DEFAULT_GROUP.response_modulus, group=DEFAULT_GROUP):
    y1, y2 = commit(x, group)
    r1, r2 = commit(k, group)
    s = response(k, c, x, modulus)
    return verify(r1, r2, s, c, y1, y2, group)


def test_default_group():
    assert DEFAULT_GROUP.p == 2 ** 255 - 19
    assert DEFAULT_GROUP.g == 5
    assert DEFAULT_GROUP.h == 3
    assert DEFAULT_GROUP.response_modulus == P - 1
    assert DEFAULT_GROUP.challenge_bound == 2 ** 128


def test_commit_values():
    y1, y2 = commit(42)
    assert y1 == pow(5, 42, P)
    assert y2 == pow(3, 42, P)
    assert commit(0) == (1, 1)


def test_completeness_fixed():
    assert _prove(42, 7, 12345)
    assert _prove(42, 7, 2 ** 128 - 1)
    assert _prove(0, 0, 0)


def test_completeness_random():
    for _ in range(10):
        x = random_in_range(0, P)
        k = random_in_range(1, P - 1)
        c = random_in_range(0, 2 ** 128)
        assert _prove(x, k, c)


def test_soundness_wrong_secret():
    k, c = 7, 987654321987654321
    y1, y2 = commit(42)
    r1, r2 = commit(k)
    s_wrong = response(k, c, 43, DEFAULT_GROUP.response_modulus)
    assert not verify(r1, r2, s_wrong, c, y1, y2)


def test_wrong_commitment_rejected():
    y1, y2 = commit(42)
    r1, r2 = commit(7)
    c = 1000
    s = response(7, c, 42, DEFAULT_GROUP.response_modulus)
    assert not verify(r1 + 1, r2, s, c, y1, y2)
    assert not verify(r1, r2, s, c + 1, y1, y2)


def test_unreduced_negative_response_verifies():
    y1, y2 = commit(42)
    r1, r2 = commit(7)
    c = 5
    s = 7 - c * 42
    assert s < 0
    assert verify(r1, r2, s, c, y1, y2)


def test_legacy_modulus_p():
    legacy = DEFAULT_GROUP.with_response_modulus("p")
    assert legacy.response_modulus == P

    # No wrap-around while k >= c*x
    assert _prove(42, 100, 2, modulus=P, group=legacy)

    # k < c*x wraps modulo p, which is not a multiple of the group order
    assert not _prove(42, 7, 1, modulus=P, group=legacy)


def test_with_response_modulus_rejects_unknown_mode():
    with pytest.raises(ValueError):
        DEFAULT_GROUP.with_response_modulus("q")


def test_group_parameter_validation():
    with pytest.raises(ValueError):
        GroupParameters(p=2)
    with pytest.raises(ValueError):
        GroupParameters(g=1)
    with pytest.raises(ValueError):
        GroupParameters(response_modulus=1)


def test_prover_verifier_round():
    prover = ChaumPedersenProver(31337)
    verifier = ChaumPedersenVerifier(*prover.public_commitment())

    (r1, r2), k = prover.generate_commitment()
    assert 1 <= k < DEFAULT_GROUP.response_modulus

    c = verifier.generate_challenge()
    assert 0 <= c < 2 ** 128

    assert verifier.verify_response(r1, r2, c, prover.generate_response(c, k))
    assert not verifier.verify_response(r1, r2, c, ChaumPedersenProver(31338).generate_response(c, k))


def test_fresh_nonce_per_attempt():
    prover = ChaumPedersenProver(42)
    nonces = {prover.generate_commitment()[1] for _ in range(20)}
    assert len(nonces) == 20


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
