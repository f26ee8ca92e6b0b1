"""
Shared fixtures for the ProofGate test suite.

The sample submission mirrors the worked example used throughout:
    P = [1..8], C = [9, 10], K = [11, 12], I = [42]
"""

import pytest

from proofgate.core.crypto import Ed25519KeyManager
from proofgate.gateway.engine import VerificationGateway
from proofgate.guard.replay_guard import MemoryReplayGuard
from proofgate.ledger.audit_log import AuditLog
from proofgate.verification.backends import CallableVerifier
from proofgate.verification.verifier import VerifierResult


PROOF       = list(range(1, 9))
COMMITMENTS = [9, 10]
POK         = [11, 12]
INPUTS      = [42]


class RecordingVerifier(CallableVerifier):
    """Accepts unless public_inputs[0] is in `reject`. Counts calls."""

    def __init__(self, reject=()):
        self.calls  = 0
        self.reject = set(reject)
        super().__init__(self._check, name="recording")

    def _check(self, proof, commitments, pok, public_inputs):
        self.calls += 1
        if public_inputs and public_inputs[0] in self.reject:
            return VerifierResult.invalid("pairing check failed")
        return VerifierResult.ok()


def make_proof(seed: int):
    """A distinct (proof, commitments, pok) triple per seed."""
    base = seed * 100
    return (
        [base + i for i in range(1, 9)],
        [base + 9, base + 10],
        [base + 11, base + 12],
    )


@pytest.fixture
def key():
    return Ed25519KeyManager.generate()


@pytest.fixture
def verifier():
    return RecordingVerifier(reject={13})


@pytest.fixture
def guard():
    return MemoryReplayGuard()


@pytest.fixture
def audit_log(key):
    return AuditLog(key)


@pytest.fixture
def gateway(verifier, guard, audit_log):
    return VerificationGateway(verifier=verifier, guard=guard, audit_log=audit_log)
