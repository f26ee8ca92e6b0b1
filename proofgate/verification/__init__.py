"""
ProofGate Verification - the external proof-validity oracle and its backends.

The gateway depends only on ExternalVerifier; backends are interchangeable.
"""

from proofgate.verification.backends import (
    CallableVerifier,
    ContractVerifier,
    StaticVerifier,
    TimeoutVerifier,
)
from proofgate.verification.verifier import ExternalVerifier, VerifierResult

__all__ = [
    "ExternalVerifier",
    "VerifierResult",
    "CallableVerifier",
    "ContractVerifier",
    "StaticVerifier",
    "TimeoutVerifier",
]
