"""
proofgate/__init__.py

ProofGate: replay-protected gateway for zero-knowledge proof submissions.

Each distinct proof (by fingerprint over proof, commitments and
commitment proof-of-knowledge) is accepted at most once. Validity is
delegated to a pluggable ExternalVerifier; every acceptance is written
to a signed, hash-chained audit log.
"""

import logging

__version__ = "0.3.0"

from proofgate.core.exceptions import (
    AlreadyUsedError,
    MalformedInputError,
    ProofGateError,
    RejectionReason,
    VerificationFailedError,
)
from proofgate.core.fingerprint import (
    ProofFingerprinter,
    fingerprint,
    fingerprint_hex,
    parse_fingerprint,
)
from proofgate.core.models import (
    DEFAULT_SCHEME,
    FIBONACCI_SCHEME,
    PRIVACY_POOLS_SCHEME,
    ProofScheme,
    ProofSubmission,
    SubmissionResult,
)
from proofgate.gateway.engine import VerificationGateway
from proofgate.guard.replay_guard import FileReplayGuard, MemoryReplayGuard, ReplayGuard
from proofgate.ledger.audit_log import AuditLog
from proofgate.verification.verifier import ExternalVerifier, VerifierResult

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Gateway
    "VerificationGateway",
    "SubmissionResult",
    "ProofSubmission",
    # Components
    "ProofFingerprinter",
    "ReplayGuard",
    "MemoryReplayGuard",
    "FileReplayGuard",
    "AuditLog",
    "ExternalVerifier",
    "VerifierResult",
    # Schemes
    "ProofScheme",
    "DEFAULT_SCHEME",
    "PRIVACY_POOLS_SCHEME",
    "FIBONACCI_SCHEME",
    # Errors
    "ProofGateError",
    "MalformedInputError",
    "AlreadyUsedError",
    "VerificationFailedError",
    "RejectionReason",
    # Helpers
    "fingerprint",
    "fingerprint_hex",
    "parse_fingerprint",
]
