"""
ProofGate Exception Hierarchy

All exceptions inherit from ProofGateError for easy catching.

Caller-visible rejections (malformed input, replayed proof, failed
verification) inherit from RejectionError and carry a RejectionReason.
"""

from enum import Enum


ALREADY_USED_MESSAGE = "Proof already used"


class RejectionReason(str, Enum):
    """Why a submission was refused."""
    MALFORMED_INPUT     = "malformed_input"
    ALREADY_USED        = "already_used"
    VERIFICATION_FAILED = "verification_failed"


class ProofGateError(Exception):
    """Base exception for all ProofGate errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(ProofGateError):
    """Raised when data validation fails"""
    pass


class RejectionError(ProofGateError):
    """Raised when a submission is refused. `reason` says why."""

    reason: RejectionReason = None


class MalformedInputError(ValidationError, RejectionError):
    """Arity or field-range violation. Recoverable by correcting the input."""

    reason = RejectionReason.MALFORMED_INPUT


class AlreadyUsedError(RejectionError):
    """Fingerprint already reserved. Permanent for that proof data."""

    reason = RejectionReason.ALREADY_USED

    def __init__(self, message: str = ALREADY_USED_MESSAGE, details: dict = None):
        super().__init__(message, details)


class VerificationFailedError(RejectionError):
    """The external verifier rejected the proof / public-input pair."""

    reason = RejectionReason.VERIFICATION_FAILED


class ReplayGuardError(ProofGateError):
    """Raised when the used-proof store is misused or unreadable"""
    pass


class LedgerError(ProofGateError):
    """Raised when audit log operations fail"""
    pass


class ConfigError(ProofGateError):
    """Raised when configuration is missing or invalid"""
    pass
