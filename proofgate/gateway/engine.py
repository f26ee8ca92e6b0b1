"""
proofgate/gateway/engine.py

Verification Gateway.

submit() MUST, in this exact order:
  1. Validate arities and field bounds            -> MALFORMED_INPUT
  2. f = fingerprint(proof, commitments, pok)
  3. Acquire the lock for f (held through step 6)
  4. guard.contains(f)                            -> ALREADY_USED
  5. verifier.verify(...)                         -> VERIFICATION_FAILED
  6. guard.reserve(f); audit_log.append_accepted(f, submitter)
  7. Return Accepted(f)

A rejection at steps 1, 4 or 5 leaves the guard untouched and, unless
audit_rejections is set, writes nothing to the audit log.

Submissions with different fingerprints run steps 4-6 concurrently;
submissions with the same fingerprint serialize on its lock, so at most
one of them can observe contains(f) == False and reach reserve().

Gateways in other processes may share a file-backed guard and audit log.
The fingerprint lock does not reach them; the guard re-checks under its
file lock in reserve(), and the loser of that race is reported as
ALREADY_USED. Either way at most one submission per fingerprint is accepted.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence

from proofgate.core.exceptions import (
    ALREADY_USED_MESSAGE,
    MalformedInputError,
    RejectionReason,
    ReplayGuardError,
)
from proofgate.core.fingerprint import ProofFingerprinter, fingerprint_hex, parse_fingerprint
from proofgate.core.models import (
    DEFAULT_SCHEME,
    ProofScheme,
    ProofSubmission,
    SubmissionResult,
    validate_submission,
)
from proofgate.guard.replay_guard import MemoryReplayGuard, ReplayGuard
from proofgate.ledger.audit_log import AuditLog
from proofgate.verification.verifier import ExternalVerifier, VerifierResult


logger = logging.getLogger(__name__)


class _FingerprintLocks:
    """One lock per in-flight fingerprint. Entries are dropped when idle."""

    def __init__(self) -> None:
        self._mutex: threading.Lock    = threading.Lock()
        self._locks: Dict[bytes, List] = {}

    @contextmanager
    def hold(self, fingerprint: bytes) -> Iterator[None]:
        with self._mutex:
            entry = self._locks.get(fingerprint)
            if entry is None:
                entry = self._locks[fingerprint] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._mutex:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[fingerprint]

    def __len__(self) -> int:
        with self._mutex:
            return len(self._locks)


class VerificationGateway:
    """
    Accepts each distinct proof at most once.

    The verifier is injected; swapping it changes which circuit is checked
    but nothing else about the protocol.
    """

    def __init__(
        self,
        verifier:         ExternalVerifier,
        guard:            Optional[ReplayGuard] = None,
        audit_log:        Optional[AuditLog] = None,
        scheme:           ProofScheme = DEFAULT_SCHEME,
        audit_rejections: bool = False,
    ):
        """
        Args:
            verifier:         Proof-validity oracle for this scheme's circuit.
            guard:            Used-proof store. Defaults to an empty in-memory store.
            audit_log:        Decision log. Defaults to an in-memory log.
            scheme:           Fixed arities and field moduli for submissions.
            audit_rejections: Also record ALREADY_USED and VERIFICATION_FAILED
                              outcomes. Off by default: rejections leave no trace.
        """
        self.verifier         = verifier
        self.guard            = guard if guard is not None else MemoryReplayGuard()
        self.audit_log        = audit_log if audit_log is not None else AuditLog()
        self.scheme           = scheme
        self.audit_rejections = audit_rejections
        self.fingerprinter    = ProofFingerprinter(scheme)

        self._locks       = _FingerprintLocks()
        self._stats_lock  = threading.Lock()
        self._counts: Dict[str, int] = {"accepted": 0}
        for reason in RejectionReason:
            self._counts[reason.value] = 0

    # ── Submission ────────────────────────────────────────────

    def submit(
        self,
        proof:         Sequence[int],
        commitments:   Sequence[int],
        pok:           Sequence[int],
        public_inputs: Sequence[int],
        submitter:     str,
    ) -> SubmissionResult:
        """
        Run one submission through the protocol.

        Returns SubmissionResult; every caller error and every verifier
        rejection is reported there, never raised. Raises only for
        infrastructure faults in the guard or audit log.
        """
        try:
            if not isinstance(submitter, str) or not submitter:
                raise MalformedInputError("submitter must be a non-empty string")
            validate_submission(self.scheme, proof, commitments, pok, public_inputs)
            fp = self.fingerprinter(proof, commitments, pok)
        except MalformedInputError as exc:
            self._count(RejectionReason.MALFORMED_INPUT.value)
            logger.info("Rejected malformed submission from %r: %s", submitter, exc)
            return SubmissionResult.reject(RejectionReason.MALFORMED_INPUT, str(exc))

        with self._locks.hold(fp):
            if self.guard.contains(fp):
                return self._reject(fp, submitter, RejectionReason.ALREADY_USED, ALREADY_USED_MESSAGE)

            outcome = self._run_verifier(fp, proof, commitments, pok, public_inputs)
            if not outcome:
                return self._reject(fp, submitter, RejectionReason.VERIFICATION_FAILED, outcome.reason)

            try:
                self.guard.reserve(fp)
            except ReplayGuardError:
                if not self.guard.contains(fp):
                    raise
                logger.warning(
                    "Proof %s was reserved by another gateway during verification",
                    fingerprint_hex(fp),
                )
                return self._reject(fp, submitter, RejectionReason.ALREADY_USED, ALREADY_USED_MESSAGE)
            self.audit_log.append_accepted(fp, submitter)

        self._count("accepted")
        logger.info("Accepted proof %s from %r", fingerprint_hex(fp), submitter)
        return SubmissionResult.accept(fp)

    def submit_proof(self, submission: ProofSubmission, submitter: str) -> SubmissionResult:
        """submit() for a ProofSubmission, e.g. one read by proofgate.core.loader."""
        return self.submit(
            submission.proof,
            submission.commitments,
            submission.pok,
            submission.public_inputs,
            submitter,
        )

    def submit_or_raise(
        self,
        proof:         Sequence[int],
        commitments:   Sequence[int],
        pok:           Sequence[int],
        public_inputs: Sequence[int],
        submitter:     str,
    ) -> bytes:
        """
        Like submit(), but returns the fingerprint on acceptance and raises
        MalformedInputError / AlreadyUsedError / VerificationFailedError otherwise.
        """
        result = self.submit(proof, commitments, pok, public_inputs, submitter)
        result.raise_for_rejection()
        return result.fingerprint

    # ── Queries ───────────────────────────────────────────────

    def is_used(self, fingerprint) -> bool:
        """True iff a submission with this fingerprint was accepted. Read-only."""
        return self.guard.contains(parse_fingerprint(fingerprint))

    def get_stats(self) -> Dict[str, object]:
        with self._stats_lock:
            counts = dict(self._counts)
        return {
            "scheme":           self.scheme.name,
            "verifier":         self.verifier.name,
            "used_proofs":      len(self.guard),
            "audit_records":    len(self.audit_log),
            "audit_rejections": self.audit_rejections,
            "outcomes":         counts,
        }

    # ── Internal ──────────────────────────────────────────────

    def _run_verifier(self, fp, proof, commitments, pok, public_inputs) -> VerifierResult:
        """
        Call the verifier. A backend fault is not fatal to the gateway: it is
        logged and reported as a failed verification for this submission.
        """
        try:
            outcome = self.verifier.verify(proof, commitments, pok, public_inputs)
        except Exception as exc:
            logger.warning(
                "Verifier %s raised for %s: %s", self.verifier.name, fingerprint_hex(fp), exc
            )
            return VerifierResult.invalid(f"verifier error: {exc}")

        if not isinstance(outcome, VerifierResult):
            outcome = VerifierResult.ok() if outcome else VerifierResult.invalid(
                f"{self.verifier.name}: proof rejected"
            )
        return outcome

    def _reject(
        self,
        fp:        bytes,
        submitter: str,
        reason:    RejectionReason,
        detail:    str,
    ) -> SubmissionResult:
        if self.audit_rejections:
            self.audit_log.append_rejected(fp, submitter, reason, detail)
        self._count(reason.value)
        logger.info(
            "Rejected proof %s from %r: %s (%s)",
            fingerprint_hex(fp), submitter, reason.value, detail,
        )
        return SubmissionResult.reject(reason, detail, fingerprint=fp)

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._counts[key] += 1

    def __repr__(self) -> str:
        return (
            f"VerificationGateway(scheme={self.scheme.name!r}, "
            f"verifier={self.verifier.name!r}, used={len(self.guard)})"
        )
