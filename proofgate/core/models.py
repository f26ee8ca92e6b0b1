"""
proofgate/core/models.py

ProofGate Data Model

═══════════════════════════════════════════════════════════════════
CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1 — Scheme shape
    Arity of proof / commitments / pok and the public-input length are
    fixed per ProofScheme. They are never negotiated at call time.

CONTRACT 2 — Field bounds
    proof, commitment and pok elements   : 0 <= x < scheme.base_modulus
    public inputs                        : 0 <= x < scheme.scalar_modulus
    bool is not an accepted element type even though it subclasses int.

CONTRACT 3 — Audit signing
    bytes_signed = canonicalize(env.to_signing_dict())
    algorithm    = Ed25519, base64url without padding

CONTRACT 4 — Audit chain
    causal_hash  = SHA-256(canonicalize(prev.to_signing_dict()))
    first entry  = GENESIS_HASH ("0" * 64)

CONTRACT 5 — Fingerprints in JSON
    Always "0x" + 64 lowercase hex chars.
═══════════════════════════════════════════════════════════════════
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from proofgate.core.canonical import canonical_hash, canonicalize
from proofgate.core.exceptions import (
    ALREADY_USED_MESSAGE,
    AlreadyUsedError,
    ConfigError,
    MalformedInputError,
    RejectionReason,
    VerificationFailedError,
)
from proofgate.core.time import is_wire_timestamp, utc_timestamp


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

# BN254 (alt_bn128) base field: bound for curve-point coordinates.
BN254_BASE_MODULUS = (
    21888242871839275222246405745257275088696311157297823662689037894645226208583
)

# BN254 scalar field: bound for public inputs.
BN254_SCALAR_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

GENESIS_HASH = "0" * 64

FINGERPRINT_BYTES = 32

_PUBLIC_KEY_HEX_LENGTH = 64


# ─────────────────────────────────────────────────────────────
# Proof Schemes
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProofScheme:
    """
    Fixed shape of one proof circuit.

    public_input_length=None accepts any non-empty public-input vector.
    """
    name:                str
    proof_arity:         int = 8
    commitment_arity:    int = 2
    pok_arity:           int = 2
    public_input_length: Optional[int] = None
    base_modulus:        int = BN254_BASE_MODULUS
    scalar_modulus:      int = BN254_SCALAR_MODULUS

    @property
    def has_commitments(self) -> bool:
        return self.commitment_arity > 0 or self.pok_arity > 0


DEFAULT_SCHEME = ProofScheme(name="groth16-bn254-commitment")

PRIVACY_POOLS_SCHEME = ProofScheme(
    name="privacy-pools",
    public_input_length=1747,
)

FIBONACCI_SCHEME = ProofScheme(
    name="fibonacci",
    commitment_arity=0,
    pok_arity=0,
)

_SCHEMES: Dict[str, ProofScheme] = {
    s.name: s for s in (DEFAULT_SCHEME, PRIVACY_POOLS_SCHEME, FIBONACCI_SCHEME)
}


def get_scheme(name: str) -> ProofScheme:
    """Resolve a registered scheme by name. Raises ConfigError if unknown."""
    try:
        return _SCHEMES[name]
    except KeyError:
        raise ConfigError(
            f"Unknown proof scheme '{name}'",
            {"known": ", ".join(sorted(_SCHEMES))},
        ) from None


def register_scheme(scheme: ProofScheme) -> ProofScheme:
    """Register a custom scheme so config files can name it."""
    if scheme.name in _SCHEMES and _SCHEMES[scheme.name] != scheme:
        raise ConfigError(f"Proof scheme '{scheme.name}' is already registered")
    _SCHEMES[scheme.name] = scheme
    return scheme


# ─────────────────────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProofSubmission:
    """One proof submission. Ephemeral: never persisted."""
    proof:         Tuple[int, ...]
    commitments:   Tuple[int, ...]
    pok:           Tuple[int, ...]
    public_inputs: Tuple[int, ...]

    @classmethod
    def of(
        cls,
        proof:         Sequence[int],
        commitments:   Sequence[int] = (),
        pok:           Sequence[int] = (),
        public_inputs: Sequence[int] = (),
    ) -> "ProofSubmission":
        return cls(tuple(proof), tuple(commitments), tuple(pok), tuple(public_inputs))


def _check_vector(
    label:   str,
    values:  Sequence[int],
    length:  Optional[int],
    modulus: int,
) -> None:
    if isinstance(values, (str, bytes)) or not hasattr(values, "__len__"):
        raise MalformedInputError(
            f"{label} must be a sequence of integers",
            {"got": type(values).__name__},
        )
    if length is not None and len(values) != length:
        raise MalformedInputError(
            f"{label} must have exactly {length} elements",
            {"got": len(values)},
        )
    for i, x in enumerate(values):
        if isinstance(x, bool) or not isinstance(x, int):
            raise MalformedInputError(
                f"{label}[{i}] is not an integer",
                {"type": type(x).__name__},
            )
        if x < 0 or x >= modulus:
            raise MalformedInputError(
                f"{label}[{i}] is not a valid field element",
                {"modulus_bits": modulus.bit_length()},
            )


def validate_submission(
    scheme:        ProofScheme,
    proof:         Sequence[int],
    commitments:   Sequence[int],
    pok:           Sequence[int],
    public_inputs: Sequence[int],
) -> None:
    """
    Enforce CONTRACT 1 and CONTRACT 2 for one submission.
    Raises MalformedInputError naming the first offending vector.
    """
    _check_vector("proof", proof, scheme.proof_arity, scheme.base_modulus)
    _check_vector("commitments", commitments, scheme.commitment_arity, scheme.base_modulus)
    _check_vector("pok", pok, scheme.pok_arity, scheme.base_modulus)
    _check_vector(
        "public_inputs",
        public_inputs,
        scheme.public_input_length,
        scheme.scalar_modulus,
    )
    if scheme.public_input_length is None and len(public_inputs) == 0:
        raise MalformedInputError("public_inputs must not be empty")


# ─────────────────────────────────────────────────────────────
# Submission Result
# ─────────────────────────────────────────────────────────────

_REJECTION_ERRORS = {
    RejectionReason.MALFORMED_INPUT:     MalformedInputError,
    RejectionReason.ALREADY_USED:        AlreadyUsedError,
    RejectionReason.VERIFICATION_FAILED: VerificationFailedError,
}


@dataclass(frozen=True)
class SubmissionResult:
    """
    Outcome of VerificationGateway.submit().

    Returned, not raised, so callers can branch on `reason`.
    bool(result) is True iff accepted.
    """
    accepted:    bool
    fingerprint: Optional[bytes] = None
    reason:      Optional[RejectionReason] = None
    detail:      str = ""

    @classmethod
    def accept(cls, fingerprint: bytes) -> "SubmissionResult":
        return cls(accepted=True, fingerprint=fingerprint)

    @classmethod
    def reject(
        cls,
        reason:      RejectionReason,
        detail:      str,
        fingerprint: Optional[bytes] = None,
    ) -> "SubmissionResult":
        return cls(accepted=False, fingerprint=fingerprint, reason=reason, detail=detail)

    @property
    def fingerprint_hex(self) -> Optional[str]:
        if self.fingerprint is None:
            return None
        return "0x" + self.fingerprint.hex()

    def raise_for_rejection(self) -> None:
        """Raise the typed RejectionError for a rejected result. No-op if accepted."""
        if self.accepted:
            return
        details = {"fingerprint": self.fingerprint_hex} if self.fingerprint else None
        raise _REJECTION_ERRORS[self.reason](self.detail, details)

    def __bool__(self) -> bool:
        return self.accepted

    def __repr__(self) -> str:
        if self.accepted:
            return f"SubmissionResult(ACCEPTED, fingerprint={self.fingerprint_hex})"
        return f"SubmissionResult(REJECTED, reason={self.reason.value}, detail={self.detail!r})"


# ─────────────────────────────────────────────────────────────
# Audit Records
# ─────────────────────────────────────────────────────────────

class RecordType:
    """Audit record_type string constants."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


_VALID_RECORD_TYPES = {RecordType.ACCEPTED, RecordType.REJECTED}


@dataclass
class SchemaValidationResult:
    """
    Result of AuditEnvelope.validate_schema().

    bool(result) is True iff valid.
    """
    valid:  bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        if self.valid:
            return "SchemaValidationResult(VALID)"
        return f"SchemaValidationResult(INVALID, errors={self.errors})"


def _is_hex(value: Any, length: int) -> bool:
    if not isinstance(value, str) or len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


def _is_fingerprint_hex(value: Any) -> bool:
    return (
        isinstance(value, str)
        and value.startswith("0x")
        and _is_hex(value[2:], FINGERPRINT_BYTES * 2)
    )


@dataclass
class AuditEnvelope:
    """
    One signed, chained entry in the audit log.

    Payload for RecordType.ACCEPTED:
        {"fingerprint": "0x…", "submitter": str, "outcome": "accepted"}
    Payload for RecordType.REJECTED adds:
        {"reason": RejectionReason value, "detail": str}

    The envelope timestamp is the submission record's timestamp.
    """

    record_id:         str
    record_type:       str
    sequence:          int
    timestamp:         str
    causal_hash:       str
    signer_public_key: str
    payload:           Dict[str, Any]
    signature:         Optional[str] = None

    @classmethod
    def create(
        cls,
        record_type:       str,
        signer_public_key: str,
        sequence:          int,
        payload:           Dict[str, Any],
        prev:              Optional["AuditEnvelope"] = None,
    ) -> "AuditEnvelope":
        """
        Create an unsigned envelope with the correct causal_hash.
        Call .sign(key_manager) immediately after.
        """
        if record_type not in _VALID_RECORD_TYPES:
            raise ValueError(
                f"Invalid record_type '{record_type}'. "
                f"Valid: {sorted(_VALID_RECORD_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(f"payload must be dict, got {type(payload).__name__}")
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(f"sequence must be non-negative int, got {sequence!r}")
        if not _is_hex(signer_public_key, _PUBLIC_KEY_HEX_LENGTH):
            raise ValueError("signer_public_key must be a 64-char hex string")

        return cls(
            record_id=         f"audit-{uuid.uuid4()}",
            record_type=       record_type,
            sequence=          sequence,
            timestamp=         utc_timestamp(),
            causal_hash=       cls._compute_causal_hash(prev),
            signer_public_key= signer_public_key,
            payload=           payload,
            signature=         None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEnvelope":
        """
        Deserialize a JSONL line dict. Trusts persisted data;
        callers must validate_schema() afterwards.
        """
        return cls(
            record_id=         data["record_id"],
            record_type=       data["record_type"],
            sequence=          data["sequence"],
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            signer_public_key= data["signer_public_key"],
            payload=           data.get("payload", {}),
            signature=         data.get("signature"),
        )

    # ── Schema ────────────────────────────────────────────────

    def validate_schema(self) -> SchemaValidationResult:
        errors: List[str] = []

        if not isinstance(self.record_type, str) or self.record_type not in _VALID_RECORD_TYPES:
            errors.append(f"record_type '{self.record_type}' is not a known record type")
        if not isinstance(self.record_id, str) or not self.record_id.startswith("audit-"):
            errors.append(f"record_id must start with 'audit-', got {self.record_id!r}")
        if isinstance(self.sequence, bool) or not isinstance(self.sequence, int) or self.sequence < 0:
            errors.append(f"sequence must be non-negative int, got {self.sequence!r}")
        if not is_wire_timestamp(self.timestamp):
            errors.append(f"timestamp {self.timestamp!r} is not YYYY-MM-DDTHH:MM:SS.mmmZ")
        if not _is_hex(self.causal_hash, 64):
            errors.append("causal_hash must be 64 hex chars")
        if not _is_hex(self.signer_public_key, _PUBLIC_KEY_HEX_LENGTH):
            errors.append("signer_public_key must be 64 hex chars")

        if not isinstance(self.payload, dict):
            errors.append(f"payload must be dict, got {type(self.payload).__name__}")
        else:
            if not _is_fingerprint_hex(self.payload.get("fingerprint")):
                errors.append("payload.fingerprint must be 0x-prefixed 32-byte hex")
            submitter = self.payload.get("submitter")
            if not isinstance(submitter, str) or not submitter:
                errors.append("payload.submitter must be a non-empty string")
            if self.payload.get("outcome") != self.record_type:
                errors.append("payload.outcome must match record_type")
            if self.record_type == RecordType.REJECTED:
                reasons = {r.value for r in RejectionReason}
                reason  = self.payload.get("reason")
                if not isinstance(reason, str) or reason not in reasons:
                    errors.append(f"payload.reason must be one of {sorted(reasons)}")

        return SchemaValidationResult(valid=not errors, errors=errors)

    # ── Canonical forms ───────────────────────────────────────

    def to_signing_dict(self) -> Dict[str, Any]:
        """The exact dict that is signed and that the next entry chains to."""
        return {
            "causal_hash":       self.causal_hash,
            "payload":           self.payload,
            "record_id":         self.record_id,
            "record_type":       self.record_type,
            "sequence":          self.sequence,
            "signer_public_key": self.signer_public_key,
            "timestamp":         self.timestamp,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full serialization including signature. JSONL persistence only."""
        d = self.to_signing_dict().copy()
        d["signature"] = self.signature
        return d

    def canonical_bytes_for_signing(self) -> bytes:
        return canonicalize(self.to_signing_dict())

    # ── Chain ─────────────────────────────────────────────────

    @staticmethod
    def _compute_causal_hash(prev: Optional["AuditEnvelope"]) -> str:
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_signing_dict())

    def expected_causal_hash_from(self, prev: Optional["AuditEnvelope"]) -> str:
        return AuditEnvelope._compute_causal_hash(prev)

    def verify_chain(self, prev: Optional["AuditEnvelope"]) -> bool:
        return self.causal_hash == self.expected_causal_hash_from(prev)

    # ── Signing ───────────────────────────────────────────────

    def sign(self, key_manager) -> "AuditEnvelope":
        """Sign in place. Returns self so create(...).sign(key) reads naturally."""
        self.signature = key_manager.sign(self.canonical_bytes_for_signing())
        return self

    def verify_signature(self, override_public_key_hex: Optional[str] = None) -> bool:
        """False for unsigned, tampered or wrongly keyed envelopes. Never raises."""
        if not self.signature:
            return False

        from proofgate.core.crypto import Ed25519KeyManager

        return Ed25519KeyManager.verify_detached(
            self.canonical_bytes_for_signing(),
            self.signature,
            override_public_key_hex or self.signer_public_key,
        )

    # ── Convenience ───────────────────────────────────────────

    @property
    def fingerprint(self) -> Optional[str]:
        return self.payload.get("fingerprint") if isinstance(self.payload, dict) else None

    @property
    def submitter(self) -> Optional[str]:
        return self.payload.get("submitter") if isinstance(self.payload, dict) else None


def accepted_payload(fingerprint_hex: str, submitter: str) -> Dict[str, Any]:
    return {
        "fingerprint": fingerprint_hex,
        "submitter":   submitter,
        "outcome":     RecordType.ACCEPTED,
    }


def rejected_payload(
    fingerprint_hex: str,
    submitter:       str,
    reason:          RejectionReason,
    detail:          str,
) -> Dict[str, Any]:
    return {
        "fingerprint": fingerprint_hex,
        "submitter":   submitter,
        "outcome":     RecordType.REJECTED,
        "reason":      reason.value,
        "detail":      detail,
    }


__all__ = [
    "ALREADY_USED_MESSAGE",
    "AuditEnvelope",
    "BN254_BASE_MODULUS",
    "BN254_SCALAR_MODULUS",
    "DEFAULT_SCHEME",
    "FIBONACCI_SCHEME",
    "FINGERPRINT_BYTES",
    "GENESIS_HASH",
    "PRIVACY_POOLS_SCHEME",
    "ProofScheme",
    "ProofSubmission",
    "RecordType",
    "RejectionReason",
    "SchemaValidationResult",
    "SubmissionResult",
    "accepted_payload",
    "get_scheme",
    "register_scheme",
    "rejected_payload",
    "validate_submission",
]
