"""
proofgate/ledger/replay.py

Offline audit-log verification.

Checks, per record, in file order:
    1. schema        — env.validate_schema()
    2. sequence      — strictly 0, 1, 2, ...
    3. chain         — env.verify_chain(prev)
    4. signature     — env.verify_signature()
    5. single accept — no fingerprint is accepted more than once

Check 5 is the replay-protection guarantee seen from the outside: if the
gateway ever accepted the same proof twice, the log shows it.
"""

import json
from collections import defaultdict
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from proofgate.core.models import AuditEnvelope, RecordType


@dataclass
class AuditViolation:
    """A single problem found in the audit log."""
    at_sequence:    int
    record_id:      str
    violation_type: str   # "schema" | "sequence_gap" | "chain_break" | "invalid_signature" | "double_accept"
    detail:         str


@dataclass
class AuditSummary:
    """Aggregate result of one verification pass."""
    total_records:       int
    chain_valid:         bool
    violations:          List[AuditViolation]
    valid_signatures:    int
    invalid_signatures:  int
    record_type_counts:  Dict[str, int]
    accepted_fingerprints: int
    submitters_seen:     List[str]
    signers_seen:        List[str]
    first_timestamp:     Optional[str]
    last_timestamp:      Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _distinct_strings(values: Iterable[Any]) -> List[str]:
    """Sorted non-empty str values. Tampered records may carry anything else."""
    return sorted({v for v in values if isinstance(v, str) and v})


class AuditReplay:
    """
    Usage:
        replay  = AuditReplay()
        replay.load(Path(".proofgate/audit.jsonl"))
        summary = replay.verify()
    """

    def __init__(self) -> None:
        self.envelopes:  List[AuditEnvelope]  = []
        self.violations: List[AuditViolation] = []

    def load(self, path: Union[str, Path]) -> None:
        """
        Parse every line. Malformed JSON or missing fields raise ValueError;
        schema problems are reported by verify() instead so the auditor
        sees all of them at once.
        """
        path = Path(path)
        self.envelopes  = []
        self.violations = []

        if not path.exists():
            raise FileNotFoundError(f"Audit log not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            for line_num, raw in enumerate(f, 1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Malformed JSON at audit line {line_num}: {e}") from e
                try:
                    self.envelopes.append(AuditEnvelope.from_dict(data))
                except (KeyError, TypeError) as e:
                    raise ValueError(
                        f"Missing required audit field at line {line_num}: {e}"
                    ) from e

    def load_envelopes(self, envelopes: List[AuditEnvelope]) -> None:
        self.envelopes  = list(envelopes)
        self.violations = []

    def verify(self) -> AuditSummary:
        self.violations = []
        valid_sigs   = 0
        invalid_sigs = 0
        accepted: Set[str] = set()
        counts: Dict[str, int] = defaultdict(int)

        prev: Optional[AuditEnvelope] = None
        for i, env in enumerate(self.envelopes):
            counts[str(env.record_type)] += 1

            schema = env.validate_schema()
            if not schema:
                self._violation(env, "schema", "; ".join(schema.errors))

            if env.sequence != i:
                self._violation(env, "sequence_gap", f"Expected sequence {i}, got {env.sequence}")

            if not env.verify_chain(prev):
                expected = env.expected_causal_hash_from(prev)
                self._violation(
                    env, "chain_break",
                    f"causal_hash mismatch: expected ...{expected[-12:]}, "
                    f"got ...{str(env.causal_hash)[-12:]}",
                )

            if env.verify_signature():
                valid_sigs += 1
            else:
                invalid_sigs += 1
                self._violation(
                    env, "invalid_signature",
                    f"Signature invalid (signer: {str(env.signer_public_key)[:16]}...)",
                )

            if env.record_type == RecordType.ACCEPTED and isinstance(env.fingerprint, str):
                if env.fingerprint in accepted:
                    self._violation(
                        env, "double_accept",
                        f"Fingerprint {env.fingerprint} accepted more than once",
                    )
                accepted.add(env.fingerprint)

            prev = env

        return AuditSummary(
            total_records=         len(self.envelopes),
            chain_valid=           not self.violations,
            violations=            list(self.violations),
            valid_signatures=      valid_sigs,
            invalid_signatures=    invalid_sigs,
            record_type_counts=    dict(counts),
            accepted_fingerprints= len(accepted),
            submitters_seen=       _distinct_strings(e.submitter for e in self.envelopes),
            signers_seen=          _distinct_strings(e.signer_public_key for e in self.envelopes),
            first_timestamp=       self.envelopes[0].timestamp if self.envelopes else None,
            last_timestamp=        self.envelopes[-1].timestamp if self.envelopes else None,
        )

    def _violation(self, env: AuditEnvelope, kind: str, detail: str) -> None:
        self.violations.append(AuditViolation(
            at_sequence=    env.sequence,
            record_id=      env.record_id,
            violation_type= kind,
            detail=         detail,
        ))
