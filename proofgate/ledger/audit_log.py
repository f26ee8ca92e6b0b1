"""
proofgate/ledger/audit_log.py

Audit Log — signed, hash-chained record of gateway decisions.

append() MUST, in this exact order:
  1. Acquire lock             — thread lock, plus flock on the file
  2. Catch up                 — records other processes appended
  3. AuditEnvelope.create(record_type, signer, sequence, payload, prev)
  4. envelope.sign(key_manager)
  5. Assert chain invariants  — causal_hash, sequence
  6. Append to JSONL file     — steps 2 and 6 skipped for in-memory logs
  7. Advance internal state   — only after confirmed write
  8. Return signed envelope

Nothing is ever rewritten or removed.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union

from proofgate.core.crypto import Ed25519KeyManager
from proofgate.core.exceptions import LedgerError, RejectionReason
from proofgate.core.fingerprint import fingerprint_hex
from proofgate.core.locking import exclusive_lock
from proofgate.core.models import (
    GENESIS_HASH,
    AuditEnvelope,
    RecordType,
    accepted_payload,
    rejected_payload,
)


logger = logging.getLogger(__name__)


class AuditLog:
    """
    Append-only audit log.

    path=None keeps records in memory only. Otherwise each record is one
    JSON line in `path`, and sequence / last envelope are restored from that
    file on construction.

    Thread-safe via internal lock. Processes sharing one file serialize on
    an exclusive flock and each catches up with the others' records before
    appending, so the chain never forks.
    """

    def __init__(
        self,
        key_manager: Optional[Ed25519KeyManager] = None,
        path:        Optional[Union[str, Path]] = None,
    ) -> None:
        self.key_manager = key_manager or Ed25519KeyManager.generate()
        self.path: Optional[Path] = Path(path) if path is not None else None

        self._lock:          threading.Lock          = threading.Lock()
        self._sequence:      int                     = 0
        self._last_envelope: Optional[AuditEnvelope] = None
        self._records:       List[AuditEnvelope]     = []
        self._offset:        int                     = 0
        self._line_num:      int                     = 0

        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._restore_state()

    # ── Public API ────────────────────────────────────────────

    def append_accepted(self, fingerprint: bytes, submitter: str) -> AuditEnvelope:
        """Record an accepted submission: {fingerprint, submitter, timestamp}."""
        return self._append(
            RecordType.ACCEPTED,
            accepted_payload(fingerprint_hex(fingerprint), submitter),
        )

    def append_rejected(
        self,
        fingerprint: bytes,
        submitter:   str,
        reason:      RejectionReason,
        detail:      str,
    ) -> AuditEnvelope:
        """Record a rejected submission: {fingerprint, submitter, reason}."""
        return self._append(
            RecordType.REJECTED,
            rejected_payload(fingerprint_hex(fingerprint), submitter, reason, detail),
        )

    def records(self, record_type: Optional[str] = None) -> List[AuditEnvelope]:
        """
        Records appended through this instance, plus those restored from disk
        at construction. Optionally filtered by record_type.
        """
        with self._lock:
            records = list(self._records)
        if record_type is None:
            return records
        return [r for r in records if r.record_type == record_type]

    def verify_chain(self) -> bool:
        """
        Verify the whole log: sequence, causal_hash, signature, schema.
        Reads the file when there is one, else the in-memory records.
        """
        try:
            envelopes = self._load_file() if self.path is not None else self.records()
        except LedgerError:
            return False

        prev = None
        for i, env in enumerate(envelopes):
            if env.sequence != i:
                return False
            if not env.validate_schema():
                return False
            if not env.verify_chain(prev):
                return False
            if not env.verify_signature():
                return False
            prev = env
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Current log state snapshot."""
        with self._lock:
            by_type: Dict[str, int] = {}
            for env in self._records:
                by_type[env.record_type] = by_type.get(env.record_type, 0) + 1
            return {
                "total_records":     len(self._records),
                "by_type":           by_type,
                "next_sequence":     self._sequence,
                "last_record_id":    (
                    self._last_envelope.record_id if self._last_envelope else None
                ),
                "last_causal_hash":  (
                    self._last_envelope.causal_hash if self._last_envelope else GENESIS_HASH
                ),
                "signer_public_key": self.key_manager.public_key_hex,
                "path":              str(self.path) if self.path else None,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ── Internal ──────────────────────────────────────────────

    def _append(self, record_type: str, payload: Dict[str, Any]) -> AuditEnvelope:
        with self._lock:
            if self.path is None:
                envelope = self._create(record_type, payload)
            else:
                try:
                    with open(self.path, "a+b") as f, exclusive_lock(f):
                        self._read_new(f)
                        envelope = self._create(record_type, payload)
                        self._write(f, envelope)
                except OSError as exc:
                    raise LedgerError(
                        f"Audit log write failed: {exc}", {"path": str(self.path)}
                    ) from exc

            self._sequence      += 1
            self._last_envelope  = envelope
            self._records.append(envelope)

        logger.debug(
            "Audit record %d (%s) for %s",
            envelope.sequence, record_type, payload["fingerprint"],
        )
        return envelope

    def _create(self, record_type: str, payload: Dict[str, Any]) -> AuditEnvelope:
        envelope = AuditEnvelope.create(
            record_type=       record_type,
            signer_public_key= self.key_manager.public_key_hex,
            sequence=          self._sequence,
            payload=           payload,
            prev=              self._last_envelope,
        ).sign(self.key_manager)
        self._assert_chain_invariants(envelope)
        return envelope

    def _assert_chain_invariants(self, envelope: AuditEnvelope) -> None:
        if envelope.sequence != self._sequence:
            raise LedgerError(
                "Chain invariant violated: sequence mismatch",
                {"expected": self._sequence, "got": envelope.sequence},
            )
        if not envelope.verify_chain(self._last_envelope):
            raise LedgerError("Chain invariant violated: causal_hash mismatch")

    def _write(self, f: IO[bytes], envelope: AuditEnvelope) -> None:
        """One newline-terminated JSON line, fsync'd. State must not advance if this raises."""
        data = (json.dumps(envelope.to_dict()) + "\n").encode("utf-8")
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
        self._offset   += len(data)
        self._line_num += 1

    def _read_new(self, f: IO[bytes]) -> None:
        """
        Catch up with records appended after self._offset, by this process
        or another one. Caller holds self._lock and the file lock.

        The newest record must pass schema validation; otherwise appending
        would fork the chain.
        """
        f.seek(self._offset)
        chunk = f.read()
        if not chunk:
            return
        if not chunk.endswith(b"\n"):
            raise LedgerError(
                f"Audit log ends with an incomplete record at line {self._line_num + 1}",
                {"path": str(self.path)},
            )

        new: List[AuditEnvelope] = []
        for raw in chunk.splitlines():
            self._line_num += 1
            if not raw.strip():
                continue
            try:
                new.append(AuditEnvelope.from_dict(json.loads(raw)))
            except (ValueError, KeyError, TypeError) as exc:
                raise LedgerError(
                    f"Invalid audit record at line {self._line_num}: {exc}"
                ) from exc
        self._offset += len(chunk)
        if not new:
            return

        last   = new[-1]
        schema = last.validate_schema()
        if not schema:
            raise LedgerError(
                "Cannot resume audit log: last record fails schema validation",
                {"errors": "; ".join(schema.errors)},
            )

        self._records.extend(new)
        self._sequence      = last.sequence + 1
        self._last_envelope = last

    def _load_file(self) -> List[AuditEnvelope]:
        envelopes: List[AuditEnvelope] = []
        if not self.path.exists():
            return envelopes
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        envelopes.append(AuditEnvelope.from_dict(json.loads(line)))
                    except (ValueError, KeyError, TypeError) as exc:
                        raise LedgerError(
                            f"Invalid audit record at line {line_num}: {exc}"
                        ) from exc
        except OSError as exc:
            raise LedgerError(f"Failed to read audit log: {exc}") from exc
        return envelopes

    def _restore_state(self) -> None:
        """Load existing records so the chain continues where it stopped."""
        if not self.path.exists():
            return

        with self._lock:
            try:
                with open(self.path, "a+b") as f, exclusive_lock(f):
                    self._read_new(f)
            except OSError as exc:
                raise LedgerError(f"Failed to read audit log: {exc}") from exc

        if self._records:
            logger.info("Resumed audit log %s at sequence %d", self.path, self._sequence)
