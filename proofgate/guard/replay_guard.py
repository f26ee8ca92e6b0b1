"""
proofgate/guard/replay_guard.py

Used-proof store.

Contract — for every fingerprint f:
  1. contains(f) is a pure read.
  2. reserve(f) flips f from unused to used exactly once.
  3. There is no operation that flips it back.
  4. reserve(f) on an already-used f raises ReplayGuardError.
     Within one process the gateway never does this; it checks contains()
     first under the fingerprint's lock. Another process sharing the same
     file can still win the race, and the loser sees this error.

MemoryReplayGuard lives for the process. FileReplayGuard keeps an
append-only JSONL file, rebuilds its set from that file on start and
stays in step with other processes appending to it.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Iterator, Optional, Set, Union

from proofgate.core.exceptions import MalformedInputError, ReplayGuardError
from proofgate.core.fingerprint import fingerprint_hex, parse_fingerprint
from proofgate.core.locking import exclusive_lock
from proofgate.core.time import utc_timestamp


logger = logging.getLogger(__name__)


class ReplayGuard(ABC):
    """Membership store of consumed proof fingerprints."""

    @abstractmethod
    def contains(self, fingerprint: bytes) -> bool:
        """True if fingerprint has been reserved."""

    @abstractmethod
    def reserve(self, fingerprint: bytes) -> None:
        """Mark fingerprint used. Raises ReplayGuardError if it already is."""

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[bytes]:
        ...

    def __contains__(self, fingerprint) -> bool:
        return self.contains(parse_fingerprint(fingerprint))


class MemoryReplayGuard(ReplayGuard):
    """Process-lifetime store. Starts empty, never cleared."""

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._used: Set[bytes]     = set()

    def contains(self, fingerprint: bytes) -> bool:
        with self._lock:
            return bytes(fingerprint) in self._used

    def reserve(self, fingerprint: bytes) -> None:
        fingerprint = parse_fingerprint(fingerprint)
        with self._lock:
            if fingerprint in self._used:
                raise ReplayGuardError(
                    "Fingerprint already reserved",
                    {"fingerprint": fingerprint_hex(fingerprint)},
                )
            self._used.add(fingerprint)

    def __len__(self) -> int:
        with self._lock:
            return len(self._used)

    def __iter__(self) -> Iterator[bytes]:
        with self._lock:
            return iter(sorted(self._used))

    def __repr__(self) -> str:
        return f"MemoryReplayGuard(used={len(self)})"


class FileReplayGuard(ReplayGuard):
    """
    Durable store backed by an append-only JSONL file.

    One line per reservation:
        {"fingerprint": "0x…", "reserved_at": "YYYY-MM-DDTHH:MM:SS.mmmZ"}

    Several processes may share one file. reserve() takes an exclusive
    flock, reads whatever other writers appended since this instance last
    looked, re-checks membership and only then appends. contains() also
    picks up lines appended by other processes.

    Each write is flushed and fsync'd before the in-memory set advances.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path:  Path            = Path(path)
        self._lock: threading.Lock  = threading.Lock()
        self._used: Set[bytes]      = set()
        self._offset: int           = 0
        self._line_num: int         = 0

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._restore_state()

    def contains(self, fingerprint: bytes) -> bool:
        fingerprint = bytes(fingerprint)
        with self._lock:
            if fingerprint not in self._used:
                self._refresh()
            return fingerprint in self._used

    def reserve(self, fingerprint: bytes) -> None:
        fingerprint = parse_fingerprint(fingerprint)
        line = json.dumps({
            "fingerprint": fingerprint_hex(fingerprint),
            "reserved_at": utc_timestamp(),
        }) + "\n"
        data = line.encode("utf-8")

        with self._lock:
            try:
                with open(self.path, "a+b") as f, exclusive_lock(f):
                    self._read_new(f, allow_partial=False)
                    if fingerprint in self._used:
                        raise ReplayGuardError(
                            "Fingerprint already reserved",
                            {"fingerprint": fingerprint_hex(fingerprint)},
                        )
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                    self._offset   += len(data)
                    self._line_num += 1
            except OSError as exc:
                raise ReplayGuardError(
                    f"Used-proof store write failed: {exc}",
                    {"path": str(self.path)},
                ) from exc
            self._used.add(fingerprint)

    def __len__(self) -> int:
        with self._lock:
            self._refresh()
            return len(self._used)

    def __iter__(self) -> Iterator[bytes]:
        with self._lock:
            self._refresh()
            return iter(sorted(self._used))

    # ── Internal ──────────────────────────────────────────────

    def _restore_state(self) -> None:
        """
        Rebuild the used set from disk. A line that cannot be parsed is a
        hard error: starting with a partial set would let spent proofs
        through again.
        """
        if not self.path.exists():
            return

        with self._lock:
            try:
                with open(self.path, "a+b") as f, exclusive_lock(f):
                    self._read_new(f, allow_partial=False)
            except OSError as exc:
                raise ReplayGuardError(
                    f"Failed to read used-proof store: {exc}",
                    {"path": str(self.path)},
                ) from exc

        logger.info("Restored %d used fingerprints from %s", len(self._used), self.path)

    def _refresh(self) -> None:
        """
        Pick up reservations other processes appended. Unlocked read: a
        line still being written is left for the next call.
        Caller holds self._lock.
        """
        try:
            if self.path.stat().st_size == self._offset:
                return
            with open(self.path, "rb") as f:
                self._read_new(f, allow_partial=True)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise ReplayGuardError(
                f"Failed to read used-proof store: {exc}",
                {"path": str(self.path)},
            ) from exc

    def _read_new(self, f: IO[bytes], allow_partial: bool) -> None:
        """Consume complete lines after self._offset."""
        f.seek(self._offset)
        chunk = f.read()
        end   = chunk.rfind(b"\n") + 1
        if end != len(chunk) and not allow_partial:
            raise ReplayGuardError(
                "Used-proof store ends with an incomplete line",
                {"path": str(self.path), "line": self._line_num + 1},
            )

        for raw in chunk[:end].splitlines():
            self._line_num += 1
            if raw.strip():
                self._used.add(self._parse_line(raw, self._line_num))
        self._offset += end

    def _parse_line(self, line: bytes, line_num: int) -> bytes:
        try:
            entry = json.loads(line)
            return parse_fingerprint(entry["fingerprint"])
        except (ValueError, KeyError, TypeError, MalformedInputError) as exc:
            raise ReplayGuardError(
                f"Corrupt used-proof store at line {line_num}: {exc}",
                {"path": str(self.path)},
            ) from exc

    def __repr__(self) -> str:
        return f"FileReplayGuard(path={str(self.path)!r}, used={len(self)})"


def open_guard(path: Optional[Union[str, Path]] = None) -> ReplayGuard:
    """FileReplayGuard at path, or a MemoryReplayGuard when path is None."""
    if path is None:
        return MemoryReplayGuard()
    return FileReplayGuard(path)
