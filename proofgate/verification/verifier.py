"""
ProofGate: External verifier interface.

The gateway never looks inside a proof. It hands the four vectors to an
ExternalVerifier and acts on the binary outcome. Backends are swapped by
injecting a different instance; gateway logic does not change.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class VerifierResult:
    """Valid, or Invalid(reason). bool(result) is True iff valid."""
    valid:  bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "VerifierResult":
        return cls(valid=True)

    @classmethod
    def invalid(cls, reason: str) -> "VerifierResult":
        return cls(valid=False, reason=reason or "proof rejected by verifier")

    def __bool__(self) -> bool:
        return self.valid


class ExternalVerifier(ABC):
    """
    Stateless proof-validity oracle bound to one verification key.

    verify() must be deterministic for a fixed key and must not keep
    state between calls. It reports invalid proofs by returning
    VerifierResult.invalid(...); raising is reserved for backend faults
    (RPC down, bad configuration).
    """

    name: str = "verifier"

    @abstractmethod
    def verify(
        self,
        proof:         Sequence[int],
        commitments:   Sequence[int],
        pok:           Sequence[int],
        public_inputs: Sequence[int],
    ) -> VerifierResult:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
