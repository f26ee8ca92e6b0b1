"""
ProofGate Verification Gateway

Protocol per submission:
    validate -> fingerprint -> replay check -> verify -> reserve -> audit

Critical Invariants:
- A fingerprint is reserved only after its proof passed verification
- A reserved fingerprint is never released
- A rejected submission changes no state
"""

from proofgate.gateway.engine import VerificationGateway

__all__ = ["VerificationGateway"]
