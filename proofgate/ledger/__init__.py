"""
ProofGate Audit Log - signed, append-only record of gateway decisions.
"""

from proofgate.ledger.audit_log import AuditLog
from proofgate.ledger.replay import AuditReplay, AuditSummary, AuditViolation

__all__ = ["AuditLog", "AuditReplay", "AuditSummary", "AuditViolation"]
