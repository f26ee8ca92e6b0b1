"""
ProofGate Replay Guard - the used-proof store.

A fingerprint moves from unused to used once and never back.
"""

from proofgate.guard.replay_guard import (
    FileReplayGuard,
    MemoryReplayGuard,
    ReplayGuard,
    open_guard,
)

__all__ = ["ReplayGuard", "MemoryReplayGuard", "FileReplayGuard", "open_guard"]
