"""
ProofGate Runtime - config loading and component wiring.
"""

from proofgate.runtime.context import GatewayConfig, GatewayContext, VerifierConfig

__all__ = ["GatewayConfig", "GatewayContext", "VerifierConfig"]
