"""
ProofGate: Verifier backends.

    CallableVerifier   — wraps a Python callable (in-process verifiers, tests)
    StaticVerifier     — always valid / always invalid (dev config)
    ContractVerifier   — eth_call to a deployed verifier contract via web3
    TimeoutVerifier    — bounds any backend; expiry counts as invalid
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, List, Optional, Union

from web3 import Web3
from web3.exceptions import ContractLogicError

from proofgate.core.models import DEFAULT_SCHEME, ProofScheme
from proofgate.verification.verifier import ExternalVerifier, VerifierResult


logger = logging.getLogger(__name__)


class CallableVerifier(ExternalVerifier):
    """
    Adapt func(proof, commitments, pok, public_inputs) into a verifier.
    func may return bool or VerifierResult.
    """

    def __init__(
        self,
        func: Callable[..., Union[bool, VerifierResult]],
        name: str = "callable",
    ):
        self._func = func
        self.name  = name

    def verify(self, proof, commitments, pok, public_inputs) -> VerifierResult:
        outcome = self._func(proof, commitments, pok, public_inputs)
        if isinstance(outcome, VerifierResult):
            return outcome
        if outcome:
            return VerifierResult.ok()
        return VerifierResult.invalid(f"{self.name}: proof rejected")


class StaticVerifier(ExternalVerifier):
    """Fixed answer regardless of input. For local development only."""

    def __init__(self, valid: bool, reason: str = "rejected by static verifier"):
        self._result = VerifierResult.ok() if valid else VerifierResult.invalid(reason)
        self.name    = "accept-all" if valid else "reject-all"

    def verify(self, proof, commitments, pok, public_inputs) -> VerifierResult:
        return self._result


# ─────────────────────────────────────────────────────────────
# On-chain verifier contract
# ─────────────────────────────────────────────────────────────

def verifier_abi(
    scheme:       ProofScheme,
    input_length: int,
    returns_bool: bool = False,
) -> List[Dict[str, Any]]:
    """
    ABI fragment for verifyProof(...) shaped by the scheme.

    gnark-exported verifiers revert on failure and return nothing;
    set returns_bool for verifiers that return a bool instead.
    """
    inputs = [{"name": "proof", "type": f"uint256[{scheme.proof_arity}]"}]
    if scheme.commitment_arity:
        inputs.append({"name": "commitments", "type": f"uint256[{scheme.commitment_arity}]"})
    if scheme.pok_arity:
        inputs.append({"name": "commitmentPok", "type": f"uint256[{scheme.pok_arity}]"})
    inputs.append({"name": "input", "type": f"uint256[{input_length}]"})

    return [{
        "type":            "function",
        "name":            "verifyProof",
        "stateMutability": "view",
        "inputs":          inputs,
        "outputs":         [{"name": "", "type": "bool"}] if returns_bool else [],
    }]


class ContractVerifier(ExternalVerifier):
    """
    Delegates to a deployed verifier contract with a read-only eth_call.

    Revert -> Invalid(revert message). Connection and ABI errors propagate
    to the gateway, which reports them as a failed verification.
    """

    def __init__(
        self,
        w3:           Web3,
        address:      str,
        scheme:       ProofScheme = DEFAULT_SCHEME,
        returns_bool: bool = False,
    ):
        self.w3           = w3
        self.address      = Web3.to_checksum_address(address)
        self.scheme       = scheme
        self.returns_bool = returns_bool
        self.name         = f"contract:{self.address}"
        self._contracts:      Dict[int, Any] = {}
        self._contracts_lock: threading.Lock = threading.Lock()

    @classmethod
    def from_rpc(
        cls,
        rpc_url:      str,
        address:      str,
        scheme:       ProofScheme = DEFAULT_SCHEME,
        returns_bool: bool = False,
    ) -> "ContractVerifier":
        """Build against an HTTP JSON-RPC endpoint."""
        return cls(Web3(Web3.HTTPProvider(rpc_url)), address, scheme, returns_bool)

    def _contract(self, input_length: int):
        with self._contracts_lock:
            contract = self._contracts.get(input_length)
            if contract is None:
                contract = self.w3.eth.contract(
                    address=self.address,
                    abi=verifier_abi(self.scheme, input_length, self.returns_bool),
                )
                self._contracts[input_length] = contract
            return contract

    def verify(self, proof, commitments, pok, public_inputs) -> VerifierResult:
        args: List[List[int]] = [list(proof)]
        if self.scheme.commitment_arity:
            args.append(list(commitments))
        if self.scheme.pok_arity:
            args.append(list(pok))
        args.append(list(public_inputs))

        func = self._contract(len(public_inputs)).functions.verifyProof(*args)
        try:
            returned = func.call()
        except ContractLogicError as exc:
            return VerifierResult.invalid(str(exc))

        if self.returns_bool and not returned:
            return VerifierResult.invalid("verifier returned false")
        return VerifierResult.ok()


# ─────────────────────────────────────────────────────────────
# Timeout wrapper
# ─────────────────────────────────────────────────────────────

class TimeoutVerifier(ExternalVerifier):
    """
    Run another verifier with a deadline.

    On expiry the submission is reported invalid. A call still queued behind
    busy workers is cancelled; one already running is left to finish on its
    own and its late answer is discarded.
    """

    def __init__(
        self,
        inner:           ExternalVerifier,
        timeout_seconds: float,
        max_workers:     Optional[int] = None,
    ):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds!r}")
        self.inner           = inner
        self.timeout_seconds = timeout_seconds
        self.name            = f"timeout({inner.name})"
        self._pool           = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="proofgate-verify",
        )

    def verify(self, proof, commitments, pok, public_inputs) -> VerifierResult:
        future = self._pool.submit(
            self.inner.verify, proof, commitments, pok, public_inputs
        )
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            # A queued call that never started must not run later.
            future.cancel()
            logger.warning(
                "Verifier %s exceeded %.3fs deadline", self.inner.name, self.timeout_seconds
            )
            return VerifierResult.invalid(
                f"verification timed out after {self.timeout_seconds}s"
            )

    def shutdown(self, wait: bool = False) -> None:
        self._pool.shutdown(wait=wait)
