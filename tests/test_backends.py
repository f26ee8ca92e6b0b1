"""
tests/test_backends.py

Verifier backends. The contract backend runs against a stand-in for the
web3 contract object so no node is needed.
"""

import threading

import pytest
from web3.exceptions import ContractLogicError

from proofgate.core.models import DEFAULT_SCHEME, FIBONACCI_SCHEME, PRIVACY_POOLS_SCHEME
from proofgate.verification.backends import (
    CallableVerifier,
    ContractVerifier,
    StaticVerifier,
    TimeoutVerifier,
    verifier_abi,
)
from proofgate.verification.verifier import VerifierResult

from conftest import COMMITMENTS, INPUTS, POK, PROOF


ADDRESS = "0x" + "ab" * 20


class _FakeCall:
    def __init__(self, outcome):
        self._outcome = outcome

    def call(self):
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class _FakeFunctions:
    def __init__(self, eth):
        self._eth = eth

    def verifyProof(self, *args):
        self._eth.calls.append(args)
        return _FakeCall(self._eth.outcome)


class _FakeContract:
    def __init__(self, eth, abi):
        self.abi       = abi
        self.functions = _FakeFunctions(eth)


class _FakeEth:
    def __init__(self, outcome):
        self.outcome   = outcome
        self.calls     = []
        self.contracts = []

    def contract(self, address, abi):
        self.contracts.append((address, abi))
        return _FakeContract(self, abi)


class _FakeWeb3:
    def __init__(self, outcome=None):
        self.eth = _FakeEth(outcome)


class TestSimpleVerifiers:

    def test_callable_bool(self):
        assert CallableVerifier(lambda *a: True).verify(PROOF, COMMITMENTS, POK, INPUTS)
        result = CallableVerifier(lambda *a: False, name="groth16").verify(
            PROOF, COMMITMENTS, POK, INPUTS
        )
        assert not result
        assert result.reason == "groth16: proof rejected"

    def test_callable_passes_vectors_through(self):
        seen = []
        CallableVerifier(lambda *a: seen.append(a) or True).verify(PROOF, COMMITMENTS, POK, INPUTS)
        assert seen == [(PROOF, COMMITMENTS, POK, INPUTS)]

    def test_static(self):
        assert StaticVerifier(True).verify(PROOF, COMMITMENTS, POK, INPUTS)
        assert StaticVerifier(True).name == "accept-all"
        rejected = StaticVerifier(False).verify(PROOF, COMMITMENTS, POK, INPUTS)
        assert not rejected and rejected.reason
        assert StaticVerifier(False).name == "reject-all"

    def test_invalid_always_has_reason(self):
        assert VerifierResult.invalid("").reason


class TestVerifierAbi:

    def test_commitment_scheme_inputs(self):
        (fn,) = verifier_abi(DEFAULT_SCHEME, 3)
        assert fn["name"] == "verifyProof"
        assert [i["type"] for i in fn["inputs"]] == [
            "uint256[8]", "uint256[2]", "uint256[2]", "uint256[3]",
        ]
        assert fn["outputs"] == []

    def test_fibonacci_scheme_omits_commitments(self):
        (fn,) = verifier_abi(FIBONACCI_SCHEME, 2, returns_bool=True)
        assert [i["type"] for i in fn["inputs"]] == ["uint256[8]", "uint256[2]"]
        assert fn["outputs"] == [{"name": "", "type": "bool"}]


class TestContractVerifier:

    def test_success_passes_all_vectors(self):
        w3 = _FakeWeb3()
        result = ContractVerifier(w3, ADDRESS).verify(PROOF, COMMITMENTS, POK, INPUTS)

        assert result
        assert w3.eth.calls == [(PROOF, COMMITMENTS, POK, INPUTS)]

    def test_revert_is_invalid(self):
        w3 = _FakeWeb3(ContractLogicError("execution reverted: ProofInvalid"))
        result = ContractVerifier(w3, ADDRESS).verify(PROOF, COMMITMENTS, POK, INPUTS)

        assert not result
        assert "ProofInvalid" in result.reason

    def test_returns_bool_false_is_invalid(self):
        w3 = _FakeWeb3(False)
        verifier = ContractVerifier(w3, ADDRESS, returns_bool=True)
        assert not verifier.verify(PROOF, COMMITMENTS, POK, INPUTS)

        w3.eth.outcome = True
        assert verifier.verify(PROOF, COMMITMENTS, POK, INPUTS)

    def test_transport_errors_propagate(self):
        w3 = _FakeWeb3(ConnectionError("node down"))
        with pytest.raises(ConnectionError):
            ContractVerifier(w3, ADDRESS).verify(PROOF, COMMITMENTS, POK, INPUTS)

    def test_fibonacci_call_omits_commitments(self):
        w3 = _FakeWeb3()
        ContractVerifier(w3, ADDRESS, FIBONACCI_SCHEME).verify(PROOF, [], [], [1, 2])
        assert w3.eth.calls == [(PROOF, [1, 2])]

    def test_contract_cached_per_input_length(self):
        w3 = _FakeWeb3()
        verifier = ContractVerifier(w3, ADDRESS, PRIVACY_POOLS_SCHEME)
        verifier.verify(PROOF, COMMITMENTS, POK, [1])
        verifier.verify(PROOF, COMMITMENTS, POK, [2])
        verifier.verify(PROOF, COMMITMENTS, POK, [1, 2])
        assert len(w3.eth.contracts) == 2

    def test_contract_cache_shared_across_threads(self):
        w3       = _FakeWeb3()
        verifier = ContractVerifier(w3, ADDRESS, PRIVACY_POOLS_SCHEME)
        barrier  = threading.Barrier(8, timeout=5)

        def call():
            barrier.wait()
            verifier.verify(PROOF, COMMITMENTS, POK, INPUTS)

        threads = [threading.Thread(target=call) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(w3.eth.contracts) == 1
        assert len(w3.eth.calls) == 8

    def test_address_is_checksummed(self):
        verifier = ContractVerifier(_FakeWeb3(), ADDRESS)
        assert verifier.address.lower() == ADDRESS
        assert verifier.name == f"contract:{verifier.address}"


class TestTimeoutVerifier:

    def test_fast_inner_passes_through(self):
        verifier = TimeoutVerifier(StaticVerifier(True), timeout_seconds=1)
        try:
            assert verifier.verify(PROOF, COMMITMENTS, POK, INPUTS)
        finally:
            verifier.shutdown()

    def test_expiry_is_invalid(self):
        release = threading.Event()

        def hang(*args):
            release.wait(5)
            return True

        verifier = TimeoutVerifier(CallableVerifier(hang, name="hang"), timeout_seconds=0.05)
        try:
            result = verifier.verify(PROOF, COMMITMENTS, POK, INPUTS)
        finally:
            release.set()
            verifier.shutdown()

        assert not result
        assert "timed out" in result.reason
        assert verifier.name == "timeout(hang)"

    def test_queued_calls_do_not_run_after_expiry(self):
        release = threading.Event()
        started = []

        def hang(*args):
            started.append(args)
            release.wait(5)
            return True

        verifier = TimeoutVerifier(CallableVerifier(hang), timeout_seconds=0.05, max_workers=1)
        try:
            results = [verifier.verify(PROOF, COMMITMENTS, POK, INPUTS) for _ in range(5)]
        finally:
            release.set()
            verifier.shutdown(wait=True)

        assert all("timed out" in r.reason for r in results)
        assert len(started) == 1

    def test_inner_exception_propagates(self):
        def boom(*args):
            raise RuntimeError("backend fault")

        verifier = TimeoutVerifier(CallableVerifier(boom), timeout_seconds=1)
        try:
            with pytest.raises(RuntimeError, match="backend fault"):
                verifier.verify(PROOF, COMMITMENTS, POK, INPUTS)
        finally:
            verifier.shutdown()

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_rejects_non_positive_timeout(self, timeout):
        with pytest.raises(ValueError):
            TimeoutVerifier(StaticVerifier(True), timeout_seconds=timeout)
