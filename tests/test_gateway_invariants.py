"""
tests/test_gateway_invariants.py

Gateway laws. If any of these fail, the gateway is broken, not the test.

  REPLAY
    GW-01  A valid proof is accepted once and its fingerprint becomes used
    GW-02  An identical resubmission is rejected as ALREADY_USED
    GW-03  ALREADY_USED does not call the verifier again
    GW-04  Same proof with different public inputs is ALREADY_USED

  ROLLBACK
    GW-05  Verifier rejection leaves is_used False and writes no audit record
    GW-06  A rejected proof may be resubmitted and accepted later
    GW-07  Verifier exceptions are reported as VERIFICATION_FAILED, not raised

  INPUT
    GW-08  Wrong arity, out-of-field values and non-ints are MALFORMED_INPUT
    GW-09  Malformed input never reaches the verifier or the guard

  AUDIT
    GW-10  Acceptance writes exactly one signed record {fingerprint, submitter, timestamp}
    GW-11  audit_rejections=True records rejections without touching the guard

  QUERY
    GW-12  is_used(f) is True iff some submit with fingerprint f was accepted
"""

import pytest

from proofgate.core.exceptions import (
    ALREADY_USED_MESSAGE,
    AlreadyUsedError,
    MalformedInputError,
    RejectionReason,
    VerificationFailedError,
)
from proofgate.core.fingerprint import fingerprint, fingerprint_hex
from proofgate.core.models import (
    BN254_BASE_MODULUS,
    BN254_SCALAR_MODULUS,
    PRIVACY_POOLS_SCHEME,
    ProofSubmission,
    RecordType,
)
from proofgate.gateway.engine import VerificationGateway
from proofgate.verification.backends import CallableVerifier

from conftest import COMMITMENTS, INPUTS, POK, PROOF, RecordingVerifier, make_proof


class TestReplayProtection:

    def test_GW01_valid_proof_accepted(self, gateway):
        result = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")

        assert result
        assert result.accepted
        assert result.fingerprint == fingerprint(PROOF, COMMITMENTS, POK)
        assert gateway.is_used(result.fingerprint)

    def test_GW02_identical_resubmission_rejected(self, gateway):
        assert gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")

        second = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "bob")

        assert not second
        assert second.reason is RejectionReason.ALREADY_USED
        assert second.detail == ALREADY_USED_MESSAGE == "Proof already used"

    def test_GW03_replay_does_not_reverify(self, gateway, verifier):
        gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        gateway.submit(PROOF, COMMITMENTS, POK, [43], "alice")

        assert verifier.calls == 1

    def test_GW04_public_input_blindness(self, gateway):
        first  = gateway.submit(PROOF, COMMITMENTS, POK, [42], "alice")
        second = gateway.submit(PROOF, COMMITMENTS, POK, [43], "alice")

        assert first.accepted
        assert second.reason is RejectionReason.ALREADY_USED
        assert second.fingerprint == first.fingerprint


class TestAtomicRollback:

    def test_GW05_rejection_leaves_no_state(self, gateway, audit_log):
        result = gateway.submit(PROOF, COMMITMENTS, POK, [13], "alice")

        assert result.reason is RejectionReason.VERIFICATION_FAILED
        assert result.detail == "pairing check failed"
        assert not gateway.is_used(fingerprint(PROOF, COMMITMENTS, POK))
        assert len(audit_log) == 0
        assert len(gateway.guard) == 0

    def test_GW06_rejected_proof_can_succeed_later(self, gateway):
        assert not gateway.submit(PROOF, COMMITMENTS, POK, [13], "alice")
        assert gateway.submit(PROOF, COMMITMENTS, POK, [42], "alice")

    def test_GW07_verifier_exception_is_a_rejection(self, guard, audit_log):
        def boom(*args):
            raise ConnectionError("rpc unreachable")

        gateway = VerificationGateway(CallableVerifier(boom), guard, audit_log)
        result  = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")

        assert result.reason is RejectionReason.VERIFICATION_FAILED
        assert "rpc unreachable" in result.detail
        assert len(guard) == 0

        # gateway stays available
        gateway.verifier = RecordingVerifier()
        assert gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")

    def test_bool_returning_verifier(self, guard):
        gateway = VerificationGateway(CallableVerifier(lambda *a: False, name="stub"), guard)
        result  = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        assert result.reason is RejectionReason.VERIFICATION_FAILED
        assert "stub" in result.detail


class TestMalformedInput:

    @pytest.mark.parametrize("proof,commitments,pok,inputs", [
        (PROOF[:7], COMMITMENTS, POK, INPUTS),
        (PROOF + [9], COMMITMENTS, POK, INPUTS),
        (PROOF, [9], POK, INPUTS),
        (PROOF, COMMITMENTS, [11, 12, 13], INPUTS),
        (PROOF, COMMITMENTS, POK, []),
        ([BN254_BASE_MODULUS] + PROOF[1:], COMMITMENTS, POK, INPUTS),
        ([-1] + PROOF[1:], COMMITMENTS, POK, INPUTS),
        (PROOF, COMMITMENTS, POK, [BN254_SCALAR_MODULUS]),
        (["1"] + PROOF[1:], COMMITMENTS, POK, INPUTS),
        ([True] + PROOF[1:], COMMITMENTS, POK, INPUTS),
        ("12345678", COMMITMENTS, POK, INPUTS),
    ])
    def test_GW08_malformed_inputs(self, gateway, proof, commitments, pok, inputs):
        result = gateway.submit(proof, commitments, pok, inputs, "alice")

        assert not result
        assert result.reason is RejectionReason.MALFORMED_INPUT
        assert result.fingerprint is None

    def test_GW09_malformed_input_touches_nothing(self, gateway, verifier, audit_log):
        gateway.audit_rejections = True
        gateway.submit(PROOF[:7], COMMITMENTS, POK, INPUTS, "alice")

        assert verifier.calls == 0
        assert len(gateway.guard) == 0
        assert len(audit_log) == 0

    def test_empty_submitter_is_malformed(self, gateway):
        result = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "")
        assert result.reason is RejectionReason.MALFORMED_INPUT

    def test_scheme_public_input_length_enforced(self, verifier):
        gateway = VerificationGateway(verifier, scheme=PRIVACY_POOLS_SCHEME)

        short = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        full  = gateway.submit(PROOF, COMMITMENTS, POK, [7] * 1747, "alice")

        assert short.reason is RejectionReason.MALFORMED_INPUT
        assert full.accepted

    def test_base_field_bound_differs_from_scalar_bound(self, gateway):
        # Valid as a curve coordinate, too large as a public input.
        value = BN254_SCALAR_MODULUS + 1
        assert value < BN254_BASE_MODULUS

        ok  = gateway.submit([value] + PROOF[1:], COMMITMENTS, POK, INPUTS, "alice")
        bad = gateway.submit(PROOF, COMMITMENTS, POK, [value], "alice")

        assert ok.accepted
        assert bad.reason is RejectionReason.MALFORMED_INPUT


class TestAudit:

    def test_GW10_acceptance_record(self, gateway, audit_log, key):
        result  = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        records = audit_log.records()

        assert len(records) == 1
        env = records[0]
        assert env.record_type == RecordType.ACCEPTED
        assert env.payload == {
            "fingerprint": fingerprint_hex(result.fingerprint),
            "submitter":   "alice",
            "outcome":     "accepted",
        }
        assert env.timestamp.endswith("Z")
        assert env.signer_public_key == key.public_key_hex
        assert env.verify_signature()
        assert audit_log.verify_chain()

    def test_replay_writes_no_record_by_default(self, gateway, audit_log):
        gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "bob")
        assert len(audit_log) == 1

    def test_GW11_rejection_auditing(self, verifier, guard, audit_log):
        gateway = VerificationGateway(verifier, guard, audit_log, audit_rejections=True)

        gateway.submit(PROOF, COMMITMENTS, POK, [13], "mallory")
        gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "bob")

        kinds = [(r.record_type, r.payload.get("reason")) for r in audit_log.records()]
        assert kinds == [
            (RecordType.REJECTED, "verification_failed"),
            (RecordType.ACCEPTED, None),
            (RecordType.REJECTED, "already_used"),
        ]
        assert len(guard) == 1
        assert audit_log.verify_chain()


class TestQueries:

    def test_GW12_is_used_tracks_acceptances(self, gateway):
        accepted_fp = gateway.submit(PROOF, COMMITMENTS, POK, INPUTS, "alice").fingerprint
        rejected_fp = fingerprint(*make_proof(2))
        gateway.submit(*make_proof(2), [13], "alice")

        assert gateway.is_used(accepted_fp)
        assert gateway.is_used(fingerprint_hex(accepted_fp))
        assert not gateway.is_used(rejected_fp)
        assert not gateway.is_used(fingerprint(*make_proof(3)))

    def test_is_used_rejects_malformed_fingerprint(self, gateway):
        with pytest.raises(MalformedInputError):
            gateway.is_used("0xdead")

    def test_submit_or_raise(self, gateway):
        fp = gateway.submit_or_raise(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        assert fp == fingerprint(PROOF, COMMITMENTS, POK)

        with pytest.raises(AlreadyUsedError, match="Proof already used"):
            gateway.submit_or_raise(PROOF, COMMITMENTS, POK, INPUTS, "alice")
        with pytest.raises(VerificationFailedError):
            gateway.submit_or_raise(*make_proof(5), [13], "alice")
        with pytest.raises(MalformedInputError):
            gateway.submit_or_raise(PROOF[:3], COMMITMENTS, POK, INPUTS, "alice")

    def test_submit_proof_and_stats(self, gateway):
        submission = ProofSubmission.of(PROOF, COMMITMENTS, POK, INPUTS)
        assert gateway.submit_proof(submission, "alice")
        gateway.submit_proof(submission, "alice")

        stats = gateway.get_stats()
        assert stats["used_proofs"] == 1
        assert stats["outcomes"]["accepted"] == 1
        assert stats["outcomes"]["already_used"] == 1
