"""
proofgate/core/fingerprint.py

Proof fingerprints.

    fingerprint = keccak256(abi.encode(uint256[P] proof,
                                       uint256[C] commitments,
                                       uint256[K] pok))

Byte-for-byte identical to the digest a Solidity consumer computes with
keccak256(abi.encode(proof, commitments, commitmentPok)), so a fingerprint
reported here can be looked up on-chain and vice versa.

The public-input vector is NOT part of the digest. Two submissions with the
same proof, commitments and pok share a fingerprint whatever their public
inputs are, and the second one is refused as already used.

Zero-arity arrays (schemes without commitments) are left out of the
encoding entirely.
"""

from typing import List, Sequence, Tuple

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from web3 import Web3

from proofgate.core.exceptions import MalformedInputError
from proofgate.core.models import DEFAULT_SCHEME, FINGERPRINT_BYTES, ProofScheme


def _abi_layout(
    proof:       Sequence[int],
    commitments: Sequence[int],
    pok:         Sequence[int],
) -> Tuple[List[str], List[List[int]]]:
    types:  List[str]       = []
    values: List[List[int]] = []
    for vector in (proof, commitments, pok):
        if len(vector) == 0:
            continue
        types.append(f"uint256[{len(vector)}]")
        values.append(list(vector))
    return types, values


def fingerprint(
    proof:       Sequence[int],
    commitments: Sequence[int] = (),
    pok:         Sequence[int] = (),
) -> bytes:
    """
    Deterministic 32-byte digest of (proof, commitments, pok).

    Pure: reads nothing but its arguments. Does not check field bounds or
    scheme arity; eth_abi raises EncodingError for values outside uint256.
    """
    types, values = _abi_layout(proof, commitments, pok)
    return bytes(Web3.keccak(encode(types, values)))


def fingerprint_hex(digest: bytes) -> str:
    """0x-prefixed lowercase hex form used in logs, audit records and the CLI."""
    return "0x" + bytes(digest).hex()


def parse_fingerprint(value) -> bytes:
    """
    Accept a 32-byte digest as bytes, "0x…" hex, or bare hex.
    Raises MalformedInputError for anything else.
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value[:2].lower() == "0x" else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise MalformedInputError(
                "fingerprint is not valid hex", {"value": value}
            ) from None
    else:
        raise MalformedInputError(
            "fingerprint must be bytes or a hex string",
            {"type": type(value).__name__},
        )

    if len(raw) != FINGERPRINT_BYTES:
        raise MalformedInputError(
            f"fingerprint must be {FINGERPRINT_BYTES} bytes", {"got": len(raw)}
        )
    return raw


class ProofFingerprinter:
    """Fingerprints submissions for one scheme, enforcing its fixed arities."""

    def __init__(self, scheme: ProofScheme = DEFAULT_SCHEME):
        self.scheme = scheme

    def __call__(
        self,
        proof:       Sequence[int],
        commitments: Sequence[int] = (),
        pok:         Sequence[int] = (),
    ) -> bytes:
        for label, vector, arity in (
            ("proof",       proof,       self.scheme.proof_arity),
            ("commitments", commitments, self.scheme.commitment_arity),
            ("pok",         pok,         self.scheme.pok_arity),
        ):
            if len(vector) != arity:
                raise MalformedInputError(
                    f"{label} must have exactly {arity} elements for scheme "
                    f"'{self.scheme.name}'",
                    {"got": len(vector)},
                )
        try:
            return fingerprint(proof, commitments, pok)
        except EncodingError as exc:
            raise MalformedInputError(
                "proof data cannot be ABI-encoded as uint256", {"error": str(exc)}
            ) from exc

    def __repr__(self) -> str:
        return f"ProofFingerprinter(scheme={self.scheme.name!r})"
