"""
Load proof submissions from the JSON artifacts a prover emits.

    proof file   : {"proof": [8], "commitments": [2], "commitmentPok": [2]}
    witness file : [public inputs]

Values may be decimal strings, 0x-hex strings or JSON integers.
"""

import json
from pathlib import Path
from typing import Any, List, Union

from proofgate.core.exceptions import MalformedInputError
from proofgate.core.models import ProofSubmission


def parse_element(value: Any, label: str = "value") -> int:
    """Convert one JSON field element into an int."""
    if isinstance(value, bool):
        raise MalformedInputError(f"{label} must be a number, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text[:2].lower() == "0x":
                return int(text, 16)
            return int(text, 10)
        except ValueError:
            raise MalformedInputError(
                f"{label} is not an integer string", {"value": value}
            ) from None
    raise MalformedInputError(
        f"{label} must be an integer or integer string",
        {"type": type(value).__name__},
    )


def parse_vector(values: Any, label: str) -> List[int]:
    if not isinstance(values, list):
        raise MalformedInputError(f"{label} must be a JSON array")
    return [parse_element(v, f"{label}[{i}]") for i, v in enumerate(values)]


def _read_json(path: Union[str, Path]) -> Any:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise MalformedInputError(f"File not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"Invalid JSON in {path}: {exc}") from exc


def load_proof(proof_data: dict, public_inputs: Any) -> ProofSubmission:
    """Build a ProofSubmission from already-parsed JSON objects."""
    if not isinstance(proof_data, dict) or "proof" not in proof_data:
        raise MalformedInputError("proof data must be an object with a 'proof' array")

    return ProofSubmission.of(
        proof=         parse_vector(proof_data["proof"], "proof"),
        commitments=   parse_vector(proof_data.get("commitments", []), "commitments"),
        pok=           parse_vector(proof_data.get("commitmentPok", []), "commitmentPok"),
        public_inputs= parse_vector(public_inputs, "public_inputs"),
    )


def load_submission(
    proof_path:   Union[str, Path],
    witness_path: Union[str, Path],
) -> ProofSubmission:
    """Read a proof file and a witness file into a ProofSubmission."""
    return load_proof(_read_json(proof_path), _read_json(witness_path))


def load_proof_file(proof_path: Union[str, Path]) -> ProofSubmission:
    """Read only the proof file. public_inputs is left empty."""
    return load_proof(_read_json(proof_path), [])
