"""
proofgate submit / fingerprint / is-used

Exit codes:
    0  accepted (submit) / used (is-used) / printed (fingerprint)
    1  rejected (submit) / unused (is-used)
    2  error  (bad config, unreadable files, malformed input)
"""

import sys

import click

from proofgate.core.exceptions import ProofGateError
from proofgate.core.fingerprint import ProofFingerprinter, fingerprint_hex
from proofgate.core.loader import load_proof_file, load_submission
from proofgate.core.models import DEFAULT_SCHEME, get_scheme
from proofgate.runtime.context import GatewayContext


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(2)


@click.command(name="submit")
@click.argument("proof_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("witness_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", "config_file", required=True,
              type=click.Path(exists=True, dir_okay=False),
              help="Gateway YAML config.")
@click.option("--submitter", "-s", required=True, help="Submitter identity recorded in the audit log.")
def submit_command(proof_file: str, witness_file: str, config_file: str, submitter: str) -> None:
    """
    Submit PROOF_FILE with public inputs from WITNESS_FILE.

    Prints the fingerprint on acceptance, or the rejection reason.
    """
    try:
        context    = GatewayContext.from_config(config_file)
        submission = load_submission(proof_file, witness_file)
        result     = context.gateway.submit_proof(submission, submitter)
    except ProofGateError as exc:
        _fail(str(exc))

    if result:
        click.echo(f"accepted {result.fingerprint_hex}")
        sys.exit(0)

    click.echo(f"rejected [{result.reason.value}] {result.detail}")
    sys.exit(1)


@click.command(name="fingerprint")
@click.argument("proof_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--scheme", default=DEFAULT_SCHEME.name, show_default=True,
              help="Proof scheme that fixes the vector arities.")
def fingerprint_command(proof_file: str, scheme: str) -> None:
    """Print the fingerprint of PROOF_FILE. Public inputs do not affect it."""
    try:
        fingerprinter = ProofFingerprinter(get_scheme(scheme))
        submission    = load_proof_file(proof_file)
        digest        = fingerprinter(submission.proof, submission.commitments, submission.pok)
    except ProofGateError as exc:
        _fail(str(exc))

    click.echo(fingerprint_hex(digest))


@click.command(name="is-used")
@click.argument("fingerprint")
@click.option("--config", "-c", "config_file", required=True,
              type=click.Path(exists=True, dir_okay=False),
              help="Gateway YAML config.")
def is_used_command(fingerprint: str, config_file: str) -> None:
    """Print true/false: has FINGERPRINT been consumed?"""
    try:
        used = GatewayContext.from_config(config_file).gateway.is_used(fingerprint)
    except ProofGateError as exc:
        _fail(str(exc))

    click.echo("true" if used else "false")
    sys.exit(0 if used else 1)
