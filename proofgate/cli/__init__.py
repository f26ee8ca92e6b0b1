"""
proofgate/cli/__init__.py

ProofGate CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    proofgate = "proofgate.cli:cli"

Adding a new command:
    1. Create proofgate/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging

import click

from proofgate.cli.submit import fingerprint_command, is_used_command, submit_command
from proofgate.cli.verify import verify_command


@click.group()
@click.version_option(package_name="proofgate")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log gateway decisions to stderr.")
def cli(verbose: bool) -> None:
    """
    ProofGate — replay-protected proof submission gateway.

    \b
    Commands:
      submit        Submit a proof + witness through the gateway.
      fingerprint   Print the replay-protection fingerprint of a proof.
      is-used       Check whether a fingerprint has been consumed.
      verify        Verify an audit log — chain, signatures, schema.

    \b
    Quick start:
      proofgate submit proof.json witness.json -c gateway.yaml -s alice
      proofgate fingerprint proof.json --scheme privacy-pools
      proofgate verify .proofgate/audit.jsonl --format json
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


cli.add_command(submit_command)
cli.add_command(fingerprint_command)
cli.add_command(is_used_command)
cli.add_command(verify_command)
