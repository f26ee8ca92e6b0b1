"""
proofgate/cli/verify.py

proofgate verify — Audit Log Verification CLI

Usage:
    proofgate verify <audit.jsonl>                    Human output (default)
    proofgate verify <audit.jsonl> --format json      Machine-readable JSON
    proofgate verify <audit.jsonl> --quiet            Exit code only
    proofgate verify <audit.jsonl> --no-color         Disable ANSI

Exit codes:
    0  Audit log fully valid (schema + sequence + chain + signatures + single accept)
    1  Audit log has violations
    2  Error (file missing, malformed JSON)
"""

import json
import sys
from pathlib import Path

import click

from proofgate.ledger.replay import AuditReplay, AuditSummary


class _Color:
    """Minimal ANSI color wrapper. Auto-disables when not a TTY or --no-color is passed."""
    _on: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls._on = enabled and sys.stdout.isatty()

    @classmethod
    def green(cls, s: str) -> str:
        return f"\033[32m{s}\033[0m" if cls._on else s

    @classmethod
    def red(cls, s: str) -> str:
        return f"\033[31m{s}\033[0m" if cls._on else s

    @classmethod
    def dim(cls, s: str) -> str:
        return f"\033[2m{s}\033[0m" if cls._on else s


def _row(label: str, ok: bool, value: str) -> str:
    mark = _Color.green("OK  ") if ok else _Color.red("FAIL")
    return f"  {_Color.dim(f'{label:<16}')}  {mark}  {value}"


def _emit_error(message: str, fmt: str, quiet: bool) -> None:
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({"valid": False, "error": message}))
    else:
        click.echo(_Color.red(f"Error: {message}"), err=True)


def _output_human(summary: AuditSummary, path: Path) -> None:
    by_kind = {}
    for v in summary.violations:
        by_kind.setdefault(v.violation_type, 0)
        by_kind[v.violation_type] += 1

    click.echo("")
    click.echo(f"  ProofGate audit log: {path}")
    click.echo("")
    click.echo(_row("Records", True, str(summary.total_records)))
    click.echo(_row(
        "Schema", "schema" not in by_kind,
        f"{by_kind.get('schema', 0)} violations",
    ))
    click.echo(_row(
        "Chain", not ({"chain_break", "sequence_gap"} & set(by_kind)),
        f"{by_kind.get('chain_break', 0)} breaks, {by_kind.get('sequence_gap', 0)} gaps",
    ))
    click.echo(_row(
        "Signatures", summary.invalid_signatures == 0,
        f"{summary.valid_signatures} valid, {summary.invalid_signatures} invalid",
    ))
    click.echo(_row(
        "Replay", "double_accept" not in by_kind,
        f"{summary.accepted_fingerprints} distinct accepted fingerprints",
    ))
    for record_type, count in sorted(summary.record_type_counts.items()):
        click.echo(f"  {_Color.dim(f'{record_type:<16}')}        {count}")

    if summary.violations:
        click.echo("")
        for v in summary.violations[:20]:
            click.echo(f"  #{str(v.at_sequence):<6} {v.violation_type:<18} {v.detail}")
        if len(summary.violations) > 20:
            click.echo(f"  ... {len(summary.violations) - 20} more")

    click.echo("")
    verdict = _Color.green("VALID") if summary.chain_valid else _Color.red("INVALID")
    click.echo(f"  Result: {verdict}")
    click.echo("")


@click.command(name="verify")
@click.argument("audit_log", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format.",
)
@click.option("--quiet", is_flag=True, default=False,
              help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).")
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def verify_command(audit_log: str, fmt: str, quiet: bool, no_color: bool) -> None:
    """
    Verify an audit log: schema, sequence, chain, signatures, single accept.

    AUDIT_LOG is the path to a .jsonl audit log written by the gateway.
    """
    _Color.configure(not no_color)
    fmt  = fmt.lower()
    path = Path(audit_log)

    replay = AuditReplay()
    try:
        replay.load(path)
    except (FileNotFoundError, ValueError) as e:
        _emit_error(str(e), fmt, quiet)
        sys.exit(2)

    summary = replay.verify()
    valid   = summary.chain_valid

    if quiet:
        sys.exit(0 if valid else 1)

    if fmt == "json":
        report = summary.to_dict()
        report["valid"] = valid
        report["path"]  = str(path)
        click.echo(json.dumps(report, indent=2))
    else:
        _output_human(summary, path)

    sys.exit(0 if valid else 1)
