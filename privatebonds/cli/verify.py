"""
privatebonds/cli/verify.py

privatebonds verify: audit a ledger's public event log.

Walks the JSONL file once and reports sequence gaps, broken causal
hash links, bad sequencer signatures and unknown event types. Needs
nothing but the file.

    privatebonds verify bond-events.jsonl
    privatebonds verify bond-events.jsonl --format json
    privatebonds verify bond-events.jsonl --quiet && echo clean

Exit status is 0 for a clean log, 1 when violations were found and 2
when the file could not be read at all.
"""

import json
import sys
from pathlib import Path

import click

from privatebonds.core.events import VerificationReport, load_envelopes, verify_envelopes


EXIT_VALID   = 0
EXIT_INVALID = 1
EXIT_ERROR   = 2

RULE = "─" * 60


@click.command(name="verify")
@click.argument("events", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(["human", "json"], case_sensitive=False),
              default="human", show_default=True,
              help="human for terminals, json for CI pipelines.")
@click.option("--quiet", is_flag=True, help="Print nothing; rely on the exit status.")
@click.option("--no-color", is_flag=True, help="Never emit ANSI colors.")
def verify_command(events: Path, fmt: str, quiet: bool, no_color: bool) -> None:
    """Check sequence, hash chain and signatures of EVENTS (a .jsonl log)."""
    color = False if no_color else None

    try:
        envelopes = load_envelopes(events)
    except (FileNotFoundError, ValueError) as exc:
        if not quiet:
            _report_failure(str(exc), fmt, color)
        sys.exit(EXIT_ERROR)

    report = verify_envelopes(envelopes)
    status = EXIT_VALID if report.valid else EXIT_INVALID

    if quiet:
        sys.exit(status)
    if fmt == "json":
        body = dict(report.to_dict(), events_path=str(events))
        click.echo(json.dumps({"privatebonds_verify": body}, indent=2))
    else:
        _print_report(report, events, color)
    sys.exit(status)


def _field(label: str, value: str, color) -> None:
    click.echo(f"  {click.style(f'{label:<14}', dim=True)}  {value}", color=color)


def _print_report(report: VerificationReport, path: Path, color) -> None:
    click.echo()
    _field("Event log", str(path), color)
    _field("Events", f"{report.total_events:,}  ({report.signed:,} signed)", color)
    if report.by_type:
        counts = sorted(report.by_type.items())
        _field("Types", "  ".join(f"{name}: {n:,}" for name, n in counts), color)
    if report.head_hash:
        _field("Head", report.head_hash, color)
    click.echo()

    if not report.violations:
        click.secho("  VALID  ·  0 violations", fg="green", color=color)
        click.echo()
        return

    click.echo(f"  {RULE}")
    for v in report.violations:
        seq = click.style(f"{v.sequence:>4}", fg="red")
        click.echo(f"  {seq}  {v.kind:<10}  {v.detail}", color=color)
    click.echo(f"  {RULE}")
    click.secho(f"  INVALID  ·  {len(report.violations)} violation(s)", fg="red", color=color)
    click.echo()


def _report_failure(message: str, fmt: str, color) -> None:
    if fmt == "json":
        click.echo(json.dumps({"privatebonds_verify": {"error": message, "valid": False}}))
    else:
        click.secho(f"\n  ERROR: {message}\n", fg="red", err=True, color=color)
