"""
CLI command for the audit ledger.

Usage::

    provision history
    provision history -n 5 --json
    provision history --run run-20260101
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

_STATUS_COLOR = {
    "completed": "green",
    "completed_with_warnings": "yellow",
    "aborted": "red",
}


@click.command()
@click.option("-n", "limit", default=20, show_default=True, help="Number of runs to show.")
@click.option("--run", "run_id", default=None, help="Show one run by ID (or unique prefix).")
@click.option("--audit-file", type=click.Path(dir_okay=False), default=None, help="Ledger path.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def history(limit: int, run_id: str | None, audit_file: str | None, as_json: bool) -> None:
    """Show recent apply runs from the audit ledger."""
    from provisioner.core.persistence.audit import AuditWriter

    writer = AuditWriter(Path(audit_file) if audit_file else None)

    if run_id:
        entry = writer.find(run_id)
        if entry is None:
            click.secho(f"❌ No single run matches '{run_id}' in {writer.path}", fg="red", err=True)
            sys.exit(1)
        if as_json:
            click.echo(json.dumps(entry.model_dump(mode="json"), indent=2))
            return
        _show_run(entry)
        return

    entries = writer.read_recent(limit)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No runs recorded in {writer.path}")
        return

    click.secho(f"\n📜 Last {len(entries)} of {writer.entry_count()} runs", fg="cyan", bold=True)
    for entry in entries:
        applied = entry.counts.get("applied", 0)
        mode = " [dry-run]" if entry.dry_run else ""
        click.secho(f"   {entry.timestamp[:19]} ", nl=False)
        click.secho(f"{entry.status:<24}", fg=_STATUS_COLOR.get(entry.status, "white"), nl=False)
        click.echo(f" {entry.document}{mode}: {applied} applied  ({entry.run_id})")
        for label in entry.failed:
            click.secho(f"     ✗ {label}", fg="red")
        for label in entry.warned:
            click.secho(f"     ! {label}", fg="yellow")
    click.echo()


def _show_run(entry) -> None:
    click.secho(f"\n📜 {entry.run_id}", fg="cyan", bold=True)
    click.echo(f"   Document:  {entry.document}")
    click.echo(f"   Started:   {entry.timestamp}")
    click.secho(f"   Status:    {entry.status}", fg=_STATUS_COLOR.get(entry.status, "white"))
    if entry.dry_run:
        click.echo("   Mode:      dry-run")
    counts = ", ".join(f"{n} {status}" for status, n in entry.counts.items() if n)
    click.echo(f"   Outcomes:  {counts or 'none'}")
    if entry.abort_reason:
        click.secho(f"   Aborted:   {entry.abort_reason}", fg="red")
    for title, labels, color in (
        ("Failed", entry.failed, "red"),
        ("Warned", entry.warned, "yellow"),
        ("Not attempted", entry.not_attempted, None),
    ):
        if labels:
            click.secho(f"   {title}:", fg=color)
            for label in labels:
                click.echo(f"     • {label}")
    click.echo()
