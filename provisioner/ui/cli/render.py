"""
Human-readable rendering of plans and run reports.

Thin presentation helpers shared by ``plan`` and ``apply``; the JSON
forms come from each model's ``to_dict``.
"""

from __future__ import annotations

import click

from provisioner.core.models.outcome import ActionOutcome, OutcomeStatus
from provisioner.core.models.plan import RunPlan
from provisioner.core.models.report import RunReport, RunStatus
from provisioner.core.models.resource import ResourceSpec

_PROBE_STYLE = {
    "satisfied": ("=", "green"),
    "unsatisfied": ("+", "yellow"),
    "unknown": ("?", "magenta"),
}

OUTCOME_STYLE = {
    OutcomeStatus.APPLIED: ("✓", "green"),
    OutcomeStatus.SKIPPED_ALREADY_SATISFIED: ("=", "bright_black"),
    OutcomeStatus.SKIPPED_UNSUPPORTED: ("⊘", "yellow"),
    OutcomeStatus.WARNED: ("!", "yellow"),
    OutcomeStatus.FAILED: ("✗", "red"),
}

_RUN_STYLE = {
    RunStatus.COMPLETED: ("✅", "green"),
    RunStatus.COMPLETED_WITH_WARNINGS: ("⚠️ ", "yellow"),
    RunStatus.ABORTED: ("❌", "red"),
}


def section_heading(name: str) -> None:
    click.secho(f"\n   ▸ {name}", fg="cyan", bold=True)


def render_plan(plan: RunPlan) -> None:
    section = None
    for entry in plan:
        if entry.spec.section != section:
            section = entry.spec.section
            if section:
                section_heading(section)
        marker, color = _PROBE_STYLE[entry.probe.status]
        click.secho(f"   {marker} {entry.spec.label}", fg=color, nl=False)
        click.echo(f"  {entry.probe.reason}" if entry.probe.reason else "")

    click.echo()
    click.echo(
        f"   {len(plan.pending)} to apply, "
        f"{len(plan) - len(plan.pending)} satisfied, "
        f"{len(plan.unknown)} unknown"
    )


def render_outcome(spec: ResourceSpec, outcome: ActionOutcome, verbose: bool = False) -> None:
    marker, color = OUTCOME_STYLE[outcome.status]
    click.secho(f"   {marker} {spec.label}", fg=color, nl=False)
    timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
    message = f"  {outcome.message}" if outcome.message else ""
    click.echo(f"{timing}{message}")
    if verbose:
        for command in outcome.commands:
            click.echo(f"     │ {command}")


def render_summary(report: RunReport) -> None:
    marker, color = _RUN_STYLE[report.status]
    click.echo()
    click.secho(
        f"   {marker} {report.status.value}: "
        f"{report.applied} applied, {report.skipped} skipped, "
        f"{report.warned} warned, {report.failed} failed",
        fg=color,
        bold=True,
    )
    if report.abort_reason:
        click.secho(f"   Aborted: {report.abort_reason}", fg="red")
    if report.not_attempted:
        click.echo("   Not attempted:")
        for label in report.not_attempted:
            click.echo(f"     • {label}")
    warned = report.labels_with(OutcomeStatus.WARNED)
    if warned:
        click.secho("   Needs attention:", fg="yellow")
        for label in warned:
            click.echo(f"     • {label}")
