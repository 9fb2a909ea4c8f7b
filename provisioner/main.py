"""
Workstation provisioner — CLI entrypoint.

Usage:
    provision --help
    provision check
    provision plan
    provision apply --dry-run
"""

from __future__ import annotations

import json
import sys
import threading
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import resolve_level, setup_logging
from provisioner.ui.cli.history import history

EXIT_CONFIG_ERROR = 1
EXIT_ABORTED = 2


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to workstation.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Bring a Fedora workstation to the state its document declares."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    if debug:
        flag_level = "DEBUG"
    elif verbose:
        flag_level = "INFO"
    elif quiet:
        flag_level = "ERROR"
    else:
        flag_level = None

    setup_logging(level=resolve_level(flag_level))


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """Validate the desired-state document without probing."""
    from provisioner.core.use_cases.check import check_document

    result = check_document(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else EXIT_CONFIG_ERROR)

    if result.valid:
        session = result.session
        assert session is not None  # set whenever valid
        click.secho("✅ Document is valid", fg="green", bold=True)
        click.echo(f"   Name: {session.document.name}")
        click.echo(f"   File: {session.config_path}")
        click.echo(f"   Sections: {len(session.document.sections)}")
        click.echo(f"   Resources: {len(session.specs)}")
    else:
        click.secho("❌ Document errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(EXIT_CONFIG_ERROR)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool) -> None:
    """Probe every resource and show what apply would change."""
    from provisioner.core.use_cases.plan import plan_document
    from provisioner.ui.cli.render import render_plan

    result = plan_document(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_CONFIG_ERROR if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(EXIT_CONFIG_ERROR)

    assert result.session is not None and result.plan is not None
    click.secho(f"\n🔍 Plan: {result.session.document.name}", fg="cyan", bold=True)
    render_plan(result.plan)
    click.echo()


@cli.command()
@click.option("--dry-run", is_flag=True, help="Log changing commands instead of running them.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--interactive", "-i", is_flag=True,
    help="Confirm each section and continue only on request after a warning.",
)
@click.option(
    "--audit-file", type=click.Path(dir_okay=False), default=None,
    help="Audit ledger path (default: $PROVISION_AUDIT_FILE or XDG state dir).",
)
@click.option("--audit-dry-run", is_flag=True, help="Record dry runs in the audit ledger too.")
@click.pass_context
def apply(
    ctx: click.Context,
    dry_run: bool,
    as_json: bool,
    interactive: bool,
    audit_file: str | None,
    audit_dry_run: bool,
) -> None:
    """Reconcile the workstation with its document.

    Examples:

        provision apply --dry-run

        provision apply --interactive

        provision -c ~/dotfiles/workstation.yml apply --json
    """
    from provisioner.core.use_cases.apply import apply_document
    from provisioner.ui.cli.interactive import InteractiveObserver, ProgressObserver
    from provisioner.ui.cli.render import render_summary

    if interactive and as_json:
        raise click.UsageError("--interactive cannot be combined with --json")

    cancel = threading.Event()
    verbose = bool(ctx.obj.get("verbose"))
    observer = None
    if interactive:
        observer = InteractiveObserver(cancel, verbose=verbose)
    elif not as_json:
        observer = ProgressObserver(verbose=verbose)

    if not as_json:
        mode_label = "[dry-run] " if dry_run else ""
        click.secho(f"\n⚡ {mode_label}apply", fg="cyan", bold=True)

    result = apply_document(
        config_path=ctx.obj.get("config_path"),
        dry_run=dry_run,
        observer=observer,
        cancel=cancel,
        audit_path=Path(audit_file) if audit_file else None,
        audit_dry_run=audit_dry_run,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.error:
        click.secho(f"❌ {result.error}", fg="red")
    else:
        assert result.report is not None
        render_summary(result.report)
        if result.audit_path:
            click.secho(f"   📝 Recorded in {result.audit_path}", fg="cyan")
        click.echo()

    if result.error:
        sys.exit(EXIT_CONFIG_ERROR)
    if result.aborted:
        sys.exit(EXIT_ABORTED)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def adapters(as_json: bool) -> None:
    """Show which backends are installed on this machine."""
    from provisioner.adapters.registry import default_registry
    from provisioner.adapters.shell.command import CommandExecutor

    status = default_registry(CommandExecutor(dry_run=True)).adapter_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    click.secho("\n🔌 Adapters", fg="cyan", bold=True)
    for name, info in status.items():
        if info["available"]:
            click.secho(f"   ✓ {name:<18}", fg="green", nl=False)
        else:
            click.secho(f"   ✗ {name:<18}", fg="red", nl=False)
        click.echo(f"({info['tool']})")
    click.echo()


cli.add_command(history)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
