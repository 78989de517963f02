"""
Workstation provisioner — CLI entrypoint.

Usage:
    provision --help
    provision run --select shell --select rust
    provision run --all --dry-run
    provision status
    provision list --group devtools
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.engine.reporter import FORMATS
from provisioner.core.models.result import RunResult, StepStatus
from provisioner.core.models.step import DetectState
from provisioner.core.observability.logging_config import resolve_level, setup_logging

_STATUS_MARK = {
    StepStatus.ALREADY_SATISFIED: ("✓", "green"),
    StepStatus.APPLIED: ("✓", "green"),
    StepStatus.FAILED: ("✗", "red"),
    StepStatus.SKIPPED: ("⊘", "yellow"),
}

_STATE_MARK = {
    DetectState.SATISFIED: ("✓", "green"),
    DetectState.UNSATISFIED: ("✗", "red"),
    DetectState.UNKNOWN: ("?", "yellow"),
}


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--catalog",
    "-c",
    "catalog_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to provision.yml (default: $PROVISION_CATALOG or auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    catalog_path: str | None,
) -> None:
    """Workstation provisioner — idempotent, declarative machine setup."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["catalog_path"] = Path(catalog_path) if catalog_path else None

    setup_logging(level=resolve_level(debug=debug, verbose=verbose, quiet=quiet))


def _fail(message: str, as_json: bool, code: int = 2) -> None:
    if as_json:
        click.echo(json.dumps({"error": message, "exit_code": code}, indent=2))
    else:
        click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(code)


def _print_result(result: RunResult) -> None:
    mark, color = _STATUS_MARK[result.status]
    click.secho(f"   {mark} {result.step_name}", fg=color, nl=False)
    click.echo(f" — {result.status.value}", nl=False)
    if result.failed:
        click.secho(f": {result.error}", fg="red")
        if result.undo_hint:
            click.echo(f"     undo: {result.undo_hint}")
    elif result.note:
        click.echo(f" ({result.note})")
    else:
        click.echo()


# ── run ─────────────────────────────────────────────────────────────


@cli.command()
@click.option("--all", "select_all", is_flag=True, help="Run every step in the catalog.")
@click.option(
    "--select", "-s", "selectors", multiple=True, metavar="NAME|GROUP",
    help="Step or group to run (repeatable).",
)
@click.option("--dry-run", is_flag=True, help="Detect only; show what would be applied.")
@click.option(
    "--continue-on-failure",
    type=click.BOOL,
    default=None,
    help="Keep running independent steps after a failure (default: catalog setting).",
)
@click.option("--report", "report_path", type=click.Path(dir_okay=False), default=None,
              help="Also write the run report to this file.")
@click.option("--format", "report_format", type=click.Choice(FORMATS), default="text",
              show_default=True, help="Format of --report.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    select_all: bool,
    selectors: tuple[str, ...],
    dry_run: bool,
    continue_on_failure: bool | None,
    report_path: str | None,
    report_format: str,
    as_json: bool,
) -> None:
    """Provision the selected steps and their dependencies.

    Examples:

        provision run --select rust --select starship

        provision run --select devtools --dry-run

        provision run --all --continue-on-failure=false
    """
    from provisioner.core.engine.reporter import render, write_report
    from provisioner.core.use_cases.run import run_steps

    if select_all and selectors:
        _fail("Use either --all or --select, not both.", as_json)

    quiet = ctx.obj.get("quiet", False)
    inline = not as_json

    def on_result(result: RunResult) -> None:
        if not inline:
            return
        if result.failed or not quiet:
            _print_result(result)

    if inline and not quiet:
        label = "Dry run" if dry_run else "Provisioning"
        click.secho(f"\n🔧 {label}", fg="cyan", bold=True)

    outcome = run_steps(
        list(selectors),
        select_all=select_all,
        catalog_path=ctx.obj.get("catalog_path"),
        dry_run=dry_run,
        continue_on_failure=continue_on_failure,
        on_result=on_result,
    )

    if outcome.error:
        _fail(outcome.error, as_json, outcome.exit_code)

    summary = outcome.summary
    assert summary is not None  # guaranteed after error check above

    if report_path:
        try:
            write_report(summary, report_format, Path(report_path))
        except OSError as e:
            click.secho(f"⚠️  Could not write report: {e}", fg="yellow", err=True)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
        sys.exit(outcome.exit_code)

    if not quiet:
        click.echo()
        click.echo(render(summary, "text").rstrip())
        if outcome.run_log_path:
            click.echo(f"   Logged to {outcome.run_log_path}")
        click.echo()

    if summary.cancelled:
        click.secho("⊘ Run cancelled", fg="yellow", bold=True)
    elif summary.exit_code == 0:
        if not quiet:
            click.secho(f"✅ {summary.operation_id}: {summary.status}", fg="green", bold=True)
    else:
        click.secho(
            f"❌ {summary.operation_id}: {summary.failed} failed, {summary.skipped} skipped",
            fg="red", bold=True,
        )

    sys.exit(outcome.exit_code)


# ── list ────────────────────────────────────────────────────────────


@cli.command("list")
@click.option("--group", "-g", default=None, help="Only steps tagged with GROUP.")
@click.option("--long", "-l", "long_format", is_flag=True, help="Show descriptions and dependencies.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, group: str | None, long_format: bool, as_json: bool) -> None:
    """List registered steps, one per line."""
    from provisioner.core.use_cases.listing import list_steps

    result = list_steps(ctx.obj.get("catalog_path"), group=group)
    if result.error:
        _fail(result.error, as_json)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    for step in result.steps:
        if not long_format:
            click.echo(step.name)
            continue
        tags = f" [{', '.join(step.groups)}]" if step.groups else ""
        click.secho(step.name, bold=True, nl=False)
        click.echo(f"{tags}  {step.description}".rstrip())
        if step.depends_on:
            click.echo(f"    depends on: {', '.join(step.depends_on)}")


# ── status ──────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--select", "-s", "selectors", multiple=True, metavar="NAME|GROUP",
    help="Step or group to check (repeatable; default: all).",
)
@click.option("--report", "report_path", type=click.Path(dir_okay=False), default=None,
              help="Also write the status to this file.")
@click.option("--format", "report_format", type=click.Choice(FORMATS), default="text",
              show_default=True, help="Format of --report.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(
    ctx: click.Context,
    selectors: tuple[str, ...],
    report_path: str | None,
    report_format: str,
    as_json: bool,
) -> None:
    """Show which steps are already satisfied. Read-only."""
    from provisioner.core.use_cases.status import get_status

    result = get_status(list(selectors), catalog_path=ctx.obj.get("catalog_path"))
    if result.error:
        _fail(result.error, as_json)

    if report_path:
        try:
            path = Path(report_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(result.render(report_format), encoding="utf-8")
        except OSError as e:
            click.secho(f"⚠️  Could not write report: {e}", fg="yellow", err=True)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    width = max((len(s.name) for s in result.steps), default=4)
    for s in result.steps:
        mark, color = _STATE_MARK[s.state]
        click.secho(f"  {mark} ", fg=color, nl=False)
        click.echo(f"{s.name:<{width}}  {s.state.value}")

    if not ctx.obj.get("quiet", False):
        counts = result.counts
        click.echo()
        click.echo(
            f"  {counts['satisfied']} satisfied, {counts['unsatisfied']} unsatisfied, "
            f"{counts['unknown']} unknown"
        )

    sys.exit(result.exit_code)


# ── versions ────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--select", "-s", "selectors", multiple=True, metavar="NAME|GROUP",
    help="Step or group to query (repeatable; default: all).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def versions(ctx: click.Context, selectors: tuple[str, ...], as_json: bool) -> None:
    """Show installed versions of the provisioned tools."""
    from provisioner.core.services.versions import NOT_AVAILABLE
    from provisioner.core.use_cases.versions import get_versions

    result = get_versions(list(selectors), catalog_path=ctx.obj.get("catalog_path"))
    if result.error:
        _fail(result.error, as_json)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not ctx.obj.get("quiet", False):
        click.secho("Installed versions:", fg="cyan", bold=True)
    for name, version in result.versions.items():
        if version:
            click.echo(f"  {name}: {version}")
        else:
            click.echo(f"  {name}: ", nl=False)
            click.secho(NOT_AVAILABLE, fg="yellow")


# ── catalog ─────────────────────────────────────────────────────────


@cli.group()
def catalog() -> None:
    """Step catalog commands."""


@catalog.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def catalog_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml."""
    from provisioner.core.use_cases.catalog_check import check_catalog

    result = check_catalog(ctx.obj.get("catalog_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.valid:
        click.secho("✅ Catalog is valid", fg="green", bold=True)
        click.echo(f"   File:   {result.catalog_path}")
        click.echo(f"   Steps:  {result.step_count}")
        click.echo(f"   Groups: {result.group_count}")
    else:
        click.secho("❌ Catalog errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings and not ctx.obj.get("quiet", False):
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    sys.exit(result.exit_code)


# ── log ─────────────────────────────────────────────────────────────


@cli.command("log")
@click.option("-n", "count", type=click.IntRange(min=1), default=10, show_default=True,
              help="Number of entries.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def log_cmd(count: int, as_json: bool) -> None:
    """Show the most recent runs from the run log."""
    from provisioner.core.persistence.run_log import RunLogWriter

    writer = RunLogWriter()
    entries = writer.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No runs logged in {writer.path}")
        return

    color = {"ok": "green", "partial": "yellow", "failed": "red"}
    for entry in entries:
        click.echo(f"{entry.timestamp}  {entry.operation_id}  ", nl=False)
        click.secho(entry.status, fg=color.get(entry.status, "white"), nl=False)
        dry = " (dry-run)" if entry.dry_run else ""
        click.echo(f"{dry}  {len(entry.plan)} step(s): {', '.join(entry.selectors) or '--all'}")
        for outcome in entry.outcomes:
            if outcome.status == StepStatus.FAILED:
                click.secho(f"    ✗ {outcome.step}: {outcome.error}", fg="red")


# ── Register sub-command groups from provisioner/ui/cli/ ───────────

from provisioner.ui.cli.backup import backup, restore

cli.add_command(backup)
cli.add_command(restore)


if __name__ == "__main__":
    cli()
