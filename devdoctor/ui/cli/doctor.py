"""
CLI commands for the doctor.

Thin wrappers over ``devdoctor.core.use_cases.doctor``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from devdoctor.core.errors import ConfigError, DevDoctorError
from devdoctor.core.models.outcome import ActionOutcome
from devdoctor.core.models.result import GroupResult, GroupStatus, RunResult

# Process exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2

_OUTPUT_TAIL = 10


def _load_config(ctx: click.Context):
    from devdoctor.core.config.loader import discover_config

    return discover_config(ctx.obj["working_dir"], ctx.obj.get("config_dirs"))


@click.group("doctor")
def doctor() -> None:
    """Doctor — check the environment and fix what's broken."""


# ── Run ─────────────────────────────────────────────────────────


@doctor.command("run")
@click.option("--only", "only_groups", multiple=True, help="Run only these groups (and what they need).")
@click.option("--fix/--no-fix", "run_fix", default=True, help="Run fixes for failing checks.")
@click.option("--ci", "ci_mode", is_flag=True, help="Non-interactive: deny every prompt.")
@click.option("--no-cache", is_flag=True, help="Ignore and don't update the check cache.")
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the check cache.",
)
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Groups to run in parallel.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    only_groups: tuple[str, ...],
    run_fix: bool,
    ci_mode: bool,
    no_cache: bool,
    cache_dir: Path | None,
    jobs: int | None,
    as_json: bool,
) -> None:
    """Run doctor checks and fixes.

    Examples:

        devdoctor doctor run

        devdoctor doctor run --only node --no-fix

        devdoctor doctor run --ci --json
    """
    from devdoctor.core.interaction import DenyAll, InteractiveConfirm
    from devdoctor.core.observability.progress import ConsoleProgress, SilentProgress
    from devdoctor.core.use_cases.doctor import DoctorRunOptions, run_doctor

    options = DoctorRunOptions(
        only_groups=list(only_groups),
        run_fix=run_fix,
        ci_mode=ci_mode,
        no_cache=no_cache,
        cache_dir=cache_dir,
        max_workers=jobs,
    )
    if ci_mode or not sys.stdin.isatty():
        interaction = DenyAll(echo=not as_json)
    else:
        interaction = InteractiveConfirm()
    quiet = ctx.obj.get("quiet", False)
    progress = SilentProgress() if as_json or quiet else ConsoleProgress(verbose=ctx.obj.get("verbose", False))

    try:
        config = _load_config(ctx)
        result = run_doctor(config, options, interaction=interaction, progress=progress)
    except ConfigError as e:
        click.secho(f"❌ Configuration error: {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except DevDoctorError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_FAILED)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_OK if result.success else EXIT_FAILED)

    _print_run(result, quiet=quiet)
    if not result.success:
        sys.exit(EXIT_FAILED)


def _print_run(result: RunResult, quiet: bool) -> None:
    if not quiet:
        for group_result in result.group_results:
            _print_group(group_result)

    click.echo()
    if result.halted:
        click.secho("⛔ Run halted by a fatal error", fg="red", bold=True)
    if result.success:
        click.secho(f"✅ {result.summary()}", fg="green", bold=True)
    else:
        click.secho(f"❌ {result.summary()}", fg="red", bold=True)
        for name in sorted(result.failed):
            click.echo(f"   • {name}")


def _print_group(result: GroupResult) -> None:
    if result.status == GroupStatus.SKIPPED:
        return
    if result.error:
        click.secho(f"\n✗ {result.group}: {result.error}", fg="red")
    for outcome in result.failed_actions:
        _print_failed_action(outcome)
    for detail in result.extra_details:
        click.secho(f"\n   {result.group} — {detail.name}:", fg="cyan")
        for line in detail.output.splitlines():
            click.echo(f"     │ {line}")


def _print_failed_action(outcome: ActionOutcome) -> None:
    color = "red" if outcome.required else "yellow"
    click.secho(f"\n✗ {outcome.group}/{outcome.action}", fg=color, bold=True, nl=False)
    click.echo(f" ({outcome.status.value})")
    if outcome.description:
        click.echo(f"   {outcome.description.strip()}")
    for report in outcome.report.display_reports():
        if report.ok:
            continue
        click.echo(f"   $ {report.command}  → exit {report.exit_code}")
        for line in report.lines()[-_OUTPUT_TAIL:]:
            click.echo(f"     │ {line}")
    if outcome.help_text:
        click.secho(f"   {outcome.help_text.strip()}", fg="cyan")
    if outcome.help_url:
        click.echo(f"   For more help, see {outcome.help_url}")


# ── List ────────────────────────────────────────────────────────


@doctor.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List groups in the order they would run."""
    from devdoctor.core.use_cases.doctor import list_groups

    try:
        groups = list_groups(_load_config(ctx))
    except ConfigError as e:
        click.secho(f"❌ Configuration error: {e}", fg="red", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    if as_json:
        click.echo(json.dumps(
            [
                {
                    "name": g.name,
                    "description": g.description,
                    "include": g.include.value,
                    "needs": list(g.needs),
                    "actions": [a.name for a in g.actions],
                    "directory": str(g.directory),
                }
                for g in groups
            ],
            indent=2,
        ))
        return

    if not groups:
        click.secho("No doctor groups configured.", fg="yellow")
        return

    click.secho(f"🩺 Doctor groups ({len(groups)}):", fg="cyan", bold=True)
    for group in groups:
        marker = "" if group.run_by_default else " (when required)"
        click.secho(f"   • {group.name}", fg="white", bold=True, nl=False)
        click.echo(f"{marker} — {group.description.strip()}" if group.description else marker)
        if group.needs:
            click.echo(f"       needs: {', '.join(group.needs)}")
