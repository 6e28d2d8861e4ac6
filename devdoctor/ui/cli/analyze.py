"""
CLI commands for known-error analysis.

Thin wrappers over ``devdoctor.core.use_cases.analyze``.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from devdoctor.core.errors import ConfigError, DevDoctorError
from devdoctor.core.interaction import AutoApprove, DenyAll, InteractiveConfirm, UserInteraction
from devdoctor.core.models.result import AnalyzeStatus

_STATUS_MESSAGES = {
    AnalyzeStatus.NO_KNOWN_ERRORS_FOUND: ("✅ No known errors found", "green"),
    AnalyzeStatus.KNOWN_ERROR_FOUND_NO_FIX: ("⚠️  Known error found, no automatic fix available", "yellow"),
    AnalyzeStatus.KNOWN_ERROR_FOUND_USER_DENIED: ("⊘ Known error found, fix not run", "yellow"),
    AnalyzeStatus.KNOWN_ERROR_FOUND_FIX_FAILED: ("❌ Known error found, fix failed", "red"),
    AnalyzeStatus.KNOWN_ERROR_FOUND_FIX_SUCCEEDED: ("✅ Known error found and fixed", "green"),
}


def _interaction(yes: bool, ci_mode: bool) -> UserInteraction:
    if ci_mode:
        return DenyAll(echo=True)
    if yes:
        return AutoApprove(echo=True)
    if not sys.stdin.isatty():
        return DenyAll(echo=True)
    return InteractiveConfirm()


def _known_errors(ctx: click.Context):
    from devdoctor.core.config.loader import discover_config

    return discover_config(ctx.obj["working_dir"], ctx.obj.get("config_dirs")).known_errors


def _report(status: AnalyzeStatus) -> None:
    message, color = _STATUS_MESSAGES[status]
    click.secho(message, fg=color, err=True)


@click.group("analyze")
def analyze() -> None:
    """Analyze — recognize known errors in output and offer fixes."""


@analyze.command("text")
@click.argument("source", type=click.Path(dir_okay=False, allow_dash=True, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Run fixes without asking.")
@click.option("--ci", "ci_mode", is_flag=True, help="Non-interactive: never run fixes.")
@click.pass_context
def text(ctx: click.Context, source: Path, yes: bool, ci_mode: bool) -> None:
    """Scan a file (or - for stdin) for known errors.

    Examples:

        devdoctor analyze text build.log

        make build 2>&1 | devdoctor analyze text - --ci
    """
    from devdoctor.core.use_cases.analyze import (
        CONFIG_ERROR_EXIT_CODE,
        AnalyzeInput,
        analyze_input,
        exit_code_for,
    )

    if str(source) == "-":
        analyze_source = AnalyzeInput.stdin()
        # stdin carries the text, so prompts can't be answered there
        interaction = _interaction(yes, ci_mode=ci_mode or not yes)
    else:
        analyze_source = AnalyzeInput.from_file(source)
        interaction = _interaction(yes, ci_mode)

    try:
        status = analyze_input(
            _known_errors(ctx),
            analyze_source,
            interaction=interaction,
            working_dir=ctx.obj["working_dir"],
        )
    except ConfigError as e:
        click.secho(f"❌ Configuration error: {e}", fg="red", err=True)
        sys.exit(CONFIG_ERROR_EXIT_CODE)
    except DevDoctorError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(CONFIG_ERROR_EXIT_CODE)

    _report(status)
    sys.exit(exit_code_for(status))


@analyze.command(
    "command",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.argument("argv", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--yes", "-y", is_flag=True, help="Run fixes without asking.")
@click.option("--ci", "ci_mode", is_flag=True, help="Non-interactive: never run fixes.")
@click.pass_context
def command(ctx: click.Context, argv: tuple[str, ...], yes: bool, ci_mode: bool) -> None:
    """Run a command, show its output, and scan it if it fails.

    Exits with the command's own exit code when no known error is
    recognized.

    Examples:

        devdoctor analyze command -- npm install

        devdoctor analyze command --yes -- make build
    """
    from devdoctor.core.use_cases.analyze import CONFIG_ERROR_EXIT_CODE, analyze_command

    try:
        analysis = analyze_command(
            _known_errors(ctx),
            list(argv),
            interaction=_interaction(yes, ci_mode),
            working_dir=ctx.obj["working_dir"],
            on_line=click.echo,
        )
    except ConfigError as e:
        click.secho(f"❌ Configuration error: {e}", fg="red", err=True)
        sys.exit(CONFIG_ERROR_EXIT_CODE)
    except DevDoctorError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(CONFIG_ERROR_EXIT_CODE)

    if analysis.exit_code != 0:
        _report(analysis.status)
    sys.exit(analysis.exit_code_for_cli)
