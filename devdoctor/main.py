"""
devdoctor — CLI entrypoint.

Usage:
    python -m devdoctor.main --help
    devdoctor doctor run
    devdoctor doctor list
    devdoctor analyze text build.log
    devdoctor analyze command -- make build
"""

from __future__ import annotations

from pathlib import Path

import click

from devdoctor import __version__
from devdoctor.core.observability.logging_config import configure_cli_logging


@click.group()
@click.version_option(version=__version__, prog_name="devdoctor")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--working-dir",
    "-C",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory to run in (default: current directory).",
)
@click.option(
    "--config-dir",
    "config_dirs",
    multiple=True,
    type=click.Path(exists=True, path_type=Path),
    help="Config directory or file to load instead of discovering .devdoctor directories.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    working_dir: Path | None,
    config_dirs: tuple[Path, ...],
) -> None:
    """devdoctor — check, repair and explain your development environment."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["working_dir"] = (working_dir or Path.cwd()).resolve()
    ctx.obj["config_dirs"] = list(config_dirs) or None

    # ── Logging setup (once, at process start) ──────────────────
    configure_cli_logging(debug=debug, verbose=verbose, quiet=quiet)


from devdoctor.ui.cli.analyze import analyze  # noqa: E402
from devdoctor.ui.cli.doctor import doctor  # noqa: E402

cli.add_command(doctor)
cli.add_command(analyze)


if __name__ == "__main__":
    cli()
