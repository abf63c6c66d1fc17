"""CLI entry point for unapprove.

Commands:
  run     — dismiss stale code-owner approvals on a pull request
  owners  — show which CODEOWNERS rule owns each file, without calling GitHub
"""

from __future__ import annotations

import logging

import click

from unapprove_cli.commands.owners import owners_cmd
from unapprove_cli.commands.run import run_cmd


@click.group()
@click.version_option(
    package_name="unapprove",
    prog_name="unapprove",
)
@click.option(
    "--config",
    "config_path",
    default=".unapprove.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="UNAPPROVE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Dismiss pull request approvals from code owners once they go stale."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(run_cmd)
main.add_command(owners_cmd)
