"""owners command — explain CODEOWNERS resolution for a set of paths."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from unapprove_core.codeowners import find_owning_rule, get_relevant_teams, map_file_owners, parse_codeowners

console = Console()


@click.command("owners")
@click.argument("files", nargs=-1, required=True)
@click.option(
    "--codeowners-file",
    type=click.Path(exists=True, dir_okay=False),
    default="CODEOWNERS",
    show_default=True,
    help="Local ownership file to resolve against.",
)
@click.option("--team-prefix", default="@", show_default=True, help="Prefix marking team owners.")
def owners_cmd(files: tuple[str, ...], codeowners_file: str, team_prefix: str):
    """Show the winning rule and owners for each FILE.

    Works entirely offline, using the same matching as `unapprove run`: the
    longest matching pattern wins, and the earlier rule wins a tie.
    """
    rules = parse_codeowners(Path(codeowners_file).read_text(encoding="utf-8"))
    file_owners = map_file_owners(list(files), rules, team_prefix)

    table = Table(
        title=f"Owners from {codeowners_file} ({len(rules)} rules)", show_header=True, header_style="bold cyan"
    )
    table.add_column("File")
    table.add_column("Rule", style="dim")
    table.add_column("Owners")

    for filename, owners in file_owners.items():
        rule = find_owning_rule(filename, rules)
        table.add_row(
            filename,
            rule.pattern if rule else "—",
            ", ".join(o.token for o in owners) or "[yellow]no owners[/yellow]",
        )

    console.print(table)
    teams = get_relevant_teams(file_owners)
    console.print(f"Relevant teams: {', '.join(teams) if teams else 'none'}")
