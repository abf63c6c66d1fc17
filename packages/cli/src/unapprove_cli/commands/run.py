"""run command — dismiss stale code-owner approvals on a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from unapprove_core.dismisser import run_dismissal
from unapprove_core.errors import ConfigurationError, UpstreamReadError

console = Console()


@click.command("run")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. [env: GITHUB_REPOSITORY]")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number. [env: PR_NUMBER]")
@click.option("--team-prefix", default=None, help="Prefix marking team owners. [env: TEAM_START_WITH; default: @]")
@click.option(
    "--codeowners-file",
    default=None,
    help="Path of the ownership file in the repository. [env: CODEOWNERS_FILE; default: CODEOWNERS]",
)
@click.option(
    "--target-branch",
    default=None,
    help="Ref the ownership file is read from. [env: TARGET_BRANCH; default: main]",
)
@click.option(
    "--changed-file",
    "changed_files",
    multiple=True,
    help="Changed file path; repeat to skip listing the PR's files. [env: CHANGED_FILES]",
)
@click.option(
    "--dry-run/--live",
    "dry_run",
    default=None,
    help="Only report, or actually dismiss reviews. [env: DRY_RUN; default: dry run]",
)
@click.pass_context
def run_cmd(
    ctx,
    repo: str | None,
    pr_number: int | None,
    team_prefix: str | None,
    codeowners_file: str | None,
    target_branch: str | None,
    changed_files: tuple[str, ...],
    dry_run: bool | None,
):
    """Dismiss approvals from code owners that went stale.

    A reviewer's approvals are dismissed when they own a changed file and
    either authored a commit in the pull request or a later commit touched a
    file they own.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI) with pull request write
                           and org team read access
    """
    from unapprove_cli.auth import resolve_github_token
    from unapprove_core.config import load_config, validate_run_config

    config_path = ctx.obj.get("config_path", ".unapprove.yml") if ctx.obj else ".unapprove.yml"
    config = load_config(
        config_path,
        cli_overrides={
            "repository": repo,
            "pr_number": pr_number,
            "team_prefix": team_prefix,
            "codeowners_file": codeowners_file,
            "target_branch": target_branch,
            "changed_files": list(changed_files) or None,
            "dry_run": dry_run,
        },
    )

    token = resolve_github_token()
    if token:
        config["github_token"] = token

    try:
        owner, name, number = validate_run_config(config)
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    try:
        summary = run_dismissal(repo=f"{owner}/{name}", pr_number=number, config=config)
    except UpstreamReadError as e:
        raise click.ClickException(str(e))

    if summary.dry_run and summary.decisions:
        console.print("[yellow]Dry run: nothing was dismissed. Pass --live or set DRY_RUN=false to dismiss.[/yellow]")
    console.print("\n[bold]Analysis complete.[/bold]")
