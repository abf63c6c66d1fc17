"""Dismissal run orchestration: fetch, decide, report, execute."""

from __future__ import annotations

import functools
import logging

from github import GithubException
from rich.console import Console

from unapprove_core.codeowners import get_relevant_teams, map_file_owners, parse_codeowners
from unapprove_core.errors import UpstreamReadError
from unapprove_core.executor import execute_dismissals
from unapprove_core.gh.pull_request import (
    dismiss_review,
    get_commit_files,
    get_pull,
    get_repo,
    is_team_member,
    list_changed_files,
    list_commits,
    list_reviews,
    read_file_at_ref,
)
from unapprove_core.membership import TeamMembershipOracle
from unapprove_core.models import DismissalDecision, DismissalOutcome, DismissalSummary, ReviewerAssessment
from unapprove_core.staleness import assess_reviewers, decide_dismissals

console = Console()
logger = logging.getLogger(__name__)


def _read(what: str, fetch):
    """Run a mandatory GitHub read, turning API failures into UpstreamReadError."""
    try:
        return fetch()
    except GithubException as e:
        raise UpstreamReadError(f"Failed to fetch {what}: {e.status}") from e


def load_rules(repo, path: str, ref: str) -> list:
    """Parse the ownership file at ``ref``. A missing or unreadable file means no rules."""
    try:
        content = read_file_at_ref(repo, path, ref)
    except GithubException as e:
        logger.warning("Could not read %s at %s: %s", path, ref, e)
        content = None
    if content is None:
        console.print(f"[yellow]No {path} file found on {ref} - no files have owners.[/yellow]")
        return []
    rules = parse_codeowners(content)
    console.print(f"Parsed {len(rules)} {path} rule(s) from {ref}.")
    return rules


def print_file_owners(file_owners: dict) -> None:
    console.print("\n[bold]File owners:[/bold]")
    for filename, owners in file_owners.items():
        if owners:
            console.print(f"  {filename} → {', '.join(o.token for o in owners)}")
        else:
            console.print(f"  {filename} → [dim]no specific owners[/dim]")


def print_assessment(assessment: ReviewerAssessment) -> None:
    via = ", ".join(assessment.via_teams) or "Direct ownership"
    if assessment.should_dismiss:
        console.print(f"  [red]DISMISS[/red] [bold]@{assessment.reviewer}[/bold]")
        console.print(f"    Files: {', '.join(assessment.owned_files)}")
        console.print(f"    Owner via: {via}")
        console.print(f"    Reviews: {len(assessment.approvals)}")
        console.print(f"    Reason: {assessment.reason}")
        return

    console.print(f"  [green]KEEP[/green] [bold]@{assessment.reviewer}[/bold]")
    if assessment.via_teams:
        console.print(f"    Owner via: {via}")
    if not assessment.is_codeowner:
        console.print("    [dim]Not an owner of any changed file[/dim]")
    elif assessment.commits_after_approval:
        console.print(
            f"    [dim]{len(assessment.commits_after_approval)} commit(s) after approval, "
            "none touching owned files[/dim]"
        )
    else:
        console.print("    [dim]Code owner with fresh approval[/dim]")


def print_execution_plan(summary: DismissalSummary) -> None:
    dismissed_reviews = sum(len(d.review_ids) for d in summary.decisions)
    console.print("\n[bold]Execution plan:[/bold]")
    console.print(f"  Changed files:       {len(summary.changed_files)}")
    console.print(f"  Total approvals:     {summary.total_approvals}")
    console.print(f"  Reviewers dismissed: {len(summary.decisions)}")
    console.print(f"  Approvals preserved: {summary.total_approvals - dismissed_reviews}")


def print_outcomes(decisions: list[DismissalDecision], outcomes: list[DismissalOutcome], dry_run: bool) -> None:
    if not decisions:
        console.print("\n[green]No dismissals needed.[/green]")
        return
    console.print(f"\n[bold]{'Would dismiss' if dry_run else 'Dismissing'}:[/bold]")
    for decision in decisions:
        console.print(f"  @{decision.reviewer} ({len(decision.review_ids)} review(s)) - {decision.reason}")
        if dry_run:
            continue
        for outcome in outcomes:
            if outcome.reviewer != decision.reviewer:
                continue
            if outcome.dismissed:
                console.print(f"    [green]Dismissed review {outcome.review_id}[/green]")
            else:
                console.print(f"    [red]Failed to dismiss review {outcome.review_id}: {outcome.error}[/red]")


def run_dismissal(
    repo: str,
    pr_number: int,
    config: dict,
    repo_obj=None,
) -> DismissalSummary:
    """Run the full stale-approval pipeline for one pull request.

    Raises UpstreamReadError when the pull request, its files, reviews or
    commits cannot be read. Every other failure is recovered and reported.
    """
    dry_run = config.get("dry_run", True)
    team_prefix = config.get("team_prefix", "@")
    codeowners_file = config.get("codeowners_file", "CODEOWNERS")
    target_branch = config.get("target_branch", "main")

    console.print(f"[bold]Stale approval check[/bold] for {repo}#{pr_number}")
    console.print(f"  Mode: {'[yellow]DRY RUN[/yellow]' if dry_run else '[red]LIVE[/red]'}")
    console.print(f"  Ownership file: {codeowners_file} @ {target_branch}, team prefix {team_prefix!r}")

    this_repo = repo_obj
    if this_repo is None:
        this_repo = _read(repo, lambda: get_repo(repo, config["github_token"]))
    this_pr = _read(f"PR #{pr_number}", lambda: get_pull(this_repo, pr_number))

    summary = DismissalSummary(repo=repo, pr_number=pr_number, dry_run=dry_run)

    if config.get("changed_files"):
        summary.changed_files = list(config["changed_files"])
        console.print(f"\nUsing {len(summary.changed_files)} changed file(s) supplied by the caller.")
    else:
        summary.changed_files = _read("PR files", lambda: list_changed_files(this_pr))
        console.print(f"\nFetched {len(summary.changed_files)} changed file(s).")
    if not summary.changed_files:
        console.print("[yellow]No files changed - nothing to analyze.[/yellow]")
        return summary

    reviews = _read("reviews", lambda: list_reviews(this_pr))
    commits = _read("commits", lambda: list_commits(this_pr))
    summary.total_approvals = sum(1 for r in reviews if r.is_approval)
    authors = sorted({c.author_login for c in commits if c.author_login})
    console.print(
        f"Found {summary.total_approvals} approval(s) and {len(commits)} commit(s) "
        f"by {', '.join(authors) or 'unlinked authors'}."
    )
    if not summary.total_approvals:
        console.print("[yellow]No approved reviews to analyze.[/yellow]")
        return summary

    rules = load_rules(this_repo, codeowners_file, target_branch)
    file_owners = map_file_owners(summary.changed_files, rules, team_prefix)
    print_file_owners(file_owners)
    console.print(f"\nRelevant teams: {', '.join(get_relevant_teams(file_owners)) or 'none'}")

    org = this_repo.organization
    oracle = TeamMembershipOracle(lambda user, team: is_team_member(org, team, user))
    # Several reviewers can share post-approval commits; fetch each commit's files once.
    commit_files = functools.lru_cache(maxsize=None)(lambda sha: get_commit_files(this_repo, sha))

    summary.assessments = assess_reviewers(reviews, file_owners, commits, oracle, commit_files, team_prefix)
    summary.decisions = decide_dismissals(summary.assessments)

    console.print("\n[bold]Dismissal analysis:[/bold]")
    for assessment in summary.assessments:
        print_assessment(assessment)
    print_execution_plan(summary)

    summary.outcomes = execute_dismissals(
        summary.decisions,
        lambda review_id, message: dismiss_review(this_pr, review_id, message),
        repo_name=repo,
        dry_run=dry_run,
    )
    print_outcomes(summary.decisions, summary.outcomes, dry_run)
    if summary.failed:
        console.print(f"[yellow]{len(summary.failed)} dismissal(s) failed; see above.[/yellow]")

    return summary
