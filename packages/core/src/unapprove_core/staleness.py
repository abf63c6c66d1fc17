"""Decide which approvals are stale.

A reviewer's approvals are dismissed when they own at least one changed file
and either authored a commit in the pull request or a commit landed after
their latest approval touching a file they own. All of the reviewer's
approvals are dismissed together.

Nothing here talks to GitHub directly: team membership goes through a
TeamMembershipOracle and per-commit file lists through a callable, so the
whole engine can be driven from plain data.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from unapprove_core.codeowners import DEFAULT_TEAM_PREFIX, Owner
from unapprove_core.membership import TeamMembershipOracle
from unapprove_core.models import Commit, DismissalDecision, Review, ReviewerAssessment

logger = logging.getLogger(__name__)

CommitFilesLookup = Callable[[str], list[str]]


def group_approvals(reviews: list[Review]) -> dict[str, list[Review]]:
    """Approved reviews grouped by reviewer, reviewers in first-seen order."""
    grouped: dict[str, list[Review]] = {}
    for review in reviews:
        if review.is_approval:
            grouped.setdefault(review.reviewer, []).append(review)
    return grouped


def find_owned_files(
    username: str,
    file_owners: dict[str, list[Owner]],
    oracle: TeamMembershipOracle,
    team_prefix: str = DEFAULT_TEAM_PREFIX,
) -> tuple[list[str], list[str]]:
    """Return (owned files, teams that granted ownership) for a user.

    Owners of each file are checked in order and the first grant wins, so a
    file owned both directly and through a team counts once, via whichever
    token comes first. Direct grants never add a team.
    """
    owned_files: list[str] = []
    via_teams: list[str] = []
    for filename, owners in file_owners.items():
        for owner in owners:
            if owner.login == username:
                owned_files.append(filename)
                break
            if owner.team and oracle.is_member(username, owner.team):
                owned_files.append(filename)
                team = f"{team_prefix}{owner.team}"
                if team not in via_teams:
                    via_teams.append(team)
                break
    return owned_files, via_teams


def latest_approval(approvals: list[Review]) -> Review:
    # max() keeps the first of equal timestamps, which makes ties follow input order.
    return max(approvals, key=lambda r: r.submitted_at)


def commits_after(commits: list[Commit], when: datetime) -> list[Commit]:
    return [c for c in commits if c.committed_at > when]


def most_recent_commit(commits: list[Commit]) -> Commit | None:
    latest = None
    for commit in commits:
        if latest is None or commit.committed_at >= latest.committed_at:
            latest = commit
    return latest


def find_affected_files(
    commits: list[Commit],
    owned_files: list[str],
    get_commit_files: CommitFilesLookup,
) -> list[str]:
    """Owned files touched by any of ``commits``, in first-seen order.

    A commit whose file list cannot be fetched contributes nothing.
    """
    owned = set(owned_files)
    affected: list[str] = []
    for commit in commits:
        try:
            touched = get_commit_files(commit.sha)
        except Exception as e:
            logger.warning("Could not fetch files for commit %s; skipping it: %s", commit.short_sha, e)
            continue
        for filename in touched:
            if filename in owned and filename not in affected:
                affected.append(filename)
    return affected


def assess_reviewer(
    reviewer: str,
    approvals: list[Review],
    file_owners: dict[str, list[Owner]],
    commits: list[Commit],
    oracle: TeamMembershipOracle,
    get_commit_files: CommitFilesLookup,
    team_prefix: str = DEFAULT_TEAM_PREFIX,
) -> ReviewerAssessment:
    owned_files, via_teams = find_owned_files(reviewer, file_owners, oracle, team_prefix)
    assessment = ReviewerAssessment(
        reviewer=reviewer,
        approvals=list(approvals),
        owned_files=owned_files,
        via_teams=via_teams,
        is_commit_author=any(c.author_login == reviewer for c in commits),
    )
    if not assessment.is_codeowner or not approvals:
        return assessment

    # Only the latest approval counts: re-approving after a commit accepts that commit.
    assessment.latest_approval_at = latest_approval(approvals).submitted_at
    assessment.commits_after_approval = commits_after(commits, assessment.latest_approval_at)
    if assessment.commits_after_approval:
        assessment.affected_files = find_affected_files(
            assessment.commits_after_approval, owned_files, get_commit_files
        )
    return assessment


def assess_reviewers(
    reviews: list[Review],
    file_owners: dict[str, list[Owner]],
    commits: list[Commit],
    oracle: TeamMembershipOracle,
    get_commit_files: CommitFilesLookup,
    team_prefix: str = DEFAULT_TEAM_PREFIX,
) -> list[ReviewerAssessment]:
    """Assess every reviewer holding at least one approval."""
    return [
        assess_reviewer(reviewer, approvals, file_owners, commits, oracle, get_commit_files, team_prefix)
        for reviewer, approvals in group_approvals(reviews).items()
    ]


def to_decision(assessment: ReviewerAssessment) -> DismissalDecision:
    return DismissalDecision(
        reviewer=assessment.reviewer,
        owned_files=tuple(assessment.owned_files),
        via_teams=tuple(assessment.via_teams),
        review_ids=tuple(r.id for r in assessment.approvals),
        reason=assessment.reason,
        affected_files_count=len(assessment.affected_files),
        latest_commit=most_recent_commit(assessment.commits_after_approval),
    )


def decide_dismissals(assessments: list[ReviewerAssessment]) -> list[DismissalDecision]:
    return [to_decision(a) for a in assessments if a.should_dismiss]
