"""Thin PyGithub adapters.

Each function turns PyGithub objects into the plain values the engine works
with. Paginated endpoints come back as PaginatedList; iterating them fetches
every page, so callers always see one complete, ordered list.
"""

from __future__ import annotations

import logging

from github import Github, UnknownObjectException

from unapprove_core.models import Commit, Review

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def list_changed_files(pr) -> list[str]:
    return [f.filename for f in pr.get_files()]


def list_reviews(pr) -> list[Review]:
    reviews = []
    for review in pr.get_reviews():
        # Ghost users (deleted accounts) and pending reviews cannot be attributed or dated.
        if review.user is None or review.submitted_at is None:
            logger.debug("Ignoring review %s without user or submission time", review.id)
            continue
        reviews.append(
            Review(id=review.id, reviewer=review.user.login, state=review.state, submitted_at=review.submitted_at)
        )
    return reviews


def list_commits(pr) -> list[Commit]:
    commits = []
    for commit in pr.get_commits():
        author = commit.author  # None when the commit is not linked to a GitHub account
        commits.append(
            Commit(
                sha=commit.sha,
                committed_at=commit.commit.committer.date,
                author_login=author.login if author is not None else None,
            )
        )
    return commits


def get_commit_files(repo, sha: str) -> list[str]:
    return [f.filename for f in repo.get_commit(sha).files]


def read_file_at_ref(repo, path: str, ref: str) -> str | None:
    """Return a file's text at ``ref``, or None when it does not exist."""
    try:
        contents = repo.get_contents(path, ref=ref)
    except UnknownObjectException:
        return None
    if isinstance(contents, list):
        logger.warning("%s is a directory at %s, not a file", path, ref)
        return None
    return contents.decoded_content.decode("utf-8", errors="replace")


def is_team_member(org, team_slug: str, username: str) -> bool:
    """Return True if ``username`` is an active member of the org team.

    A user-owned repository has no organization and therefore no teams. A 404
    from either the team or the membership endpoint means "not a member";
    any other GithubException propagates to the caller.
    """
    if org is None:
        return False
    try:
        membership = org.get_team_by_slug(team_slug).get_team_membership(username)
    except UnknownObjectException:
        return False
    return membership.state == "active"


def dismiss_review(pr, review_id: int, message: str) -> None:
    pr.get_review(review_id).dismiss(message)

