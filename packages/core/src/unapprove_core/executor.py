from __future__ import annotations

import logging
from typing import Callable

from unapprove_core.models import DismissalDecision, DismissalOutcome

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Unapproved"

DismissFn = Callable[[int, str], None]


def build_dismissal_message(decision: DismissalDecision, repo_name: str) -> str:
    """Message shown on the dismissed review.

    Points at the latest commit that landed after the approval; pure authorship
    dismissals have no such commit and get the generic message.
    """
    commit = decision.latest_commit
    if commit is None:
        return FALLBACK_MESSAGE
    return (
        f"{decision.affected_files_count} file(s) changed in commit "
        f"[{commit.short_sha}](https://github.com/{repo_name}/commit/{commit.sha})"
    )


def execute_dismissals(
    decisions: list[DismissalDecision],
    dismiss: DismissFn,
    repo_name: str,
    dry_run: bool = True,
) -> list[DismissalOutcome]:
    """Dismiss every review id in ``decisions``, or only record intent in dry-run mode.

    Each call is independent: a failure is logged and recorded in its outcome,
    and the remaining dismissals still run.
    """
    outcomes: list[DismissalOutcome] = []
    for decision in decisions:
        message = build_dismissal_message(decision, repo_name)
        for review_id in decision.review_ids:
            if dry_run:
                outcomes.append(DismissalOutcome(reviewer=decision.reviewer, review_id=review_id, dismissed=False))
                continue
            try:
                dismiss(review_id, message)
            except Exception as e:
                logger.warning("Failed to dismiss review %s by %s: %s", review_id, decision.reviewer, e)
                outcomes.append(
                    DismissalOutcome(reviewer=decision.reviewer, review_id=review_id, dismissed=False, error=str(e))
                )
                continue
            outcomes.append(DismissalOutcome(reviewer=decision.reviewer, review_id=review_id, dismissed=True))
    return outcomes
