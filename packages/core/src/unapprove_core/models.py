from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

APPROVED = "APPROVED"


@dataclass(frozen=True)
class Review:
    id: int
    reviewer: str
    state: str
    submitted_at: datetime

    @property
    def is_approval(self) -> bool:
        return self.state == APPROVED


@dataclass(frozen=True)
class Commit:
    sha: str
    committed_at: datetime
    author_login: str | None = None  # None when the commit email is not linked to an account

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass
class ReviewerAssessment:
    """Everything the engine worked out about one approving reviewer.

    Kept for every reviewer, not only the dismissed ones, so the report can
    explain why an approval was preserved.
    """

    reviewer: str
    approvals: list[Review]
    owned_files: list[str] = field(default_factory=list)
    via_teams: list[str] = field(default_factory=list)
    is_commit_author: bool = False
    latest_approval_at: datetime | None = None
    commits_after_approval: list[Commit] = field(default_factory=list)
    affected_files: list[str] = field(default_factory=list)

    @property
    def is_codeowner(self) -> bool:
        return bool(self.owned_files)

    @property
    def has_stale_approval(self) -> bool:
        return bool(self.affected_files)

    @property
    def should_dismiss(self) -> bool:
        return self.is_codeowner and (self.is_commit_author or self.has_stale_approval)

    @property
    def reason(self) -> str:
        if self.is_commit_author:
            return "Code owner who authored changes"
        if self.has_stale_approval:
            return "Approval became stale - commits modified owned files: " + ", ".join(self.affected_files)
        return ""


@dataclass(frozen=True)
class DismissalDecision:
    reviewer: str
    owned_files: tuple[str, ...]
    via_teams: tuple[str, ...]
    review_ids: tuple[int, ...]
    reason: str
    affected_files_count: int = 0
    latest_commit: Commit | None = None


@dataclass(frozen=True)
class DismissalOutcome:
    reviewer: str
    review_id: int
    dismissed: bool
    error: str | None = None


@dataclass
class DismissalSummary:
    """Result returned by run_dismissal, consumed by the CLI for its exit status and tests."""

    repo: str
    pr_number: int
    dry_run: bool
    changed_files: list[str] = field(default_factory=list)
    total_approvals: int = 0
    assessments: list[ReviewerAssessment] = field(default_factory=list)
    decisions: list[DismissalDecision] = field(default_factory=list)
    outcomes: list[DismissalOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[DismissalOutcome]:
        return [o for o in self.outcomes if o.error is not None]
