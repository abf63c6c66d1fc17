"""Tests for the staleness decision engine."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from unapprove_core.codeowners import OwnershipRule, map_file_owners
from unapprove_core.membership import TeamMembershipOracle
from unapprove_core.models import Commit, Review
from unapprove_core.staleness import (
    assess_reviewers,
    commits_after,
    decide_dismissals,
    find_affected_files,
    find_owned_files,
    group_approvals,
    latest_approval,
    most_recent_commit,
)

T0 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def at(hours=0, minutes=0):
    return T0 + timedelta(hours=hours, minutes=minutes)


def approval(review_id, reviewer, when=T0):
    return Review(id=review_id, reviewer=reviewer, state="APPROVED", submitted_at=when)


def commit(sha, when, author=None):
    return Commit(sha=sha, committed_at=when, author_login=author)


def owners_for(files, *rules, team_prefix="@"):
    return map_file_owners(files, [OwnershipRule(p, tuple(o)) for p, o in rules], team_prefix)


def no_teams():
    return TeamMembershipOracle(lambda user, team: False)


def teams(memberships):
    """Oracle backed by a {team: {users}} mapping."""
    return TeamMembershipOracle(lambda user, team: user in memberships.get(team, set()))


def files_by_sha(mapping):
    return lambda sha: mapping[sha]


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


class TestGroupApprovals:
    def test_only_approvals_grouped_in_first_seen_order(self):
        reviews = [
            approval(1, "bob"),
            Review(id=2, reviewer="carol", state="COMMENTED", submitted_at=T0),
            approval(3, "alice"),
            approval(4, "bob", at(1)),
            Review(id=5, reviewer="alice", state="CHANGES_REQUESTED", submitted_at=at(2)),
        ]
        grouped = group_approvals(reviews)
        assert list(grouped) == ["bob", "alice"]
        assert [r.id for r in grouped["bob"]] == [1, 4]
        assert [r.id for r in grouped["alice"]] == [3]


class TestFindOwnedFiles:
    def test_direct_ownership_does_not_record_team(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        owned, via = find_owned_files("bob", file_owners, no_teams())
        assert owned == ["a.py"]
        assert via == []

    def test_team_ownership_records_prefixed_team(self):
        file_owners = owners_for(["a.py", "b.py"], ("*", ["@infra"]))
        owned, via = find_owned_files("bob", file_owners, teams({"infra": {"bob"}}))
        assert owned == ["a.py", "b.py"]
        assert via == ["@infra"]

    def test_first_granting_owner_wins(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob", "@infra"]))
        oracle = TeamMembershipOracle(MagicMock(return_value=True))
        owned, via = find_owned_files("bob", file_owners, oracle)
        assert owned == ["a.py"]
        assert via == []

    def test_team_before_direct_records_team(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@infra", "@bob"]))
        owned, via = find_owned_files("bob", file_owners, teams({"infra": {"bob"}}))
        assert owned == ["a.py"]
        assert via == ["@infra"]

    def test_via_teams_only_team_grants(self):
        file_owners = owners_for(
            ["a.py", "docs/x.md"],
            ("a.py", ["@bob"]),
            ("docs/", ["@writers"]),
        )
        owned, via = find_owned_files("bob", file_owners, teams({"writers": {"bob"}}))
        assert owned == ["a.py", "docs/x.md"]
        assert via == ["@writers"]

    def test_numeric_owner_token_never_matches(self):
        file_owners = owners_for(["src/a.py"], ("src/", ["601", "@alice"]))
        lookup = MagicMock(return_value=False)
        owned, _ = find_owned_files("601", file_owners, TeamMembershipOracle(lookup))
        assert owned == []

    def test_only_referenced_teams_are_queried(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@acme/infra"]), ("ui/", ["@acme/ui"]), team_prefix="@acme/")
        lookup = MagicMock(return_value=False)
        find_owned_files("bob", file_owners, TeamMembershipOracle(lookup), team_prefix="@acme/")
        lookup.assert_called_once_with("bob", "infra")


class TestTimeline:
    def test_latest_approval_picks_max_time(self):
        reviews = [approval(1, "bob", at(0)), approval(2, "bob", at(2)), approval(3, "bob", at(1))]
        assert latest_approval(reviews).id == 2

    def test_latest_approval_tie_keeps_input_order(self):
        reviews = [approval(1, "bob", at(1)), approval(2, "bob", at(1))]
        assert latest_approval(reviews).id == 1

    def test_commits_after_is_strict(self):
        commits = [commit("a", at(-1)), commit("b", at(0)), commit("c", at(1))]
        assert [c.sha for c in commits_after(commits, T0)] == ["c"]

    def test_most_recent_commit(self):
        commits = [commit("a", at(1)), commit("b", at(3)), commit("c", at(2))]
        assert most_recent_commit(commits).sha == "b"

    def test_most_recent_commit_tie_takes_last(self):
        commits = [commit("a", at(1)), commit("b", at(1))]
        assert most_recent_commit(commits).sha == "b"

    def test_most_recent_commit_empty(self):
        assert most_recent_commit([]) is None


class TestFindAffectedFiles:
    def test_union_of_intersections(self):
        commits = [commit("c1", at(1)), commit("c2", at(2))]
        lookup = files_by_sha({"c1": ["a.py", "x.py"], "c2": ["b.py", "a.py"]})
        assert find_affected_files(commits, ["a.py", "b.py"], lookup) == ["a.py", "b.py"]

    def test_failed_fetch_contributes_nothing(self):
        commits = [commit("bad", at(1)), commit("good", at(2))]

        def lookup(sha):
            if sha == "bad":
                raise RuntimeError("500")
            return ["a.py"]

        assert find_affected_files(commits, ["a.py"], lookup) == ["a.py"]


# ---------------------------------------------------------------------------
# assess_reviewers / decide_dismissals
# ---------------------------------------------------------------------------


class TestStaleApproval:
    def test_commit_after_approval_on_owned_file_is_stale(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(0))]
        commits = [commit("c1", at(1), author="carol")]

        [assessment] = assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["a.py"]}))

        assert assessment.has_stale_approval is True
        assert assessment.affected_files == ["a.py"]

    def test_same_commit_before_approval_is_not_stale(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(0))]
        commits = [commit("c1", at(-1), author="carol")]
        lookup = MagicMock(return_value=["a.py"])

        [assessment] = assess_reviewers(reviews, file_owners, commits, no_teams(), lookup)

        assert assessment.has_stale_approval is False
        assert decide_dismissals([assessment]) == []
        lookup.assert_not_called()

    def test_commit_after_approval_on_unowned_file_keeps_approval(self):
        file_owners = owners_for(["a.py", "b.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(0))]
        commits = [commit("c1", at(1), author="carol")]

        assessments = assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["b.py"]}))

        assert assessments[0].commits_after_approval
        assert decide_dismissals(assessments) == []

    def test_reapproval_after_commit_clears_staleness(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(0)), approval(2, "bob", at(2))]
        commits = [commit("c1", at(1), author="carol")]

        assessments = assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["a.py"]}))

        assert assessments[0].latest_approval_at == at(2)
        assert decide_dismissals(assessments) == []

    def test_scenario_bob_dismissed_for_carols_commit(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(101, "bob", datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))]
        commits = [commit("c" * 40, datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc), author="carol")]

        assessments = assess_reviewers(reviews, file_owners, commits, no_teams(), lambda sha: ["a.py"])
        [decision] = decide_dismissals(assessments)

        assert decision.reviewer == "bob"
        assert decision.review_ids == (101,)
        assert "a.py" in decision.reason
        assert decision.reason.startswith("Approval became stale")
        assert decision.affected_files_count == 1
        assert decision.latest_commit.sha == "c" * 40


class TestCommitAuthor:
    def test_owner_who_authored_is_dismissed_regardless_of_time(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(5))]
        commits = [commit("c1", at(-3), author="bob")]

        [decision] = decide_dismissals(
            assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["other.py"]}))
        )

        assert decision.reason == "Code owner who authored changes"
        assert decision.latest_commit is None
        assert decision.affected_files_count == 0

    def test_authorship_reason_takes_priority_over_staleness(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(0))]
        commits = [commit("c1", at(1), author="bob")]

        [decision] = decide_dismissals(
            assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["a.py"]}))
        )

        assert decision.reason == "Code owner who authored changes"
        assert decision.affected_files_count == 1
        assert decision.latest_commit.sha == "c1"

    def test_author_who_is_not_owner_is_kept(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@alice"]))
        reviews = [approval(1, "bob")]
        commits = [commit("c1", at(1), author="bob")]

        assessments = assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["a.py"]}))

        assert assessments[0].is_commit_author is True
        assert assessments[0].is_codeowner is False
        assert decide_dismissals(assessments) == []

    def test_unlinked_commit_author_is_nobody(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        commits = [commit("c1", at(-1), author=None)]
        assessments = assess_reviewers([approval(1, "bob")], file_owners, commits, no_teams(), lambda sha: [])
        assert assessments[0].is_commit_author is False


class TestDecisions:
    def test_all_approvals_of_reviewer_are_dismissed(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        reviews = [approval(1, "bob", at(0)), approval(7, "bob", at(1)), approval(9, "alice", at(1))]
        commits = [commit("c1", at(2), author="carol")]

        decisions = decide_dismissals(
            assess_reviewers(reviews, file_owners, commits, no_teams(), files_by_sha({"c1": ["a.py"]}))
        )

        assert [d.reviewer for d in decisions] == ["bob"]
        assert decisions[0].review_ids == (1, 7)

    def test_team_owner_dismissed_with_via_team(self):
        file_owners = owners_for(["src/a.py"], ("*", ["@team-infra"]))
        reviews = [approval(1, "dana", at(0))]
        commits = [commit("c1", at(1), author="carol")]

        [decision] = decide_dismissals(
            assess_reviewers(
                reviews, file_owners, commits, teams({"team-infra": {"dana"}}), files_by_sha({"c1": ["src/a.py"]})
            )
        )

        assert decision.via_teams == ("@team-infra",)
        assert decision.owned_files == ("src/a.py",)

    def test_team_lookup_failure_preserves_approval(self):
        file_owners = owners_for(["a.py"], ("a.py", ["@infra"]))
        oracle = TeamMembershipOracle(MagicMock(side_effect=RuntimeError("403")))
        commits = [commit("c1", at(1), author="dana")]

        decisions = decide_dismissals(
            assess_reviewers([approval(1, "dana")], file_owners, commits, oracle, lambda sha: ["a.py"])
        )

        assert decisions == []

    def test_engine_is_idempotent(self):
        file_owners = owners_for(["a.py", "b.py"], ("a.py", ["@bob"]), ("b.py", ["@infra"]))
        reviews = [approval(1, "bob", at(0)), approval(2, "dana", at(0)), approval(3, "erin", at(0))]
        commits = [commit("c1", at(1), author="carol"), commit("c2", at(2), author="erin")]
        lookup = files_by_sha({"c1": ["a.py"], "c2": ["b.py"]})
        oracle = teams({"infra": {"dana", "erin"}})

        first = decide_dismissals(assess_reviewers(reviews, file_owners, commits, oracle, lookup))
        second = decide_dismissals(assess_reviewers(reviews, file_owners, commits, oracle, lookup))

        assert first == second
        assert [d.reviewer for d in first] == ["bob", "dana", "erin"]

    def test_no_approvals_no_decisions(self):
        reviews = [Review(id=1, reviewer="bob", state="COMMENTED", submitted_at=T0)]
        file_owners = owners_for(["a.py"], ("a.py", ["@bob"]))
        assert assess_reviewers(reviews, file_owners, [], no_teams(), lambda sha: []) == []
