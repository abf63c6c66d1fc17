"""Team membership lookups, cached per run.

Contract: for a given cache, the underlying lookup is called at most once per
``(username, team_slug)`` pair, even when ``is_member`` is called from several
threads. A failed lookup is cached as ``False`` like any other answer, so a
flaky team is not retried within the same run.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

MembershipLookup = Callable[[str, str], bool]


class TeamMembershipCache:
    def __init__(self):
        self._results: dict[tuple[str, str], bool] = {}
        self._lock = threading.Lock()

    def get_or_compute(self, username: str, team_slug: str, compute: Callable[[], bool]) -> bool:
        key = (username, team_slug)
        # The lock is held across the lookup so a second caller for the same pair waits
        # instead of issuing its own request.
        with self._lock:
            if key not in self._results:
                self._results[key] = compute()
            return self._results[key]

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._results

    def __len__(self) -> int:
        return len(self._results)

    def members_of(self, username: str) -> list[str]:
        return [team for (user, team), member in self._results.items() if user == username and member]


class TeamMembershipOracle:
    """Answers "is this user in this team?" for the staleness engine.

    Lookup errors fail closed: the user is treated as not a member, which at
    worst preserves an approval that should have been dismissed.
    """

    def __init__(self, lookup: MembershipLookup, cache: TeamMembershipCache | None = None):
        self._lookup = lookup
        self.cache = cache if cache is not None else TeamMembershipCache()

    def is_member(self, username: str, team_slug: str) -> bool:
        return self.cache.get_or_compute(username, team_slug, lambda: self._query(username, team_slug))

    def _query(self, username: str, team_slug: str) -> bool:
        try:
            member = bool(self._lookup(username, team_slug))
        except Exception as e:
            logger.warning(
                "Team membership lookup failed for %s in %s; treating as non-member: %s", username, team_slug, e
            )
            return False
        logger.debug("Membership %s in %s: %s", username, team_slug, member)
        return member
