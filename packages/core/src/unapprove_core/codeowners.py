"""CODEOWNERS parsing and ownership resolution.

The matching rules here are deliberately simpler than GitHub's own CODEOWNERS
semantics: the longest matching pattern wins instead of the last one, and a
`*` inside a pattern may cross directory boundaries. Both are relied upon by
existing ownership files, so they are kept as-is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_TEAM_PREFIX = "@"


@dataclass(frozen=True)
class OwnershipRule:
    pattern: str
    owners: tuple[str, ...]


@dataclass(frozen=True)
class Owner:
    """One owner token, parsed once.

    ``login`` is set for ``@handle`` tokens and ``team`` for tokens that carry
    the team prefix. With the default prefix ``@`` both are set, because
    ``@infra`` may name either a user or a team. A token with neither (for
    example ``601`` or an e-mail address) can never match a reviewer.
    """

    token: str
    login: str | None = None
    team: str | None = None

    @classmethod
    def parse(cls, token: str, team_prefix: str = DEFAULT_TEAM_PREFIX) -> Owner:
        login = token[1:] if token.startswith("@") and len(token) > 1 else None
        team = token.replace(team_prefix, "", 1) if team_prefix and token.startswith(team_prefix) else None
        return cls(token=token, login=login, team=team or None)


def parse_codeowners(content: str) -> list[OwnershipRule]:
    """Turn ownership file text into rules, in file order.

    Comments and blank lines are skipped, as is any line without at least one
    owner after the path. Owner tokens are not validated here.
    """
    rules = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        parts = stripped.split()
        if len(parts) < 2:
            continue
        rules.append(OwnershipRule(pattern=parts[0], owners=tuple(parts[1:])))
    return rules


def _normalize(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def _glob_to_regex(pattern: str) -> re.Pattern:
    # Every `*` becomes `.*` (slashes included); everything else is literal.
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}$")


def path_matches(file_path: str, pattern: str) -> bool:
    """Return True if ``file_path`` falls under ``pattern``.

    Supports:
    - ``*``: every file
    - exact paths: ``/a.py`` and ``a.py`` are the same rule
    - directories with a trailing slash: ``docs/`` matches ``docs/readme.md``
    - globs: ``*.md``, ``src/*/tests`` (anchored, ``*`` spans slashes)
    - bare names: ``src`` matches the file ``src`` and anything below ``src/``
    """
    normalized_file = _normalize(file_path)
    normalized_pattern = _normalize(pattern)

    if pattern == "*":
        return True
    if normalized_file == normalized_pattern:
        return True
    if pattern.endswith("/"):
        return normalized_file.startswith(normalized_pattern)
    if "*" in pattern:
        return _glob_to_regex(normalized_pattern).match(normalized_file) is not None
    return normalized_file.startswith(normalized_pattern + "/")


def find_owning_rule(file_path: str, rules: list[OwnershipRule]) -> OwnershipRule | None:
    """Return the matching rule with the longest pattern; the earliest rule wins ties."""
    best: OwnershipRule | None = None
    best_length = -1
    for rule in rules:
        if path_matches(file_path, rule.pattern) and len(rule.pattern) > best_length:
            best = rule
            best_length = len(rule.pattern)
    return best


def get_file_owners(file_path: str, rules: list[OwnershipRule]) -> list[str]:
    rule = find_owning_rule(file_path, rules)
    return list(rule.owners) if rule else []


def map_file_owners(
    changed_files: list[str],
    rules: list[OwnershipRule],
    team_prefix: str = DEFAULT_TEAM_PREFIX,
) -> dict[str, list[Owner]]:
    """Resolve every changed file to its parsed owner list, keeping file order."""
    return {
        filename: [Owner.parse(token, team_prefix) for token in get_file_owners(filename, rules)]
        for filename in changed_files
    }


def get_relevant_teams(file_owners: dict[str, list[Owner]]) -> list[str]:
    """Distinct team slugs referenced by any changed file, in first-seen order.

    These are the only teams whose membership is ever looked up.
    """
    teams: list[str] = []
    for owners in file_owners.values():
        for owner in owners:
            if owner.team and owner.team not in teams:
                teams.append(owner.team)
    return teams
