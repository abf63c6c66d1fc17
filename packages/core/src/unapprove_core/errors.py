"""Error taxonomy for a dismissal run.

Only the two classes below are fatal. Everything else that can go wrong
(a missing CODEOWNERS file, one commit's detail, one team lookup, one
dismissal call) is recovered where it happens and never reaches the CLI.
"""


class ConfigurationError(ValueError):
    """A run identifier is missing or malformed. Raised before any network access."""


class UpstreamReadError(RuntimeError):
    """A mandatory read from GitHub failed (pull request, files, reviews or commits)."""
