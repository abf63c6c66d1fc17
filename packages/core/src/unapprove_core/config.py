import os
from pathlib import Path
from typing import Optional

import yaml

from unapprove_core.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "team_prefix": "@",
    "dry_run": True,
    "codeowners_file": "CODEOWNERS",
    "target_branch": "main",  # ref the ownership file is read from
    "changed_files": None,  # list of paths; None = ask GitHub for the PR's files
    "repository": None,
    "pr_number": None,
}

# Environment variable -> config key. These are what the GitHub Actions workflow sets.
_ENV_KEYS = {
    "TEAM_START_WITH": "team_prefix",
    "CODEOWNERS_FILE": "codeowners_file",
    "TARGET_BRANCH": "target_branch",
    "GITHUB_REPOSITORY": "repository",
    "PR_NUMBER": "pr_number",
}


def parse_changed_files(value: str) -> list[str]:
    """Split a newline-separated file list, dropping blank lines."""
    return [line.strip() for line in value.splitlines() if line.strip()]


def load_config(config_path: str = ".unapprove.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .unapprove.yml in the current directory
      3. Environment variables (TEAM_START_WITH, DRY_RUN, CODEOWNERS_FILE,
         TARGET_BRANCH, CHANGED_FILES, GITHUB_REPOSITORY, PR_NUMBER)
      4. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    for env_name, key in _ENV_KEYS.items():
        value = os.environ.get(env_name)
        if value:
            config[key] = value

    # Anything but an explicit "false" keeps the run dry.
    dry_run = os.environ.get("DRY_RUN")
    if dry_run is not None:
        config["dry_run"] = dry_run.strip().lower() != "false"

    changed_files = os.environ.get("CHANGED_FILES")
    if changed_files:
        config["changed_files"] = parse_changed_files(changed_files)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


def validate_run_config(config: dict) -> tuple[str, str, int]:
    """Check the run identifiers and return (owner, repo, pr_number).

    Raises ConfigurationError; nothing here touches the network.
    """
    if not config.get("github_token"):
        raise ConfigurationError("GITHUB_TOKEN environment variable is required")

    pr_number = config.get("pr_number")
    if pr_number in (None, ""):
        raise ConfigurationError("PR_NUMBER environment variable is required")
    try:
        pr_number = int(pr_number)
    except (TypeError, ValueError):
        raise ConfigurationError(f"PR number must be an integer, got {pr_number!r}")

    repository = config.get("repository")
    if not repository:
        raise ConfigurationError("GITHUB_REPOSITORY environment variable is required")
    owner, _, repo = str(repository).partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigurationError(f'GITHUB_REPOSITORY must be in format "owner/repo", got {repository!r}')

    return owner, repo, pr_number
