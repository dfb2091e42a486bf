"""Name derivation for migration targets."""

import re

_INVALID_CHARACTERS = re.compile(r'[^A-Za-z0-9_.-]+')


def sanitize(name: str) -> str:
    """Replace each run of characters GitHub does not allow with one dash.

    Case is preserved. ``'Parts Unlimited'`` becomes ``'Parts-Unlimited'``.
    """
    return _INVALID_CHARACTERS.sub('-', name)


def target_repo_name(team_project: str, repo: str) -> str:
    """Derive the GitHub repository name for an ADO repository."""
    return f'{sanitize(team_project)}-{sanitize(repo)}'


def migration_key(org: str, target_name: str) -> str:
    """Stable key identifying a migration unit inside a script."""
    return f'{org}/{target_name}'
