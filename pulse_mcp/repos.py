"""
Repository setup for the Pulse projects.

Clones the fixed project repository list under a target directory,
skipping any that are already there. With --authenticate the clone runs
under a temporary git credential helper built from
SOURCE_HOSTING_USERNAME / SOURCE_HOSTING_TOKEN; the previous helper is
restored afterwards whether or not the clone succeeded.

Usage:
    pulse-repos ~/src/pulse
    pulse-repos ~/src/pulse --authenticate
"""

import argparse
import logging
import os
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .config import (
    ENV_SOURCE_HOSTING_TOKEN,
    ENV_SOURCE_HOSTING_USERNAME,
    REPOS,
    REPOS_BASE_URL,
    load_settings,
)
from .shell import run_cli

logger = logging.getLogger(__name__)

CLONE_TIMEOUT = 300
CREDENTIAL_HOST = "github.com"

SKIPPED = "skipped"
CLONED = "cloned"


class CloneError(Exception):
    """A repository could not be cloned."""


def _run_git(args: List[str], cwd: Optional[Path] = None, timeout: int = 60) -> tuple:
    """Run a git command and return (success, output)."""
    return run_cli(["git", *args], timeout=timeout, cwd=cwd)


def clone_repositories(
    target_dir: Path,
    repos: Sequence[str] = REPOS,
    base_url: str = REPOS_BASE_URL,
) -> Dict[str, str]:
    """
    Clone every repository that isn't already present.

    Args:
        target_dir: Directory to clone into (created if missing)
        repos: Repository names under base_url
        base_url: Owner URL, e.g. https://github.com/anandroid

    Returns:
        Repository name -> "skipped" or "cloned"

    Raises:
        CloneError: On the first clone that fails
    """
    target = Path(target_dir).expanduser()
    target.mkdir(parents=True, exist_ok=True)

    results = {}
    for repo in repos:
        if (target / repo).is_dir():
            logger.info(f"⚪ {repo} already exists, skipping clone")
            results[repo] = SKIPPED
            continue

        logger.info(f"Cloning {repo}...")
        url = f"{base_url.rstrip('/')}/{repo}.git"
        ok, output = _run_git(["clone", url, repo], cwd=target, timeout=CLONE_TIMEOUT)
        if not ok:
            raise CloneError(f"Clone of {repo} failed: {output}")
        logger.info(f"✅ Cloned {repo}")
        results[repo] = CLONED

    logger.info(f"All repositories are ready in {target}")
    return results


@contextmanager
def temporary_credential_helper(username: str, token: str, host: str = CREDENTIAL_HOST) -> Iterator[Path]:
    """
    Install a global git "store" credential helper for the duration of the block.

    The previous credential.helper is restored on exit, or unset if there
    was none, and the credentials file is deleted.
    """
    ok, original = _run_git(["config", "--global", "--get", "credential.helper"])
    original_helper = original if ok and original else None

    fd, path = tempfile.mkstemp(prefix="pulse-credentials-")
    creds_file = Path(path)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(f"https://{username}:{token}@{host}\n")
        os.chmod(creds_file, 0o600)

        ok, output = _run_git(["config", "--global", "credential.helper", f"store --file={creds_file}"])
        if not ok:
            raise CloneError(f"Failed to install credential helper: {output}")

        yield creds_file
    finally:
        if original_helper:
            _run_git(["config", "--global", "credential.helper", original_helper])
        else:
            _run_git(["config", "--global", "--unset", "credential.helper"])
        creds_file.unlink(missing_ok=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="pulse-repos", description="Clone the Pulse repositories")
    parser.add_argument("target", nargs="?", default=".", help="Target directory (default: current directory)")
    parser.add_argument(
        "--authenticate",
        action="store_true",
        help=f"Use {ENV_SOURCE_HOSTING_USERNAME}/{ENV_SOURCE_HOSTING_TOKEN} via a temporary credential helper",
    )
    parser.add_argument("--config", help="Path to a JSON settings file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    settings = load_settings(args.config)
    repos_settings = settings.get("repos", {})
    repos = repos_settings.get("names", list(REPOS))
    base_url = repos_settings.get("base_url", REPOS_BASE_URL)

    try:
        if args.authenticate:
            username = os.getenv(ENV_SOURCE_HOSTING_USERNAME)
            token = os.getenv(ENV_SOURCE_HOSTING_TOKEN)
            if not username or not token:
                logger.error(f"{ENV_SOURCE_HOSTING_USERNAME} and {ENV_SOURCE_HOSTING_TOKEN} must be set")
                return 1
            with temporary_credential_helper(username, token):
                clone_repositories(Path(args.target), repos, base_url)
        else:
            clone_repositories(Path(args.target), repos, base_url)
    except CloneError as e:
        logger.error(f"❌ {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
