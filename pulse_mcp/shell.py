"""
Shared CLI execution utilities.

Every external command (gcloud, git) goes through run_cli so that missing
binaries and timeouts come back as failed results instead of exceptions.
"""

import subprocess
from pathlib import Path
from typing import List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def run_cli(
    args: List[str],
    timeout: int = DEFAULT_TIMEOUT,
    cwd: Optional[Path] = None,
) -> Tuple[bool, str]:
    """
    Run a command without a shell and capture its output.

    Args:
        args: Program and arguments (e.g. ["gcloud", "config", "get-value", "project"])
        timeout: Timeout in seconds (default: 30)
        cwd: Working directory (default: current directory)

    Returns:
        Tuple of (success, output). On success the output is trimmed stdout;
        on failure it is trimmed stderr, or a description of what went wrong.
    """
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError:
        return False, f"{args[0]} not found"
    except subprocess.TimeoutExpired:
        return False, f"{args[0]} timed out after {timeout}s"
    except OSError as e:
        return False, f"{args[0]} failed to start: {e}"

    if result.returncode != 0:
        output = result.stderr.strip() or result.stdout.strip()
        logger.debug(f"{' '.join(args)} exited with {result.returncode}")
        return False, output or f"exit code {result.returncode}"

    return True, result.stdout.strip()
