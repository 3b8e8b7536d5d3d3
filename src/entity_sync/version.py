"""
Version management for entity sync.
"""

import os
import subprocess
from typing import Optional

# Base version - update this for releases
BASE_VERSION = "0.1.0"

def get_git_commit_sha() -> Optional[str]:
    """Get the current git commit SHA."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=os.path.dirname(os.path.abspath(__file__))
        )
    except OSError:
        return None
    if result.returncode == 0:
        return result.stdout.strip() or None
    return None

def get_version() -> str:
    """
    Get the current version: base version plus commit SHA when running
    from a git checkout, otherwise the base version.
    """
    if os.getenv("ENTITY_SYNC_VERSION"):
        return os.environ["ENTITY_SYNC_VERSION"]
    commit_sha = get_git_commit_sha()
    if commit_sha:
        return f"{BASE_VERSION}+{commit_sha}"
    return BASE_VERSION

__version__ = get_version()
