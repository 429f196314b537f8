from __future__ import annotations

import subprocess
import sys
from importlib import import_module
from pathlib import Path

VERSIONED_LIBRARIES = ["numpy", "pandas", "scipy", "sklearn", "statsmodels", "patsy", "matplotlib"]


def _git(project_root: Path, *args: str) -> str:
    return subprocess.check_output(
        ["git", *args], cwd=project_root, text=True, stderr=subprocess.DEVNULL
    ).strip()


def git_commit_and_dirty(project_root: Path) -> tuple[str, bool]:
    """HEAD commit and whether the work tree has uncommitted changes.

    Outside a git checkout (or without git) this reports ``("UNKNOWN", True)``.
    """
    try:
        return _git(project_root, "rev-parse", "HEAD"), bool(_git(project_root, "status", "--porcelain"))
    except (OSError, subprocess.CalledProcessError):
        return "UNKNOWN", True


def library_versions() -> dict[str, str]:
    versions = {"python": sys.version.split()[0]}
    for name in VERSIONED_LIBRARIES:
        versions[name] = getattr(import_module(name), "__version__", "UNKNOWN")
    return versions
