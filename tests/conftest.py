import os
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(
        ["git", "init", str(repo)],
        capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "-C", str(repo), "config", "user.name", "Test User"],
        capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "-C", str(repo), "config", "user.email", "test@example.com"],
        capture_output=True, check=True,
    )
    return repo


def commit_file(
    repo: Path,
    file_path: str,
    content: str,
    message: str,
    days_ago: int = 0,
) -> str:
    """Write *file_path*, commit it at a known relative date, return the commit hash."""
    full_path = repo / file_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    full_path.write_text(content)

    date = datetime.now(timezone.utc) - timedelta(days=days_ago)
    date_str = date.strftime("%Y-%m-%dT%H:%M:%S %z")

    subprocess.run(
        ["git", "-C", str(repo), "add", file_path],
        capture_output=True, check=True,
    )
    env = {
        **os.environ,
        "GIT_AUTHOR_DATE": date_str,
        "GIT_COMMITTER_DATE": date_str,
        "GIT_AUTHOR_NAME": "Test User",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test User",
        "GIT_COMMITTER_EMAIL": "test@example.com",
    }
    subprocess.run(
        ["git", "-C", str(repo), "commit", "-m", message],
        capture_output=True, check=True,
        env=env,
    )
    result = subprocess.run(
        ["git", "-C", str(repo), "rev-parse", "HEAD"],
        capture_output=True, check=True, text=True,
    )
    return result.stdout.strip()


# Complexity of `score` grows 2 -> 5 -> 9 across the three commits,
# while `shrink` goes 4 -> 2 -> 1.
PY_V1 = """\
def score(a):
    if a:
        return 1
    return 0


def shrink(x):
    if x > 1:
        return 1
    if x > 2:
        return 2
    for _ in range(x):
        pass
    return 0
"""

PY_V2 = """\
def score(a, b, c):
    if a:
        return 1
    if b and c:
        return 2
    for _ in range(3):
        pass
    return 0


def shrink(x):
    if x > 1:
        return 1
    return 0
"""

PY_V3 = """\
def score(a, b, c, d):
    if a:
        return 1
    if b and c:
        return 2
    for _ in range(3):
        pass
    if a or b:
        return 3
    if c and d:
        return 4
    return 0


def shrink(x):
    return x
"""


@pytest.fixture
def history_repo(tmp_git_repo: Path) -> tuple[Path, list[str]]:
    """Repo with three commits of src/app/core.py plus a README."""
    commits = []
    commit_file(tmp_git_repo, "README.md", "# Project\n", "Initial commit", days_ago=30)
    commits.append(commit_file(tmp_git_repo, "src/app/core.py", PY_V1, "Add core", days_ago=20))
    commits.append(commit_file(tmp_git_repo, "src/app/core.py", PY_V2, "Grow core", days_ago=10))
    commits.append(commit_file(tmp_git_repo, "src/app/core.py", PY_V3, "Grow core more", days_ago=1))
    return tmp_git_repo, commits
