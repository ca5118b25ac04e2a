import shutil
import subprocess
from pathlib import Path
from typing import Callable, List

import pytest

from abp_adoption.constants import DEFAULT_STANDARDS_TOPICS

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def write_standards_tree(root: Path) -> Path:
    """
    Creates a minimal standards checkout: README.md plus every default guide.

    Args:
        root (Path): Directory to populate.

    Returns:
        Path: The same directory.
    """
    root.mkdir(parents=True, exist_ok=True)
    (root / "README.md").write_text("# Agentic Best Practices\n", encoding="utf-8")
    for topic, guide in DEFAULT_STANDARDS_TOPICS:
        path = root / guide
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"# {topic}\n", encoding="utf-8")
    return root


@pytest.fixture
def standards_dir(tmp_path: Path) -> Path:
    return write_standards_tree(tmp_path / "standards")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "my-api"
    project.mkdir()
    return project


def git(repo: Path, *args: str) -> str:
    """Runs git in repo with a fixed identity and returns stdout."""
    result = subprocess.run(
        [
            "git",
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "tag.gpgsign=false",
            *args,
        ],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def standards_repo(standards_dir: Path) -> Path:
    """A git repository holding the standards tree, tagged v1.0.0."""
    git(standards_dir, "init", "-q")
    git(standards_dir, "add", ".")
    git(standards_dir, "commit", "-q", "-m", "Initial guides")
    git(standards_dir, "tag", "v1.0.0")
    return standards_dir


@pytest.fixture
def commit_change(standards_repo: Path) -> Callable[[str], str]:
    """Returns a helper that commits a README change and returns the new SHA."""

    def _commit(message: str) -> str:
        readme = standards_repo / "README.md"
        readme.write_text(readme.read_text(encoding="utf-8") + f"\n{message}\n", encoding="utf-8")
        git(standards_repo, "commit", "-q", "-am", message)
        return git(standards_repo, "rev-parse", "HEAD")

    return _commit


def backups_of(path: Path) -> List[Path]:
    return sorted(path.parent.glob(f"{path.name}.bak.*"))
