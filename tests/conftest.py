"""Shared fixtures: on-disk repositories and git upstream/clone pairs."""

from __future__ import annotations

import json
import shutil
import subprocess
from typing import TYPE_CHECKING

import pytest

from specsources.aggregate import RepositoryAggregate
from specsources.specstore import DirectorySpecStore

if TYPE_CHECKING:
    from pathlib import Path

JSONKIT_SUMMARY = "A very high performance Objective-C JSON library."
_GIT_IDENTITY = ["-c", "user.name=Spec Tests", "-c", "user.email=specs@example.com"]


def write_spec(
    repo: Path,
    name: str,
    version: str,
    summary: str = "",
    description: str = "",
) -> Path:
    """Write ``<repo>/<name>/<version>/<name>.spec.json`` and return its path."""
    spec_dir = repo / name / version
    spec_dir.mkdir(parents=True, exist_ok=True)
    path = spec_dir / f"{name}.spec.json"
    document = {"name": name, "version": version, "summary": summary, "description": description}
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *_GIT_IDENTITY, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_all(repo: Path, message: str) -> str:
    git(repo, "add", "--all")
    git(repo, "commit", "--quiet", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture()
def repos_dir(tmp_path: Path) -> Path:
    """A repositories root holding ``master`` and ``test_repo``."""
    root = tmp_path / "repos"
    master = root / "master"
    write_spec(master, "JSONKit", "1.4", summary=JSONKIT_SUMMARY)
    write_spec(master, "JSONKit", "1.5pre", summary=JSONKIT_SUMMARY)
    write_spec(master, "AFNetworking", "2.0.0", summary="A delightful networking framework.")

    test_repo = root / "test_repo"
    write_spec(test_repo, "BananaLib", "0.9", summary="Chunky bananas!")
    write_spec(
        test_repo,
        "BananaLib",
        "1.0",
        summary="Chunky bananas!",
        description="Full of chunky bananas.",
    )
    write_spec(test_repo, "JSONKit", "999.999.999", summary="Fork of JSONKit.")
    return root


@pytest.fixture()
def aggregate(repos_dir: Path) -> RepositoryAggregate:
    return RepositoryAggregate(repos_dir, DirectorySpecStore())


@pytest.fixture()
def git_upstream(tmp_path: Path) -> Path:
    """A bare upstream seeded with one commit on ``main``."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    seed = tmp_path / "seed"
    seed.mkdir()
    git(seed, "init", "--quiet")
    git(seed, "checkout", "--quiet", "-b", "main")
    write_spec(seed, "BananaLib", "1.0", summary="Chunky bananas!")
    commit_all(seed, "Add BananaLib")

    upstream = tmp_path / "upstream.git"
    git(tmp_path, "clone", "--quiet", "--bare", str(seed), str(upstream))
    return upstream


@pytest.fixture()
def git_repos_dir(tmp_path: Path, git_upstream: Path) -> Path:
    """A repositories root whose ``master`` is a clone of ``git_upstream``."""
    root = tmp_path / "git-repos"
    root.mkdir()
    git(root, "clone", "--quiet", str(git_upstream), "master")
    return root


@pytest.fixture()
def push_upstream(tmp_path: Path, git_upstream: Path):
    """Commit files to the upstream through a scratch clone."""
    counter = iter(range(1000))

    def push(files: dict[str, str], message: str = "Upstream change") -> str:
        work = tmp_path / f"work-{next(counter)}"
        git(tmp_path, "clone", "--quiet", str(git_upstream), str(work))
        for relative, content in files.items():
            target = work / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        sha = commit_all(work, message)
        git(work, "push", "--quiet", "origin", "HEAD:main")
        return sha

    return push


@pytest.fixture()
def spec_writer():
    return write_spec


@pytest.fixture()
def run_git():
    return git
