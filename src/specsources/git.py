"""Git backend: the narrow slice of git the syncer needs.

Every command runs as a subprocess with interactive prompts disabled and a
hard timeout, so an unreachable or credential-protected remote fails instead
of hanging.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from specsources.errors import GitCommandError

if TYPE_CHECKING:
    from pathlib import Path

    from specsources.models import Repository

log = structlog.get_logger()


@dataclass(frozen=True)
class GitOutput:
    stdout: str
    stderr: str

    @property
    def text(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class GitBackend:
    def __init__(self, executable: str = "git", timeout_seconds: float = 300.0) -> None:
        self._executable = executable
        self._timeout = timeout_seconds

    @staticmethod
    def is_repo(path: Path) -> bool:
        """True when *path* is the top of a git working tree."""
        return (path / ".git").exists()

    async def fetch(self, repo: Repository) -> GitOutput:
        """Download the remote's state. Never touches the working tree."""
        return await self._run(repo.path, "fetch", "--quiet")

    async def fast_forward_update(self, repo: Repository) -> tuple[bool, GitOutput]:
        """Fast-forward the current branch to its upstream.

        Returns ``(changed, output)``. Diverged history makes git refuse the
        merge, which surfaces as ``GitCommandError``.
        """
        before = await self.head(repo.path)
        output = await self._run(repo.path, "merge", "--ff-only", "@{upstream}")
        after = await self.head(repo.path)
        return before != after, output

    async def head(self, path: Path) -> str:
        output = await self._run(path, "rev-parse", "HEAD")
        return output.stdout

    async def _run(self, cwd: Path, *args: str) -> GitOutput:
        argv = [self._executable, "-C", str(cwd), *args]
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "LC_ALL": "C"}
        log.debug("git_command", argv=argv)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise GitCommandError(argv, f"Unable to run {self._executable}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise GitCommandError(
                argv, f"git {args[0]} timed out after {self._timeout:g} seconds"
            ) from None

        output = GitOutput(
            stdout=stdout.decode("utf-8", errors="replace").strip(),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
        )
        if proc.returncode != 0:
            detail = output.stderr or output.stdout or f"git {args[0]} failed"
            raise GitCommandError(argv, detail, returncode=proc.returncode)
        return output
