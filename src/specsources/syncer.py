"""Fast-forward-only repository sync.

A sync never rewrites or merges local history: if the local branch has
diverged from its upstream, git refuses the fast-forward and the attempt ends
as ``failed`` with git's own diagnostic. Failures are returned, not raised, so
one broken repository cannot abort a pass over all of them.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog

from specsources.errors import SyncFailedError, UnsupportedBackendError
from specsources.models import Backend, SyncResult

if TYPE_CHECKING:
    from specsources.git import GitBackend
    from specsources.models import Repository

log = structlog.get_logger()


class RepositorySyncer:
    def __init__(self, git: GitBackend) -> None:
        self._git = git

    async def sync(self, repo: Repository, show_output: bool = False) -> SyncResult:
        match repo.backend:
            case Backend.GIT:
                return await self._sync_git(repo, show_output)
            case Backend.UNKNOWN:
                error = UnsupportedBackendError(repo.name)
                log.warning("repository_sync_skipped", repository=repo.name, reason=error.message)
                return SyncResult.failed(repo.name, error.message)

    async def _sync_git(self, repo: Repository, show_output: bool) -> SyncResult:
        if not os.access(repo.path, os.W_OK):
            reason = f"You need read-write access to {repo.path} to update it."
            log.warning("repository_sync_failed", repository=repo.name, reason=reason)
            return SyncResult.failed(repo.name, reason)

        try:
            fetched = await self._git.fetch(repo)
            changed, merged = await self._git.fast_forward_update(repo)
        except SyncFailedError as exc:
            log.warning("repository_sync_failed", repository=repo.name, reason=exc.reason)
            return SyncResult.failed(repo.name, exc.reason)

        output = "\n".join(part for part in (fetched.text, merged.text) if part)
        if show_output and output:
            log.info("repository_sync_output", repository=repo.name, output=output)

        if changed:
            log.info("repository_updated", repository=repo.name)
            return SyncResult.updated(repo.name, output)
        log.info("repository_up_to_date", repository=repo.name)
        return SyncResult.up_to_date(repo.name, output)
