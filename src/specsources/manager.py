"""Repository manager: the facade callers use for listing, search and updates.

The manager owns the in-memory search index for its lifetime. Every
repository-local failure during an update is collected into the returned
report; only an incompatible master repository (or an unknown repository
name) is raised.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from specsources import __version__
from specsources import search_index as si
from specsources.aggregate import MergeStrategy, RepositoryAggregate, merge_package_sets
from specsources.compatibility import VersionCompatibilityChecker
from specsources.errors import MalformedMetadataError, UnknownRepositoryError
from specsources.git import GitBackend
from specsources.logging_config import configure_logging
from specsources.models import SyncStatus, UpdateReport
from specsources.specstore import DirectorySpecStore, SpecificationStore
from specsources.syncer import RepositorySyncer

if TYPE_CHECKING:
    from pathlib import Path

    from specsources.config import Settings
    from specsources.models import PackageSet, Repository, SearchIndex

log = structlog.get_logger()


class RepositoryManager:
    def __init__(
        self,
        repos_dir: Path,
        search_index_path: Path,
        *,
        tool_version: str = __version__,
        master_name: str = "master",
        git: GitBackend | None = None,
        store: SpecificationStore | None = None,
        merge: MergeStrategy = merge_package_sets,
        clock: Callable[[], datetime] = si.utc_now,
        timestamps: Callable[[list[Repository]], dict[str, datetime]] = si.repository_timestamps,
    ) -> None:
        self.aggregate = RepositoryAggregate(
            repos_dir, store or DirectorySpecStore(), master_name=master_name, merge=merge
        )
        self.syncer = RepositorySyncer(git or GitBackend())
        self.checker = VersionCompatibilityChecker(tool_version)
        self.search_index_path = search_index_path
        self.master_name = master_name
        self._clock = clock
        self._timestamps = timestamps
        self._search_index: SearchIndex | None = None

    @property
    def repos_dir(self) -> Path:
        return self.aggregate.repos_dir

    @property
    def master_repo_dir(self) -> Path:
        return self.repos_dir / self.master_name

    # ------------------------------------------------------------------
    # Listing and lookup
    # ------------------------------------------------------------------

    def all(self) -> list[Repository]:
        return self.aggregate.list()

    def all_sets(self) -> list[PackageSet]:
        return self.aggregate.all_package_sets()

    def sources(self, names: list[str]) -> list[Repository]:
        return self.aggregate.sources(names)

    def search(self, dependency_name: str) -> PackageSet | None:
        """The package set named exactly *dependency_name*, merged across repositories."""
        return self.aggregate.package_set(dependency_name)

    def master_repository_functional(self) -> bool:
        path = self.master_repo_dir
        return path.is_dir() and any(path.iterdir())

    # ------------------------------------------------------------------
    # Search index
    # ------------------------------------------------------------------

    async def search_by_name(self, query: str, full_text: bool = False) -> list[PackageSet]:
        """Package sets matching *query*, read only from the repositories that hold them."""
        index = await self.search_index()
        names = sorted({entry.name for entry in si.search_entries(index, query, full_text)})
        if not names:
            return []

        repos = {repo.name: repo for repo in self.all()}
        sets = []
        for name in names:
            holders = [repos[r] for r in index.holders(name) if r in repos]
            package_set = self.aggregate.package_set(name, holders)
            if package_set is not None:
                sets.append(package_set)
        return sets

    async def search_index(self) -> SearchIndex:
        """The current index, loading, generating or refreshing it as needed."""
        if self._search_index is None:
            self._search_index = await si.load_index(self.search_index_path)

        repos = self.all()
        if self._search_index is None:
            now = self._clock()
            self._search_index = si.generate_index(repos, self.aggregate.search_entries, now)
            await si.save_index(self._search_index, self.search_index_path)
            return self._search_index

        # Read the clock first so a write racing the mtime walk is newer than built_at
        now = self._clock()
        timestamps = self._timestamps(repos)
        if si.is_stale(self._search_index, timestamps):
            self._search_index = si.update_index(
                self._search_index, repos, timestamps, self.aggregate.search_entries, now
            )
            await si.save_index(self._search_index, self.search_index_path)
        return self._search_index

    # ------------------------------------------------------------------
    # Updating
    # ------------------------------------------------------------------

    async def update(
        self, repo_name: str | None = None, show_output: bool = False
    ) -> UpdateReport:
        """Sync one repository, or all of them, fast-forward only.

        Failed syncs become warnings and never stop the pass. Once every
        repository has been attempted, an updated master repository is checked
        for compatibility; ``IncompatibleRepositoryError`` propagates.
        """
        if repo_name is not None:
            repo = self.aggregate.find_by_name(repo_name)
            if repo is None:
                raise UnknownRepositoryError(repo_name)
            repos = [repo]
        else:
            repos = self.all()

        report = UpdateReport()
        master: Repository | None = None
        for repo in repos:
            result = await self.syncer.sync(repo, show_output=show_output)
            report.results.append(result)
            if result.status is SyncStatus.FAILED:
                report.warnings.append(f"Unable to update the `{repo.name}` repo: {result.reason}")
            elif result.status is SyncStatus.UPDATED and repo.name == self.master_name:
                master = repo

        if master is not None:
            try:
                report.notices.extend(self.check_version_information(master))
            except MalformedMetadataError as exc:
                report.warnings.append(str(exc))
        return report

    def check_version_information(self, repo: Repository) -> list[str]:
        """Run the compatibility gate for *repo*; return any update notices."""
        if not repo.is_git:
            return []
        metadata = self.checker.assert_compatible(repo)
        notice = self.checker.update_notice(metadata)
        if notice is None:
            return []
        log.info("tool_update_available", repository=repo.name, latest=str(metadata.last))
        return [notice]


def build_manager(settings: Settings) -> RepositoryManager:
    """Configure logging and wire a manager from *settings*."""
    configure_logging(settings.logging)
    return RepositoryManager(
        settings.repos_dir,
        settings.search_index_path,
        master_name=settings.repos.master_name,
        git=GitBackend(settings.git.executable, settings.git.timeout_seconds),
    )
