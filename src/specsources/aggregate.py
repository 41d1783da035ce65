"""The set of all repositories under the repositories root.

Listings are rebuilt on every call; nothing here is cached.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

import structlog

from specsources.errors import SpecStoreError, UnknownRepositoryError
from specsources.git import GitBackend
from specsources.models import Backend, PackageSet, PackageSpecSummary, Repository, SearchEntry
from specsources.models.search import version_key

if TYPE_CHECKING:
    from pathlib import Path

    from specsources.specstore import SpecificationStore

log = structlog.get_logger()

MergeStrategy = Callable[[str, list[tuple[Repository, PackageSpecSummary]]], PackageSet]


def merge_package_sets(
    name: str, found: list[tuple[Repository, PackageSpecSummary]]
) -> PackageSet:
    """Default merge: union of versions, repositories in name order, first non-empty summary."""
    versions: set[str] = set()
    summary = ""
    for _, spec in found:
        versions.update(spec.versions or [spec.version])
        summary = summary or spec.summary
    return PackageSet(
        name=name,
        versions=sorted(versions, key=version_key, reverse=True),
        repositories=sorted({repo.name for repo, _ in found}),
        summary=summary,
    )


class RepositoryAggregate:
    def __init__(
        self,
        repos_dir: Path,
        store: SpecificationStore,
        master_name: str = "master",
        merge: MergeStrategy = merge_package_sets,
    ) -> None:
        self.repos_dir = repos_dir
        self.master_name = master_name
        self._store = store
        self._merge = merge

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def list(self) -> list[Repository]:
        if not self.repos_dir.is_dir():
            return []
        return [
            self._repository(path)
            for path in sorted(self.repos_dir.iterdir(), key=lambda p: p.name)
            if path.is_dir() and not path.name.startswith(".")
        ]

    def find_by_name(self, name: str) -> Repository | None:
        path = self.repos_dir / name
        if name.startswith(".") or not path.is_dir() or path.parent != self.repos_dir:
            return None
        return self._repository(path)

    def sources(self, names: Iterable[str]) -> list[Repository]:
        """Resolve repository names in the given order; no names means the master repo."""
        names = list(names) or [self.master_name]
        repos = []
        for name in names:
            repo = self.find_by_name(name)
            if repo is None:
                raise UnknownRepositoryError(name)
            repos.append(repo)
        return repos

    # ------------------------------------------------------------------
    # Package sets
    # ------------------------------------------------------------------

    def package_summaries(
        self, repos: Iterable[Repository] | None = None, name: str | None = None
    ) -> list[tuple[Repository, PackageSpecSummary]]:
        """Summaries from every readable repository, skipping unreadable ones.

        With *name* only ``<repo>/<name>`` is read in each repository.
        """
        found = []
        for repo in self.list() if repos is None else repos:
            try:
                if name is None:
                    summaries = self._store.list_package_sets(repo.path)
                else:
                    summary = self._store.package_summary(repo.path, name)
                    summaries = [] if summary is None else [summary]
            except (SpecStoreError, OSError) as exc:
                log.warning("repository_read_error", repository=repo.name, error=str(exc))
                continue
            found.extend((repo, s) for s in summaries)
        return found

    def package_set(
        self, name: str, repos: Iterable[Repository] | None = None
    ) -> PackageSet | None:
        """The set named *name*, looked up in *repos* (default: every repository)."""
        found = self.package_summaries(repos, name=name)
        if not found:
            return None
        return self._merge(name, found)

    def package_sets(self, names: Iterable[str] | None = None) -> list[PackageSet]:
        """Merged package sets sorted by name, optionally limited to *names*."""
        if names is not None:
            repos = self.list()
            sets = (self.package_set(name, repos) for name in sorted(set(names)))
            return [s for s in sets if s is not None]

        grouped: dict[str, list[tuple[Repository, PackageSpecSummary]]] = {}
        for repo, spec in self.package_summaries():
            grouped.setdefault(spec.name, []).append((repo, spec))
        return [self._merge(name, grouped[name]) for name in sorted(grouped)]

    def all_package_sets(self) -> list[PackageSet]:
        return self.package_sets()

    # ------------------------------------------------------------------
    # Search entries
    # ------------------------------------------------------------------

    def search_entries(self, repo: Repository) -> list[SearchEntry]:
        return [SearchEntry.from_summary(s, repo.name) for _, s in self.package_summaries([repo])]

    def all_search_entries(self) -> list[SearchEntry]:
        return [SearchEntry.from_summary(s, repo.name) for repo, s in self.package_summaries()]

    @staticmethod
    def _repository(path: Path) -> Repository:
        backend = Backend.GIT if GitBackend.is_repo(path) else Backend.UNKNOWN
        return Repository(name=path.name, path=path.resolve(), backend=backend)
