from __future__ import annotations

from datetime import datetime

from packaging.version import InvalidVersion, Version
from pydantic import BaseModel


def version_key(value: str) -> tuple[int, Version | str]:
    """Sort key that orders valid versions semantically and the rest lexically after them."""
    try:
        return (1, Version(value))
    except InvalidVersion:
        return (0, value)


class PackageSpecSummary(BaseModel):
    """Lightweight view of one package set as reported by the specification store."""

    name: str
    version: str  # Highest version present in the repository
    versions: list[str] = []
    summary: str = ""
    description: str = ""


class PackageSet(BaseModel):
    """All known versions of a package, merged across repositories."""

    name: str
    versions: list[str]  # Highest first
    repositories: list[str]
    summary: str = ""

    @property
    def highest_version(self) -> str:
        return self.versions[0]


class SearchEntry(BaseModel):
    name: str
    version: str
    normalized_text: str  # lowercase name + summary + description
    repository: str

    @classmethod
    def from_summary(cls, summary: PackageSpecSummary, repository: str) -> SearchEntry:
        parts = (summary.name, summary.summary, summary.description)
        text = " ".join(part for part in parts if part)
        return cls(
            name=summary.name,
            version=summary.version,
            normalized_text=text.lower(),
            repository=repository,
        )


class SearchIndex(BaseModel):
    """Search entries grouped by repository, stamped with the time they were built."""

    by_repository: dict[str, dict[str, SearchEntry]] = {}
    built_at: datetime

    @property
    def entries(self) -> dict[str, SearchEntry]:
        """Entries keyed by package name; the highest version wins across repositories."""
        merged: dict[str, SearchEntry] = {}
        for repo_name in sorted(self.by_repository):
            for name, entry in self.by_repository[repo_name].items():
                current = merged.get(name)
                if current is None or version_key(entry.version) > version_key(current.version):
                    merged[name] = entry
        return merged

    @property
    def repositories(self) -> set[str]:
        return set(self.by_repository)

    def holders(self, name: str) -> list[str]:
        """Names of the indexed repositories that contain package *name*."""
        return sorted(repo for repo, entries in self.by_repository.items() if name in entries)
