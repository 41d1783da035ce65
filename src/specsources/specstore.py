"""Specification store: turns a repository directory into package-set summaries.

The repository manager only depends on ``SpecificationStore``. The bundled
``DirectorySpecStore`` understands the plain on-disk layout::

    <repo>/<Name>/<version>/<Name>.spec.json

where each document is a JSON object with at least ``name`` and ``version``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from specsources.errors import SpecStoreError
from specsources.models import PackageSpecSummary
from specsources.models.search import version_key

if TYPE_CHECKING:
    from pathlib import Path

SPEC_SUFFIX = ".spec.json"


class SpecificationStore(Protocol):
    def list_package_sets(self, repo_path: Path) -> list[PackageSpecSummary]: ...

    def package_summary(self, repo_path: Path, name: str) -> PackageSpecSummary | None: ...


class SpecDocument(BaseModel):
    """The fields of a specification document the search index cares about."""

    model_config = ConfigDict(extra="ignore")

    name: str
    version: str
    summary: str = ""
    description: str = ""


class DirectorySpecStore:
    def list_package_sets(self, repo_path: Path) -> list[PackageSpecSummary]:
        summaries: list[PackageSpecSummary] = []
        for pod_dir in sorted(repo_path.iterdir()):
            if not pod_dir.is_dir() or pod_dir.name.startswith("."):
                continue
            summary = self._summary(pod_dir)
            if summary is not None:
                summaries.append(summary)
        return summaries

    def package_summary(self, repo_path: Path, name: str) -> PackageSpecSummary | None:
        """Read only ``<repo>/<name>/``; None when the repository has no such package."""
        pod_dir = repo_path / name
        if name.startswith(".") or pod_dir.parent != repo_path or not pod_dir.is_dir():
            return None
        return self._summary(pod_dir)

    def _summary(self, pod_dir: Path) -> PackageSpecSummary | None:
        versions = sorted(
            (v.name for v in pod_dir.iterdir() if v.is_dir()),
            key=version_key,
            reverse=True,
        )
        if not versions:
            return None
        document = self._read(pod_dir / versions[0] / f"{pod_dir.name}{SPEC_SUFFIX}")
        return PackageSpecSummary(
            name=pod_dir.name,
            version=versions[0],
            versions=versions,
            summary=document.summary if document else "",
            description=document.description if document else "",
        )

    @staticmethod
    def _read(path: Path) -> SpecDocument | None:
        if not path.is_file():
            return None
        try:
            return SpecDocument.model_validate_json(path.read_bytes())
        except ValidationError as exc:
            raise SpecStoreError(str(path), str(exc)) from exc
