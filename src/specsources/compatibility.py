"""Tool-version compatibility gate.

Each repository may declare the range of tool versions able to read it in
``specsources-version.yml``::

    min: 0.18.1
    max: 1.0.0
    last: 0.29.0

A missing document means "compatible with everything". A document left with
merge-conflict markers is rejected outright; guessing which side of the
conflict is right could let an incompatible tool through.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import semver
import structlog
import yaml
from pydantic import ValidationError

from specsources.errors import IncompatibleRepositoryError, MalformedMetadataError
from specsources.models import CompatibilityMetadata, parse_version

if TYPE_CHECKING:
    from specsources.models import Repository

log = structlog.get_logger()

VERSION_FILE = "specsources-version.yml"

_CONFLICT_MARKER = re.compile(r"^(<{7}|={7}|>{7})(\s|$)", re.MULTILINE)


def is_compatible(current: semver.Version, metadata: CompatibilityMetadata) -> bool:
    return violated_bound(current, metadata) is None


def violated_bound(current: semver.Version, metadata: CompatibilityMetadata) -> str | None:
    """Name of the first bound ``current`` falls outside of, or None."""
    if metadata.min is not None and current < metadata.min:
        return "min"
    if metadata.max is not None and current > metadata.max:
        return "max"
    return None


def update_available(current: semver.Version, metadata: CompatibilityMetadata) -> bool:
    return metadata.last is not None and metadata.last > current


class VersionCompatibilityChecker:
    def __init__(self, current_version: str | semver.Version) -> None:
        self.current_version = parse_version(current_version)

    def read_metadata(self, repo: Repository) -> CompatibilityMetadata:
        path = repo.path / VERSION_FILE
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            return CompatibilityMetadata()

        if _CONFLICT_MARKER.search(text):
            raise MalformedMetadataError(repo.name, str(path), "unresolved merge conflict")

        try:
            # Scalars stay strings: `min: 1.10` must not become the float 1.1
            data = yaml.load(text, Loader=yaml.BaseLoader)
        except yaml.YAMLError as exc:
            raise MalformedMetadataError(repo.name, str(path), "invalid YAML") from exc
        if not data:
            return CompatibilityMetadata()
        if not isinstance(data, dict):
            raise MalformedMetadataError(repo.name, str(path), "expected a mapping")

        try:
            return CompatibilityMetadata.model_validate(
                {key: data.get(key) or None for key in ("min", "max", "last")}
            )
        except ValidationError as exc:
            raise MalformedMetadataError(repo.name, str(path), "invalid version") from exc

    def assert_compatible(
        self, repo: Repository, current_version: semver.Version | None = None
    ) -> CompatibilityMetadata:
        """Raise ``IncompatibleRepositoryError`` when the tool is out of bounds.

        ``current_version`` defaults to the running tool. Returns the metadata
        read so callers can reuse it for update notices.
        """
        current = self.current_version if current_version is None else current_version
        metadata = self.read_metadata(repo)
        bound = violated_bound(current, metadata)
        if bound is not None:
            required = getattr(metadata, bound)
            log.error(
                "repository_incompatible",
                repository=repo.name,
                bound=bound,
                required=str(required),
                current=str(current),
            )
            raise IncompatibleRepositoryError(repo.name, bound, str(required), str(current))
        return metadata

    def is_repository_compatible(self, repo: Repository) -> bool:
        if not repo.is_git:
            return True
        return is_compatible(self.current_version, self.read_metadata(repo))

    def update_notice(self, metadata: CompatibilityMetadata) -> str | None:
        if not update_available(self.current_version, metadata):
            return None
        return (
            f"specsources {metadata.last} is available "
            f"(currently using {self.current_version})."
        )
