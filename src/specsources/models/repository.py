from __future__ import annotations

from enum import StrEnum
from pathlib import Path

import semver
from pydantic import BaseModel, ConfigDict, field_validator


class Backend(StrEnum):
    GIT = "git"
    UNKNOWN = "unknown"


def parse_version(value: object) -> semver.Version:
    """Parse a semantic version; ``1.10`` and ``2`` are padded to three parts.

    Raises ``ValueError`` for anything that is not a semantic version.
    """
    if isinstance(value, semver.Version):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid version: {value!r} (expected a string)")
    return semver.Version.parse(value.strip(), optional_minor_and_patch=True)


class Repository(BaseModel):
    """A named directory of package specifications under the repositories root."""

    model_config = ConfigDict(frozen=True)

    name: str  # Matches the directory name
    path: Path
    backend: Backend = Backend.UNKNOWN

    @property
    def is_git(self) -> bool:
        return self.backend is Backend.GIT


class CompatibilityMetadata(BaseModel):
    """Tool-version bounds declared by a repository.

    Every field is optional; an empty value places no constraint on the tool.
    Versions follow semver ordering, so ``1.0.0-1`` sorts before ``1.0.0``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    min: semver.Version | None = None
    max: semver.Version | None = None
    last: semver.Version | None = None  # Newest released tool version known to the repo

    @field_validator("min", "max", "last", mode="before")
    @classmethod
    def _parse_bound(cls, v: object) -> semver.Version | None:
        if v is None:
            return None
        return parse_version(v)

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None and self.last is None
