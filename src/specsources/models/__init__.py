from __future__ import annotations

from specsources.models.repository import (
    Backend,
    CompatibilityMetadata,
    Repository,
    parse_version,
)
from specsources.models.search import (
    PackageSet,
    PackageSpecSummary,
    SearchEntry,
    SearchIndex,
)
from specsources.models.sync import SyncResult, SyncStatus, UpdateReport

__all__ = [
    # repository
    "Backend",
    "Repository",
    "CompatibilityMetadata",
    "parse_version",
    # search
    "PackageSpecSummary",
    "PackageSet",
    "SearchEntry",
    "SearchIndex",
    # sync
    "SyncStatus",
    "SyncResult",
    "UpdateReport",
]
