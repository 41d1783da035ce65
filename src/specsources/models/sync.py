from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class SyncStatus(StrEnum):
    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    FAILED = "failed"


class SyncResult(BaseModel):
    """Outcome of a single sync attempt. Never persisted."""

    repository: str
    status: SyncStatus
    reason: str | None = None  # Backend diagnostic, set only when failed
    output: str = ""  # Raw backend output, for callers that echo it

    @classmethod
    def up_to_date(cls, repository: str, output: str = "") -> SyncResult:
        return cls(repository=repository, status=SyncStatus.UP_TO_DATE, output=output)

    @classmethod
    def updated(cls, repository: str, output: str = "") -> SyncResult:
        return cls(repository=repository, status=SyncStatus.UPDATED, output=output)

    @classmethod
    def failed(cls, repository: str, reason: str, output: str = "") -> SyncResult:
        return cls(repository=repository, status=SyncStatus.FAILED, reason=reason, output=output)

    @property
    def ok(self) -> bool:
        return self.status is not SyncStatus.FAILED


class UpdateReport(BaseModel):
    """Everything a single ``update`` pass produced, ordered by repository name."""

    results: list[SyncResult] = []
    warnings: list[str] = []
    notices: list[str] = []

    def result_for(self, repository: str) -> SyncResult | None:
        return next((r for r in self.results if r.repository == repository), None)
