"""Error taxonomy.

Every error raised across a public boundary is a ``SpecSourcesError`` carrying
a machine-readable ``code``, a human message, an actionable ``suggestion`` and
whether the caller can continue (``recoverable``). Formatting for the user is
left to the caller.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    UNSUPPORTED_BACKEND = "UNSUPPORTED_BACKEND"
    SYNC_FAILED = "SYNC_FAILED"
    MALFORMED_METADATA = "MALFORMED_METADATA"
    INCOMPATIBLE_REPOSITORY = "INCOMPATIBLE_REPOSITORY"
    INDEX_CORRUPT = "INDEX_CORRUPT"
    UNKNOWN_REPOSITORY = "UNKNOWN_REPOSITORY"
    SPEC_STORE_ERROR = "SPEC_STORE_ERROR"


class SpecSourcesError(Exception):
    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\n{self.suggestion}"
        return self.message


class UnsupportedBackendError(SpecSourcesError):
    def __init__(self, repository: str) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_BACKEND,
            message=f"The `{repository}` repository is not a git repository.",
            suggestion="Only git-backed repositories can be updated; search still works.",
            recoverable=True,
        )
        self.repository = repository


class SyncFailedError(SpecSourcesError):
    def __init__(self, reason: str) -> None:
        super().__init__(
            code=ErrorCode.SYNC_FAILED,
            message=reason,
            suggestion="Check the repository remote and your network connection.",
            recoverable=True,
        )
        self.reason = reason


class GitCommandError(SyncFailedError):
    """A git subprocess exited non-zero or timed out."""

    def __init__(self, argv: list[str], detail: str, returncode: int | None = None) -> None:
        super().__init__(detail)
        self.argv = argv
        self.returncode = returncode


class MalformedMetadataError(SpecSourcesError):
    def __init__(self, repository: str, path: str, detail: str) -> None:
        super().__init__(
            code=ErrorCode.MALFORMED_METADATA,
            message=f"The version file of the `{repository}` repository is malformed: {detail}",
            suggestion=(
                f"Resolve the conflict in {path} by hand, or remove the `{repository}` "
                "repository directory and add it again from its remote."
            ),
            recoverable=False,
        )
        self.repository = repository


class IncompatibleRepositoryError(SpecSourcesError):
    def __init__(self, repository: str, bound: str, required: str, current: str) -> None:
        relation = "at least" if bound == "min" else "at most"
        super().__init__(
            code=ErrorCode.INCOMPATIBLE_REPOSITORY,
            message=(
                f"The `{repository}` repository requires a tool version {relation} "
                f"{required} (currently using {current})."
            ),
            suggestion="Update specsources to a compatible version.",
            recoverable=False,
        )
        self.repository = repository
        self.bound = bound
        self.required = required
        self.current = current


class IndexCorruptError(SpecSourcesError):
    def __init__(self, path: str, detail: str) -> None:
        super().__init__(
            code=ErrorCode.INDEX_CORRUPT,
            message=f"The search index at {path} is unreadable: {detail}",
            suggestion="The index is regenerated automatically.",
            recoverable=True,
        )


class UnknownRepositoryError(SpecSourcesError):
    def __init__(self, name: str) -> None:
        super().__init__(
            code=ErrorCode.UNKNOWN_REPOSITORY,
            message=f"Unable to find a repository named `{name}`.",
            suggestion="List the repositories directory to see which sources are installed.",
            recoverable=False,
        )
        self.name = name


class SpecStoreError(SpecSourcesError):
    def __init__(self, path: str, detail: str) -> None:
        super().__init__(
            code=ErrorCode.SPEC_STORE_ERROR,
            message=f"Unable to read specification {path}: {detail}",
            recoverable=True,
        )
        self.path = path
