"""Persisted search index over every repository's package sets.

The index lives in a single SQLite file. It is never modified in place: a
save writes a complete new database next to the old one and renames it over
the target, so a reader sees either the previous index or the new one.

All cache I/O catches ``aiosqlite.Error`` internally and degrades gracefully:
an unreadable index loads as ``None`` (and is regenerated by the caller), a
failed save is logged and the previous file is left untouched.

Building is split into pure functions over explicit timestamps so rebuild
decisions can be tested without touching real file modification times:

- ``generate_index``: full rebuild, used when there is no index.
- ``update_index``: rescans only repositories modified since ``built_at``.
"""

from __future__ import annotations

import contextlib
import os
import re
import tempfile
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from specsources.errors import IndexCorruptError
from specsources.models import SearchEntry, SearchIndex

if TYPE_CHECKING:
    from specsources.models import Repository

log = structlog.get_logger()

Scanner = Callable[["Repository"], list[SearchEntry]]

_CREATE_ENTRIES_TABLE = """
CREATE TABLE search_entries (
    repository      TEXT NOT NULL,
    name            TEXT NOT NULL,
    version         TEXT NOT NULL,
    normalized_text TEXT NOT NULL,
    PRIMARY KEY (repository, name)
)
"""

_CREATE_METADATA_TABLE = """
CREATE TABLE index_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def utc_now() -> datetime:
    return datetime.now(UTC)


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------


async def load_index(path: Path) -> SearchIndex | None:
    """Read the index at *path*. Returns ``None`` when absent or unusable."""
    if not path.is_file():
        return None
    try:
        return await _read_index(path)
    except IndexCorruptError as exc:
        log.warning("search_index_corrupt", path=str(path), error=exc.message)
        return None


async def _read_index(path: Path) -> SearchIndex:
    try:
        async with aiosqlite.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True) as db:
            cursor = await db.execute("SELECT value FROM index_metadata WHERE key = 'built_at'")
            row = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT repository, name, version, normalized_text FROM search_entries"
            )
            rows = await cursor.fetchall()
            cursor = await db.execute(
                "SELECT value FROM index_metadata WHERE key LIKE 'repository:%'"
            )
            indexed_repos = [r[0] for r in await cursor.fetchall()]
    except aiosqlite.Error as exc:
        raise IndexCorruptError(str(path), str(exc)) from exc

    if row is None:
        raise IndexCorruptError(str(path), "missing build timestamp")
    try:
        built_at = datetime.fromisoformat(row[0])
    except (TypeError, ValueError) as exc:
        raise IndexCorruptError(str(path), f"invalid build timestamp: {row[0]!r}") from exc
    if built_at.tzinfo is None:
        raise IndexCorruptError(str(path), "build timestamp has no timezone")

    # pydantic's ValidationError is a ValueError; NULL or mistyped columns land here
    try:
        by_repository: dict[str, dict[str, SearchEntry]] = {name: {} for name in indexed_repos}
        for repository, name, version, text in rows:
            by_repository.setdefault(repository, {})[name] = SearchEntry(
                name=name, version=version, normalized_text=text, repository=repository
            )
        return SearchIndex(by_repository=by_repository, built_at=built_at)
    except (TypeError, ValueError) as exc:
        raise IndexCorruptError(str(path), f"invalid search entry: {exc}") from exc


async def save_index(index: SearchIndex, path: Path) -> bool:
    """Atomically replace the index at *path*. Non-fatal on failure."""
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        os.close(fd)
        async with aiosqlite.connect(tmp_name) as db:
            await db.execute(_CREATE_ENTRIES_TABLE)
            await db.execute(_CREATE_METADATA_TABLE)
            await db.executemany(
                "INSERT INTO search_entries (repository, name, version, normalized_text) "
                "VALUES (?, ?, ?, ?)",
                [
                    (e.repository, e.name, e.version, e.normalized_text)
                    for entries in index.by_repository.values()
                    for e in entries.values()
                ],
            )
            # Repositories with no package sets still count as indexed
            await db.executemany(
                "INSERT INTO index_metadata (key, value) VALUES (?, ?)",
                [("built_at", index.built_at.isoformat())]
                + [(f"repository:{name}", name) for name in sorted(index.by_repository)],
            )
            await db.commit()
        os.replace(tmp_name, path)
        tmp_name = None
        log.info("search_index_saved", path=str(path), entries=len(index.entries))
        return True
    except (aiosqlite.Error, OSError):
        log.warning("search_index_write_error", path=str(path), exc_info=True)
        return False
    finally:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)


# ------------------------------------------------------------------
# Staleness
# ------------------------------------------------------------------


def latest_modification(path: Path) -> datetime:
    """Newest mtime of *path* or anything below it, ignoring VCS metadata."""
    latest = path.stat().st_mtime
    for root, dirs, files in os.walk(path):
        dirs[:] = [d for d in dirs if d != ".git"]
        for name in (*dirs, *files):
            with contextlib.suppress(OSError):
                latest = max(latest, os.stat(os.path.join(root, name)).st_mtime)
        with contextlib.suppress(OSError):
            latest = max(latest, os.stat(root).st_mtime)
    return datetime.fromtimestamp(latest, UTC)


def repository_timestamps(repos: Iterable[Repository]) -> dict[str, datetime]:
    return {repo.name: latest_modification(repo.path) for repo in repos}


def modified_since(index: SearchIndex, timestamps: Mapping[str, datetime]) -> set[str]:
    """Repositories changed after the index was built, or unknown to it."""
    return {
        name
        for name, modified in timestamps.items()
        if modified > index.built_at or name not in index.by_repository
    }


def is_stale(index: SearchIndex | None, timestamps: Mapping[str, datetime]) -> bool:
    if index is None:
        return True
    if index.repositories - set(timestamps):
        return True
    return bool(modified_since(index, timestamps))


# ------------------------------------------------------------------
# Building
# ------------------------------------------------------------------


def generate_index(repos: Iterable[Repository], scan: Scanner, now: datetime) -> SearchIndex:
    """Full rebuild from every repository."""
    by_repository = {repo.name: _bucket(scan(repo)) for repo in repos}
    log.info("search_index_generated", repositories=len(by_repository))
    return SearchIndex(by_repository=by_repository, built_at=now)


def update_index(
    index: SearchIndex,
    repos: Iterable[Repository],
    timestamps: Mapping[str, datetime],
    scan: Scanner,
    now: datetime,
) -> SearchIndex:
    """Incremental rebuild: rescan modified repositories, keep the rest as they were.

    Repositories no longer present are dropped. The input index is not mutated.
    """
    changed = modified_since(index, timestamps)
    by_repository: dict[str, dict[str, SearchEntry]] = {}
    for repo in repos:
        if repo.name in changed:
            by_repository[repo.name] = _bucket(scan(repo))
        else:
            by_repository[repo.name] = dict(index.by_repository.get(repo.name, {}))
    log.info(
        "search_index_updated",
        rescanned=sorted(changed),
        dropped=sorted(index.repositories - set(by_repository)),
    )
    return SearchIndex(by_repository=by_repository, built_at=now)


def _bucket(entries: Iterable[SearchEntry]) -> dict[str, SearchEntry]:
    return {entry.name: entry for entry in entries}


# ------------------------------------------------------------------
# Querying
# ------------------------------------------------------------------


def search_entries(index: SearchIndex, query: str, full_text: bool = False) -> list[SearchEntry]:
    """Entries matching *query*, deduplicated by name and sorted by name.

    Name search is a case-insensitive substring match. Full-text search tries
    the query as a literal substring first and falls back to a regular
    expression only when the literal finds nothing.
    """
    entries = index.entries
    needle = query.lower()
    if not full_text:
        hits = [e for e in entries.values() if needle in e.name.lower()]
    else:
        hits = [e for e in entries.values() if needle in e.normalized_text]
        if not hits:
            try:
                pattern = re.compile(query, re.IGNORECASE)
            except re.error:
                log.debug("search_invalid_pattern", query=query)
                return []
            hits = [e for e in entries.values() if pattern.search(e.normalized_text)]
    return sorted(hits, key=lambda e: e.name)
