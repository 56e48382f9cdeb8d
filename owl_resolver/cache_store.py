"""Persistent load-path cache.

The cache holds the enumerated load paths and the flattened file index below
them in ``.owl_cache/load_paths.json``:

    {"opal_load_paths": [...], "opal_load_path_entries": [...]}

It is rebuilt when Gemfile.lock is modified after the cache file, or when the
cache file is missing or inaccessible. Otherwise it is read once per store.
There is no locking between processes; writes go through a temp file and an
atomic rename so readers never see a partial file.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import shutil
import tempfile
import warnings
from collections.abc import Callable
from collections.abc import Iterator
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError

from .config import ResolverConfig
from .errors import CacheCorruptError
from .errors import ConfigurationError
from .errors import StaleLockWarning
from .indexer import index_load_paths
from .load_paths import LoadPathEnumerator

logger = logging.getLogger(__name__)


class CacheRecord(BaseModel):
    """On-disk cache document."""

    opal_load_paths: list[str] = Field(..., description="Load paths in search order")
    opal_load_path_entries: list[str] = Field(..., description="Indexed files below the load paths")


class LoadPathIndex:
    """Flat file index with exact-string membership.

    Entry order is walk order and is preserved for serialization. Duplicates
    are kept in ``entries``; membership does not normalize paths.
    """

    def __init__(self, entries: Sequence[str] = ()):
        self._entries = tuple(entries)
        self._members = frozenset(self._entries)

    @property
    def entries(self) -> tuple[str, ...]:
        return self._entries

    def __contains__(self, path: object) -> bool:
        return path in self._members

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LoadPathIndex):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"LoadPathIndex({len(self._entries)} entries)"


class CacheStatus(str, Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"


@dataclass(frozen=True)
class CacheState:
    """Load paths and index owned by one resolver for its lifetime."""

    status: CacheStatus = CacheStatus.UNLOADED
    load_paths: tuple[str, ...] = ()
    index: LoadPathIndex = field(default_factory=LoadPathIndex)
    rebuilt: bool = False

    @classmethod
    def unloaded(cls) -> CacheState:
        return cls()

    @classmethod
    def loaded(cls, load_paths: Sequence[str], entries: Sequence[str], *, rebuilt: bool = False) -> CacheState:
        return cls(
            status=CacheStatus.LOADED,
            load_paths=tuple(load_paths),
            index=LoadPathIndex(entries),
            rebuilt=rebuilt,
        )

    @property
    def is_loaded(self) -> bool:
        return self.status is CacheStatus.LOADED

    def to_record(self) -> CacheRecord:
        return CacheRecord(opal_load_paths=list(self.load_paths), opal_load_path_entries=list(self.index.entries))


@dataclass
class CacheReport:
    """Snapshot of cache freshness, used by ``owl-resolver cache status``."""

    cache_file: Path
    exists: bool
    cache_mtime: float | None
    lock_mtime: float | None
    gemfile_mtime: float | None
    load_path_count: int | None = None
    entry_count: int | None = None
    readable: bool = False

    @property
    def is_stale(self) -> bool:
        """True if the next load would rebuild."""
        if not self.exists or not self.readable or self.cache_mtime is None:
            return True
        return self.lock_mtime is not None and self.lock_mtime > self.cache_mtime

    @property
    def lock_is_stale(self) -> bool:
        """True if Gemfile was edited after Gemfile.lock."""
        if self.gemfile_mtime is None or self.lock_mtime is None:
            return False
        return self.gemfile_mtime > self.lock_mtime


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class CacheStore:
    """Loads the load-path cache from disk or rebuilds it.

    Contract:
    - Inputs: ResolverConfig (project root, manifest/lock/cache locations)
    - Outputs: loaded CacheState (load paths + index)
    - Side Effects: creates .owl_cache/ and .owl_cache/cc/, writes the cache file,
      runs the load-path command on rebuild
    - Errors: ConfigurationError, ExternalToolError, CacheCorruptError
    """

    def __init__(
        self,
        config: ResolverConfig,
        enumerator: LoadPathEnumerator | None = None,
        indexer: Callable[[Sequence[str]], list[str]] | None = None,
    ):
        self.config = config
        self.enumerator = enumerator or LoadPathEnumerator(config)
        self.indexer = indexer or self._default_indexer
        self._state = CacheState.unloaded()

    @property
    def state(self) -> CacheState:
        return self._state

    def _default_indexer(self, load_paths: Sequence[str]) -> list[str]:
        return index_load_paths(
            load_paths,
            working_tree=self.config.working_tree,
            allowed_zones=self.config.allowed_zone_paths(),
            suffixes=self.config.suffixes,
        )

    def load_or_rebuild(self) -> CacheState:
        """Return load paths and index, rebuilding the cache if it is stale.

        Evaluated once; later calls return the loaded state unchanged.

        Raises:
            ConfigurationError: Gemfile or Gemfile.lock missing or unreadable
            ExternalToolError: Load-path command failed during rebuild
            CacheCorruptError: Cache unreadable and policy is "fail"
        """
        if self._state.is_loaded:
            return self._state

        self._check_manifest()
        must_rebuild = self._ensure_cache_file()
        self._warn_if_lock_stale()

        cache_path = self.config.cache_file_path
        lock_mtime = _mtime(self.config.gemfile_lock_path) or 0.0
        cache_mtime = _mtime(cache_path) or 0.0

        if must_rebuild or lock_mtime > cache_mtime:
            reason = "cache missing" if must_rebuild else "Gemfile.lock is newer than cache"
            logger.info(f"[owl:cache] rebuilding load path cache ({reason})")
            return self.rebuild()

        try:
            record = self._read_record(cache_path)
        except CacheCorruptError as e:
            if self.config.on_corrupt_cache == "fail":
                raise
            logger.warning(f"[owl:cache] {e}; rebuilding")
            return self.rebuild()

        self._state = CacheState.loaded(record.opal_load_paths, record.opal_load_path_entries)
        logger.debug(
            f"[owl:cache] loaded {len(self._state.load_paths)} load paths, "
            f"{len(self._state.index)} entries from {cache_path}"
        )
        return self._state

    def rebuild(self) -> CacheState:
        """Enumerate and index load paths, then overwrite the cache file."""
        load_paths = self.enumerator.enumerate()
        entries = self.indexer(load_paths)
        state = CacheState.loaded(load_paths, entries, rebuilt=True)
        self._write_record(state.to_record())
        self._state = state
        logger.info(f"[owl:cache] cached {len(load_paths)} load paths, {len(entries)} entries")
        return state

    def status(self) -> CacheReport:
        """Describe the cache without loading or rebuilding it."""
        cache_path = self.config.cache_file_path
        report = CacheReport(
            cache_file=cache_path,
            exists=cache_path.exists(),
            cache_mtime=_mtime(cache_path),
            lock_mtime=_mtime(self.config.gemfile_lock_path),
            gemfile_mtime=_mtime(self.config.gemfile_path),
        )
        if report.exists:
            try:
                record = self._read_record(cache_path)
            except CacheCorruptError as e:
                logger.debug(f"[owl:cache] status: {e}")
            else:
                report.readable = True
                report.load_path_count = len(record.opal_load_paths)
                report.entry_count = len(record.opal_load_path_entries)
        return report

    def clear(self) -> bool:
        """Delete the cache directory. Returns True if anything was removed."""
        cache_dir = self.config.cache_dir_path
        self._state = CacheState.unloaded()
        if not cache_dir.exists():
            return False
        shutil.rmtree(cache_dir)
        logger.info(f"[owl:cache] removed {cache_dir}")
        return True

    def _check_manifest(self) -> None:
        for path in (self.config.gemfile_path, self.config.gemfile_lock_path):
            if not path.is_file():
                raise ConfigurationError(f"{path.name} not found at {path}")
            if not os.access(path, os.R_OK):
                raise ConfigurationError(f"{path.name} is not readable: {path}")

    def _ensure_cache_file(self) -> bool:
        """Create a placeholder cache file if needed. True means must rebuild."""
        cache_path = self.config.cache_file_path
        if cache_path.is_file() and os.access(cache_path, os.R_OK | os.W_OK):
            return False

        self.config.cache_dir_path.mkdir(parents=True, exist_ok=True)
        self.config.compiler_cache_path.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(json.dumps({}), encoding="utf-8")
        return True

    def _warn_if_lock_stale(self) -> None:
        gemfile_mtime = _mtime(self.config.gemfile_path) or 0.0
        lock_mtime = _mtime(self.config.gemfile_lock_path) or 0.0
        if gemfile_mtime > lock_mtime:
            message = (
                f"{self.config.gemfile} is newer than {self.config.gemfile_lock}, "
                "please run 'bundle install' or 'bundle update'!"
            )
            logger.warning(f"[owl:cache] {message}")
            warnings.warn(message, StaleLockWarning, stacklevel=3)

    def _read_record(self, cache_path: Path) -> CacheRecord:
        try:
            data = json.loads(cache_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheCorruptError(f"Invalid cache file {cache_path}: {e}") from e
        try:
            return CacheRecord.model_validate(data)
        except ValidationError as e:
            raise CacheCorruptError(f"Invalid cache file {cache_path}: {e.error_count()} validation errors") from e

    def _write_record(self, record: CacheRecord) -> None:
        cache_dir = self.config.cache_dir_path
        cache_dir.mkdir(parents=True, exist_ok=True)
        self.config.compiler_cache_path.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w", dir=cache_dir, prefix="load_paths_", suffix=".tmp", delete=False, encoding="utf-8"
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            try:
                json.dump(record.model_dump(), tmp_file, ensure_ascii=False)
                tmp_file.flush()
            except Exception:
                with contextlib.suppress(OSError):
                    temp_path.unlink()
                raise
        temp_path.replace(self.config.cache_file_path)

    def __repr__(self) -> str:
        return f"CacheStore({self.config.cache_file_path}, {self._state.status.value})"
