"""Writes rendered templates to disk without losing hand-written code.

For each target file the writer:

1. reads the existing content (a missing file merges as empty content),
2. warns when Generated regions were hand-edited since the last write,
3. merges the new content over the existing file,
4. writes the result unless the merge would drop custom code,
5. records checksums of whatever is now on disk.

Batches run concurrently with one lock per resolved path.  There is no
rollback: a failed file is reported and the rest of the batch carries on.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Iterable
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from regen_merge.config import MergeConfig
from regen_merge.errors import RegenerationError
from regen_merge.merge import ChecksumRegistry, MergeConflict, MergeEngine, ModificationReport
from regen_merge.utils import format_duration, read_if_exists, write_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class FileAction(str, Enum):
    """What happened to one target file."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    FAILED = "failed"


class FileOutcome(BaseModel):
    """Per-file result of a write."""
    path: Path
    action: FileAction
    written: bool = False
    conflicts: list[MergeConflict] = Field(default_factory=list)
    modified_markers: list[str] = Field(
        default_factory=list,
        description="Generated regions that were hand-edited before this write",
    )
    custom_blocks_preserved: int = 0
    generated_blocks_updated: int = 0
    error: Optional[str] = None


class BatchReport(BaseModel):
    """Aggregate of a batch write."""
    outcomes: list[FileOutcome] = Field(default_factory=list)
    duration_seconds: float = 0.0

    def by_action(self, action: FileAction) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.action is action]

    @property
    def success(self) -> bool:
        """``True`` when no file needs manual review."""
        return not self.by_action(FileAction.CONFLICT) and not self.by_action(FileAction.FAILED)

    def summary(self) -> dict[str, str]:
        """Label -> value mapping for ``print_summary_table``."""
        data = {action.value.capitalize(): str(len(self.by_action(action))) for action in FileAction}
        data["Custom blocks preserved"] = str(
            sum(o.custom_blocks_preserved for o in self.outcomes)
        )
        data["Generated blocks updated"] = str(
            sum(o.generated_blocks_updated for o in self.outcomes)
        )
        data["Duration"] = format_duration(self.duration_seconds)
        return data


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class RegenerationWriter:
    """Merge-aware file writer.

    Attributes:
        config: Writer settings (conflict policy, checksum store).
        engine: The merge engine.
        registry: Checksum registry owned by this writer unless one is passed in.
    """

    def __init__(
        self,
        config: MergeConfig | None = None,
        engine: MergeEngine | None = None,
        registry: ChecksumRegistry | None = None,
    ) -> None:
        self.config = config or MergeConfig()
        self.engine = engine or MergeEngine()
        if registry is None:
            if self.config.checksum_store is not None:
                registry = ChecksumRegistry.load(
                    self.config.checksum_store, self.config.hash_algorithm
                )
            else:
                registry = ChecksumRegistry(self.config.hash_algorithm)
        self.registry = registry
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    # -- Public API --------------------------------------------------------

    async def write(
        self,
        path: str | Path,
        new_content: str,
        *,
        force: bool = False,
    ) -> FileOutcome:
        """Merge *new_content* into the file at *path* and write it.

        Args:
            path: Target file.
            new_content: Freshly rendered content.
            force: Write even when custom blocks would be orphaned.

        Raises:
            RegenerationError: If the file cannot be read or written.
        """
        target = Path(path)
        async with self._locked(target):
            return await asyncio.to_thread(self._write_sync, target, new_content, force)

    async def write_batch(
        self,
        items: Iterable[tuple[str | Path, str]],
        *,
        force: bool = False,
    ) -> BatchReport:
        """Write many files concurrently. Outcomes keep the input order."""
        started = time.monotonic()
        outcomes = await asyncio.gather(
            *(self._write_reporting(Path(path), content, force) for path, content in items)
        )
        report = BatchReport(outcomes=list(outcomes), duration_seconds=time.monotonic() - started)
        await self.save_checksums()
        return report

    async def save_checksums(self) -> Path | None:
        """Persist the registry when a checksum store is configured."""
        if self.config.checksum_store is None:
            return None
        return await self.registry.save(self.config.checksum_store)

    # -- Internals ---------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _locked(self, path: Path) -> AsyncIterator[None]:
        # Keyed by resolved path; dropped once the last holder or waiter leaves.
        key = str(path.resolve())
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _write_reporting(self, path: Path, content: str, force: bool) -> FileOutcome:
        try:
            return await self.write(path, content, force=force)
        except RegenerationError as exc:
            logger.error("%s", exc)
            return FileOutcome(path=path, action=FileAction.FAILED, error=str(exc))

    def _write_sync(self, path: Path, new_content: str, force: bool) -> FileOutcome:
        identity = str(path)
        try:
            existing = read_if_exists(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise RegenerationError(path, f"cannot read existing file: {exc}") from exc

        report = ModificationReport()
        if existing is not None:
            report = self.registry.detect_modifications(identity, existing)
        if report.modified:
            logger.warning(
                "Generated regions in %s were edited by hand and will be overwritten: %s",
                identity,
                ", ".join(report.modified_markers),
            )

        # A missing file merges as empty content, so custom slots start empty.
        result = self.engine.merge(existing or "", new_content, identity)
        outcome = FileOutcome(
            path=path,
            action=FileAction.CREATED if existing is None else FileAction.UPDATED,
            conflicts=result.conflicts,
            modified_markers=report.modified_markers,
            custom_blocks_preserved=result.custom_blocks_preserved_count,
            generated_blocks_updated=result.generated_blocks_updated_count,
        )

        if not result.success:
            outcome.action = FileAction.CONFLICT
            if not (force or self.config.write_on_conflict):
                logger.warning("Skipped %s: manual review required", identity)
                return outcome

        if result.merged_content == existing:
            if outcome.action is FileAction.UPDATED:
                outcome.action = FileAction.UNCHANGED
        else:
            self._write_file(path, result.merged_content)
            outcome.written = True

        self.registry.store(identity, result.merged_content)
        return outcome

    @staticmethod
    def _write_file(path: Path, content: str) -> None:
        try:
            write_text(path, content)
        except OSError as exc:
            raise RegenerationError(path, f"cannot write file: {exc}") from exc
