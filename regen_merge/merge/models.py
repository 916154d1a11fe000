"""Pydantic v2 models for merge results and checksum records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ConflictKind(str, Enum):
    """Kinds of merge conflict the engine reports."""
    MISSING_MARKER = "missing_marker"


class MergeConflict(BaseModel):
    """A custom block from the existing file that has no slot in the new template."""
    marker: str = Field(..., description="Name of the orphaned custom block")
    kind: ConflictKind = Field(default=ConflictKind.MISSING_MARKER)
    message: str = Field(default="")
    previous_content: Optional[str] = Field(
        default=None, description="Content that would be lost if the merge is written"
    )


class MergeResult(BaseModel):
    """Outcome of a single merge.

    ``success`` is ``False`` whenever ``conflicts`` is non-empty.  The merged
    content is always best-effort, with orphaned custom content omitted.
    """
    success: bool = True
    merged_content: str = ""
    conflicts: list[MergeConflict] = Field(default_factory=list)
    custom_blocks_preserved_count: int = Field(default=0, ge=0)
    generated_blocks_updated_count: int = Field(default=0, ge=0)


class MergeStatistics(BaseModel):
    """Read-only block counts for diagnostics."""
    total_blocks: int = 0
    custom_blocks: int = 0
    generated_blocks: int = 0
    conflicting_blocks: int = 0


class ChecksumRecord(BaseModel):
    """Hash of one Generated block as it was last emitted."""
    marker: str
    checksum: str
    last_computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ModificationReport(BaseModel):
    """Which Generated blocks changed since their checksums were stored."""
    modified: bool = False
    modified_markers: list[str] = Field(default_factory=list)
