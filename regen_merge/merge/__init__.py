"""Merge engine and checksum registry.

Quick usage::

    from regen_merge.merge import ChecksumRegistry, MergeEngine

    engine = MergeEngine()
    result = engine.merge(existing_text, rendered_text, "src/user/user.service.ts")
    if not result.success:
        for conflict in result.conflicts:
            print(conflict.marker, conflict.previous_content)

    registry = ChecksumRegistry()
    registry.store("src/user/user.service.ts", result.merged_content)
"""

from regen_merge.merge.checksums import ChecksumRegistry
from regen_merge.merge.engine import MergeEngine
from regen_merge.merge.models import (
    ChecksumRecord,
    ConflictKind,
    MergeConflict,
    MergeResult,
    MergeStatistics,
    ModificationReport,
)

__all__ = [
    "ChecksumRecord",
    "ChecksumRegistry",
    "ConflictKind",
    "MergeConflict",
    "MergeEngine",
    "MergeResult",
    "MergeStatistics",
    "ModificationReport",
]
