"""regen-merge -- regeneration-safe merging for generated source files.

Generated files carry two kinds of marked region: Custom blocks, owned by the
developer, and Generated blocks, owned by the generator.  Re-running the
generator keeps the former and refreshes the latter.
"""

from regen_merge.markers import BlockKind, parse, validate_markers
from regen_merge.merge import ChecksumRegistry, MergeEngine, MergeResult

__version__ = "0.1.0"

__all__ = [
    "BlockKind",
    "ChecksumRegistry",
    "MergeEngine",
    "MergeResult",
    "__version__",
    "parse",
    "validate_markers",
]
