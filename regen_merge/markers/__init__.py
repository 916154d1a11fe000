"""Marker scanning -- splits generated source into Custom and Generated blocks.

Quick usage::

    from regen_merge.markers import parse, validate_markers

    parsed = parse("user.service.ts", text)
    parsed.custom_index["find-all"].content

    result = validate_markers(template_output)
    if not result.valid:
        print(result.errors)
"""

from regen_merge.markers.models import (
    Block,
    BlockKind,
    MarkerToken,
    ParsedFile,
    Segment,
    TokenKind,
    ValidationResult,
)
from regen_merge.markers.scanner import (
    extract_custom_blocks,
    has_custom_code,
    marker_lines,
    parse,
    segment,
    tokenize,
    validate_markers,
)

__all__ = [
    "Block",
    "BlockKind",
    "MarkerToken",
    "ParsedFile",
    "Segment",
    "TokenKind",
    "ValidationResult",
    "extract_custom_blocks",
    "has_custom_code",
    "marker_lines",
    "parse",
    "segment",
    "tokenize",
    "validate_markers",
]
