"""Marker scanning for regeneration-safe source files.

Every operation in this module is driven by :func:`tokenize`, which tags each
line of input as a start marker, an end marker, or plain text.  The lenient
:func:`parse`, the strict :func:`validate_markers` and the merge engine all
consume that same token stream, so they always agree on where a block begins
and ends.

Accepted marker spellings (any comment syntax, matched at a word boundary)::

    CUSTOM_START: name        CUSTOM_END[: name]
    CUSTOM_CODE_START: name   CUSTOM_CODE_END[: name]
    GENERATED_START: name     GENERATED_END[: name]
    GENERATED_CODE_START: name, GENERATED_METHOD_START: name,
    GENERATED_FILE_START: name, GENERATED: name   (and matching *_END forms)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from .models import (
    Block,
    BlockKind,
    MarkerToken,
    ParsedFile,
    Segment,
    TokenKind,
    ValidationResult,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Marker grammar
# ---------------------------------------------------------------------------

CUSTOM_START_RE = re.compile(r"\bCUSTOM(?:_CODE)?_START:[ \t]*(?P<name>\S+)")
CUSTOM_END_RE = re.compile(r"\bCUSTOM(?:_CODE)?_END\b(?::[ \t]*(?P<name>\S+))?")
GENERATED_START_RE = re.compile(
    r"\bGENERATED(?:_(?:CODE|METHOD|FILE))?(?:_START)?:[ \t]*(?P<name>\S+)"
)
GENERATED_END_RE = re.compile(
    r"\bGENERATED(?:_(?:CODE|METHOD|FILE))?_END\b(?::[ \t]*(?P<name>\S+))?"
)

# Checked in order; the first match classifies the line.
_PATTERNS: tuple[tuple[re.Pattern[str], TokenKind, BlockKind], ...] = (
    (CUSTOM_START_RE, TokenKind.START, BlockKind.CUSTOM),
    (CUSTOM_END_RE, TokenKind.END, BlockKind.CUSTOM),
    (GENERATED_START_RE, TokenKind.START, BlockKind.GENERATED),
    (GENERATED_END_RE, TokenKind.END, BlockKind.GENERATED),
)

# Spellings emitted by marker_lines().
CANONICAL_TOKENS: dict[BlockKind, tuple[str, str]] = {
    BlockKind.CUSTOM: ("CUSTOM_CODE_START", "CUSTOM_CODE_END"),
    BlockKind.GENERATED: ("GENERATED_START", "GENERATED_END"),
}


# ---------------------------------------------------------------------------
# Tokenizing
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, so ``\\r`` and trailing blank lines survive a rejoin."""
    return text.split("\n")


def classify_line(line: str, line_number: int) -> MarkerToken:
    """Tag a single line as START, END or TEXT."""
    for pattern, token_kind, block_kind in _PATTERNS:
        match = pattern.search(line)
        if match:
            return MarkerToken(
                kind=token_kind,
                line=line,
                line_number=line_number,
                block_kind=block_kind,
                marker=match.group("name"),
            )
    return MarkerToken(kind=TokenKind.TEXT, line=line, line_number=line_number)


def tokenize(text: str) -> list[MarkerToken]:
    """Return one token per line of *text*."""
    return [classify_line(line, number) for number, line in enumerate(split_lines(text), 1)]


def segment(tokens: Iterable[MarkerToken]) -> list[Segment]:
    """Group a token stream into loose lines and blocks.

    The lenient rules live here:

    * a start marker while a block is open closes the open block first;
    * an end marker only closes an open block of the same kind, otherwise it
      is body text (or loose text when nothing is open);
    * a block still open at end of input is closed with what it collected.
    """
    segments: list[Segment] = []
    current: Segment | None = None

    for token in tokens:
        if token.kind is TokenKind.START:
            if current is not None:
                segments.append(current)
            current = Segment(start=token)
            continue

        if (
            token.kind is TokenKind.END
            and current is not None
            and token.block_kind is current.kind
        ):
            if token.marker and token.marker != current.marker:
                logger.debug(
                    "Line %d: end marker '%s' closes block '%s'",
                    token.line_number,
                    token.marker,
                    current.marker,
                )
            current.end = token
            segments.append(current)
            current = None
            continue

        if current is not None:
            current.body.append(token)
        else:
            segments.append(Segment(body=[token]))

    if current is not None:
        segments.append(current)
    return segments


# ---------------------------------------------------------------------------
# Lenient parse
# ---------------------------------------------------------------------------


def parse(file_identity: str, text: str) -> ParsedFile:
    """Parse *text* into Custom and Generated blocks. Never fails.

    Duplicate marker names of the same kind resolve to the last occurrence in
    the index; the names are recorded on ``duplicate_markers``.
    """
    parsed = ParsedFile(file_identity=file_identity, raw_content=text)

    for seg in segment(tokenize(text)):
        if not seg.is_block:
            continue
        assert seg.start is not None and seg.kind is not None and seg.marker is not None

        if seg.end is not None:
            end_line = seg.end.line_number
        elif seg.body:
            end_line = seg.body[-1].line_number
        else:
            end_line = seg.start.line_number

        block = Block(
            kind=seg.kind,
            marker=seg.marker,
            lines=[tok.line for tok in seg.body],
            start_line=seg.start.line_number,
            end_line=end_line,
            closed=seg.end is not None,
        )
        parsed.blocks.append(block)

        index = parsed.index_for(block.kind)
        if block.marker in index:
            key = f"{block.kind.value}:{block.marker}"
            if key not in parsed.duplicate_markers:
                parsed.duplicate_markers.append(key)
        index[block.marker] = block

    return parsed


def has_custom_code(text: str) -> bool:
    """Return ``True`` if *text* contains at least one Custom start marker."""
    return CUSTOM_START_RE.search(text) is not None


def extract_custom_blocks(text: str) -> dict[str, str]:
    """Return ``{marker: content}`` for every Custom block in *text*."""
    parsed = parse("", text)
    return {marker: block.content for marker, block in parsed.custom_index.items()}


# ---------------------------------------------------------------------------
# Strict validation
# ---------------------------------------------------------------------------


def validate_markers(text: str) -> ValidationResult:
    """Check that every start marker is closed by a matching end marker.

    A stack machine over the token stream.  Meant for freshly rendered
    templates, where a malformed marker is a generator bug.
    """
    errors: list[str] = []
    open_blocks: list[MarkerToken] = []
    first_seen: dict[tuple[BlockKind, str], int] = {}

    for token in tokenize(text):
        if token.kind is TokenKind.START:
            assert token.block_kind is not None and token.marker is not None
            key = (token.block_kind, token.marker)
            if key in first_seen:
                errors.append(
                    f"Line {token.line_number}: Duplicate {token.block_kind.value} marker "
                    f"'{token.marker}' (first declared on line {first_seen[key]})"
                )
            else:
                first_seen[key] = token.line_number
            open_blocks.append(token)

        elif token.kind is TokenKind.END:
            assert token.block_kind is not None
            last_open = open_blocks[-1] if open_blocks else None
            if last_open is None:
                errors.append(f"Line {token.line_number}: End marker without start")
            elif last_open.block_kind is not token.block_kind:
                assert last_open.block_kind is not None
                errors.append(
                    f"Line {token.line_number}: Mismatched block type "
                    f"(expected {last_open.block_kind.value}, got {token.block_kind.value})"
                )
            elif token.marker and token.marker != last_open.marker:
                errors.append(
                    f"Line {token.line_number}: Mismatched marker name "
                    f"(expected {last_open.marker}, got {token.marker})"
                )
            else:
                open_blocks.pop()

    for block in open_blocks:
        assert block.block_kind is not None
        errors.append(
            f"Line {block.line_number}: Unclosed {block.block_kind.value} block '{block.marker}'"
        )

    return ValidationResult(valid=not errors, errors=errors)


# ---------------------------------------------------------------------------
# Marker emission
# ---------------------------------------------------------------------------


def marker_lines(kind: BlockKind, name: str, comment_prefix: str = "//") -> tuple[str, str]:
    """Return the canonical ``(start, end)`` marker lines for a block.

    Examples::

        marker_lines(BlockKind.CUSTOM, "find-all")
        -> ("// CUSTOM_CODE_START: find-all", "// CUSTOM_CODE_END: find-all")
        marker_lines(BlockKind.GENERATED, "imports", "#")
        -> ("# GENERATED_START: imports", "# GENERATED_END: imports")
    """
    if not name or any(ch.isspace() for ch in name):
        raise ValueError(f"Marker name must be a non-empty identifier without whitespace: {name!r}")
    start_token, end_token = CANONICAL_TOKENS[kind]
    prefix = f"{comment_prefix} " if comment_prefix else ""
    return f"{prefix}{start_token}: {name}", f"{prefix}{end_token}: {name}"
