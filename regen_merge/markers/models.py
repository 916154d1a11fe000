"""Pydantic v2 models for marker scanning.

Defines the token, block and parsed-file structures produced when a piece of
generated source is split into Custom and Generated regions.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class BlockKind(str, Enum):
    """Ownership of a delimited region. Custom = developer, Generated = generator."""
    CUSTOM = "custom"
    GENERATED = "generated"


class TokenKind(str, Enum):
    """Classification of a single source line."""
    START = "start"
    END = "end"
    TEXT = "text"


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class MarkerToken(BaseModel):
    """One line of input, tagged by the tokenizer."""
    kind: TokenKind = Field(..., description="Start marker, end marker, or plain text")
    line: str = Field(..., description="The raw line, without its newline")
    line_number: int = Field(..., ge=1, description="1-based line number")
    block_kind: Optional[BlockKind] = Field(
        default=None, description="Block kind for START/END tokens"
    )
    marker: Optional[str] = Field(
        default=None,
        description="Marker name; always set on START, optional on END",
    )

    @property
    def is_marker(self) -> bool:
        return self.kind is not TokenKind.TEXT


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

class Block(BaseModel):
    """A named region between a start marker and its end marker.

    ``lines`` excludes the marker lines themselves.  ``end_line`` is the line
    of the closing marker, or the last line that belonged to the block when it
    was closed implicitly.
    """
    kind: BlockKind
    marker: str
    lines: list[str] = Field(default_factory=list)
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=0)
    closed: bool = Field(default=True, description="False when the end marker was missing")

    @computed_field  # type: ignore[misc]
    @property
    def content(self) -> str:
        """Block body joined with newlines."""
        return "\n".join(self.lines)


class ParsedFile(BaseModel):
    """Result of a lenient parse. Never persisted."""
    file_identity: str = Field(default="")
    blocks: list[Block] = Field(default_factory=list)
    custom_index: dict[str, Block] = Field(default_factory=dict)
    generated_index: dict[str, Block] = Field(default_factory=dict)
    duplicate_markers: list[str] = Field(
        default_factory=list,
        description="'kind:name' entries seen more than once; the last occurrence is indexed",
    )
    raw_content: str = Field(default="")

    def index_for(self, kind: BlockKind) -> dict[str, Block]:
        if kind is BlockKind.CUSTOM:
            return self.custom_index
        return self.generated_index


class ValidationResult(BaseModel):
    """Outcome of the strict marker validator."""
    valid: bool = True
    errors: list[str] = Field(default_factory=list)


class Segment(BaseModel):
    """A slice of the token stream: either one loose text line or one block.

    Loose text has ``start`` unset and a single token in ``body``.  A block's
    ``end`` is unset when it was closed implicitly (next start marker or end
    of input).
    """
    start: Optional[MarkerToken] = None
    body: list[MarkerToken] = Field(default_factory=list)
    end: Optional[MarkerToken] = None

    @property
    def is_block(self) -> bool:
        return self.start is not None

    @property
    def kind(self) -> Optional[BlockKind]:
        return self.start.block_kind if self.start else None

    @property
    def marker(self) -> Optional[str]:
        return self.start.marker if self.start else None
