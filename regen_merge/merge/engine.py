"""Regeneration-safe merge of existing file content with new template output.

Policy, at block granularity:

* Custom blocks: the existing file's content wins whenever the new template
  still declares a slot with the same name.
* Generated blocks: the new template always wins.
* Everything outside blocks comes from the new template verbatim.

A custom block whose slot disappeared from the template is reported as a
conflict carrying its previous content, and ``success`` turns ``False``.
"""

from __future__ import annotations

import logging

from regen_merge.markers import (
    Block,
    BlockKind,
    ParsedFile,
    Segment,
    extract_custom_blocks,
    has_custom_code,
    parse,
    segment,
    tokenize,
    validate_markers,
)

from .models import ConflictKind, MergeConflict, MergeResult, MergeStatistics

logger = logging.getLogger(__name__)


class MergeEngine:
    """Combines existing content with freshly rendered content.

    Holds no shared state, so one engine may serve any number of files and
    threads at once.
    """

    # -- Public API --------------------------------------------------------

    def merge(
        self,
        existing_content: str | None,
        new_content: str,
        file_identity: str,
    ) -> MergeResult:
        """Merge *existing_content* into *new_content*. Never raises.

        Args:
            existing_content: Current file content; ``None`` or ``""`` for a
                file that does not exist yet.
            new_content: Freshly rendered template output.
            file_identity: Label used in log messages (usually the path).

        Returns:
            A ``MergeResult``.  Unexpected failures are reported as a
            synthetic conflict on the ``merge`` marker.
        """
        result = MergeResult()
        try:
            self._merge_into(result, existing_content or "", new_content, file_identity)
        except Exception as exc:
            logger.error("Merge failed for %s", file_identity, exc_info=True)
            result.success = False
            result.conflicts.append(
                MergeConflict(
                    marker="merge",
                    kind=ConflictKind.MISSING_MARKER,
                    message=str(exc) or exc.__class__.__name__,
                )
            )
        return result

    def get_merge_statistics(
        self,
        file_identity: str,
        existing_content: str | None,
        new_content: str,
    ) -> MergeStatistics:
        """Count blocks in the new content and custom blocks it would orphan."""
        existing = parse(file_identity, existing_content or "")
        new_file = parse(file_identity, new_content)
        return MergeStatistics(
            total_blocks=len(new_file.blocks),
            custom_blocks=len(new_file.custom_index),
            generated_blocks=len(new_file.generated_index),
            conflicting_blocks=len(_orphaned(existing, new_file)),
        )

    def extract_custom_code(self, text: str) -> dict[str, str]:
        return extract_custom_blocks(text)

    def has_custom_code(self, text: str) -> bool:
        return has_custom_code(text)

    # -- Internals ---------------------------------------------------------

    def _merge_into(
        self,
        result: MergeResult,
        existing_content: str,
        new_content: str,
        file_identity: str,
    ) -> None:
        existing = parse(file_identity, existing_content)
        if existing.duplicate_markers:
            logger.warning(
                "Duplicate markers in existing %s, last occurrence kept: %s",
                file_identity,
                ", ".join(existing.duplicate_markers),
            )

        validation = validate_markers(new_content)
        if not validation.valid:
            logger.warning("Invalid markers in new content for %s:", file_identity)
            for error in validation.errors:
                logger.warning("  %s", error)

        new_segments = segment(tokenize(new_content))
        merged: list[str] = []
        for seg in new_segments:
            merged.extend(self._emit(seg, existing.custom_index, result))
        result.merged_content = "\n".join(merged)

        new_custom = {seg.marker for seg in new_segments if seg.kind is BlockKind.CUSTOM}
        for marker, block in existing.custom_index.items():
            if marker in new_custom:
                continue
            result.conflicts.append(
                MergeConflict(
                    marker=marker,
                    kind=ConflictKind.MISSING_MARKER,
                    message=f"Custom block '{marker}' exists in old file but not in new template",
                    previous_content=block.content,
                )
            )

        if result.conflicts:
            result.success = False
            logger.warning(
                "Merge of %s completed with %d conflict(s)", file_identity, len(result.conflicts)
            )
        else:
            logger.info(
                "Merge of %s successful: %d custom block(s) preserved, %d generated block(s) updated",
                file_identity,
                result.custom_blocks_preserved_count,
                result.generated_blocks_updated_count,
            )

    def _emit(
        self,
        seg: Segment,
        previous_custom: dict[str, Block],
        result: MergeResult,
    ) -> list[str]:
        """Lines of the merged output contributed by one segment of the new content."""
        if seg.start is None:
            return [tok.line for tok in seg.body]

        lines = [seg.start.line]
        if seg.kind is BlockKind.CUSTOM:
            previous = previous_custom.get(seg.marker or "")
            if previous is not None:
                lines.extend(previous.lines)
                result.custom_blocks_preserved_count += 1
                logger.debug("Preserved custom block: %s", seg.marker)
            else:
                logger.debug("New custom block (empty): %s", seg.marker)
        elif seg.kind is BlockKind.GENERATED:
            lines.extend(tok.line for tok in seg.body)
            result.generated_blocks_updated_count += 1
        else:
            raise ValueError(f"Unknown block kind: {seg.kind!r}")

        if seg.end is not None:
            lines.append(seg.end.line)
        return lines


def _orphaned(existing: ParsedFile, new_file: ParsedFile) -> list[str]:
    return [marker for marker in existing.custom_index if marker not in new_file.custom_index]
