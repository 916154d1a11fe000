"""Exceptions raised by the file-facing layers of regen-merge.

The scanner and the merge engine never raise on content; only reading and
writing files (and the on-disk checksum store) can fail this way.
"""

from __future__ import annotations

from pathlib import Path


class RegenerationError(Exception):
    """Raised when a single file cannot be read, merged or written."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")
