"""Per-file, per-marker hashes of Generated blocks.

The registry answers one question: has anyone hand-edited a generated region
since it was last written?  The answer is advisory; the merge engine never
consults it.

A registry is a plain object owned by its caller.  It does no locking:
callers that regenerate files in parallel must serialise ``store``,
``detect_modifications`` and ``clear`` for the same file identity (see
``RegenerationWriter``).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from pydantic import ValidationError

from regen_merge.errors import RegenerationError
from regen_merge.markers import parse
from regen_merge.utils import compute_checksum, load_json, save_json

from .models import ChecksumRecord, ModificationReport

logger = logging.getLogger(__name__)


class ChecksumRegistry:
    """Mapping of ``file identity -> marker -> ChecksumRecord``."""

    def __init__(self, algorithm: str = "sha256") -> None:
        self.algorithm = algorithm
        self._records: dict[str, dict[str, ChecksumRecord]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, file_identity: object) -> bool:
        return file_identity in self._records

    # -- Core operations ---------------------------------------------------

    def store(self, file_identity: str, text: str) -> dict[str, ChecksumRecord]:
        """Hash every Generated block in *text*, replacing the file's old records.

        Markers from an earlier layout that no longer appear are dropped.
        """
        parsed = parse(file_identity, text)
        records = {
            marker: ChecksumRecord(
                marker=marker,
                checksum=compute_checksum(block.content, self.algorithm),
            )
            for marker, block in parsed.generated_index.items()
        }
        self._records[file_identity] = records
        logger.debug("Stored %d checksums for %s", len(records), file_identity)
        return records

    def detect_modifications(self, file_identity: str, text: str) -> ModificationReport:
        """Compare Generated blocks in *text* against the stored hashes.

        Markers without a stored hash count as new, not modified.  A file
        with no records at all reports nothing.
        """
        stored = self._records.get(file_identity)
        if not stored:
            return ModificationReport()

        parsed = parse(file_identity, text)
        modified: list[str] = []
        for marker, block in parsed.generated_index.items():
            record = stored.get(marker)
            if record is None:
                continue
            if compute_checksum(block.content, self.algorithm) != record.checksum:
                modified.append(marker)

        return ModificationReport(modified=bool(modified), modified_markers=modified)

    def clear(self, file_identity: str | None = None) -> None:
        """Drop one file's records, or every record when no identity is given."""
        if file_identity is None:
            self._records.clear()
            logger.debug("Cleared all checksums")
        else:
            self._records.pop(file_identity, None)
            logger.debug("Cleared checksums for %s", file_identity)

    def all(self) -> Mapping[str, Mapping[str, ChecksumRecord]]:
        """Read-only snapshot of every record."""
        return MappingProxyType(
            {identity: MappingProxyType(dict(records)) for identity, records in self._records.items()}
        )

    # -- Persistence -------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        return {
            "algorithm": self.algorithm,
            "files": {
                identity: {marker: rec.model_dump(mode="json") for marker, rec in records.items()}
                for identity, records in self._records.items()
            },
        }

    async def save(self, path: str | Path) -> Path:
        """Write the registry to a JSON file."""
        target = Path(path)
        await save_json(self.to_dict(), target)
        return target

    @classmethod
    def load(cls, path: str | Path, algorithm: str = "sha256") -> "ChecksumRegistry":
        """Load a registry saved by :meth:`save`.

        A missing file yields an empty registry.  The stored algorithm wins
        over *algorithm* so that old hashes stay comparable.

        Raises:
            RegenerationError: If the file exists but cannot be read back.
        """
        file_path = Path(path)
        if not file_path.exists():
            return cls(algorithm=algorithm)

        try:
            data = load_json(file_path)
            registry = cls(algorithm=str(data.get("algorithm", algorithm)))
            for identity, records in dict(data.get("files", {})).items():
                registry._records[identity] = {
                    marker: ChecksumRecord.model_validate(raw)
                    for marker, raw in dict(records).items()
                }
        except (OSError, json.JSONDecodeError, ValidationError, TypeError, ValueError) as exc:
            raise RegenerationError(file_path, f"Unreadable checksum store: {exc}") from exc

        return registry
