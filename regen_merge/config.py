"""regen-merge configuration.

Typed settings for the writer, checksum store and CLI.  Uses a Pydantic v2
model so values are validated at construction time and can be serialised
to/from JSON or read from environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from regen_merge.utils import is_supported_hash

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class MergeConfig(BaseModel):
    """Global regen-merge configuration.

    Instances are typically created once by the CLI entry point or by the
    code that owns a generation run, then passed to ``RegenerationWriter``.
    """

    comment_prefix: str = Field(
        default="//", description="Comment prefix used when emitting marker lines"
    )
    hash_algorithm: str = Field(
        default="sha256", description="hashlib algorithm for Generated-block checksums"
    )
    write_on_conflict: bool = Field(
        default=False,
        description="Write best-effort merged content even when custom code would be lost",
    )
    checksum_store: Optional[Path] = Field(
        default=None, description="JSON file that persists checksums between runs"
    )
    log_level: str = Field(default="INFO")

    @field_validator("hash_algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        if not is_supported_hash(value):
            raise ValueError(f"Unsupported hash algorithm: {value}")
        return value.lower()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "MergeConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "MergeConfig":
        """Build a ``MergeConfig`` from environment variables.

        Recognised variables (all optional):
            REGEN_COMMENT_PREFIX, REGEN_HASH_ALGORITHM, REGEN_WRITE_ON_CONFLICT,
            REGEN_CHECKSUM_STORE, REGEN_LOG_LEVEL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("REGEN_COMMENT_PREFIX"):
            kwargs["comment_prefix"] = os.environ["REGEN_COMMENT_PREFIX"]
        if os.environ.get("REGEN_HASH_ALGORITHM"):
            kwargs["hash_algorithm"] = os.environ["REGEN_HASH_ALGORITHM"]
        if os.environ.get("REGEN_WRITE_ON_CONFLICT"):
            kwargs["write_on_conflict"] = os.environ["REGEN_WRITE_ON_CONFLICT"].strip().lower() in (
                "1",
                "true",
                "yes",
                "on",
            )
        if os.environ.get("REGEN_CHECKSUM_STORE"):
            kwargs["checksum_store"] = Path(os.environ["REGEN_CHECKSUM_STORE"])
        if os.environ.get("REGEN_LOG_LEVEL"):
            kwargs["log_level"] = os.environ["REGEN_LOG_LEVEL"]
        return cls(**kwargs)
