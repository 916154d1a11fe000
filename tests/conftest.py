"""Shared pytest fixtures for the regen-merge test suite.

Provides reusable fixtures for:
- Existing (hand-edited) and freshly rendered service files
- Marker text builders
- Merge engine, checksum registry and writer instances
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from regen_merge.config import MergeConfig
from regen_merge.merge import ChecksumRegistry, MergeEngine
from regen_merge.scaffolder import RegenerationWriter


# ---------------------------------------------------------------------------
# Text builders
# ---------------------------------------------------------------------------


def custom_block(name: str, *body: str, start: str = "CUSTOM_START", end: str = "CUSTOM_END") -> str:
    """Build a custom block using the given marker spellings."""
    return "\n".join([f"// {start}: {name}", *body, f"// {end}: {name}"])


def generated_block(name: str, *body: str) -> str:
    """Build a generated block with the canonical spelling."""
    return "\n".join([f"// GENERATED_START: {name}", *body, f"// GENERATED_END: {name}"])


def text_with_generated_block(name: str, body: str) -> str:
    """A small file holding one generated block surrounded by plain text."""
    return "\n".join(["export class Service {", generated_block(name, body), "}"])


# ---------------------------------------------------------------------------
# Sample files
# ---------------------------------------------------------------------------


@pytest.fixture
def existing_service() -> str:
    """A previously generated service that a developer has customised."""
    return textwrap.dedent("""\
        import { Injectable } from '@nestjs/common';
        // GENERATED_START: imports
        import { UserRepository } from './user.repository';
        // GENERATED_END: imports

        @Injectable()
        export class UserService {
          // GENERATED_START: find-all
          findAll() {
            return this.repo.findAll();
          }
          // GENERATED_END: find-all

          // CUSTOM_CODE_START: helpers
          cached() {
            return this.cache.get('users');
          }
          // CUSTOM_CODE_END: helpers
        }
        """)


@pytest.fixture
def new_service() -> str:
    """The same service rendered by a newer template."""
    return textwrap.dedent("""\
        import { Injectable } from '@nestjs/common';
        // GENERATED_START: imports
        import { UserRepository } from './user.repository';
        import { AuditService } from '../audit/audit.service';
        // GENERATED_END: imports

        @Injectable()
        export class UserService {
          // GENERATED_START: find-all
          findAll(filter) {
            return this.repo.findAll(filter);
          }
          // GENERATED_END: find-all

          // CUSTOM_CODE_START: helpers
          // Add custom helpers here
          // CUSTOM_CODE_END: helpers
        }
        """)


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> MergeEngine:
    return MergeEngine()


@pytest.fixture
def registry() -> ChecksumRegistry:
    return ChecksumRegistry()


@pytest.fixture
def merge_config(tmp_path: Path) -> MergeConfig:
    """Config with a checksum store inside the test's temp dir."""
    return MergeConfig(checksum_store=tmp_path / ".regen" / "checksums.json")


@pytest.fixture
def writer(merge_config: MergeConfig) -> RegenerationWriter:
    return RegenerationWriter(merge_config)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Target directory for written files (auto-cleanup)."""
    out = tmp_path / "app"
    out.mkdir()
    return out
