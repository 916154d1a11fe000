"""Tests for the merge-aware file writer (regen_merge.scaffolder.writer).

Covers:
- Creating new files (custom slots start empty, as in a merge)
- Updating existing files with custom code preserved
- Unchanged files are not rewritten
- Conflict policy: skip by default, write with force / write_on_conflict
- Hand-edit warnings from the checksum registry
- Batch writes: ordering, per-file failures, checksum persistence
- Per-path locking
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import custom_block, generated_block
from regen_merge.config import MergeConfig
from regen_merge.merge import ChecksumRegistry, MergeEngine
from regen_merge.scaffolder import BatchReport, FileAction, FileOutcome, RegenerationWriter


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


TEMPLATE_V1 = "\n".join(
    [
        generated_block("fields", "name: string;"),
        custom_block("methods", "// add methods"),
        "",
    ]
)

TEMPLATE_V2 = "\n".join(
    [
        generated_block("fields", "name: string;", "email: string;"),
        custom_block("methods", "// add methods"),
        "",
    ]
)


# ---------------------------------------------------------------------------
# Single file
# ---------------------------------------------------------------------------


class TestWrite:
    @pytest.mark.asyncio
    async def test_creates_new_file_with_empty_custom_slots(self, writer, output_dir: Path):
        target = output_dir / "user" / "user.entity.ts"

        outcome = await writer.write(target, TEMPLATE_V1)

        assert outcome.action is FileAction.CREATED
        assert outcome.written
        assert outcome.generated_blocks_updated == 1
        assert outcome.custom_blocks_preserved == 0
        assert target.read_text(encoding="utf-8") == "\n".join(
            [generated_block("fields", "name: string;"), custom_block("methods"), ""]
        )
        assert str(target) in writer.registry

    @pytest.mark.asyncio
    async def test_new_file_matches_engine_merge(self, writer, output_dir: Path):
        template = custom_block("hook", "placeholder();")
        target = output_dir / "hook.ts"

        await writer.write(target, template)

        expected = MergeEngine().merge("", template, str(target)).merged_content
        assert target.read_text(encoding="utf-8") == expected
        assert "placeholder();" not in expected

    @pytest.mark.asyncio
    async def test_updates_and_preserves_custom_code(self, writer, output_dir: Path):
        target = output_dir / "user.entity.ts"
        await writer.write(target, TEMPLATE_V1)
        edited = target.read_text(encoding="utf-8").replace(
            "// CUSTOM_START: methods\n",
            "// CUSTOM_START: methods\nfullName() { return this.name; }\n",
        )
        target.write_text(edited, encoding="utf-8")

        outcome = await writer.write(target, TEMPLATE_V2)

        content = target.read_text(encoding="utf-8")
        assert outcome.action is FileAction.UPDATED
        assert outcome.written
        assert outcome.custom_blocks_preserved == 1
        assert "email: string;" in content
        assert "fullName() { return this.name; }" in content
        assert "// add methods" not in content

    @pytest.mark.asyncio
    async def test_unchanged_file_is_not_rewritten(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        await writer.write(target, TEMPLATE_V1)

        with patch.object(RegenerationWriter, "_write_file") as write_file:
            outcome = await writer.write(target, TEMPLATE_V1)

        assert outcome.action is FileAction.UNCHANGED
        assert not outcome.written
        write_file.assert_not_called()

    @pytest.mark.asyncio
    async def test_conflict_skips_write(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        original = custom_block("legacy-hook", "doLegacyThing();")
        target.write_text(original, encoding="utf-8")

        outcome = await writer.write(target, generated_block("body", "x"))

        assert outcome.action is FileAction.CONFLICT
        assert not outcome.written
        assert outcome.conflicts[0].marker == "legacy-hook"
        assert outcome.conflicts[0].previous_content == "doLegacyThing();"
        assert target.read_text(encoding="utf-8") == original

    @pytest.mark.asyncio
    async def test_force_writes_despite_conflict(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        target.write_text(custom_block("legacy-hook", "doLegacyThing();"), encoding="utf-8")

        outcome = await writer.write(target, generated_block("body", "x"), force=True)

        assert outcome.action is FileAction.CONFLICT
        assert outcome.written
        assert target.read_text(encoding="utf-8") == generated_block("body", "x")

    @pytest.mark.asyncio
    async def test_write_on_conflict_config(self, output_dir: Path):
        writer = RegenerationWriter(MergeConfig(write_on_conflict=True))
        target = output_dir / "a.ts"
        target.write_text(custom_block("gone", "x"), encoding="utf-8")

        outcome = await writer.write(target, "replacement")

        assert outcome.written
        assert target.read_text(encoding="utf-8") == "replacement"

    @pytest.mark.asyncio
    async def test_warns_about_hand_edited_generated_block(
        self, writer, output_dir: Path, caplog
    ):
        target = output_dir / "a.ts"
        await writer.write(target, TEMPLATE_V1)
        target.write_text(
            TEMPLATE_V1.replace("name: string;", "name: string; // tweaked"), encoding="utf-8"
        )

        with caplog.at_level(logging.WARNING, logger="regen_merge"):
            outcome = await writer.write(target, TEMPLATE_V1)

        assert outcome.modified_markers == ["fields"]
        assert "edited by hand" in caplog.text
        assert "tweaked" not in target.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_checksums_follow_written_content(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        await writer.write(target, TEMPLATE_V1)
        await writer.write(target, TEMPLATE_V2)

        report = writer.registry.detect_modifications(
            str(target), target.read_text(encoding="utf-8")
        )
        assert not report.modified

    @pytest.mark.asyncio
    async def test_shared_registry(self, output_dir: Path):
        registry = ChecksumRegistry()
        writer = RegenerationWriter(registry=registry)
        await writer.write(output_dir / "a.ts", TEMPLATE_V1)
        assert str(output_dir / "a.ts") in registry


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


class TestWriteBatch:
    @pytest.mark.asyncio
    async def test_outcomes_keep_input_order(self, writer, output_dir: Path):
        items = [(output_dir / f"f{i}.ts", TEMPLATE_V1) for i in range(5)]

        report = await writer.write_batch(items)

        assert [o.path for o in report.outcomes] == [p for p, _ in items]
        assert all(o.action is FileAction.CREATED for o in report.outcomes)
        assert report.success

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self, writer, output_dir: Path):
        blocker = output_dir / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        items = [
            (output_dir / "ok.ts", TEMPLATE_V1),
            (blocker / "child.ts", TEMPLATE_V1),
            (output_dir / "also-ok.ts", TEMPLATE_V1),
        ]

        report = await writer.write_batch(items)

        actions = [o.action for o in report.outcomes]
        assert actions == [FileAction.CREATED, FileAction.FAILED, FileAction.CREATED]
        assert report.outcomes[1].error
        assert (output_dir / "also-ok.ts").exists()
        assert not report.success

    @pytest.mark.asyncio
    async def test_conflicts_flag_the_batch(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        target.write_text(custom_block("gone", "x"), encoding="utf-8")

        report = await writer.write_batch([(target, "new"), (output_dir / "b.ts", "new")])

        assert [o.action for o in report.outcomes] == [FileAction.CONFLICT, FileAction.CREATED]
        assert not report.success

    @pytest.mark.asyncio
    async def test_same_file_twice_is_serialised(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        report = await writer.write_batch([(target, TEMPLATE_V1), (target, TEMPLATE_V2)])

        assert [o.action for o in report.outcomes] == [FileAction.CREATED, FileAction.UPDATED]
        assert "email: string;" in target.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_differently_spelled_paths_share_a_lock(self, writer, output_dir: Path):
        target = output_dir / "a.ts"
        (output_dir / "sub").mkdir()
        detour = output_dir / "sub" / ".." / "a.ts"

        report = await writer.write_batch([(target, TEMPLATE_V1), (detour, TEMPLATE_V2)])

        assert [o.action for o in report.outcomes] == [FileAction.CREATED, FileAction.UPDATED]
        assert "email: string;" in target.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_locks_are_released(self, writer, output_dir: Path):
        items = [(output_dir / f"f{i}.ts", TEMPLATE_V1) for i in range(3)]
        items.append((output_dir / "f0.ts", TEMPLATE_V2))

        await writer.write_batch(items)
        await writer.write(output_dir / "g.ts", TEMPLATE_V1)

        assert writer._locks == {}
        assert writer._lock_users == {}

    @pytest.mark.asyncio
    async def test_persists_checksums(self, writer, merge_config, output_dir: Path):
        await writer.write_batch([(output_dir / "a.ts", TEMPLATE_V1)])

        assert merge_config.checksum_store.exists()
        reloaded = ChecksumRegistry.load(merge_config.checksum_store)
        assert str(output_dir / "a.ts") in reloaded

    @pytest.mark.asyncio
    async def test_new_writer_picks_up_stored_checksums(self, merge_config, output_dir: Path):
        target = output_dir / "a.ts"
        await RegenerationWriter(merge_config).write_batch([(target, TEMPLATE_V1)])

        writer = RegenerationWriter(merge_config)
        assert str(target) in writer.registry

    @pytest.mark.asyncio
    async def test_no_store_configured(self, output_dir: Path):
        writer = RegenerationWriter()
        assert await writer.save_checksums() is None
        report = await writer.write_batch([(output_dir / "a.ts", "x")])
        assert report.success


class TestBatchReport:
    def test_summary(self):
        report = BatchReport(
            outcomes=[
                FileOutcome(path=Path("a"), action=FileAction.CREATED, generated_blocks_updated=2),
                FileOutcome(path=Path("b"), action=FileAction.UPDATED, custom_blocks_preserved=3),
                FileOutcome(path=Path("c"), action=FileAction.FAILED, error="boom"),
            ],
            duration_seconds=2.5,
        )
        summary = report.summary()

        assert summary["Created"] == "1"
        assert summary["Updated"] == "1"
        assert summary["Failed"] == "1"
        assert summary["Conflict"] == "0"
        assert summary["Custom blocks preserved"] == "3"
        assert summary["Generated blocks updated"] == "2"
        assert summary["Duration"] == "2.5s"
        assert not report.success

    def test_empty_report_is_success(self):
        assert BatchReport().success
