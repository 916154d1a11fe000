"""Command-line interface for regen-merge.

Usage::

    regen-merge merge EXISTING NEW [-o OUT] [--force]
    regen-merge validate FILE
    regen-merge stats EXISTING NEW
    regen-merge checksum store FILE --store registry.json
    regen-merge checksum check FILE --store registry.json
    regen-merge generate TEMPLATE_DIR PREFIX OUTPUT_DIR [--context ctx.json] [--force]

Exit codes: 0 success, 1 conflicts / invalid markers / modified regions,
2 usage or I/O errors.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from regen_merge.config import MergeConfig
from regen_merge.errors import RegenerationError
from regen_merge.markers import validate_markers
from regen_merge.merge import ChecksumRegistry, MergeConflict, MergeEngine
from regen_merge.scaffolder import BatchReport, RegenerationWriter, TemplateRenderer
from regen_merge.utils import (
    console,
    err_console,
    load_json,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
    read_if_exists,
    setup_logging,
    write_text,
)

EXIT_OK = 0
EXIT_REVIEW = 1
EXIT_ERROR = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read(path: str, *, required: bool = True) -> str:
    content = read_if_exists(path)
    if content is None:
        if required:
            raise RegenerationError(path, "file not found")
        return ""
    return content


def _print_conflicts(conflicts: list[MergeConflict], out: Console = console) -> None:
    for conflict in conflicts:
        print_warning(
            escape(f"Conflict [{conflict.kind.value}] {conflict.marker}: {conflict.message}"),
            out=out,
        )
        if conflict.previous_content:
            out.print(conflict.previous_content, markup=False, highlight=False)


def _print_batch(report: BatchReport) -> None:
    print_summary_table(report.summary(), title="Regeneration")
    for outcome in report.outcomes:
        if outcome.error:
            print_error(escape(outcome.error))
        elif outcome.conflicts:
            print_warning(f"{outcome.path}: manual review required")
            _print_conflicts(outcome.conflicts)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_merge(args: argparse.Namespace, config: MergeConfig) -> int:
    existing = _read(args.existing, required=False)
    new_content = _read(args.new)
    result = MergeEngine().merge(existing, new_content, args.output or args.existing)
    # Without -o the merged file itself goes to stdout.
    out = console if args.output else err_console

    print_summary_table(
        {
            "Custom blocks preserved": result.custom_blocks_preserved_count,
            "Generated blocks updated": result.generated_blocks_updated_count,
            "Conflicts": len(result.conflicts),
        },
        title="Merge",
        out=out,
    )
    _print_conflicts(result.conflicts, out)

    if not result.success and not (args.force or config.write_on_conflict):
        print_error(
            "Merge not written: custom code would be lost (use --force to override)", out=out
        )
        return EXIT_REVIEW

    if args.output:
        write_text(args.output, result.merged_content)
        print_success(f"Wrote {args.output}")
    else:
        sys.stdout.write(result.merged_content)
        sys.stdout.flush()
    return EXIT_OK if result.success else EXIT_REVIEW


def cmd_validate(args: argparse.Namespace, config: MergeConfig) -> int:
    result = validate_markers(_read(args.file))
    if result.valid:
        print_success(f"{args.file}: markers OK")
        return EXIT_OK
    for error in result.errors:
        print_error(escape(error))
    return EXIT_REVIEW


def cmd_stats(args: argparse.Namespace, config: MergeConfig) -> int:
    stats = MergeEngine().get_merge_statistics(
        args.existing, _read(args.existing, required=False), _read(args.new)
    )
    print_summary_table(
        {
            "Total blocks": stats.total_blocks,
            "Custom blocks": stats.custom_blocks,
            "Generated blocks": stats.generated_blocks,
            "Conflicting blocks": stats.conflicting_blocks,
        },
        title="Merge statistics",
    )
    return EXIT_OK


def cmd_checksum(args: argparse.Namespace, config: MergeConfig) -> int:
    store_path = Path(args.store) if args.store else config.checksum_store
    if store_path is None:
        print_error("No checksum store given (use --store or REGEN_CHECKSUM_STORE)")
        return EXIT_ERROR

    registry = ChecksumRegistry.load(store_path, config.hash_algorithm)
    text = _read(args.file)
    identity = str(Path(args.file))

    if args.action == "store":
        records = registry.store(identity, text)
        asyncio.run(registry.save(store_path))
        print_success(f"Stored {len(records)} checksum(s) for {identity}")
        return EXIT_OK

    report = registry.detect_modifications(identity, text)
    if report.modified:
        print_warning(
            f"{identity}: hand-edited generated block(s): {', '.join(report.modified_markers)}"
        )
        return EXIT_REVIEW
    print_success(f"{identity}: generated blocks unchanged")
    return EXIT_OK


def cmd_generate(args: argparse.Namespace, config: MergeConfig) -> int:
    context = load_json(args.context) if args.context else {}
    renderer = TemplateRenderer(args.template_dir, comment_prefix=config.comment_prefix)
    rendered = renderer.render_tree(args.prefix, args.output_dir, context)
    if not rendered:
        print_warning(f"No templates found under {args.template_dir}/{args.prefix}")
        return EXIT_OK

    writer = RegenerationWriter(config)
    report = asyncio.run(writer.write_batch(rendered, force=args.force))
    _print_batch(report)
    return EXIT_OK if report.success else EXIT_REVIEW


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regen-merge",
        description="Regenerate source files without losing hand-written custom blocks",
    )
    parser.add_argument("--log-level", default=None, help="Override REGEN_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command")

    merge = sub.add_parser("merge", help="Merge new template output into an existing file")
    merge.add_argument("existing", help="Existing file (may not exist yet)")
    merge.add_argument("new", help="Freshly rendered content")
    merge.add_argument("--output", "-o", default=None, help="Write merged content here")
    merge.add_argument("--force", action="store_true", help="Write even with conflicts")
    merge.set_defaults(func=cmd_merge)

    validate = sub.add_parser("validate", help="Strictly validate markers in a file")
    validate.add_argument("file")
    validate.set_defaults(func=cmd_validate)

    stats = sub.add_parser("stats", help="Show block counts for a prospective merge")
    stats.add_argument("existing")
    stats.add_argument("new")
    stats.set_defaults(func=cmd_stats)

    checksum = sub.add_parser("checksum", help="Store or check generated-block checksums")
    checksum.add_argument("action", choices=["store", "check"])
    checksum.add_argument("file")
    checksum.add_argument("--store", default=None, help="Checksum store JSON file")
    checksum.set_defaults(func=cmd_checksum)

    generate = sub.add_parser("generate", help="Render a template tree and merge it into place")
    generate.add_argument("template_dir")
    generate.add_argument("prefix", help="Template subdirectory to render")
    generate.add_argument("output_dir")
    generate.add_argument("--context", default=None, help="JSON file with template variables")
    generate.add_argument("--force", action="store_true", help="Write even with conflicts")
    generate.set_defaults(func=cmd_generate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``regen-merge`` / ``python -m regen_merge.cli``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return EXIT_OK

    try:
        config = MergeConfig.from_env()
        if args.log_level:
            config.log_level = args.log_level.upper()
    except ValidationError as exc:
        print_error(escape(f"Invalid configuration: {exc}"), out=err_console)
        return EXIT_ERROR

    setup_logging(config.log_level)

    try:
        return args.func(args, config)
    except (RegenerationError, OSError, ValueError) as exc:
        print_error(escape(f"Error: {exc}"), out=err_console)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
