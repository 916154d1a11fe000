"""Regeneration scaffolder -- renders templates and merges them into place.

Quick usage::

    from regen_merge.scaffolder import RegenerationWriter, TemplateRenderer

    renderer = TemplateRenderer("templates")
    files = renderer.render_tree("nestjs-module", "app/src/user", context)
    report = await RegenerationWriter().write_batch(files)
"""

from regen_merge.scaffolder.templates import TemplateRenderer
from regen_merge.scaffolder.writer import (
    BatchReport,
    FileAction,
    FileOutcome,
    RegenerationWriter,
)

__all__ = [
    "BatchReport",
    "FileAction",
    "FileOutcome",
    "RegenerationWriter",
    "TemplateRenderer",
]
