"""Jinja2 template rendering for marker-bearing source files.

Provides the TemplateRenderer class, which renders templates into "new
content" for the merge engine.  Templates declare their regions with two
globals::

    {{ generated_block("imports", imports_body) }}
    {{ custom_block("find-all", "return [];", indent=4) }}

so the emitted markers are always well-formed and use one spelling.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from jinja2 import BaseLoader, Environment, FileSystemLoader

from regen_merge.markers import BlockKind, marker_lines


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates whose output carries block markers.

    When *template_dir* is omitted only :meth:`render_string` is usable.
    """

    def __init__(
        self,
        template_dir: str | Path | None = None,
        comment_prefix: str = "//",
    ) -> None:
        self.template_dir = Path(template_dir) if template_dir is not None else None
        self.comment_prefix = comment_prefix
        loader = (
            FileSystemLoader(str(self.template_dir))
            if self.template_dir is not None
            else BaseLoader()
        )
        self.env = Environment(
            loader=loader,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.globals["custom_block"] = self.custom_block
        self.env.globals["generated_block"] = self.generated_block
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self.env.filters["kebab_case"] = _kebab_case_filter

    # -- Marker helpers ----------------------------------------------------

    def custom_block(self, name: str, placeholder: str = "", indent: int = 0) -> str:
        """A Custom slot. *placeholder* documents the slot; merged output starts it empty."""
        return self._wrap(BlockKind.CUSTOM, name, placeholder, indent)

    def generated_block(self, name: str, body: str = "", indent: int = 0) -> str:
        """A Generated region; *body* replaces whatever the file held before."""
        return self._wrap(BlockKind.GENERATED, name, body, indent)

    def _wrap(self, kind: BlockKind, name: str, body: str, indent: int) -> str:
        start, end = marker_lines(kind, name, self.comment_prefix)
        lines = [start]
        if body:
            lines.extend(body.rstrip("\n").split("\n"))
        lines.append(end)
        # The first line sits wherever the template placed the call.
        pad = " " * indent
        return "\n".join([lines[0], *(pad + line if line else line for line in lines[1:])])

    # -- Rendering ---------------------------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"nestjs/service.ts.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        template = self.env.from_string(template_string)
        return template.render(**context)

    def render_tree(
        self,
        template_prefix: str,
        output_dir: str | Path,
        context: dict[str, Any],
        *,
        skip_patterns: list[str] | None = None,
    ) -> list[tuple[Path, str]]:
        """Render every ``*.j2`` file under *template_prefix*.

        Nothing is written: the result is a list of ``(output_path, content)``
        pairs ready for ``RegenerationWriter.write_batch``.  A template at
        ``module/service.ts.j2`` rendered with ``template_prefix="module"``
        and ``output_dir="/app/src/user"`` maps to ``/app/src/user/service.ts``.

        Args:
            template_prefix: Subdirectory inside the template root to scan.
            output_dir: Target directory for the rendered files.
            context: Template context variables.
            skip_patterns: Optional filename substrings to skip.
        """
        if self.template_dir is None:
            return []
        skip_patterns = skip_patterns or []
        prefix_path = self.template_dir / template_prefix
        if not prefix_path.is_dir():
            return []

        rendered: list[tuple[Path, str]] = []
        out_base = Path(output_dir)

        for template_file in sorted(prefix_path.rglob("*.j2")):
            rel_str = template_file.relative_to(prefix_path).as_posix()
            if any(pat in rel_str for pat in skip_patterns):
                continue

            output_name = rel_str[: -len(".j2")]
            template_key = f"{template_prefix}/{rel_str}" if template_prefix else rel_str
            rendered.append((out_base / output_name, self.render(template_key, context)))

        return rendered

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all ``.j2`` template paths under *prefix*."""
        if self.template_dir is None:
            return []
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in search_dir.rglob("*.j2")
        )


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _kebab_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    return _snake_case_filter(value).replace("_", "-")
