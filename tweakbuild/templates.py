"""Jinja2 template rendering for tweak project scaffolding.

Templates live under ``tweakbuild/templates/<kind>/`` as ``*.j2`` files.  Both
the file contents and the relative file names are rendered, so a template
named ``{{ name }}.plist.j2`` becomes ``MyTweak.plist``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Renders the bundled project templates with a context dictionary."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        return self.env.from_string(template_string).render(**context)

    def render_tree(
        self,
        template_prefix: str,
        output_dir: str | Path,
        context: dict[str, Any],
    ) -> list[Path]:
        """Render every ``*.j2`` file under *template_prefix* into *output_dir*.

        The directory structure is preserved and the ``.j2`` suffix dropped.

        Returns:
            List of written file paths, in template name order.
        """
        prefix_path = self.template_dir / template_prefix
        if not prefix_path.is_dir():
            return []

        written: list[Path] = []
        out_base = Path(output_dir)
        for template_file in sorted(prefix_path.rglob("*.j2")):
            rel = template_file.relative_to(prefix_path).as_posix()
            output_name = self.render_string(rel[: -len(".j2")], context)
            output_file = out_base / output_name
            output_file.parent.mkdir(parents=True, exist_ok=True)
            output_file.write_text(
                self.render(f"{template_prefix}/{rel}", context), encoding="utf-8"
            )
            written.append(output_file)
        return written

    def list_templates(self, prefix: str = "") -> list[str]:
        """Sorted ``.j2`` template paths under *prefix*, relative to the template root."""
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix() for p in search_dir.rglob("*.j2")
        )
