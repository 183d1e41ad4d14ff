"""Jinja2 template loader for LLM prompts."""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape


class TemplateLoader:
    """Loads and renders Jinja2 prompt templates from one directory."""

    def __init__(self, templates_dir: Path):
        """Initialize template loader.

        Args:
            templates_dir: Directory containing .jinja2 template files
        """
        self.templates_dir = templates_dir
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )

    def render(self, template_name: str, **context) -> str:
        """Render a template with context variables.

        Raises:
            jinja2.TemplateNotFound: If template doesn't exist
        """
        template = self.env.get_template(template_name)
        return template.render(**context)
