"""
Preview Page Rendering

Wraps a CompilationResult into a self-contained HTML document for the preview pane.
The document carries a Content-Security-Policy that blocks scripts and every
external resource, since the SVG pages derive from untrusted LaTeX source.
"""

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from texpreview.contexts.compilation.compiler import CompilationResult

TEMPLATES_PATH = Path(__file__).parent / "templates"

CONTENT_SECURITY_POLICY = (
    "default-src 'none'; script-src 'none'; style-src 'unsafe-inline'; "
    "img-src data:; font-src data:"
)


class PageRenderer:
    """
    Renders compilation results into preview HTML with Jinja2 templates.

    Page SVG markup is embedded verbatim; error messages are HTML-escaped.
    Dark mode is a CSS filter on the page containers and never touches the markup.

    Args:
        templates_path: Directory holding pages.html.jinja and error.html.jinja
    """

    def __init__(self, templates_path: Path = TEMPLATES_PATH):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_path)),
            autoescape=select_autoescape(["html", "jinja"]),
            # Catches silent failures
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, result: CompilationResult, dark_mode: bool = False) -> str:
        """
        Render a compilation result as a complete HTML document.

        Args:
            result: Pages or error from CompilationPipeline.compile()
            dark_mode: Apply the inverted colour scheme

        Returns:
            HTML document string
        """
        if result.success:
            return self.render_pages(result.pages, dark_mode)
        return self.render_error(result.error or "Unknown compilation error", dark_mode)

    def render_pages(self, pages, dark_mode: bool = False) -> str:
        template = self.env.get_template("pages.html.jinja")
        return template.render(
            pages=pages,
            dark_mode=dark_mode,
            content_security_policy=CONTENT_SECURITY_POLICY,
        )

    def render_error(self, message: str, dark_mode: bool = False) -> str:
        template = self.env.get_template("error.html.jinja")
        return template.render(
            message=message,
            dark_mode=dark_mode,
            content_security_policy=CONTENT_SECURITY_POLICY,
        )
