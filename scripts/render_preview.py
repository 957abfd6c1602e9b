#!/usr/bin/env python3
"""
LaTeX Preview CLI

Compiles LaTeX files to the same HTML preview the editor shows, checks the
external toolchain, and watches a file for live previews.

Commands:
    render - Compile a .tex file once and write the preview HTML
    doctor - Report missing toolchain binaries and typesetter capabilities
    watch  - Recompile on every save through the single-flight queue

Examples:\n

    render_preview.py render paper.tex                  # Writes paper.html

    render_preview.py render paper.tex -o out.html --dark

    render_preview.py doctor

    render_preview.py watch paper.tex --interval 0.5
"""

import os
import time
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from texpreview.contexts.compilation import (
    CompilationPipeline,
    load_settings,
    missing_dependencies,
    probe_capabilities,
)
from texpreview.contexts.compilation.logger import setup_compilation_logger
from texpreview.contexts.preview import CompilationQueue, CompilationRequest, PageRenderer
from texpreview.utils.logger import setup_logger

load_dotenv()
LOGS_PATH = Path(os.getenv("TEXPREVIEW_LOGS_PATH", "outs/logs"))


app = typer.Typer(
    help="Compile LaTeX documents into paginated SVG previews",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML file with compiler settings", exists=True),
]


def _write_html(html: str, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(html, encoding="utf-8")


def _read_source(tex_file: Path) -> Optional[str]:
    """Read the LaTeX source, reporting undecodable or vanished files instead of crashing."""
    try:
        return tex_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        typer.secho(
            f"✗ {tex_file} is not valid UTF-8 (byte {e.start}); save it as UTF-8 and retry",
            fg=typer.colors.RED,
            err=True,
        )
    except OSError as e:
        typer.secho(f"✗ Could not read {tex_file}: {e}", fg=typer.colors.RED, err=True)
    return None


@app.command("render")
def render_command(
    tex_file: Annotated[
        Path,
        typer.Argument(help="LaTeX source file", exists=True, dir_okay=False),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="HTML output path (default: next to the source)"),
    ] = None,
    dark: Annotated[
        bool,
        typer.Option("--dark", help="Render with the dark colour scheme"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug output and keep a log file"),
    ] = False,
    config: ConfigOption = None,
):
    """
    Compile a LaTeX file once and write the preview HTML.

    Examples:\n

        $ render_preview.py render paper.tex

        $ render_preview.py render paper.tex --dark --verbose
    """
    settings = load_settings(config)
    setup_compilation_logger(
        log_dir=LOGS_PATH if verbose else None,
        typesetter=settings.typesetter,
        console_level="DEBUG" if verbose else "WARNING",
    )

    output = output or tex_file.with_suffix(".html")
    typer.secho(f"\nCompiling: {tex_file}", fg=typer.colors.BLUE, bold=True)

    source = _read_source(tex_file)
    if source is None:
        raise typer.Exit(code=1)

    result = CompilationPipeline(settings).compile(source)
    _write_html(PageRenderer().render(result, dark_mode=dark), output)

    if result.success:
        typer.secho("✓ Compilation succeeded", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  Pages: {len(result.pages)}")
        typer.echo(f"  Passes: {result.num_passes}")
        typer.echo(f"  Warnings: {len(result.warnings)}")
        if verbose:
            for warning in result.warnings[:10]:
                typer.echo(f"    - {warning}")
    else:
        typer.secho("✗ Compilation failed", fg=typer.colors.RED, bold=True)
        typer.secho(result.error, fg=typer.colors.RED)

    typer.echo(f"  HTML: {output}\n")
    raise typer.Exit(code=0 if result.success else 1)


@app.command("doctor")
def doctor_command(config: ConfigOption = None):
    """
    Check that the external toolchain is installed.

    Exits with 1 when the typesetter or converter is missing.
    """
    settings = load_settings(config)
    setup_logger(context_name="doctor", console_level="WARNING")

    missing = missing_dependencies(settings)
    if missing:
        typer.secho("Missing dependencies (preview may not work):", fg=typer.colors.YELLOW, bold=True)
        for entry in missing:
            typer.echo(f"  - {entry}")
    else:
        typer.secho("✓ All toolchain binaries found", fg=typer.colors.GREEN, bold=True)

    capabilities = probe_capabilities(settings.typesetter)
    typer.echo(f"\n{settings.typesetter} sandboxing:")
    typer.echo(f"  openin_any=p:  {'yes' if capabilities.supports_openin_any else 'no'}")
    typer.echo(f"  openout_any=p: {'yes' if capabilities.supports_openout_any else 'no'}")

    required = {settings.typesetter, settings.converter}
    fatal = any(entry.split(" ")[0] in required for entry in missing)
    raise typer.Exit(code=1 if fatal else 0)


@app.command("watch")
def watch_command(
    tex_file: Annotated[
        Path,
        typer.Argument(help="LaTeX source file", exists=True, dir_okay=False),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="HTML output path (default: next to the source)"),
    ] = None,
    dark: Annotated[
        bool,
        typer.Option("--dark", help="Render with the dark colour scheme"),
    ] = False,
    interval: Annotated[
        float,
        typer.Option("--interval", "-i", help="Seconds between change checks", min=0.05),
    ] = 0.25,
    config: ConfigOption = None,
):
    """
    Recompile the preview every time the file changes. Stop with Ctrl-C.

    Changes arriving while a compilation is running are coalesced: at most one
    more compilation waits, later ones are dropped until the worker frees up.
    """
    settings = load_settings(config)
    setup_compilation_logger(log_dir=LOGS_PATH, typesetter=settings.typesetter)

    output = output or tex_file.with_suffix(".html")
    typer.secho(f"\nWatching: {tex_file} -> {output}", fg=typer.colors.BLUE, bold=True)

    def deliver(future):
        if future.exception() is not None:
            typer.secho(f"Render failed: {future.exception()}", fg=typer.colors.RED, err=True)
        elif future.result() is not None:
            _write_html(future.result(), output)

    last_mtime = None
    with CompilationQueue(CompilationPipeline(settings)) as queue:
        try:
            while True:
                try:
                    mtime = tex_file.stat().st_mtime
                except FileNotFoundError:
                    # Editors that save by rename briefly remove the file
                    time.sleep(interval)
                    continue

                if mtime != last_mtime:
                    source = _read_source(tex_file)
                    if source is None:
                        # Wait for the next save instead of repeating the error
                        last_mtime = mtime
                        time.sleep(interval)
                        continue
                    request = CompilationRequest(source, dark)
                    future = queue.submit(request)
                    rejected = future.done() and future.exception() is None and future.result() is None
                    # A rejected change is offered again on the next tick
                    if not rejected:
                        last_mtime = mtime
                        future.add_done_callback(deliver)
                time.sleep(interval)
        except KeyboardInterrupt:
            typer.echo("\nWaiting for the running compilation to finish...")

    typer.echo("Stopped.")


if __name__ == "__main__":
    app()
