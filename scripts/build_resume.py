#!/usr/bin/env python3
"""
Resume Build CLI

Runs the rescribe pipeline from the command line.

Commands:
    upload    - Convert a resume PDF into an AI-formatted LaTeX resume and publish the PDF
    recompile - Sanitize, compile and publish an edited LaTeX resume
    cleanup   - Remove stale PDFs from a user's storage folder
    sanitize  - Print the sanitized version of a LaTeX file

Examples:\n

    build_resume.py upload resume.pdf --user user123                 # Publish for a user

    build_resume.py upload resume.pdf --latex-out out/resume.tex     # Also save the LaTeX

    build_resume.py recompile edited.tex --user user123              # Recompile edited LaTeX

    build_resume.py cleanup --user user123                           # Remove stale PDFs

    build_resume.py sanitize draft.tex --report                      # Show which passes fired
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from rescribe.config import build_pipeline, load_settings
from rescribe.contexts.publishing import Identity
from rescribe.exceptions import CompilationError, RescribeError
from rescribe.pipeline import ResumePipeline
from rescribe.utils.latex_sanitizer import sanitize_with_report
from rescribe.utils.logger import setup_logger
from rescribe.utils.timestamp import now

load_dotenv()

app = typer.Typer(
    help="Convert resume PDFs to AI-formatted LaTeX, compile and publish them",
    add_completion=False,
    invoke_without_command=True,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML settings merged over the defaults", exists=True),
]
SetOption = Annotated[
    Optional[List[str]],
    typer.Option("--set", "-s", help="Dotlist override, e.g. rendering.timeout_s=30 (repeatable)"),
]
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", help="User id to publish for (default: new guest session)"),
]


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _identity(user: Optional[str]) -> Identity:
    try:
        return Identity.user(user) if user else Identity.guest()
    except RescribeError as e:
        raise typer.BadParameter(e.details, param_hint="--user") from e


def _start_session(command: str, config: Optional[Path], overrides: Optional[List[str]]):
    settings = load_settings(config, overrides)
    log_dir = Path(settings.logging.log_dir) / f"{command}_{now()}"
    log_file = setup_logger(
        context_name=command,
        log_dir=log_dir,
        extra_provenance={
            "LaTeX compiler": settings.rendering.compiler,
            "Storage backend": settings.publishing.backend,
        },
        console_level=settings.logging.console_level,
    )
    return settings, log_file


async def _run(pipeline: ResumePipeline, coro):
    try:
        return await coro
    finally:
        if pipeline.cleanup_queue is not None:
            await pipeline.cleanup_queue.close()


def _fail(error: RescribeError, log_file: Path):
    typer.secho(f"\n✗ {error.message} [{error.code}]", fg=typer.colors.RED, bold=True, err=True)
    typer.echo(f"  {error.details}", err=True)
    if isinstance(error, CompilationError) and error.log:
        tail = error.log.strip().splitlines()[-15:]
        typer.echo("\nCompiler log (tail):", err=True)
        for line in tail:
            typer.echo(f"  {line}", err=True)
    typer.echo(f"  Log: {log_file}\n", err=True)
    raise typer.Exit(code=1)


@app.command("upload")
def upload_command(
    pdf_file: Annotated[Path, typer.Argument(help="Resume PDF to convert", exists=True, dir_okay=False)],
    user: UserOption = None,
    title: Annotated[
        Optional[str], typer.Option("--title", "-t", help="File name slot for the published PDF")
    ] = None,
    latex_out: Annotated[
        Optional[Path], typer.Option("--latex-out", "-o", help="Also write the generated LaTeX here")
    ] = None,
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """
    Convert a resume PDF into an AI-formatted LaTeX resume and publish the compiled PDF.

    Examples:\n

        $ build_resume.py upload resume.pdf --user user123

        $ build_resume.py upload resume.pdf --title "Jane Doe 2026" -s rendering.timeout_s=60
    """
    settings, log_file = _start_session("upload", config, overrides)
    pipeline = build_pipeline(settings)
    identity = _identity(user)

    typer.secho(f"\nProcessing: {pdf_file}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"Publishing as: {identity}")

    try:
        result = asyncio.run(
            _run(
                pipeline,
                pipeline.process_upload(pdf_file.read_bytes(), "application/pdf", identity, file_name=title),
            )
        )
    except RescribeError as e:
        _fail(e, log_file)

    if latex_out is not None:
        latex_out.parent.mkdir(parents=True, exist_ok=True)
        latex_out.write_text(result.latex, encoding="utf-8")

    typer.secho("\n✓ Resume published", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  LaTeX source: {result.provider_name} ({result.provider.value})")
    typer.echo(f"  Storage path: {result.artifact.storage_path}")
    typer.echo(f"  URL: {result.pdf_url}")
    if latex_out is not None:
        typer.echo(f"  LaTeX: {latex_out}")
    typer.echo(f"  Log: {log_file}\n")


@app.command("recompile")
def recompile_command(
    tex_file: Annotated[Path, typer.Argument(help="Edited LaTeX file", exists=True, dir_okay=False)],
    user: UserOption = None,
    title: Annotated[
        Optional[str], typer.Option("--title", "-t", help="File name slot for the published PDF")
    ] = None,
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """
    Sanitize, compile and publish an edited LaTeX resume.

    Examples:\n

        $ build_resume.py recompile edited.tex --user user123
    """
    settings, log_file = _start_session("recompile", config, overrides)
    pipeline = build_pipeline(settings)
    identity = _identity(user)

    typer.secho(f"\nRecompiling: {tex_file}", fg=typer.colors.BLUE, bold=True)

    try:
        result = asyncio.run(
            _run(
                pipeline,
                pipeline.recompile(tex_file.read_text(encoding="utf-8"), identity, file_name=title),
            )
        )
    except RescribeError as e:
        _fail(e, log_file)

    typer.secho("\n✓ Resume published", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  Storage path: {result.artifact.storage_path}")
    typer.echo(f"  URL: {result.pdf_url}")
    typer.echo(f"  Log: {log_file}\n")


@app.command("cleanup")
def cleanup_command(
    user: Annotated[str, typer.Option("--user", "-u", help="User id whose folder to clean")],
    keep: Annotated[
        Optional[List[str]], typer.Option("--keep", "-k", help="Object path to keep (repeatable)")
    ] = None,
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """
    Remove stale PDFs from a user's storage folder.

    Examples:\n

        $ build_resume.py cleanup --user user123 --keep users/user123/resume.pdf
    """
    settings, log_file = _start_session("cleanup", config, overrides)
    pipeline = build_pipeline(settings)
    identity = _identity(user)

    try:
        removed = asyncio.run(pipeline.publisher.remove_stale(identity, keep or []))
    except RescribeError as e:
        _fail(e, log_file)

    typer.secho(f"\n✓ Removed {len(removed)} PDF(s) from {identity}", fg=typer.colors.GREEN, bold=True)
    for path in removed:
        typer.echo(f"  - {path}")
    typer.echo("")


@app.command("sanitize")
def sanitize_command(
    tex_file: Annotated[Path, typer.Argument(help="LaTeX file to sanitize", exists=True, dir_okay=False)],
    report: Annotated[
        bool, typer.Option("--report", "-r", help="List the sanitizer passes that changed the input")
    ] = False,
):
    """
    Print the sanitized version of a LaTeX file to stdout.

    Examples:\n

        $ build_resume.py sanitize draft.tex > clean.tex
    """
    sanitized, changed = sanitize_with_report(tex_file.read_text(encoding="utf-8"))
    typer.echo(sanitized)
    if report:
        summary = ", ".join(changed) if changed else "none"
        typer.secho(f"Passes applied: {summary}", fg=typer.colors.YELLOW, err=True)


if __name__ == "__main__":
    app()
