"""
Integration tests for rendering and the full pipeline with a real pdflatex.
"""

import shutil

import pytest

from rescribe.contexts.generation import GenerationChain, build_fallback_document
from rescribe.contexts.publishing import ArtifactPublisher, Identity, LocalStorage
from rescribe.contexts.rendering.compiler import compile_latex, prepare_job
from rescribe.exceptions import CompilationError
from rescribe.pipeline import ResumePipeline
from rescribe.utils.latex_sanitizer import sanitize_latex

PDFLATEX_AVAILABLE = shutil.which("pdflatex") is not None
skip_if_no_pdflatex = pytest.mark.skipif(
    not PDFLATEX_AVAILABLE,
    reason="pdflatex not installed - install TeX Live or MiKTeX",
)


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
@pytest.mark.asyncio
async def test_fallback_document_compiles(tmp_path):
    """Test that the local fallback template always compiles."""
    latex = build_fallback_document(
        "Jane Doe\n[GitHub] github.com/jane\n*Python, Go\n"
        "R&D Lead, 100% remote\nC:\\Users\\jane ~ #1 $5 ^_^"
    )
    work_dir = prepare_job("fallback", latex, tmp_path)

    outcome = await compile_latex(work_dir, executable="pdflatex", timeout=60)

    assert outcome.success
    assert outcome.pdf_path.stat().st_size > 0
    assert outcome.page_count == 1


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
@pytest.mark.asyncio
async def test_sanitized_ai_output_compiles(tmp_path):
    """Test that typical AI mistakes are repaired well enough to compile."""
    latex = sanitize_latex(
        "\\documentclass[11pt]{article}\n"
        "\\renewcommand{\\hrulefill}{\\leavevmode\\leaders\\hrule\\hfill}\n"
        "\\begin{document}\n"
        "\\section*{Skills}\n"
        "\\begin{itemize}\n"
        "\\item Python\n"
        "\\section*{Education}\n"
        "\\par\\noindent\\ule{linewidth}{1pt}\n"
        "\\end{itemize}\n"
        "\\end{document}."
    )
    work_dir = prepare_job("repaired", latex, tmp_path)

    outcome = await compile_latex(work_dir, executable="pdflatex", timeout=60)

    assert outcome.success


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
@pytest.mark.asyncio
async def test_undefined_command_reports_line(tmp_path):
    """Test that a real compile error carries the log and line number."""
    latex = "\\documentclass{article}\n\\begin{document}\nText \\undefinedcommand{x}\n\\end{document}\n"
    work_dir = prepare_job("broken", latex, tmp_path)

    with pytest.raises(CompilationError) as exc_info:
        await compile_latex(work_dir, executable="pdflatex", timeout=60)

    assert "Undefined control sequence" in exc_info.value.log
    assert exc_info.value.line_number == 3


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_pdflatex
@pytest.mark.asyncio
async def test_recompile_end_to_end(tmp_path):
    """Test recompile through to LocalStorage with the real compiler."""
    storage = LocalStorage(tmp_path / "store")
    pipeline = ResumePipeline(
        chain=GenerationChain([]),
        publisher=ArtifactPublisher(storage, bucket="resumes"),
        scratch_root=tmp_path / "scratch",
        compiler="pdflatex",
        compile_timeout=60,
    )

    result = await pipeline.recompile(build_fallback_document("Jane Doe"), Identity.user("user123"))

    stored = tmp_path / "store" / "resumes" / "users" / "user123" / "resume.pdf"
    assert stored.read_bytes().startswith(b"%PDF")
    assert result.pdf_url.startswith(stored.resolve().as_uri())
